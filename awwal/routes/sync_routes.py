# awwal/routes/sync_routes.py

from flask import current_app, g
from flask_smorest import Blueprint, abort

from .. import db
from ..extensions import limiter
from ..schemas import SyncPayloadSchema, SyncResultSchema, SyncStatusSchema, MessageSchema
from ..services import attendance_service
from ..utils.auth import jwt_required

sync_bp = Blueprint(
    'Sync',
    __name__,
    url_prefix='/api/sync',
    description="Move locally stored attendance into the signed-in user's account."
)


@sync_bp.route('', methods=['POST'])
@limiter.limit("30 per minute")
@jwt_required
@sync_bp.arguments(SyncPayloadSchema, error_status_code=400)
@sync_bp.response(200, SyncResultSchema)
@sync_bp.alt_response(400, schema=MessageSchema, description="Neither localData nor records was provided.")
def sync_local_data(payload):
    """
    Bulk upload attendance kept in local storage.

    Accepts the legacy per-day map as `localData` or a list of client records as
    `records`. Existing records are left untouched and counted as skipped.
    """
    try:
        return attendance_service.sync_local_data(
            g.user,
            local_data=payload.get('local_data'),
            records=payload.get('records'),
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error syncing data for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")


def _sync_status_response():
    try:
        return attendance_service.get_sync_status(g.user)
    except Exception as e:
        current_app.logger.error(f"Error getting sync status for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")


@sync_bp.route('', methods=['GET'])
@jwt_required
@sync_bp.response(200, SyncStatusSchema)
def sync_overview():
    """
    Summary of what the server holds for the user: totals, recent records, counts per prayer.
    """
    return _sync_status_response()


@sync_bp.route('/status', methods=['GET'])
@jwt_required
@sync_bp.response(200, SyncStatusSchema)
def sync_status():
    """
    Same as `GET /api/sync`.
    """
    return _sync_status_response()
