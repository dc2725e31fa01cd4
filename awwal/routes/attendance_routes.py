# awwal/routes/attendance_routes.py

from flask import current_app, g
from flask_smorest import Blueprint, abort

from .. import db
from ..schemas import (
    AttendancePostSchema,
    AttendanceBulkPostSchema,
    AttendanceBulkResponseSchema,
    AttendanceQueryArgsSchema,
    AttendanceDeleteArgsSchema,
    AttendanceResponseSchema,
    AttendanceListSchema,
    SuccessSchema,
    MessageSchema,
)
from ..services import attendance_service
from ..utils.auth import jwt_required

attendance_bp = Blueprint(
    'Attendance',
    __name__,
    url_prefix='/api/attendance',
    description="Record, list and remove attended prayers for the signed-in user."
)


@attendance_bp.route('', methods=['GET'])
@jwt_required
@attendance_bp.arguments(AttendanceQueryArgsSchema, location='query', error_status_code=400)
@attendance_bp.response(200, AttendanceListSchema)
@attendance_bp.alt_response(401, schema=MessageSchema, description="Missing or invalid token.")
def list_attendance(args):
    """
    List attendance records, newest prayer date first.

    Optionally restricted to a single `date`; at most `limit` records (default 30).
    """
    try:
        attendances = attendance_service.list_attendances(g.user, date=args.get('date'), limit=args.get('limit'))
    except Exception as e:
        current_app.logger.error(f"Error fetching attendance for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")
    return {"attendances": attendances}


@attendance_bp.route('', methods=['POST'])
@jwt_required
@attendance_bp.arguments(AttendancePostSchema, error_status_code=400)
@attendance_bp.response(201, AttendanceResponseSchema)
@attendance_bp.alt_response(400, schema=MessageSchema, description="Validation errors.")
def record_attendance(payload):
    """
    Mark a prayer as attended.

    Creates the record, or updates it when the prayer was already recorded for that date.
    Detailed records with a custom time also get `isEarly` and `delayMinutes`.
    """
    try:
        attendance = attendance_service.upsert_attendance(
            g.user,
            prayer_name=payload['prayer_name'],
            prayer_date=payload['prayer_date'],
            scheduled_time=payload['scheduled_time'],
            custom_time=payload.get('custom_time'),
            method=payload['method'],
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving attendance for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")
    return {"attendance": attendance}


@attendance_bp.route('/bulk', methods=['POST'])
@jwt_required
@attendance_bp.arguments(AttendanceBulkPostSchema, error_status_code=400)
@attendance_bp.response(200, AttendanceBulkResponseSchema)
def record_attendance_bulk(payload):
    """
    Mark several prayers at once.

    Every record is upserted on its own; an invalid one is reported in
    `results` without affecting the others.
    """
    records = []
    for record in payload['records']:
        record = record if isinstance(record, dict) else {}
        records.append({
            "prayer_name": record.get("prayerName"),
            "prayer_date": record.get("prayerDate"),
            "scheduled_time": record.get("scheduledTime"),
            "custom_time": record.get("customTime"),
            "method": record.get("method"),
        })

    try:
        results = attendance_service.bulk_upsert(g.user, records)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving attendance batch for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")

    saved = sum(1 for r in results if r["success"])
    return {
        "results": [{"success": True, "attendance": r["record"]} if r["success"] else r for r in results],
        "saved": saved,
        "failed": len(results) - saved,
    }


@attendance_bp.route('', methods=['DELETE'])
@jwt_required
@attendance_bp.arguments(AttendanceDeleteArgsSchema, location='query', error_status_code=400)
@attendance_bp.response(200, SuccessSchema)
def remove_attendance(args):
    """
    Unmark a prayer for a date. Deleting a record that does not exist still succeeds.
    """
    try:
        attendance_service.delete_attendance(g.user, args['prayer_name'], args['prayer_date'])
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting attendance for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")
    return {"success": True}
