# awwal/routes/api_routes.py
import datetime
from typing import Dict, Any

from flask import current_app, g
from flask_smorest import Blueprint, abort
from prometheus_client import generate_latest

from ..schemas import (
    StatsArgsSchema,
    StatsSchema,
    PrayerTimesArgsSchema,
    PrayerScheduleSchema,
    LocationArgsSchema,
    LocationInfoSchema,
    MessageSchema,
)
from ..services.stats_service import get_user_stats
from ..services.prayer_time_service import (
    get_prayer_times_for_date,
    build_prayer_schedule,
    resolve_timezone,
    get_default_location,
)
from ..services.location_service import get_location_info
from ..utils.auth import jwt_required

api_bp = Blueprint('API', __name__, url_prefix='/api')


@api_bp.route('/metrics')
def metrics():
    return generate_latest(), 200, {'Content-Type': 'text/plain; version=0.0.4; charset=utf-8'}


@api_bp.route('/stats')
@jwt_required
@api_bp.arguments(StatsArgsSchema, location='query', error_status_code=400)
@api_bp.response(200, StatsSchema)
@api_bp.alt_response(401, schema=MessageSchema, description="Missing or invalid token.")
def stats(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Attendance statistics for the last `period` days (default 30).
    """
    try:
        return get_user_stats(g.user, period_days=args.get('period'))
    except Exception as e:
        current_app.logger.error(f"Error fetching statistics for user {g.user.id}: {e}", exc_info=True)
        abort(500, message="Internal server error")


@api_bp.route('/prayer-times')
@api_bp.arguments(PrayerTimesArgsSchema, location='query', error_status_code=400)
@api_bp.response(200, PrayerScheduleSchema)
@api_bp.alt_response(503, schema=MessageSchema, description="Could not fetch data from the external prayer time API.")
def prayer_times(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Today's (or `date`'s) prayer schedule for a location, Jakarta by default.
    `refresh=true` bypasses the cache.

    Includes which prayer is current and next, a status line and a greeting,
    evaluated in the location's own timezone.
    """
    lat, lon = args.get('lat'), args.get('lon')
    if lat is None or lon is None:
        lat, lon = get_default_location()

    date_obj = args.get('date')
    daily_data = get_prayer_times_for_date(
        date_obj or datetime.datetime.now(resolve_timezone(None)).date(),
        lat,
        lon,
        method_id=args.get('method'),
        school_id=args.get('school'),
        force_refresh=args.get('refresh', False),
    )
    if not daily_data:
        abort(503, message="Could not fetch prayer times from the prayer time service.")

    now = datetime.datetime.now(resolve_timezone(daily_data))
    if date_obj and date_obj != now.date():
        # For another day, evaluate flags from the start of that day
        now = datetime.datetime.combine(date_obj, datetime.time(0, 0), tzinfo=now.tzinfo)

    location = {"latitude": lat, "longitude": lon}
    return build_prayer_schedule(daily_data, now, location=location)


@api_bp.route('/location')
@api_bp.arguments(LocationArgsSchema, location='query', error_status_code=400)
@api_bp.response(200, LocationInfoSchema)
def location(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reverse geocode coordinates to a city name, with offline fallbacks.
    """
    return get_location_info(args['lat'], args['lon'])
