# awwal/services/attendance_service.py

import datetime
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Dict, Any, Optional, List, Tuple

from .. import db
from ..models import PrayerAttendance
from ..metrics import ATTENDANCE_WRITES_TOTAL, SYNC_RECORDS_TOTAL
from ..utils.constants import AttendanceMethod, TimeStatus, normalize_prayer_name
from ..utils.time_utils import calculate_timing_analysis, normalize_time_string, is_valid_time_string


class AttendanceValidationError(ValueError):
    """Raised for a sync entry that cannot be turned into an attendance row."""


def derive_timing_fields(scheduled_time: str, custom_time: Optional[str], method: str) -> Tuple[Optional[bool], Optional[int]]:
    """
    (is_early, delay_minutes) for a record. Only detailed records with a custom
    time carry timing information; everything else gets (None, None).
    """
    if custom_time and method == AttendanceMethod.DETAILED:
        return calculate_timing_analysis(scheduled_time, custom_time)
    return None, None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parses an ISO-8601 timestamp (a trailing "Z" is accepted) into a naive UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    else:
        try:
            parsed = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return parsed


def parse_prayer_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    try:
        # Client records sometimes carry a full timestamp ("2024-01-05T00:00:00.000Z")
        return datetime.date.fromisoformat(str(value).split("T")[0])
    except ValueError:
        raise AttendanceValidationError(f"Invalid prayer date: {value!r}")


def list_attendances(user, date: Optional[datetime.date] = None, limit: Optional[int] = None) -> List[PrayerAttendance]:
    """A user's attendance records, newest date first, optionally for one date only."""
    if limit is None:
        limit = current_app.config.get('ATTENDANCE_DEFAULT_LIMIT', 30)

    query = PrayerAttendance.query.filter_by(user_id=user.id)
    if date:
        query = query.filter(PrayerAttendance.prayer_date == date)
    return query.order_by(PrayerAttendance.prayer_date.desc(), PrayerAttendance.id.desc()).limit(limit).all()


def find_attendance(user, prayer_name: str, prayer_date: datetime.date) -> Optional[PrayerAttendance]:
    return PrayerAttendance.query.filter_by(user_id=user.id, prayer_name=prayer_name, prayer_date=prayer_date).first()


def upsert_attendance(user, prayer_name: str, prayer_date: datetime.date, scheduled_time: str,
                      custom_time: Optional[str] = None, method: str = AttendanceMethod.SIMPLE) -> PrayerAttendance:
    """
    Records a prayer as attended now. An existing record for the same prayer and
    date is updated in place, so a user never has more than one row per prayer per day.
    """
    is_early, delay_minutes = derive_timing_fields(scheduled_time, custom_time, method)
    now = datetime.datetime.utcnow()

    def _apply(record):
        record.scheduled_time = scheduled_time
        record.custom_time = custom_time
        record.method = method
        record.is_early = is_early
        record.delay_minutes = delay_minutes
        record.attended_at = now

    attendance = find_attendance(user, prayer_name, prayer_date)
    operation = "update" if attendance else "create"
    if not attendance:
        attendance = PrayerAttendance(user_id=user.id, prayer_name=prayer_name, prayer_date=prayer_date)
        db.session.add(attendance)
    _apply(attendance)

    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request created the row first; update that one instead.
        db.session.rollback()
        attendance = find_attendance(user, prayer_name, prayer_date)
        if not attendance:
            raise
        operation = "update"
        _apply(attendance)
        db.session.commit()

    ATTENDANCE_WRITES_TOTAL.labels(operation=operation, method=method).inc()
    current_app.logger.info(f"Attendance {operation}d for user {user.id}: {prayer_name} on {prayer_date}")
    return attendance


def delete_attendance(user, prayer_name: str, prayer_date: datetime.date) -> int:
    """Deletes the record for one prayer on one date. Returns the number of rows removed."""
    deleted = PrayerAttendance.query.filter_by(user_id=user.id, prayer_name=prayer_name, prayer_date=prayer_date).delete()
    db.session.commit()
    if deleted:
        ATTENDANCE_WRITES_TOTAL.labels(operation="delete", method="any").inc()
    current_app.logger.info(f"Deleted {deleted} attendance record(s) for user {user.id}: {prayer_name} on {prayer_date}")
    return deleted


def bulk_upsert(user, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Upserts several records, each with prayer_name, prayer_date, scheduled_time
    and optionally custom_time and method. Returns one {"success", "record"} or
    {"success", "error"} result per input, in order.
    """
    results = []
    for record in records:
        try:
            prayer_name = normalize_prayer_name(record.get("prayer_name"))
            if not prayer_name:
                raise AttendanceValidationError(f"Unknown prayer name: {record.get('prayer_name')!r}")
            method = record.get("method") or AttendanceMethod.SIMPLE
            if method not in AttendanceMethod.ALL:
                raise AttendanceValidationError(f"Unknown method: {method!r}")
            custom_time = record.get("custom_time")
            attendance = upsert_attendance(
                user,
                prayer_name=prayer_name,
                prayer_date=parse_prayer_date(record.get("prayer_date")),
                scheduled_time=normalize_time_string(record.get("scheduled_time")),
                custom_time=normalize_time_string(custom_time) if custom_time else None,
                method=method,
            )
            results.append({"success": True, "record": attendance})
        except (ValueError, SQLAlchemyError) as e:
            db.session.rollback()
            current_app.logger.warning(f"Bulk upsert entry failed for user {user.id}: {e}")
            results.append({"success": False, "error": str(e)})
    return results


# --- Bulk sync ---

def _entries_from_local_data(local_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flattens the legacy {date: {prayer: {...}}} map into sync entries. Uncompleted prayers are dropped."""
    entries = []
    for date_str, day_data in (local_data or {}).items():
        if not isinstance(day_data, dict):
            continue
        for prayer_name, prayer_data in day_data.items():
            if not isinstance(prayer_data, dict) or not prayer_data.get("completed"):
                continue
            entries.append({
                "date": date_str,
                "prayer_name": prayer_name,
                "attended_at": prayer_data.get("completedAt"),
                "custom_time": prayer_data.get("customTime"),
                "method": prayer_data.get("method") or AttendanceMethod.SIMPLE,
                "time_status": None,
                "delay_minutes": None,
            })
    return entries


def _entries_from_records(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Maps client-side attendance records into sync entries."""
    entries = []
    for record in records or []:
        if not isinstance(record, dict):
            entries.append({"invalid": True})
            continue
        entries.append({
            "date": record.get("date"),
            "prayer_name": record.get("prayerName"),
            "attended_at": record.get("attendedAt"),
            "custom_time": record.get("customTime"),
            "method": record.get("method") or AttendanceMethod.SIMPLE,
            "time_status": record.get("timeStatus"),
            "delay_minutes": record.get("delayMinutes"),
        })
    return entries


def _build_synced_attendance(user, entry: Dict[str, Any]) -> PrayerAttendance:
    if entry.get("invalid"):
        raise AttendanceValidationError("Sync entry is not an object.")

    prayer_name = normalize_prayer_name(entry.get("prayer_name"))
    if not prayer_name:
        raise AttendanceValidationError(f"Unknown prayer name: {entry.get('prayer_name')!r}")
    prayer_date = parse_prayer_date(entry.get("date"))

    method = entry.get("method")
    if method not in AttendanceMethod.ALL:
        raise AttendanceValidationError(f"Unknown method: {method!r}")

    custom_time = entry.get("custom_time")
    if custom_time:
        if not is_valid_time_string(custom_time):
            raise AttendanceValidationError(f"Invalid custom time: {custom_time!r}")
        custom_time = normalize_time_string(custom_time)
    else:
        custom_time = None

    # Local data has no scheduled time; the custom time is the best available stand-in.
    scheduled_time = custom_time or "00:00"

    time_status = entry.get("time_status")
    if time_status == TimeStatus.EARLY:
        is_early, delay_minutes = True, 0
    elif time_status == TimeStatus.LATE:
        try:
            delay_minutes = max(int(entry.get("delay_minutes") or 0), 0)
        except (TypeError, ValueError):
            raise AttendanceValidationError(f"Invalid delay: {entry.get('delay_minutes')!r}")
        is_early = False
    elif custom_time and method == AttendanceMethod.DETAILED:
        is_early, delay_minutes = True, 0
    else:
        is_early, delay_minutes = None, None

    return PrayerAttendance(
        user_id=user.id,
        prayer_name=prayer_name,
        prayer_date=prayer_date,
        scheduled_time=scheduled_time,
        custom_time=custom_time,
        is_early=is_early,
        delay_minutes=delay_minutes,
        method=method,
        attended_at=parse_iso_datetime(entry.get("attended_at")) or datetime.datetime.utcnow(),
    )


def sync_local_data(user, local_data: Optional[Dict[str, Any]] = None, records: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Uploads locally stored attendance. Records that already exist on the server
    are skipped rather than overwritten. A failing entry is rolled back, logged
    and counted without aborting the rest of the batch.
    """
    entries = _entries_from_local_data(local_data) + _entries_from_records(records)
    synced = skipped = errors = 0

    for entry in entries:
        try:
            attendance = _build_synced_attendance(user, entry)
            if find_attendance(user, attendance.prayer_name, attendance.prayer_date):
                skipped += 1
                continue
            db.session.add(attendance)
            db.session.commit()
            synced += 1
        except IntegrityError:
            db.session.rollback()
            skipped += 1
        except (AttendanceValidationError, SQLAlchemyError) as e:
            db.session.rollback()
            errors += 1
            current_app.logger.warning(f"Error syncing {entry.get('date')} {entry.get('prayer_name')} for user {user.id}: {e}")

    SYNC_RECORDS_TOTAL.labels(result="synced").inc(synced)
    SYNC_RECORDS_TOTAL.labels(result="skipped").inc(skipped)
    SYNC_RECORDS_TOTAL.labels(result="error").inc(errors)
    current_app.logger.info(f"Sync for user {user.id}: {synced} synced, {skipped} skipped, {errors} errors")

    return {
        "success": True,
        "synced": synced,
        "skipped": skipped,
        "errors": errors,
        "message": f"Synced {synced} records, skipped {skipped} existing, {errors} errors",
    }


def count_by_prayer(user, start_date: Optional[datetime.date] = None, end_date: Optional[datetime.date] = None) -> Dict[str, int]:
    query = db.session.query(PrayerAttendance.prayer_name, func.count(PrayerAttendance.id)).filter(PrayerAttendance.user_id == user.id)
    if start_date:
        query = query.filter(PrayerAttendance.prayer_date >= start_date)
    if end_date:
        query = query.filter(PrayerAttendance.prayer_date <= end_date)
    return {name: count for name, count in query.group_by(PrayerAttendance.prayer_name).all()}


def get_sync_status(user) -> Dict[str, Any]:
    """Server-side view of a user's data: totals, the most recent records and counts per prayer."""
    recent_limit = current_app.config.get('SYNC_RECENT_RECORDS', 10)
    recent = (PrayerAttendance.query.filter_by(user_id=user.id)
              .order_by(PrayerAttendance.prayer_date.desc(), PrayerAttendance.id.desc())
              .limit(recent_limit).all())
    return {
        "totalRecords": PrayerAttendance.query.filter_by(user_id=user.id).count(),
        "recentRecords": recent,
        "statsByPrayer": count_by_prayer(user),
        "lastSync": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }
