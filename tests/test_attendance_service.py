# tests/test_attendance_service.py

import datetime

from awwal.models import PrayerAttendance
from awwal.services.attendance_service import bulk_upsert, derive_timing_fields, parse_iso_datetime


def test_derive_timing_fields_only_for_detailed_records():
    assert derive_timing_fields("12:00", "12:30", "detailed") == (False, 30)
    assert derive_timing_fields("12:00", "12:30", "simple") == (None, None)
    assert derive_timing_fields("12:00", None, "detailed") == (None, None)


def test_parse_iso_datetime_normalizes_to_naive_utc():
    assert parse_iso_datetime("2025-03-10T05:00:00+07:00") == datetime.datetime(2025, 3, 9, 22, 0)
    assert parse_iso_datetime("2025-03-10T05:00:00Z") == datetime.datetime(2025, 3, 10, 5, 0)
    assert parse_iso_datetime("yesterday") is None
    assert parse_iso_datetime(None) is None


def test_bulk_upsert_reports_each_record(app, user_in_db):
    """
    GIVEN a batch with valid records, a repeat and invalid entries
    WHEN it is bulk upserted
    THEN valid ones are stored once and every entry gets its own result.
    """
    results = bulk_upsert(user_in_db, [
        {"prayer_name": "Fajr", "prayer_date": "2025-03-10", "scheduled_time": "04:35"},
        {"prayer_name": "subuh", "prayer_date": "2025-03-10", "scheduled_time": "04:35",
         "custom_time": "4:50", "method": "detailed"},
        {"prayer_name": "Witr", "prayer_date": "2025-03-10", "scheduled_time": "21:00"},
        {"prayer_name": "Isha", "prayer_date": "2025-03-10", "scheduled_time": "7pm"},
    ])

    assert [r["success"] for r in results] == [True, True, False, False]
    assert "Witr" in results[2]["error"]
    assert results[0]["record"].id == results[1]["record"].id

    stored = PrayerAttendance.query.filter_by(user_id=user_in_db.id).all()
    assert len(stored) == 1
    assert stored[0].custom_time == "04:50"
    assert stored[0].delay_minutes == 15
