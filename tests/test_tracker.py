# tests/test_tracker.py

import datetime
import json
from unittest.mock import MagicMock

import pytest

from awwal.client.api_client import AttendanceApiService, ApiError
from awwal.client.local_storage import LocalStorage, LocalStorageService, LEGACY_KEY
from awwal.client.sync import SyncStatus, PENDING_FLAG, merge_records
from awwal.client.tracker import AttendanceTracker

TODAY = datetime.date(2025, 3, 10)
USER = {"id": 7, "email": "aisyah@example.com", "name": "Aisyah", "image": None}


def server_record(prayer_name, date="2025-03-10", **extra):
    record = {"id": f"{prayer_name}-{date}-1", "date": date, "prayerName": prayer_name, "attendedAt": "2025-03-10T00:00:00",
              "timeStatus": "on_time", "location": "Unknown", "method": "simple"}
    record.update(extra)
    return record


@pytest.fixture
def storage(tmp_path):
    return LocalStorageService(LocalStorage(str(tmp_path / "storage.json")))


@pytest.fixture
def anonymous_api():
    api = MagicMock(spec=AttendanceApiService)
    api.is_authenticated = False
    return api


@pytest.fixture
def signed_in_api():
    api = MagicMock(spec=AttendanceApiService)
    api.is_authenticated = True
    api.get_session.return_value = USER
    api.get_attendances.return_value = []
    api.sync_data.return_value = {"success": True, "synced": 0, "skipped": 0, "errors": 0, "message": "Synced 0 records"}
    return api


def make_tracker(api, storage):
    tracker = AttendanceTracker(api=api, storage=storage, today=lambda: TODAY)
    tracker.refresh_session()
    return tracker


# --- anonymous mode ---

def test_anonymous_mark_and_unmark(anonymous_api, storage):
    """
    GIVEN an anonymous tracker
    WHEN a prayer is marked twice and then unmarked
    THEN local storage holds one record in between and none at the end.
    """
    tracker = make_tracker(anonymous_api, storage)
    assert tracker.load_attendance_records() == []
    assert tracker.sync_status == SyncStatus.OFFLINE

    tracker.mark_prayer_completed("subuh")
    tracker.mark_prayer_completed("Fajr")

    records = storage.get_attendance_records()
    assert len(records) == 1
    assert records[0]["prayerName"] == "Fajr"
    assert records[0]["date"] == "2025-03-10"
    assert tracker.sync_status == SyncStatus.PENDING
    assert tracker.get_prayer_attendance("Fajr")["completed"] is True

    assert tracker.unmark_prayer("Fajr") is True
    assert tracker.unmark_prayer("Fajr") is False
    assert storage.get_attendance_records() == []
    anonymous_api.save_attendance.assert_not_called()


def test_custom_time_is_classified_locally(anonymous_api, storage):
    tracker = make_tracker(anonymous_api, storage)
    late = tracker.mark_prayer_attended_with_custom_time("Dhuhr", "12:10", scheduled_time="11:55")
    early = tracker.mark_prayer_attended_with_custom_time("Asr", "15:15", scheduled_time="15:15")
    unknown = tracker.mark_prayer_attended_with_custom_time("Isha", "19:30")

    assert (late["timeStatus"], late["delayMinutes"], late["method"]) == ("late", 15, "detailed")
    assert early["timeStatus"] == "early"
    assert unknown["timeStatus"] == "on_time"
    assert unknown["customTime"] == "19:30"


def test_invalid_input_is_rejected(anonymous_api, storage):
    tracker = make_tracker(anonymous_api, storage)
    with pytest.raises(ValueError):
        tracker.mark_prayer_completed("Tahajjud")
    with pytest.raises(ValueError):
        tracker.mark_prayer_attended_with_custom_time("Fajr", "25:00")


def test_local_stats(anonymous_api, storage):
    tracker = make_tracker(anonymous_api, storage)
    tracker.mark_prayer_completed("Fajr", date="2025-03-09")
    tracker.mark_prayer_completed("Fajr")
    tracker.mark_prayer_attended_with_custom_time("Dhuhr", "12:05", scheduled_time="11:55")

    stats = tracker.get_attendance_stats(7)

    assert stats["totalRecords"] == 3
    assert stats["uniqueDays"] == 2
    assert stats["completionRate"] == 30
    assert stats["currentStreak"] == 2
    assert stats["statsByPrayer"] == {"Fajr": 2, "Dhuhr": 1}
    assert stats["timingAnalysis"] == {"early": 0, "late": 1, "averageDelay": 10.0}
    anonymous_api.get_stats.assert_not_called()


def test_update_signal_refreshes_tracker(anonymous_api, storage):
    tracker = make_tracker(anonymous_api, storage)
    storage.emit_update_event([server_record("Maghrib")])
    assert [r["prayerName"] for r in tracker.records] == ["Maghrib"]


# --- signed in ---

def test_invalid_session_falls_back_to_anonymous(signed_in_api, storage):
    signed_in_api.get_session.side_effect = ApiError("API Error 401: Unauthorized", status_code=401)
    tracker = make_tracker(signed_in_api, storage)
    assert not tracker.is_authenticated
    tracker.mark_prayer_completed("Fajr")
    signed_in_api.save_attendance.assert_not_called()
    assert len(storage.get_attendance_records()) == 1


def test_signed_in_load_caches_server_records(signed_in_api, storage):
    signed_in_api.get_attendances.return_value = [server_record("Fajr"), server_record("Isha", "2025-03-09")]
    tracker = make_tracker(signed_in_api, storage)

    records = tracker.load_attendance_records()

    assert len(records) == 2
    assert storage.get_attendance_records(7) == records
    assert tracker.sync_status == SyncStatus.SYNCED
    signed_in_api.sync_data.assert_not_called()


def test_signed_in_load_falls_back_to_local_copy(signed_in_api, storage):
    storage.save_attendance_records([server_record("Asr")], user_id=7)
    signed_in_api.get_attendances.side_effect = ApiError("down")
    tracker = make_tracker(signed_in_api, storage)

    records = tracker.load_attendance_records()

    assert [r["prayerName"] for r in records] == ["Asr"]
    assert tracker.sync_status == SyncStatus.PENDING


def test_signed_in_mark_uses_server_record(signed_in_api, storage):
    signed_in_api.save_attendance.return_value = server_record("Dhuhr", customTime="12:20", timeStatus="late",
                                                               delayMinutes=25, method="detailed")
    tracker = make_tracker(signed_in_api, storage)

    record = tracker.mark_prayer_attended_with_custom_time("dzuhur", "12:20", scheduled_time="11:55")

    signed_in_api.save_attendance.assert_called_once_with("Dhuhr", date="2025-03-10", custom_time="12:20",
                                                          method="detailed", scheduled_time="11:55")
    assert record["delayMinutes"] == 25
    assert storage.get_attendance_records(7) == [record]
    assert tracker.sync_status == SyncStatus.SYNCED


def test_login_syncs_anonymous_records(signed_in_api, storage):
    """
    GIVEN prayers marked anonymously and legacy data, before signing in
    WHEN the signed-in tracker loads
    THEN everything is uploaded once and the anonymous storage is adopted by the user.
    """
    storage.save_attendance_records([server_record("Fajr")])
    storage.storage.set_item(LEGACY_KEY, json.dumps({"2025-03-09": {"Isha": {"completed": True}}}))
    signed_in_api.get_attendances.return_value = [server_record("Fajr"), server_record("Isha", "2025-03-09")]
    tracker = make_tracker(signed_in_api, storage)

    tracker.load_attendance_records()

    uploaded = signed_in_api.sync_data.call_args[1]["records"]
    assert {(r["date"], r["prayerName"]) for r in uploaded} == {("2025-03-10", "Fajr"), ("2025-03-09", "Isha")}
    assert storage.get_attendance_records() == []
    assert storage.get_legacy_data() == {}
    assert len(storage.get_attendance_records(7)) == 2
    assert tracker.sync_status == SyncStatus.SYNCED


def test_offline_mark_while_signed_in_is_synced_later(signed_in_api, storage):
    """
    GIVEN a signed-in user whose server is unreachable
    WHEN a prayer is marked
    THEN it is kept locally, flagged, and uploaded on the next load.
    """
    signed_in_api.save_attendance.side_effect = ApiError("down")
    tracker = make_tracker(signed_in_api, storage)

    record = tracker.mark_prayer_completed("Maghrib")

    assert record[PENDING_FLAG] is True
    assert tracker.sync_status == SyncStatus.PENDING
    assert tracker.sync.has_pending_local_data(7)

    signed_in_api.get_attendances.return_value = [server_record("Maghrib")]
    tracker.load_attendance_records()

    uploaded = signed_in_api.sync_data.call_args[1]["records"]
    assert [r["prayerName"] for r in uploaded] == ["Maghrib"]
    assert not tracker.sync.has_pending_local_data(7)
    assert tracker.sync_status == SyncStatus.SYNCED


def test_mark_rejected_by_server_is_not_kept(signed_in_api, storage):
    """
    GIVEN a signed-in user
    WHEN the server answers a mark with a 400
    THEN the error is raised and nothing is queued for a later sync.
    """
    signed_in_api.save_attendance.side_effect = ApiError("Invalid date format.", status_code=400)
    tracker = make_tracker(signed_in_api, storage)

    with pytest.raises(ValueError, match="rejected"):
        tracker.mark_prayer_completed("Fajr", date="2025-03-10")

    assert storage.get_attendance_records(7) == []
    assert not tracker.sync.has_pending_local_data(7)

    signed_in_api.save_attendance.side_effect = ApiError("Internal server error", status_code=503)
    assert tracker.mark_prayer_completed("Fajr", date="2025-03-10")[PENDING_FLAG] is True


def test_mark_and_unmark_validate_input(anonymous_api, storage):
    tracker = make_tracker(anonymous_api, storage)

    with pytest.raises(ValueError, match="YYYY-MM-DD"):
        tracker.mark_prayer_completed("Fajr", date="not-a-date")
    with pytest.raises(ValueError, match="YYYY-MM-DD"):
        tracker.mark_prayer_completed("Fajr", date="2025-02-30")
    with pytest.raises(ValueError, match="Unknown prayer"):
        tracker.unmark_prayer("Witr")

    assert storage.get_attendance_records() == []


def test_failed_sync_leaves_data_pending(signed_in_api, storage):
    storage.save_attendance_records([server_record("Fajr")])
    signed_in_api.sync_data.side_effect = ApiError("down")
    tracker = make_tracker(signed_in_api, storage)

    assert tracker.sync_to_database() is False
    assert tracker.sync_status == SyncStatus.PENDING
    assert storage.get_attendance_records() == [server_record("Fajr")]


def test_signed_in_unmark_keeps_going_when_delete_fails(signed_in_api, storage):
    signed_in_api.get_attendances.return_value = [server_record("Fajr")]
    signed_in_api.delete_attendance.side_effect = ApiError("down")
    tracker = make_tracker(signed_in_api, storage)
    tracker.load_attendance_records()

    assert tracker.unmark_prayer("Fajr") is True
    assert storage.get_attendance_records(7) == []


def test_server_stats_preferred_when_signed_in(signed_in_api, storage):
    signed_in_api.get_stats.return_value = {"period": 30, "totalRecords": 99}
    tracker = make_tracker(signed_in_api, storage)
    assert tracker.get_attendance_stats(30)["totalRecords"] == 99

    signed_in_api.get_stats.side_effect = ApiError("down")
    assert tracker.get_attendance_stats(30)["totalRecords"] == 0


def test_merge_records_prefers_primary():
    merged = merge_records([server_record("Fajr", method="detailed")], [server_record("Fajr"), server_record("Asr")])
    assert [(r["prayerName"], r["method"]) for r in merged] == [("Fajr", "detailed"), ("Asr", "simple")]
