# tests/test_local_storage.py

import json

import pytest

from awwal.client.local_storage import (
    LocalStorage,
    LocalStorageService,
    attendance_updated,
    RECORDS_KEY,
    LEGACY_KEY,
)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "storage.json"))


@pytest.fixture
def service(storage):
    return LocalStorageService(storage)


def test_storage_persists_string_values(storage, tmp_path):
    storage.set_item("a", "1")
    storage.set_item("b", "2")
    storage.remove_item("a")

    reopened = LocalStorage(str(tmp_path / "storage.json"))
    assert reopened.get_item("a") is None
    assert reopened.get_item("b") == "2"

    reopened.clear()
    assert reopened.get_item("b") is None


def test_storage_key_is_scoped_per_user():
    assert LocalStorageService.get_storage_key(RECORDS_KEY) == "attendanceRecords"
    assert LocalStorageService.get_storage_key(RECORDS_KEY, 42) == "attendanceRecords_user_42"


def test_records_round_trip_per_user(service):
    service.save_attendance_records([{"date": "2025-03-10", "prayerName": "Fajr"}])
    service.save_attendance_records([{"date": "2025-03-10", "prayerName": "Isha"}], user_id=3)

    assert service.get_attendance_records() == [{"date": "2025-03-10", "prayerName": "Fajr"}]
    assert service.get_attendance_records(3) == [{"date": "2025-03-10", "prayerName": "Isha"}]

    service.remove_attendance_records()
    assert service.get_attendance_records() == []
    assert service.get_attendance_records(3) != []


def test_corrupt_storage_reads_as_empty(service, storage):
    storage.set_item(RECORDS_KEY, "{not json")
    assert service.get_attendance_records() == []

    storage.set_item(RECORDS_KEY, json.dumps({"not": "a list"}))
    assert service.get_attendance_records() == []


def test_migrate_old_format(service, storage):
    """
    GIVEN the legacy per-day map and an existing record for one of its prayers
    WHEN the data is migrated
    THEN completed prayers become records, the existing record is replaced, and the legacy key is removed.
    """
    service.save_attendance_records([
        {"id": "old", "date": "2025-03-09", "prayerName": "Fajr", "method": "simple"},
        {"id": "keep", "date": "2025-03-08", "prayerName": "Asr", "method": "simple"},
    ])
    storage.set_item(LEGACY_KEY, json.dumps({
        "2025-03-09": {
            "Fajr": {"completed": True, "completedAt": "2025-03-08T22:40:00Z", "customTime": "04:50", "method": "detailed"},
            "Dhuhr": {"completed": False},
        },
        "2025-03-10": {"Isha": {"completed": True}},
    }))

    migrated = service.migrate_old_format()

    assert {(r["date"], r["prayerName"]) for r in migrated} == {("2025-03-09", "Fajr"), ("2025-03-10", "Isha")}
    records = service.get_attendance_records()
    assert len(records) == 3
    fajr = next(r for r in records if r["prayerName"] == "Fajr")
    assert fajr["id"] != "old"
    assert fajr["customTime"] == "04:50"
    assert fajr["method"] == "detailed"
    assert fajr["timeStatus"] == "on_time"
    assert fajr["attendedAt"] == "2025-03-08T22:40:00Z"
    assert storage.get_item(LEGACY_KEY) is None

    assert service.migrate_old_format() == []


def test_emit_update_event_notifies_listeners(service):
    received = []

    def listener(sender, records=None, last_updated=None):
        received.append((sender, records))

    attendance_updated.connect(listener, sender=service)
    try:
        service.emit_update_event([{"prayerName": "Fajr"}])
    finally:
        attendance_updated.disconnect(listener, sender=service)

    assert received == [(service, [{"prayerName": "Fajr"}])]
