# awwal/client/sync.py

import logging

from .api_client import ApiError

logger = logging.getLogger(__name__)

# Set on records saved locally while signed in but unable to reach the server
PENDING_FLAG = "pendingSync"


class SyncStatus:
    SYNCED = 'synced'
    PENDING = 'pending'
    SYNCING = 'syncing'
    OFFLINE = 'offline'


def merge_records(primary, secondary):
    """Union of two record lists keyed by (date, prayerName); entries in `primary` win."""
    seen = {(r.get('date'), r.get('prayerName')) for r in primary}
    merged = list(primary)
    for record in secondary:
        key = (record.get('date'), record.get('prayerName'))
        if key not in seen:
            seen.add(key)
            merged.append(record)
    return merged


def _without_pending_flag(record):
    return {k: v for k, v in record.items() if k != PENDING_FLAG}


class AttendanceSync:
    """
    Pushes locally stored attendance to the server once the user is signed in.

    Legacy per-day data is migrated first, for both the user's own storage and
    the anonymous storage. Anonymous records are adopted into the user's storage
    after a successful upload.
    """

    def __init__(self, storage_service, api):
        self.storage = storage_service
        self.api = api
        self.status = SyncStatus.OFFLINE
        self.last_result = None

    def update_status(self, status):
        self.status = status

    def has_pending_local_data(self, user_id=None):
        """Anonymous records, legacy data, or user records saved while the server was unreachable."""
        if self.storage.get_attendance_records() or self.storage.get_legacy_data():
            return True
        if not user_id:
            return False
        return bool(self.storage.get_legacy_data(user_id)
                    or any(r.get(PENDING_FLAG) for r in self.storage.get_attendance_records(user_id)))

    def collect_local_records(self, user_id):
        self.storage.migrate_old_format(user_id)
        self.storage.migrate_old_format()
        user_records = self.storage.get_attendance_records(user_id)
        anonymous_records = self.storage.get_attendance_records()
        return merge_records(user_records, anonymous_records), anonymous_records

    def sync_to_database(self, user_id):
        """Uploads local records. Returns True on success; failures leave the status pending."""
        if not self.api.is_authenticated or not user_id:
            return False

        self.status = SyncStatus.SYNCING
        try:
            records, anonymous_records = self.collect_local_records(user_id)
            if records:
                self.last_result = self.api.sync_data(records=records)
                logger.info(f"Sync completed: {self.last_result.get('message')}")
            if anonymous_records or any(r.get(PENDING_FLAG) for r in records):
                self.storage.save_attendance_records([_without_pending_flag(r) for r in records], user_id)
                self.storage.remove_attendance_records()
            self.status = SyncStatus.SYNCED
            return True
        except ApiError as e:
            logger.error(f"Error syncing to database: {e}")
            self.status = SyncStatus.PENDING
            return False
