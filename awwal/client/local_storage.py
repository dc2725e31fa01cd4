# awwal/client/local_storage.py

import datetime
import json
import logging
import os
import tempfile
import time
import uuid

from blinker import signal

from ..utils.constants import AttendanceMethod, TimeStatus

logger = logging.getLogger(__name__)

RECORDS_KEY = 'attendanceRecords'
LEGACY_KEY = 'prayerAttendance'

# Sent with records=[...] and last_updated=datetime whenever the stored records change
attendance_updated = signal('attendance-updated')


def default_storage_path():
    return os.environ.get('AWWAL_STORAGE_PATH') or os.path.join(os.path.expanduser('~'), '.awwal', 'storage.json')


def utc_now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace('+00:00', 'Z')


def new_record_id(prayer_name, date_str):
    return f"{prayer_name}-{date_str}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class LocalStorage:
    """
    A small persistent key/value store of JSON strings, kept in one file.

    Values are stored as strings, so callers serialize and parse JSON themselves.
    Every write rewrites the file atomically.
    """

    def __init__(self, path=None):
        self.path = path or default_storage_path()

    def _read_all(self):
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding='utf-8') as fh:
            data = json.load(fh)
        return data if isinstance(data, dict) else {}

    def _write_all(self, data):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.awwal-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get_item(self, key):
        return self._read_all().get(key)

    def set_item(self, key, value):
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key):
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def clear(self):
        self._write_all({})


class LocalStorageService:
    """
    Attendance records in local storage, one list per user (or one anonymous list).

    Failures are logged and swallowed: reads return an empty list and writes
    are dropped, so a broken storage file never stops the tracker.
    """

    def __init__(self, storage=None):
        self.storage = storage or LocalStorage()

    @staticmethod
    def get_storage_key(base_key, user_id=None):
        return f"{base_key}_user_{user_id}" if user_id else base_key

    def save_attendance_records(self, records, user_id=None):
        try:
            self.storage.set_item(self.get_storage_key(RECORDS_KEY, user_id), json.dumps(records, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving attendance records to local storage: {e}", exc_info=True)

    def get_attendance_records(self, user_id=None):
        try:
            stored = self.storage.get_item(self.get_storage_key(RECORDS_KEY, user_id))
            if stored:
                parsed = json.loads(stored)
                return parsed if isinstance(parsed, list) else []
        except (OSError, ValueError) as e:
            logger.error(f"Error loading attendance records from local storage: {e}", exc_info=True)
        return []

    def remove_attendance_records(self, user_id=None):
        try:
            self.storage.remove_item(self.get_storage_key(RECORDS_KEY, user_id))
        except (OSError, ValueError) as e:
            logger.error(f"Error removing attendance records from local storage: {e}", exc_info=True)

    def get_legacy_data(self, user_id=None):
        """The legacy {date: {prayer: {...}}} map, or {} when there is none."""
        try:
            stored = self.storage.get_item(self.get_storage_key(LEGACY_KEY, user_id))
            if stored:
                parsed = json.loads(stored)
                return parsed if isinstance(parsed, dict) else {}
        except (OSError, ValueError) as e:
            logger.error(f"Error loading legacy attendance data: {e}", exc_info=True)
        return {}

    def migrate_old_format(self, user_id=None):
        """
        Converts the legacy per-day map into attendance records.

        Completed prayers become records and are merged into the records key,
        replacing any stored record for the same prayer and date. The legacy key
        is then removed. Returns the migrated records, or [] when there was
        nothing to migrate.
        """
        old_key = self.get_storage_key(LEGACY_KEY, user_id)
        old_data = self.get_legacy_data(user_id)
        if not old_data:
            return []

        migrated = []
        for date_str, day_data in old_data.items():
            if not isinstance(day_data, dict):
                continue
            for prayer_name, prayer_data in day_data.items():
                if not isinstance(prayer_data, dict) or not prayer_data.get('completed'):
                    continue
                record = {
                    'id': new_record_id(prayer_name, date_str),
                    'date': date_str,
                    'prayerName': prayer_name,
                    'attendedAt': prayer_data.get('completedAt') or utc_now_iso(),
                    'timeStatus': TimeStatus.ON_TIME,
                    'location': 'Unknown',
                    'method': prayer_data.get('method') or AttendanceMethod.SIMPLE,
                }
                if prayer_data.get('customTime'):
                    record['customTime'] = prayer_data['customTime']
                migrated.append(record)

        if migrated:
            migrated_keys = {(r['date'], r['prayerName']) for r in migrated}
            kept = [r for r in self.get_attendance_records(user_id)
                    if (r.get('date'), r.get('prayerName')) not in migrated_keys]
            try:
                self.storage.set_item(self.get_storage_key(RECORDS_KEY, user_id), json.dumps(kept + migrated, ensure_ascii=False))
                self.storage.remove_item(old_key)
                logger.info(f"Migrated {len(migrated)} legacy attendance entries to the records format.")
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error migrating legacy attendance data: {e}", exc_info=True)
                return []
        return migrated

    def emit_update_event(self, records):
        attendance_updated.send(self, records=records, last_updated=datetime.datetime.now())
