# awwal/client/tracker.py

import datetime
import logging

from .api_client import AttendanceApiService, ApiError
from .local_storage import LocalStorageService, attendance_updated, new_record_id, utc_now_iso
from .sync import AttendanceSync, SyncStatus, PENDING_FLAG
from ..utils.constants import AttendanceMethod, TimeStatus, normalize_prayer_name, PRAYER_NAMES
from ..utils.stats_utils import summarize_records
from ..utils.time_utils import calculate_timing_analysis, normalize_time_string

logger = logging.getLogger(__name__)

# Upper bound the server accepts for ?limit
SERVER_FETCH_LIMIT = 366


def record_to_stats_input(record):
    """Client record -> the row shape `summarize_records` expects. Returns None for unreadable records."""
    try:
        prayer_date = datetime.date.fromisoformat(str(record.get('date')).split('T')[0])
    except ValueError:
        return None
    status = record.get('timeStatus')
    is_early = True if status == TimeStatus.EARLY else False if status == TimeStatus.LATE else None
    return {
        'prayer_date': prayer_date,
        'prayer_name': record.get('prayerName'),
        'is_early': is_early,
        'delay_minutes': record.get('delayMinutes'),
    }


def parse_record_date(value):
    """Validates a YYYY-MM-DD date string. Raises ValueError otherwise."""
    try:
        return datetime.date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD.")


class AttendanceTracker:
    """
    Dual-mode attendance tracking.

    Signed in (an ID token is configured and the server accepts it), the server
    is the source of truth and local storage is an offline copy. Anonymous,
    everything lives in local storage. An unreachable or failing (5xx) server
    falls back to local storage, and the sync status becomes pending.
    """

    def __init__(self, api=None, storage=None, today=None):
        self.api = api or AttendanceApiService()
        self.storage = storage or LocalStorageService()
        self.sync = AttendanceSync(self.storage, self.api)
        self._today = today or datetime.date.today
        self.user = None
        self.records = []
        self.last_updated = None
        attendance_updated.connect(self._on_attendance_update, sender=self.storage)

    # --- session ---

    @property
    def is_authenticated(self):
        return self.user is not None

    @property
    def user_id(self):
        return self.user.get('id') if self.user else None

    @property
    def sync_status(self):
        return self.sync.status

    def refresh_session(self):
        """Resolves the configured ID token to a user. Leaves the tracker anonymous on any failure."""
        self.user = None
        if not self.api.is_authenticated:
            return None
        try:
            self.user = self.api.get_session()
        except ApiError as e:
            logger.warning(f"Could not verify the session, continuing anonymously: {e}")
        return self.user

    def _on_attendance_update(self, sender, records=None, last_updated=None):
        self.records = list(records or [])
        self.last_updated = last_updated

    def _today_str(self):
        return self._today().isoformat()

    # --- loading and saving ---

    def load_attendance_records(self):
        if self.is_authenticated and self.sync.has_pending_local_data(self.user_id):
            self.sync_to_database()

        try:
            if self.is_authenticated:
                self.records = self.api.get_attendances(limit=SERVER_FETCH_LIMIT)
                self.storage.save_attendance_records(self.records, self.user_id)
                self.sync.update_status(SyncStatus.SYNCED)
            else:
                self.records = self.storage.get_attendance_records()
                self.sync.update_status(SyncStatus.PENDING if self.records else SyncStatus.OFFLINE)
        except ApiError as e:
            logger.error(f"Error loading attendance records, falling back to local storage: {e}")
            self.records = self.storage.get_attendance_records(self.user_id)
            self.sync.update_status(SyncStatus.PENDING if self.records else SyncStatus.OFFLINE)

        self.last_updated = datetime.datetime.now()
        return self.records

    def save_attendance_records(self, records):
        """Persists records locally (always first) and notifies listeners."""
        self.storage.save_attendance_records(records, self.user_id)
        self.records = list(records)
        self.last_updated = datetime.datetime.now()
        self.storage.emit_update_event(self.records)

        if self.is_authenticated:
            self.sync.update_status(SyncStatus.SYNCED)
        else:
            self.sync.update_status(SyncStatus.PENDING if records else SyncStatus.OFFLINE)

    def _replace_record(self, record):
        return [r for r in self.records
                if not (r.get('date') == record['date'] and r.get('prayerName') == record['prayerName'])] + [record]

    def _build_local_record(self, prayer_name, date_str, custom_time=None, method=AttendanceMethod.SIMPLE, scheduled_time=None):
        record = {
            'id': new_record_id(prayer_name, date_str),
            'date': date_str,
            'prayerName': prayer_name,
            'attendedAt': utc_now_iso(),
            'timeStatus': TimeStatus.ON_TIME,
            'location': 'Unknown',
            'method': method,
        }
        if custom_time:
            record['customTime'] = custom_time
            if scheduled_time and method == AttendanceMethod.DETAILED:
                is_early, delay = calculate_timing_analysis(scheduled_time, custom_time)
                record['timeStatus'] = TimeStatus.EARLY if is_early else TimeStatus.LATE
                record['delayMinutes'] = delay
        return record

    # --- marking ---

    def _mark(self, prayer_name, date=None, custom_time=None, method=AttendanceMethod.SIMPLE, scheduled_time=None):
        name = normalize_prayer_name(prayer_name)
        if not name:
            raise ValueError(f"Unknown prayer name {prayer_name!r}. Expected one of: {', '.join(PRAYER_NAMES)}.")
        if custom_time:
            custom_time = normalize_time_string(custom_time)
        if scheduled_time:
            scheduled_time = normalize_time_string(scheduled_time)
        date_str = parse_record_date(date) if date else self._today_str()

        if self.is_authenticated:
            try:
                saved = self.api.save_attendance(name, date=date_str, custom_time=custom_time, method=method,
                                                 scheduled_time=scheduled_time or '00:00')
                self.save_attendance_records(self._replace_record(saved))
                return saved
            except ApiError as e:
                if e.status_code is not None and 400 <= e.status_code < 500:
                    # 4xx: the record itself was refused
                    raise ValueError(f"Server rejected the record: {e}") from e
                logger.error(f"Error saving to API, falling back to local storage: {e}")
                record = self._build_local_record(name, date_str, custom_time, method, scheduled_time)
                record[PENDING_FLAG] = True
                self.save_attendance_records(self._replace_record(record))
                self.sync.update_status(SyncStatus.PENDING)
                return record

        record = self._build_local_record(name, date_str, custom_time, method, scheduled_time)
        self.save_attendance_records(self._replace_record(record))
        return record

    def mark_prayer_completed(self, prayer_name, date=None):
        """Simple method: the prayer was attended, no time given."""
        return self._mark(prayer_name, date=date)

    def mark_prayer_attended_with_custom_time(self, prayer_name, custom_time, date=None, scheduled_time=None):
        """Detailed method: the prayer was attended at `custom_time` (HH:MM)."""
        return self._mark(prayer_name, date=date, custom_time=custom_time,
                          method=AttendanceMethod.DETAILED, scheduled_time=scheduled_time)

    def unmark_prayer(self, prayer_name, date=None):
        """Removes a prayer's record for a date. Returns False when nothing was recorded."""
        name = normalize_prayer_name(prayer_name)
        if not name:
            raise ValueError(f"Unknown prayer name {prayer_name!r}. Expected one of: {', '.join(PRAYER_NAMES)}.")
        date_str = parse_record_date(date) if date else self._today_str()
        existing = [r for r in self.records if r.get('date') == date_str and r.get('prayerName') == name]
        if not existing:
            return False

        remaining = [r for r in self.records if not (r.get('date') == date_str and r.get('prayerName') == name)]
        if self.is_authenticated:
            try:
                self.api.delete_attendance(name, date_str)
            except ApiError as e:
                logger.error(f"Error deleting from API, removing locally only: {e}")
        self.save_attendance_records(remaining)
        return True

    # --- queries ---

    def get_prayer_attendance(self, prayer_name, date=None):
        name = normalize_prayer_name(prayer_name) or prayer_name
        date_str = date or self._today_str()
        for record in self.records:
            if record.get('date') == date_str and record.get('prayerName') == name:
                return {
                    'completed': True,
                    'completedAt': record.get('attendedAt'),
                    'customTime': record.get('customTime'),
                    'method': record.get('method'),
                }
        return None

    def get_attendance_stats(self, period=30):
        """Server statistics when signed in, otherwise the same figures computed from local records."""
        if self.is_authenticated:
            try:
                return self.api.get_stats(period)
            except ApiError as e:
                logger.error(f"Error fetching stats from API, computing locally: {e}")

        rows = [row for row in (record_to_stats_input(r) for r in self.records) if row]
        return summarize_records(rows, period, self._today())

    def sync_to_database(self):
        return self.sync.sync_to_database(self.user_id)
