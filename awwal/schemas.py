# awwal/schemas.py

import re

from marshmallow import Schema, fields, validate, validates_schema, ValidationError, EXCLUDE

from .utils.constants import AttendanceMethod, normalize_prayer_name, PRAYER_NAMES
from .utils.time_utils import normalize_time_string, is_valid_time_string

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PrayerNameField(fields.String):
    """Accepts canonical or Indonesian prayer names and loads the canonical one."""

    def _deserialize(self, value, attr, data, **kwargs):
        raw = super()._deserialize(value, attr, data, **kwargs)
        name = normalize_prayer_name(raw)
        if not name:
            raise ValidationError(f"Unknown prayer name. Expected one of: {', '.join(PRAYER_NAMES)}.")
        return name


class DateString(fields.Date):
    """A strict YYYY-MM-DD date."""

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, str) or not DATE_PATTERN.match(value):
            raise ValidationError("Invalid date format. Use YYYY-MM-DD.")
        return super()._deserialize(value, attr, data, **kwargs)


class TimeString(fields.String):
    """An HH:MM time of day, loaded zero-padded."""

    def _deserialize(self, value, attr, data, **kwargs):
        raw = super()._deserialize(value, attr, data, **kwargs)
        if not is_valid_time_string(raw):
            raise ValidationError("Invalid time format. Use HH:MM.")
        return normalize_time_string(raw)


class MessageSchema(Schema):
    message = fields.Str(required=True)


# --- Attendance ---

class AttendanceSchema(Schema):
    """Serializes a PrayerAttendance row with the camelCase keys clients expect."""
    id = fields.Int(dump_only=True)
    prayer_name = fields.Str(data_key="prayerName")
    prayer_date = fields.Date(data_key="prayerDate")
    scheduled_time = fields.Str(data_key="scheduledTime")
    custom_time = fields.Str(data_key="customTime", allow_none=True)
    is_early = fields.Bool(data_key="isEarly", allow_none=True)
    delay_minutes = fields.Int(data_key="delayMinutes", allow_none=True)
    method = fields.Str()
    attended_at = fields.DateTime(data_key="attendedAt")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class AttendanceResponseSchema(Schema):
    attendance = fields.Nested(AttendanceSchema)


class AttendanceListSchema(Schema):
    attendances = fields.List(fields.Nested(AttendanceSchema))


class AttendanceQueryArgsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    date = DateString()
    limit = fields.Int(load_default=30, validate=validate.Range(min=1, max=366))


class AttendancePostSchema(Schema):
    """Payload for recording (or updating) one attended prayer."""
    class Meta:
        unknown = EXCLUDE

    prayer_name = PrayerNameField(required=True, data_key="prayerName")
    prayer_date = DateString(required=True, data_key="prayerDate")
    scheduled_time = TimeString(required=True, data_key="scheduledTime")
    custom_time = TimeString(load_default=None, allow_none=True, data_key="customTime")
    method = fields.Str(load_default=AttendanceMethod.SIMPLE, validate=validate.OneOf(AttendanceMethod.ALL))


class AttendanceDeleteArgsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    prayer_name = PrayerNameField(required=True, data_key="prayerName")
    prayer_date = DateString(required=True, data_key="prayerDate")


class SuccessSchema(Schema):
    success = fields.Bool(required=True)


class AttendanceBulkPostSchema(Schema):
    """Several attendance payloads at once, each validated on its own."""
    class Meta:
        unknown = EXCLUDE

    records = fields.List(fields.Raw(allow_none=True), required=True, validate=validate.Length(min=1, max=100))


class AttendanceBulkResultSchema(Schema):
    success = fields.Bool()
    attendance = fields.Nested(AttendanceSchema, allow_none=True)
    error = fields.Str()


class AttendanceBulkResponseSchema(Schema):
    results = fields.List(fields.Nested(AttendanceBulkResultSchema))
    saved = fields.Int()
    failed = fields.Int()


# --- Statistics ---

class StatsArgsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    period = fields.Int(load_default=30, validate=validate.Range(min=1, max=3650))


class TimingAnalysisSchema(Schema):
    early = fields.Int()
    late = fields.Int()
    averageDelay = fields.Float()


class StatsSchema(Schema):
    period = fields.Int()
    totalRecords = fields.Int()
    uniqueDays = fields.Int()
    completionRate = fields.Int()
    currentStreak = fields.Int()
    statsByPrayer = fields.Dict(keys=fields.Str(), values=fields.Int())
    timingAnalysis = fields.Nested(TimingAnalysisSchema)


# --- Sync ---

class SyncPayloadSchema(Schema):
    """
    Bulk upload of locally stored attendance. Either the legacy per-day map
    (`localData`) or a list of client records (`records`) is accepted.
    """
    class Meta:
        unknown = EXCLUDE

    # Entries are validated one by one in attendance_service.sync_local_data
    local_data = fields.Dict(keys=fields.Str(), data_key="localData", allow_none=True)
    records = fields.List(fields.Raw(allow_none=True), allow_none=True)

    @validates_schema
    def validate_has_payload(self, data, **kwargs):
        if data.get("local_data") is None and data.get("records") is None:
            raise ValidationError("Either 'localData' or 'records' is required.")


class SyncResultSchema(Schema):
    success = fields.Bool()
    synced = fields.Int()
    skipped = fields.Int()
    errors = fields.Int()
    message = fields.Str()


class RecentRecordSchema(Schema):
    prayer_name = fields.Str(data_key="prayerName")
    prayer_date = fields.Date(data_key="prayerDate")
    method = fields.Str()
    created_at = fields.DateTime(data_key="createdAt")


class SyncStatusSchema(Schema):
    totalRecords = fields.Int()
    recentRecords = fields.List(fields.Nested(RecentRecordSchema))
    statsByPrayer = fields.Dict(keys=fields.Str(), values=fields.Int())
    lastSync = fields.Str()


# --- Prayer times & location ---

class PrayerTimesArgsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    lat = fields.Float(validate=validate.Range(min=-90, max=90))
    lon = fields.Float(validate=validate.Range(min=-180, max=180))
    method = fields.Int()
    school = fields.Int(validate=validate.OneOf([0, 1]))
    date = DateString()
    refresh = fields.Bool(load_default=False)


class PrayerTimeEntrySchema(Schema):
    name = fields.Str()
    localName = fields.Str()
    arabicName = fields.Str()
    time = fields.Str()
    isNext = fields.Bool()
    isPassed = fields.Bool()


class PrayerScheduleSchema(Schema):
    date = fields.Str()
    hijriDate = fields.Str(allow_none=True)
    timezone = fields.Str(allow_none=True)
    location = fields.Dict()
    prayers = fields.List(fields.Nested(PrayerTimeEntrySchema))
    currentPrayer = fields.Nested(PrayerTimeEntrySchema, allow_none=True)
    nextPrayer = fields.Nested(PrayerTimeEntrySchema, allow_none=True)
    minutesUntilCurrentEnds = fields.Int()
    status = fields.Str()
    greeting = fields.Str()


class LocationArgsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    lat = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    lon = fields.Float(required=True, validate=validate.Range(min=-180, max=180))


class CoordinatesSchema(Schema):
    latitude = fields.Float()
    longitude = fields.Float()


class LocationInfoSchema(Schema):
    city = fields.Str()
    state = fields.Str(allow_none=True)
    country = fields.Str()
    coordinates = fields.Nested(CoordinatesSchema)
    displayName = fields.Str()
    timezone = fields.Str()
    source = fields.Str()


# --- Auth ---

class UserSchema(Schema):
    id = fields.Int()
    email = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)


class SessionSchema(Schema):
    user = fields.Nested(UserSchema, allow_none=True)
