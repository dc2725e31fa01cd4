# awwal/client/api_client.py

import logging
import os
import datetime

import requests

from ..utils.constants import AttendanceMethod, TimeStatus

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = 'http://localhost:5000'


class ApiError(Exception):
    """Raised for transport failures and non-2xx responses from the Awwal API."""

    def __init__(self, message, status_code=None, body=None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


def convert_to_api_format(record, scheduled_time='00:00'):
    """Client record -> POST /api/attendance payload."""
    payload = {
        'prayerName': record['prayerName'],
        'prayerDate': record['date'],
        'scheduledTime': scheduled_time,
        'method': record.get('method') or AttendanceMethod.SIMPLE,
    }
    if record.get('customTime'):
        payload['customTime'] = record['customTime']
    return payload


def convert_from_api_format(attendance):
    """Server attendance -> client record. `isEarly` maps to the record's timeStatus."""
    is_early = attendance.get('isEarly')
    if is_early is True:
        time_status = TimeStatus.EARLY
    elif is_early is False:
        time_status = TimeStatus.LATE
    else:
        time_status = TimeStatus.ON_TIME

    record = {
        'id': f"{attendance['prayerName']}-{attendance['prayerDate']}-{attendance.get('id')}",
        'date': str(attendance['prayerDate']).split('T')[0],
        'prayerName': attendance['prayerName'],
        'attendedAt': attendance.get('attendedAt'),
        'timeStatus': time_status,
        'location': 'Unknown',
        'method': attendance.get('method') or AttendanceMethod.SIMPLE,
    }
    if attendance.get('customTime'):
        record['customTime'] = attendance['customTime']
    if attendance.get('delayMinutes') is not None:
        record['delayMinutes'] = attendance['delayMinutes']
    return record


class AttendanceApiService:
    """
    Thin client for the Awwal HTTP API. Requests carry the Google ID token as a
    Bearer token when one is set.
    """

    def __init__(self, base_url=None, id_token=None, timeout=10, session=None):
        self.base_url = (base_url or os.environ.get('AWWAL_SERVER_URL') or DEFAULT_SERVER_URL).rstrip('/')
        self.id_token = id_token
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_authenticated(self):
        return bool(self.id_token)

    def _request(self, method, path, **kwargs):
        headers = kwargs.pop('headers', {})
        if self.id_token:
            headers['Authorization'] = f"Bearer {self.id_token}"
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Could not reach {url}: {e}") from e

        if not response.ok:
            logger.error(f"API Error Response for {method} {path}: {response.status_code} {response.text}")
            raise ApiError(f"API Error {response.status_code}: {response.text}", status_code=response.status_code, body=response.text)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {method} {path}", status_code=response.status_code, body=response.text) from e

    def get_session(self):
        """The signed-in user as the server sees it, or None."""
        return self._request('GET', '/auth/session').get('user')

    def get_attendances(self, date=None, limit=None):
        params = {}
        if date:
            params['date'] = date
        if limit:
            params['limit'] = limit
        result = self._request('GET', '/api/attendance', params=params)
        return [convert_from_api_format(a) for a in result.get('attendances', [])]

    def save_attendance(self, prayer_name, date=None, custom_time=None, method=AttendanceMethod.SIMPLE, scheduled_time='00:00'):
        payload = {
            'prayerName': prayer_name,
            'prayerDate': date or datetime.date.today().isoformat(),
            'scheduledTime': scheduled_time,
            'method': method,
        }
        if custom_time:
            payload['customTime'] = custom_time
        logger.debug(f"Saving attendance to API: {payload}")
        result = self._request('POST', '/api/attendance', json=payload)
        return convert_from_api_format(result['attendance'])

    def delete_attendance(self, prayer_name, date):
        self._request('DELETE', '/api/attendance', params={'prayerName': prayer_name, 'prayerDate': date})

    def get_stats(self, period=None):
        params = {'period': period} if period else {}
        return self._request('GET', '/api/stats', params=params)

    def sync_data(self, records=None, local_data=None):
        payload = {}
        if records is not None:
            payload['records'] = records
        if local_data is not None:
            payload['localData'] = local_data
        return self._request('POST', '/api/sync', json=payload)

    def get_sync_status(self):
        return self._request('GET', '/api/sync/status')

    def get_prayer_times(self, lat=None, lon=None, date=None, method=None, school=None):
        params = {k: v for k, v in {'lat': lat, 'lon': lon, 'date': date, 'method': method, 'school': school}.items() if v is not None}
        return self._request('GET', '/api/prayer-times', params=params)

    def get_location(self, lat, lon):
        return self._request('GET', '/api/location', params={'lat': lat, 'lon': lon})
