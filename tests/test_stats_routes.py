# tests/test_stats_routes.py

import datetime

from awwal import db
from awwal.models import PrayerAttendance
from awwal.services.stats_service import get_user_stats


def add_attendance(user, prayer_name, prayer_date, is_early=None, delay_minutes=None, method='simple'):
    record = PrayerAttendance(
        user_id=user.id, prayer_name=prayer_name, prayer_date=prayer_date, scheduled_time="05:00",
        is_early=is_early, delay_minutes=delay_minutes, method=method,
    )
    db.session.add(record)
    db.session.commit()
    return record


def test_stats_unauthenticated(test_client):
    response = test_client.get('/api/stats')
    assert response.status_code == 401


def test_stats_empty(test_client, auth_headers):
    response = test_client.get('/api/stats', headers=auth_headers)
    assert response.status_code == 200
    assert response.get_json() == {
        "period": 30,
        "totalRecords": 0,
        "uniqueDays": 0,
        "completionRate": 0,
        "currentStreak": 0,
        "statsByPrayer": {},
        "timingAnalysis": {"early": 0, "late": 0, "averageDelay": 0},
    }


def test_stats_for_period(test_client, auth_headers, user_in_db):
    """
    GIVEN records on today, yesterday and 40 days ago
    WHEN '/api/stats?period=7' is requested
    THEN only the last 7 days count towards totals, and the streak is 2.
    """
    today = datetime.date.today()
    yesterday = today - datetime.timedelta(days=1)
    add_attendance(user_in_db, "Fajr", today, is_early=True, delay_minutes=0, method='detailed')
    add_attendance(user_in_db, "Dhuhr", today, is_early=False, delay_minutes=10, method='detailed')
    add_attendance(user_in_db, "Asr", today, is_early=False, delay_minutes=20, method='detailed')
    add_attendance(user_in_db, "Fajr", yesterday)
    add_attendance(user_in_db, "Isha", today - datetime.timedelta(days=40))

    response = test_client.get('/api/stats?period=7', headers=auth_headers)
    assert response.status_code == 200
    stats = response.get_json()
    assert stats["period"] == 7
    assert stats["totalRecords"] == 4
    assert stats["uniqueDays"] == 2
    assert stats["completionRate"] == 40
    assert stats["currentStreak"] == 2
    assert stats["statsByPrayer"] == {"Fajr": 2, "Dhuhr": 1, "Asr": 1}
    assert stats["timingAnalysis"] == {"early": 1, "late": 2, "averageDelay": 15.0}


def test_stats_rejects_invalid_period(test_client, auth_headers):
    assert test_client.get('/api/stats?period=0', headers=auth_headers).status_code == 400
    assert test_client.get('/api/stats?period=abc', headers=auth_headers).status_code == 400


def test_streak_breaks_on_missing_day(app, user_in_db):
    today = datetime.date(2025, 3, 10)
    for offset in (0, 1, 3):
        add_attendance(user_in_db, "Fajr", today - datetime.timedelta(days=offset))

    stats = get_user_stats(user_in_db, period_days=30, today=today)
    assert stats["currentStreak"] == 2
    assert stats["uniqueDays"] == 3


def test_future_records_are_not_counted(app, user_in_db):
    today = datetime.date(2025, 3, 10)
    add_attendance(user_in_db, "Fajr", today + datetime.timedelta(days=2))
    add_attendance(user_in_db, "Fajr", today)

    stats = get_user_stats(user_in_db, period_days=30, today=today)
    assert stats["totalRecords"] == 1
    assert stats["currentStreak"] == 1
