import datetime

from awwal.utils.stats_utils import (
    calculate_current_streak,
    calculate_completion_rate,
    build_timing_analysis,
    summarize_records,
)

TODAY = datetime.date(2025, 3, 10)


def days_ago(n):
    return TODAY - datetime.timedelta(days=n)


def test_streak_counts_consecutive_days_ending_today():
    assert calculate_current_streak([days_ago(0), days_ago(1), days_ago(1), days_ago(2), days_ago(4)], TODAY) == 3


def test_streak_is_zero_without_a_record_today():
    assert calculate_current_streak([days_ago(1), days_ago(2)], TODAY) == 0


def test_streak_ignores_future_dates():
    assert calculate_current_streak([TODAY + datetime.timedelta(days=1), TODAY], TODAY) == 1


def test_completion_rate_only_counts_tracked_days():
    assert calculate_completion_rate(7, 2) == 70
    assert calculate_completion_rate(0, 0) == 0
    assert calculate_completion_rate(2, 3) == 13


def test_timing_analysis_average_delay():
    assert build_timing_analysis(2, [10, 5, 0]) == {"early": 2, "late": 3, "averageDelay": 5.0}
    assert build_timing_analysis(0, []) == {"early": 0, "late": 0, "averageDelay": 0}
    assert build_timing_analysis(0, [1, 2, 2])["averageDelay"] == 1.7


def test_summarize_records():
    records = [
        {"prayer_date": days_ago(0), "prayer_name": "Fajr", "is_early": True, "delay_minutes": 0},
        {"prayer_date": days_ago(0), "prayer_name": "Dhuhr", "is_early": False, "delay_minutes": 12},
        {"prayer_date": days_ago(1), "prayer_name": "Fajr", "is_early": None, "delay_minutes": None},
        # Outside a 7 day period
        {"prayer_date": days_ago(30), "prayer_name": "Isha", "is_early": None, "delay_minutes": None},
    ]

    stats = summarize_records(records, 7, TODAY)

    assert stats["period"] == 7
    assert stats["totalRecords"] == 3
    assert stats["uniqueDays"] == 2
    assert stats["completionRate"] == 30
    assert stats["currentStreak"] == 2
    assert stats["statsByPrayer"] == {"Fajr": 2, "Dhuhr": 1}
    assert stats["timingAnalysis"] == {"early": 1, "late": 1, "averageDelay": 12.0}
