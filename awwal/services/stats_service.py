# awwal/services/stats_service.py

import datetime
from flask import current_app
from sqlalchemy import func
from typing import Dict, Any, Optional

from .. import db
from ..models import PrayerAttendance
from .attendance_service import count_by_prayer
from ..utils.stats_utils import calculate_current_streak, calculate_completion_rate, build_timing_analysis


def get_user_stats(user, period_days: Optional[int] = None, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """
    Attendance statistics over the last `period_days` days (inclusive of today).

    The completion rate only counts days on which something was recorded, and
    the streak is computed from the user's most recent records regardless of the period.
    """
    if period_days is None:
        period_days = current_app.config.get('STATS_DEFAULT_PERIOD', 30)
    today = today or datetime.date.today()
    start_date = today - datetime.timedelta(days=period_days)

    in_period = db.session.query(PrayerAttendance).filter(
        PrayerAttendance.user_id == user.id,
        PrayerAttendance.prayer_date >= start_date,
        PrayerAttendance.prayer_date <= today,
    )

    total_records = in_period.count()
    unique_days = in_period.with_entities(func.count(func.distinct(PrayerAttendance.prayer_date))).scalar() or 0
    early_count = in_period.filter(PrayerAttendance.is_early.is_(True)).count()
    late_delays = [delay or 0 for (delay,) in in_period.filter(PrayerAttendance.is_early.is_(False))
                   .with_entities(PrayerAttendance.delay_minutes).all()]

    lookback = current_app.config.get('STREAK_LOOKBACK_RECORDS', 100)
    recent_dates = [d for (d,) in db.session.query(PrayerAttendance.prayer_date)
                    .filter(PrayerAttendance.user_id == user.id)
                    .order_by(PrayerAttendance.prayer_date.desc())
                    .limit(lookback).all()]

    prayers_per_day = current_app.config.get('PRAYERS_PER_DAY', 5)
    return {
        "period": period_days,
        "totalRecords": total_records,
        "uniqueDays": unique_days,
        "completionRate": calculate_completion_rate(total_records, unique_days, prayers_per_day),
        "currentStreak": calculate_current_streak(recent_dates, today),
        "statsByPrayer": count_by_prayer(user, start_date, today),
        "timingAnalysis": build_timing_analysis(early_count, late_delays),
    }
