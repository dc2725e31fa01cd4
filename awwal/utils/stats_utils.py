import datetime


def calculate_current_streak(dates, today):
    """
    Number of consecutive days, ending today, with at least one attended prayer.
    Dates after `today` are ignored; a day without records breaks the streak.
    """
    unique_dates = sorted({d for d in dates if d <= today}, reverse=True)
    streak = 0
    expected = today
    for attended_date in unique_dates:
        if attended_date != expected:
            break
        streak += 1
        expected -= datetime.timedelta(days=1)
    return streak


def calculate_completion_rate(total_records, unique_days, prayers_per_day=5):
    """Attended prayers as a rounded percentage of all prayers on the days that were tracked."""
    total_possible = unique_days * prayers_per_day
    if total_possible <= 0:
        return 0
    return int(round(total_records / total_possible * 100))


def build_timing_analysis(early_count, late_delays):
    average_delay = round(sum(late_delays) / len(late_delays), 1) if late_delays else 0
    return {
        "early": early_count,
        "late": len(late_delays),
        "averageDelay": average_delay,
    }


def summarize_records(records, period_days, today, prayers_per_day=5, streak_lookback=100):
    """
    Builds the same statistics payload the server returns, from in-memory records.

    Each record is a dict with `prayer_date` (datetime.date), `prayer_name`,
    `is_early` (True, False or None) and `delay_minutes`.
    """
    start_date = today - datetime.timedelta(days=period_days)
    in_period = [r for r in records if start_date <= r["prayer_date"] <= today]

    stats_by_prayer = {}
    for record in in_period:
        stats_by_prayer[record["prayer_name"]] = stats_by_prayer.get(record["prayer_name"], 0) + 1

    unique_days = len({r["prayer_date"] for r in in_period})
    early_count = sum(1 for r in in_period if r.get("is_early") is True)
    late_delays = [r.get("delay_minutes") or 0 for r in in_period if r.get("is_early") is False]

    recent = sorted(records, key=lambda r: r["prayer_date"], reverse=True)[:streak_lookback]

    return {
        "period": period_days,
        "totalRecords": len(in_period),
        "uniqueDays": unique_days,
        "completionRate": calculate_completion_rate(len(in_period), unique_days, prayers_per_day),
        "currentStreak": calculate_current_streak([r["prayer_date"] for r in recent], today),
        "statsByPrayer": stats_by_prayer,
        "timingAnalysis": build_timing_analysis(early_count, late_delays),
    }
