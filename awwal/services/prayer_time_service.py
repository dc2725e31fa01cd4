# awwal/services/prayer_time_service.py

import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask import current_app
from typing import Dict, Any, Optional, List

from .api_adapters.aladhan_adapter import AlAdhanAdapter
from .cache_layer import build_cache_key, get_cached, set_cached
from ..utils.constants import PRAYER_NAMES, PRAYER_DISPLAY
from ..utils.time_utils import (
    format_api_time,
    time_string_to_minutes,
    current_time_in_minutes,
    get_current_active_prayer,
    get_minutes_until_prayer_ends,
    get_current_prayer_status,
    get_time_based_greeting,
)

ADAPTERS = {
    "AlAdhanAdapter": AlAdhanAdapter,
}


def get_selected_api_adapter():
    """
    Instantiates and returns the API adapter based on configuration.
    """
    adapter_name = current_app.config.get('PRAYER_API_ADAPTER', "AlAdhanAdapter")
    base_url = current_app.config.get('PRAYER_API_BASE_URL')
    api_key = current_app.config.get('PRAYER_API_KEY')

    adapter_cls = ADAPTERS.get(adapter_name)
    if not adapter_cls:
        current_app.logger.error(f"Unsupported Prayer API Adapter: {adapter_name}")
        return None
    if not base_url:
        current_app.logger.error(f"{adapter_name} base URL is not configured.")
        return None
    return adapter_cls(base_url=base_url, api_key=api_key)


def get_default_location():
    return float(current_app.config['DEFAULT_LATITUDE']), float(current_app.config['DEFAULT_LONGITUDE'])


def get_prayer_times_for_date(date_obj: datetime.date, latitude: Optional[float] = None, longitude: Optional[float] = None,
                              method_id: Optional[int] = None, school_id: Optional[int] = None,
                              force_refresh: bool = False) -> Optional[Dict[str, Any]]:
    """
    Fetches one day's prayer times, using the Redis cache when it is configured.
    Missing location or method arguments fall back to the configured defaults (Jakarta, method 20, school 0).
    """
    if latitude is None or longitude is None:
        latitude, longitude = get_default_location()
    if method_id is None:
        method_id = current_app.config['DEFAULT_CALCULATION_METHOD_ID']
    if school_id is None:
        school_id = current_app.config['DEFAULT_SCHOOL']

    # Normalize lat/lon precision so nearby requests share a cache entry
    cache_key = build_cache_key("daily", date_obj.isoformat(), f"{float(latitude):.4f}", f"{float(longitude):.4f}", method_id, school_id)

    if not force_refresh:
        cached = get_cached("daily", cache_key)
        if cached:
            return cached

    adapter = get_selected_api_adapter()
    if not adapter:
        return None

    daily_data = adapter.fetch_daily_timings(date_obj, latitude, longitude, method_id, school_id)
    if not daily_data:
        current_app.logger.warning(f"Service: API adapter returned no data for {cache_key}")
        return None

    set_cached(cache_key, daily_data, ttl=current_app.config['REDIS_TTL_DAILY_CACHE'])
    return daily_data


def resolve_timezone(daily_data: Optional[Dict[str, Any]]):
    """The location's timezone from the AlAdhan `meta` block, or the configured default."""
    tz_name = ((daily_data or {}).get("meta") or {}).get("timezone") or current_app.config.get('DEFAULT_TIMEZONE')
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        current_app.logger.warning(f"Unknown timezone '{tz_name}', falling back to UTC.")
        return datetime.timezone.utc


def format_prayer_times_for_display(timings: Dict[str, str], now: datetime.datetime) -> List[Dict[str, Any]]:
    """
    Builds the five daily prayers with display names and flags.

    The first prayer later than now is `isNext`; prayers at or before now are
    `isPassed`. After Isha nothing is flagged as next until midnight; between
    00:00 and 06:00 Fajr becomes next again.
    """
    now_minutes = current_time_in_minutes(now)
    prayers = []
    next_found = False

    for name in PRAYER_NAMES:
        display = PRAYER_DISPLAY[name]
        time_str = format_api_time(timings.get(name))
        entry = {
            "name": name,
            "localName": display["local_name"],
            "arabicName": display["arabic_name"],
            "time": time_str,
            "isNext": False,
            "isPassed": False,
        }
        if time_str:
            prayer_minutes = time_string_to_minutes(time_str)
            if not next_found and prayer_minutes > now_minutes:
                entry["isNext"] = True
                next_found = True
            elif prayer_minutes <= now_minutes:
                entry["isPassed"] = True
        prayers.append(entry)

    if not next_found and 0 <= now.hour < 6 and prayers and prayers[0]["time"]:
        prayers[0]["isNext"] = True

    return prayers


def build_prayer_schedule(daily_data: Dict[str, Any], now: datetime.datetime, location: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Everything the "today" view needs: the five prayers, current and next prayer, status line and greeting."""
    prayers = format_prayer_times_for_display(daily_data.get("timings", {}), now)
    timed_prayers = [p for p in prayers if p["time"]]
    now_minutes = current_time_in_minutes(now)

    date_info = daily_data.get("date") or {}
    gregorian = (date_info.get("gregorian") or {}).get("date")
    hijri = date_info.get("hijri") or {}
    hijri_date = None
    if hijri:
        hijri_date = f"{hijri.get('day')} {(hijri.get('month') or {}).get('en', '')} {hijri.get('year')}".strip()

    return {
        "date": gregorian or now.date().isoformat(),
        "hijriDate": hijri_date,
        "timezone": (daily_data.get("meta") or {}).get("timezone"),
        "location": location or {},
        "prayers": prayers,
        "currentPrayer": get_current_active_prayer(timed_prayers, now_minutes),
        "nextPrayer": next((p for p in prayers if p["isNext"]), None),
        "minutesUntilCurrentEnds": get_minutes_until_prayer_ends(timed_prayers, now_minutes),
        "status": get_current_prayer_status(prayers, now_minutes),
        "greeting": get_time_based_greeting(now.hour),
    }
