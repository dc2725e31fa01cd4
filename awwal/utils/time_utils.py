import datetime
import re

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_time_internal(time_str):
    """
    Parses a time string (H:MM or HH:MM) into a datetime.time object.
    Returns None if parsing fails.
    """
    if not time_str or not isinstance(time_str, str):
        return None
    match = _TIME_PATTERN.match(time_str.strip())
    if not match:
        return None
    return datetime.time(int(match.group(1)), int(match.group(2)))


def format_time_internal(time_obj):
    """
    Formats a datetime.time object into a HH:MM string.
    Returns None if time_obj is None.
    """
    if not time_obj:
        return None
    return time_obj.strftime("%H:%M")


def is_valid_time_string(time_str):
    return parse_time_internal(time_str) is not None


def normalize_time_string(time_str):
    """Zero-pads a valid time string ("5:07" -> "05:07"). Raises ValueError when invalid."""
    time_obj = parse_time_internal(time_str)
    if time_obj is None:
        raise ValueError(f"Invalid time string: {time_str!r}")
    return format_time_internal(time_obj)


def format_api_time(raw_time):
    """
    Cleans a time as returned by AlAdhan ("04:31 (WIB)", "04:31:00") down to "HH:MM".
    Returns None for anything unreadable.
    """
    if not raw_time:
        return None
    cleaned = str(raw_time).strip().split(" ")[0]
    parts = cleaned.split(":")
    if len(parts) < 2:
        return None
    try:
        return normalize_time_string(f"{parts[0]}:{parts[1]}")
    except ValueError:
        return None


def time_string_to_minutes(time_str):
    """Converts "HH:MM" to minutes from midnight."""
    time_obj = parse_time_internal(time_str)
    if time_obj is None:
        raise ValueError(f"Invalid time string: {time_str!r}")
    return time_obj.hour * 60 + time_obj.minute


def minutes_to_time_string(minutes):
    minutes = int(minutes) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def current_time_in_minutes(now=None):
    now = now or datetime.datetime.now()
    return now.hour * 60 + now.minute


def calculate_timing_analysis(scheduled_time, actual_time):
    """
    Compares the time a prayer was actually performed with its scheduled time.

    Returns a tuple (is_early, delay_minutes): praying at or before the scheduled
    minute counts as early with zero delay, otherwise the delay is the positive
    difference in minutes.
    """
    diff = time_string_to_minutes(actual_time) - time_string_to_minutes(scheduled_time)
    return diff <= 0, max(diff, 0)


def get_minutes_until_prayer(prayer_time, now_minutes):
    """Minutes from now until prayer_time. A time already passed today is taken as tomorrow's."""
    diff = time_string_to_minutes(prayer_time) - now_minutes
    if diff < 0:
        diff += MINUTES_PER_DAY
    return diff


def format_minutes_to_time(minutes):
    """Formats a duration the way the app displays it: "45 menit", "2 jam", "1 jam 5 menit"."""
    if minutes < 60:
        return f"{minutes} menit"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours} jam"
    return f"{hours} jam {remaining} menit"


def get_time_based_greeting(hour):
    if hour < 5:
        return 'Selamat malam'
    if hour < 11:
        return 'Selamat pagi'
    if hour < 15:
        return 'Selamat siang'
    if hour < 18:
        return 'Selamat sore'
    return 'Selamat malam'


def _find_prayer_index(prayer_name, prayers):
    for index, prayer in enumerate(prayers):
        if prayer["name"] == prayer_name:
            return index
    return -1


def get_valid_prayer_time_range(prayer_name, prayers):
    """
    Returns {"min": ..., "max": ...} for the window in which a prayer can be
    recorded: from its own time until one minute before the next prayer. The
    last prayer of the day stays valid until 23:59.
    """
    if not prayers:
        return None
    index = _find_prayer_index(prayer_name, prayers)
    if index == -1:
        return None

    start = prayers[index]["time"]
    if index + 1 < len(prayers):
        end = minutes_to_time_string(time_string_to_minutes(prayers[index + 1]["time"]) - 1)
    else:
        end = "23:59"
    return {"min": start, "max": end}


def generate_valid_time_options(prayer_name, prayers, step=5):
    """Selectable times for a prayer, every `step` minutes inside its valid window."""
    time_range = get_valid_prayer_time_range(prayer_name, prayers)
    if not time_range:
        return []
    start = time_string_to_minutes(time_range["min"])
    end = time_string_to_minutes(time_range["max"])
    return [minutes_to_time_string(m) for m in range(start, end + 1, step)]


def is_valid_prayer_time(input_time, prayer_name, prayers):
    time_range = get_valid_prayer_time_range(prayer_name, prayers)
    if not time_range or not is_valid_time_string(input_time):
        return False
    value = time_string_to_minutes(input_time)
    return time_string_to_minutes(time_range["min"]) <= value <= time_string_to_minutes(time_range["max"])


def get_current_active_prayer(prayers, now_minutes):
    """
    The prayer whose window contains now. Before the first prayer of the day the
    previous night's last prayer (Isha) is still considered active.
    """
    if not prayers:
        return None
    for index, prayer in enumerate(prayers):
        start = time_string_to_minutes(prayer["time"])
        if index + 1 < len(prayers):
            next_start = time_string_to_minutes(prayers[index + 1]["time"])
            if start <= now_minutes < next_start:
                return prayer
        elif now_minutes >= start:
            return prayer

    if now_minutes < time_string_to_minutes(prayers[0]["time"]):
        return prayers[-1]
    return None


def get_minutes_until_prayer_ends(prayers, now_minutes):
    """
    Minutes left in the active prayer's window. The last prayer ends at
    midnight; when it is carried over past midnight it ends at the first prayer.
    """
    active = get_current_active_prayer(prayers, now_minutes)
    if not active:
        return 0

    index = _find_prayer_index(active["name"], prayers)
    if index == len(prayers) - 1:
        if now_minutes >= time_string_to_minutes(active["time"]):
            return MINUTES_PER_DAY - now_minutes
        return time_string_to_minutes(prayers[0]["time"]) - now_minutes

    return time_string_to_minutes(prayers[index + 1]["time"]) - now_minutes


def get_current_prayer_status(prayers, now_minutes):
    """Human readable status line for the upcoming prayer (the entry flagged `isNext`)."""
    next_prayer = next((p for p in prayers or [] if p.get("isNext")), None)
    if not next_prayer:
        return 'Menentukan waktu shalat...'

    minutes_until = get_minutes_until_prayer(next_prayer["time"], now_minutes)
    time_until = format_minutes_to_time(minutes_until)
    name = next_prayer.get("localName") or next_prayer["name"]

    if minutes_until <= 15:
        return f"Waktu {name} akan tiba dalam {time_until}"
    if minutes_until <= 60:
        return f"{time_until} menuju {name}"
    return f"Waktu {name} masih {time_until} lagi"
