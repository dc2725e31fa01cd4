# awwal/utils/constants.py

# Canonical prayer names, in daily order. These are the keys AlAdhan uses in `timings`.
PRAYER_NAMES = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

PRAYER_DISPLAY = {
    "Fajr":    {"local_name": "Subuh",   "arabic_name": "الفجر"},
    "Dhuhr":   {"local_name": "Dzuhur",  "arabic_name": "الظهر"},
    "Asr":     {"local_name": "Ashar",   "arabic_name": "العصر"},
    "Maghrib": {"local_name": "Maghrib", "arabic_name": "المغرب"},
    "Isha":    {"local_name": "Isya",    "arabic_name": "العشاء"},
}

# Lower-cased aliases accepted as input
PRAYER_NAME_ALIASES = {
    "fajr": "Fajr", "subuh": "Fajr", "shubuh": "Fajr",
    "dhuhr": "Dhuhr", "dzuhur": "Dhuhr", "zuhur": "Dhuhr", "zuhr": "Dhuhr",
    "asr": "Asr", "ashar": "Asr", "asar": "Asr",
    "maghrib": "Maghrib", "magrib": "Maghrib",
    "isha": "Isha", "isya": "Isha", "isyak": "Isha",
}


class AttendanceMethod:
    """The two ways a prayer can be marked as attended."""
    SIMPLE = 'simple'
    DETAILED = 'detailed'

    ALL = (SIMPLE, DETAILED)


class TimeStatus:
    """Client-side timing classification of an attendance record."""
    ON_TIME = 'on_time'
    EARLY = 'early'
    LATE = 'late'


def normalize_prayer_name(name):
    """
    Maps a canonical, Indonesian or lower-cased prayer name to its canonical form.
    Returns None for unknown names.
    """
    if not name or not isinstance(name, str):
        return None
    return PRAYER_NAME_ALIASES.get(name.strip().lower())
