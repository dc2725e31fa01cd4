# This module defines the base interface for all prayer time API adapters.
from abc import ABC, abstractmethod


class BasePrayerTimeAdapter(ABC):
    """
    Abstract base class for prayer time API adapters. Every adapter returns a
    day's data as {"timings": {...}, "date": {...}, "meta": {...}} or None on failure.
    """

    def __init__(self, base_url, api_key=None):
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.api_key = api_key

    @abstractmethod
    def fetch_daily_timings(self, date_obj, latitude, longitude, method_id, school_id):
        """Fetches prayer times for a single day."""
        pass
