import time
from abc import ABC, abstractmethod

import requests
from flask import current_app

from ...metrics import API_REQUESTS_TOTAL, API_REQUEST_DURATION_SECONDS


class BaseGeocodingAdapter(ABC):
    """
    Abstract base class for a reverse geocoding adapter.

    `reverse_geocode` returns {"city", "state", "country", "displayName"} on
    success and {"error": ...} when the provider failed or knew nothing useful.
    """

    name = "base"
    default_country = "Indonesia"

    def __init__(self, timeout=10, user_agent=None):
        self.timeout = timeout
        self.user_agent = user_agent

    @abstractmethod
    def reverse_geocode(self, lat, lon):
        """
        Converts coordinates to a human-readable place.
        """
        pass

    def _get_json(self, url, params=None, headers=None):
        """GET a JSON document, recording request metrics. Raises requests exceptions to the caller."""
        started = time.monotonic()
        status = "error"
        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            status = "success"
            return data
        finally:
            API_REQUESTS_TOTAL.labels(adapter_name=self.name, endpoint="reverse", status=status).inc()
            API_REQUEST_DURATION_SECONDS.labels(adapter_name=self.name, endpoint="reverse").observe(time.monotonic() - started)

    @staticmethod
    def _display_name(city, state):
        if state and state != city:
            return f"{city}, {state}"
        return city

    def _failure(self, message):
        current_app.logger.warning(f"{self.__class__.__name__}: {message}")
        return {"error": message}
