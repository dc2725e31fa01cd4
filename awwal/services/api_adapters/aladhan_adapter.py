# awwal/services/api_adapters/aladhan_adapter.py

import time
import requests
from flask import current_app
from .base_adapter import BasePrayerTimeAdapter
from ...metrics import API_REQUESTS_TOTAL, API_REQUEST_DURATION_SECONDS


class AlAdhanAdapter(BasePrayerTimeAdapter):
    """
    API Adapter for AlAdhan.com Prayer Times API.
    """

    name = "aladhan"

    def fetch_daily_timings(self, date_obj, latitude, longitude, method_id, school_id):
        """
        Fetches prayer times for a single day from the AlAdhan.com API.
        """
        date_str = date_obj.strftime("%d-%m-%Y")
        current_app.logger.info(f"AlAdhanAdapter: Fetching daily timings for {date_str} at ({latitude}, {longitude})")

        endpoint = f"{self.base_url}/timings/{date_str}"
        params = {
            "latitude": str(latitude),
            "longitude": str(longitude),
            "method": method_id,
            "school": school_id,
        }
        current_app.logger.debug(f"AlAdhanAdapter: Fetching daily with params: {params}")

        started = time.monotonic()
        status = "error"
        try:
            response = requests.get(endpoint, params=params, timeout=10)
            response.raise_for_status()
            data = response.json()

            if data.get("code") == 200 and isinstance(data.get("data"), dict) and "timings" in data["data"]:
                status = "success"
                current_app.logger.info(f"AlAdhanAdapter: Successfully fetched daily timings for {date_str}.")
                return data["data"]

            current_app.logger.error(f"AlAdhanAdapter: API error for daily timings {date_str}. Code: {data.get('code')}, Status: {data.get('status')}")
            return None

        except requests.exceptions.Timeout:
            status = "timeout"
            current_app.logger.error(f"AlAdhanAdapter: Timeout error fetching daily prayer times for {date_str}.")
            return None
        except requests.exceptions.RequestException as e:
            current_app.logger.error(f"AlAdhanAdapter: RequestException for daily timings {date_str}: {e}", exc_info=True)
            return None
        except ValueError as e:
            current_app.logger.error(f"AlAdhanAdapter: Invalid JSON for daily timings {date_str}: {e}")
            return None
        finally:
            API_REQUESTS_TOTAL.labels(adapter_name=self.name, endpoint="timings", status=status).inc()
            API_REQUEST_DURATION_SECONDS.labels(adapter_name=self.name, endpoint="timings").observe(time.monotonic() - started)
