import requests
from flask import current_app
from .base_adapter import BaseGeocodingAdapter


class NominatimAdapter(BaseGeocodingAdapter):
    """
    Reverse geocoding through OpenStreetMap Nominatim. Nominatim's usage policy
    requires an identifying User-Agent.
    """

    name = "nominatim"
    base_url = "https://nominatim.openstreetmap.org"

    def reverse_geocode(self, lat, lon):
        params = {
            "format": "json",
            "lat": lat,
            "lon": lon,
            "accept-language": "id,en",
        }
        headers = {
            "User-Agent": self.user_agent or "Awwal Prayer Times App (awwal.app)",
            "Accept": "application/json",
        }
        try:
            data = self._get_json(f"{self.base_url}/reverse", params=params, headers=headers)
        except requests.exceptions.RequestException as e:
            current_app.logger.error(f"Nominatim reverse geocoding request failed: {e}")
            return {"error": "Failed to connect to Nominatim."}
        except ValueError as e:
            current_app.logger.error(f"Failed to parse Nominatim response: {e}")
            return {"error": "Invalid response from Nominatim."}

        if not isinstance(data, dict):
            return self._failure("Unexpected Nominatim response shape.")

        if data.get("error"):
            return self._failure(f"Nominatim error: {data.get('error')}")

        address = data.get("address") or {}
        city = address.get("city") or address.get("town") or address.get("village") or address.get("suburb")
        if not city:
            return self._failure("No city in Nominatim address.")
        state = address.get("state") or address.get("province")

        return {
            "city": city,
            "state": state,
            "country": address.get("country") or self.default_country,
            "displayName": self._display_name(city, state),
        }
