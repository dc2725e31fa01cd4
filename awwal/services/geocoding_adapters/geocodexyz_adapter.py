import requests
from flask import current_app
from .base_adapter import BaseGeocodingAdapter


class GeocodeXyzAdapter(BaseGeocodingAdapter):
    """
    Reverse geocoding through geocode.xyz using the public (throttled) tier.
    """

    name = "geocodexyz"
    base_url = "https://geocode.xyz"

    def reverse_geocode(self, lat, lon):
        try:
            data = self._get_json(f"{self.base_url}/{lat},{lon}", params={"json": 1, "auth": "public"})
        except requests.exceptions.RequestException as e:
            current_app.logger.error(f"geocode.xyz reverse geocoding request failed: {e}")
            return {"error": "Failed to connect to geocode.xyz."}
        except ValueError as e:
            current_app.logger.error(f"Failed to parse geocode.xyz response: {e}")
            return {"error": "Invalid response from geocode.xyz."}

        if not isinstance(data, dict):
            return self._failure("Unexpected geocode.xyz response shape.")

        if not data or data.get("error"):
            return self._failure(f"geocode.xyz error: {(data or {}).get('error')}")

        city = data.get("city") or data.get("region")
        if not city or isinstance(city, dict):
            return self._failure("No city in geocode.xyz response.")
        state = data.get("state") or data.get("prov")
        if isinstance(state, dict):
            state = None

        return {
            "city": city,
            "state": state,
            "country": data.get("country") or self.default_country,
            "displayName": self._display_name(city, state),
        }
