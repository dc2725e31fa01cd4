import requests
from flask import current_app
from .base_adapter import BaseGeocodingAdapter


class BigDataCloudAdapter(BaseGeocodingAdapter):
    """
    Reverse geocoding through BigDataCloud's free client endpoint (no API key).
    """

    name = "bigdatacloud"
    base_url = "https://api.bigdatacloud.net/data"

    def reverse_geocode(self, lat, lon):
        params = {
            "latitude": lat,
            "longitude": lon,
            "localityLanguage": "id",
        }
        try:
            data = self._get_json(f"{self.base_url}/reverse-geocode-client", params=params)
        except requests.exceptions.RequestException as e:
            current_app.logger.error(f"BigDataCloud reverse geocoding request failed: {e}")
            return {"error": "Failed to connect to BigDataCloud."}
        except ValueError as e:
            current_app.logger.error(f"Failed to parse BigDataCloud response: {e}")
            return {"error": "Invalid response from BigDataCloud."}

        if not isinstance(data, dict):
            return self._failure("Unexpected BigDataCloud response shape.")

        city = data.get("city") or data.get("locality") or data.get("principalSubdivision")
        if not city:
            return self._failure("No locality in BigDataCloud response.")

        return {
            "city": city,
            "state": data.get("principalSubdivision") or data.get("principalSubdivisionCode"),
            "country": data.get("countryName") or self.default_country,
            "displayName": city,
        }
