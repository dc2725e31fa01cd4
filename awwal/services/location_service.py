# awwal/services/location_service.py

from flask import current_app
from typing import Dict, Any, Optional, List

from .cache_layer import build_cache_key, get_cached, set_cached
from .geocoding_adapters.bigdatacloud_adapter import BigDataCloudAdapter
from .geocoding_adapters.nominatim_adapter import NominatimAdapter
from .geocoding_adapters.geocodexyz_adapter import GeocodeXyzAdapter

UNKNOWN_CITY = 'Lokasi Tidak Dikenal'
DEFAULT_COUNTRY = 'Indonesia'

GEOCODING_ADAPTERS = {
    "bigdatacloud": BigDataCloudAdapter,
    "nominatim": NominatimAdapter,
    "geocodexyz": GeocodeXyzAdapter,
}

# (city, state, lat_min, lat_max, lon_min, lon_max), checked in order
CITY_BOUNDS = [
    ('Jakarta', 'DKI Jakarta', -6.5, -5.9, 106.5, 107.2),
    ('Surabaya', 'Jawa Timur', -7.5, -7.0, 112.5, 113.0),
    ('Bandung', 'Jawa Barat', -7.1, -6.7, 107.4, 107.8),
    ('Medan', 'Sumatera Utara', 3.3, 3.8, 98.4, 98.9),
    ('Yogyakarta', 'D.I. Yogyakarta', -8.1, -7.6, 110.2, 110.6),
    ('Semarang', 'Jawa Tengah', -7.1, -6.9, 110.3, 110.5),
    ('Makassar', 'Sulawesi Selatan', -5.3, -5.0, 119.3, 119.5),
    ('Denpasar', 'Bali', -8.8, -8.5, 115.1, 115.3),
    ('Palembang', 'Sumatera Selatan', -3.1, -2.8, 104.6, 104.9),
    ('Pekanbaru', 'Riau', 0.4, 0.7, 101.3, 101.5),
    ('Malang', 'Jawa Timur', -8.0, -7.8, 112.6, 112.7),
    ('Bogor', 'Jawa Barat', -6.7, -6.5, 106.7, 106.9),
    ('Tangerang', 'Banten', -6.3, -6.1, 106.6, 106.8),
    ('Bekasi', 'Jawa Barat', -6.3, -6.1, 106.9, 107.1),
    ('Depok', 'Jawa Barat', -6.5, -6.3, 106.7, 106.9),
]

INDONESIA_BOUNDS = (-11.0, 6.0, 95.0, 141.0)


def is_in_indonesia(lat: float, lon: float) -> bool:
    lat_min, lat_max, lon_min, lon_max = INDONESIA_BOUNDS
    return lat_min <= lat <= lat_max and lon_min <= lon <= lon_max


def get_timezone_from_coordinates(lat: float, lon: float) -> str:
    """
    Estimates the Indonesian time zone label from longitude: WIB for Sumatra,
    Java and West/Central Kalimantan, WITA for Bali, Nusa Tenggara, the rest of
    Kalimantan and Sulawesi, WIT for Maluku and Papua. Outside Indonesia
    the label defaults to WIB.
    """
    if not is_in_indonesia(lat, lon):
        return 'WIB'
    if lon < 114.5:
        return 'WIB'
    if lon < 125.5:
        return 'WITA'
    return 'WIT'


def format_coordinates(lat: float, lon: float, precision: int = 4) -> str:
    return f"{lat:.{precision}f}, {lon:.{precision}f}"


def estimate_location_from_coordinates(lat: float, lon: float) -> Optional[Dict[str, Any]]:
    """
    Offline estimate for coordinates inside Indonesia: a known city bounding
    box first, then a coarse island region. Returns None outside Indonesia.
    """
    for city, state, lat_min, lat_max, lon_min, lon_max in CITY_BOUNDS:
        if lat_min <= lat <= lat_max and lon_min <= lon <= lon_max:
            return {"city": city, "state": state}

    if not is_in_indonesia(lat, lon):
        return None

    if lon <= 105:
        return {"city": 'Sumatera', "state": 'Sumatera'}
    if lon <= 115 and lat >= -9:
        return {"city": 'Jawa', "state": 'Jawa'}
    if lon <= 125:
        return {"city": 'Sulawesi', "state": 'Sulawesi'}
    return {"city": 'Indonesia Timur', "state": 'Indonesia'}


def get_geocoding_adapters() -> List[Any]:
    """Instantiates the configured reverse geocoding providers, in fallback order."""
    timeout = current_app.config.get('GEOCODING_TIMEOUT', 10)
    user_agent = current_app.config.get('NOMINATIM_USER_AGENT')
    adapters = []
    for provider in current_app.config.get('GEOCODING_PROVIDERS', []):
        adapter_cls = GEOCODING_ADAPTERS.get(provider.lower())
        if not adapter_cls:
            current_app.logger.error(f"Unsupported geocoding provider: {provider}")
            continue
        adapters.append(adapter_cls(timeout=timeout, user_agent=user_agent))
    return adapters


def _build_location(lat: float, lon: float, city: str, state: Optional[str], country: str,
                    display_name: str, source: str) -> Dict[str, Any]:
    return {
        "city": city,
        "state": state,
        "country": country,
        "coordinates": {"latitude": lat, "longitude": lon},
        "displayName": display_name,
        "timezone": get_timezone_from_coordinates(lat, lon),
        "source": source,
    }


def get_location_info(lat: float, lon: float) -> Dict[str, Any]:
    """
    Resolves coordinates to a named place. Providers are tried in order; when all
    of them fail the location is estimated from known Indonesian city bounds, and
    as a last resort only the coordinates are shown. Never raises for provider errors.
    """
    lat, lon = float(lat), float(lon)
    cache_key = build_cache_key("location", f"{lat:.3f}", f"{lon:.3f}")
    cached = get_cached("location", cache_key)
    if cached:
        return cached

    for adapter in get_geocoding_adapters():
        result = adapter.reverse_geocode(lat, lon)
        if result and "error" not in result:
            current_app.logger.info(f"Location for ({lat}, {lon}) resolved by {adapter.name}: {result['displayName']}")
            location = _build_location(lat, lon, result["city"], result.get("state"),
                                       result.get("country") or DEFAULT_COUNTRY, result["displayName"], adapter.name)
            set_cached(cache_key, location, ttl=current_app.config['REDIS_TTL_LOCATION_CACHE'])
            return location

    estimate = estimate_location_from_coordinates(lat, lon)
    if estimate:
        current_app.logger.info(f"All geocoding providers failed for ({lat}, {lon}); using coordinate estimation.")
        state = estimate["state"]
        display_name = f"{estimate['city']}, {state}" if state and state != estimate["city"] else estimate["city"]
        return _build_location(lat, lon, estimate["city"], state, DEFAULT_COUNTRY, display_name, "estimation")

    current_app.logger.warning(f"Could not resolve a location name for ({lat}, {lon}).")
    return _build_location(lat, lon, UNKNOWN_CITY, None, DEFAULT_COUNTRY, format_coordinates(lat, lon, 3), "coordinates")
