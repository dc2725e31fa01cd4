# Redis helpers shared by the prayer time and location services.
import json
from flask import current_app
from typing import Dict, Any, Optional
from redis import exceptions as redis_exceptions

from ..extensions import redis_client
from ..metrics import CACHE_HITS, CACHE_MISSES


def build_cache_key(namespace: str, *parts: Any) -> str:
    schema_version = current_app.config['CACHE_SCHEMA_VERSION']
    return ":".join([namespace, schema_version] + [str(p) for p in parts])


def _cache_get_json(key: str) -> Optional[Dict[str, Any]]:
    """Helper function to safely get and deserialize a JSON object from Redis."""
    if not redis_client.is_configured:
        return None
    try:
        cached_data = redis_client.get(key)
        if cached_data:
            return json.loads(cached_data)
        return None
    except (redis_exceptions.RedisError, json.JSONDecodeError) as e:
        current_app.logger.error(f"Redis GET or JSON load failed for key {key}: {e}", exc_info=True)
        return None


def _cache_set_json(key: str, value: Any, ttl: int) -> None:
    """Helper function to safely serialize and set a JSON object in Redis."""
    if not redis_client.is_configured:
        return
    try:
        redis_client.set(key, json.dumps(value), ex=ttl)
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis SET failed for key {key}: {e}", exc_info=True)


def get_cached(cache_type: str, key: str) -> Optional[Dict[str, Any]]:
    cached = _cache_get_json(key)
    if cached is not None:
        CACHE_HITS.labels(cache_type=cache_type).inc()
        current_app.logger.debug(f"Redis Cache HIT for {cache_type} key '{key}'.")
        return cached
    CACHE_MISSES.labels(cache_type=cache_type).inc()
    return None


def set_cached(key: str, value: Any, ttl: int) -> None:
    if value:
        _cache_set_json(key, value, ttl)
