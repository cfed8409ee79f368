"""
Caching utilities for per-date planning data
In-memory TTL cache with an injectable clock, or Redis when REDIS_URL is set
"""
import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Optional

import redis

from . import config

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class MemoryCache:
    """Process-local TTL cache; expiry is judged against the injected clock"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"❌ Cache MISS: {key}")
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                logger.debug(f"⌛ Cache EXPIRED: {key}")
                return None
            logger.debug(f"✅ Cache HIT: {key}")
            return entry.value

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Get the raw entry, expired or not"""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, ttl: float = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=ttl)
        logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
        return True

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Delete all keys starting with prefix (e.g., 'assignments:')"""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisCache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.redis_client = client

    def _get_client(self) -> Optional[redis.Redis]:
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                )
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except redis.RedisError as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: float = 3600) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, int(ttl), json.dumps(value))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            return bool(client.delete(key))
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False

    def delete_prefix(self, prefix: str) -> int:
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = list(client.scan_iter(match=f"{prefix}*"))
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE prefix: {prefix} ({deleted} keys)")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete prefix error for {prefix}: {e}")
            return 0

    def clear(self) -> None:
        self.delete_prefix("eventflow:")


def build_cache():
    """Pick the cache backend from configuration"""
    if config.REDIS_URL:
        return RedisCache(config.REDIS_URL)
    return MemoryCache()


# Cache key builders

ROSTER_PREFIX = "eventflow:roster:"
STAFF_NAMES_KEY = "eventflow:staff:names"


def assignments_key(date_str: str) -> str:
    return f"eventflow:assignments:{date_str}"


def roster_key(date_str: str) -> str:
    return f"{ROSTER_PREFIX}{date_str}"
