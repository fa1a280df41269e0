"""
Two-tier caching: bounded in-process map in front of Redis
Reduces listing API calls and settings lookups for the background jobs
"""

import json
import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Awaitable, Callable, Optional

from .config import LOCAL_CACHE_MAX_SIZE, LOCAL_CACHE_TTL_SECONDS
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

# Cache TTL constants (in seconds)
CACHE_TTL = {
    "short": 60,
    "medium": 300,
    "long": 900,
    "very_long": 3600,
    "day": 86400,
    "week": 604800,
}


def hash_string(value: str) -> str:
    """Deterministic 32-bit string hash rendered in base 36, for compact cache keys"""
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    # Interpret as signed 32-bit like the keys already stored by the web client
    if h & 0x80000000:
        h -= 0x100000000
    h = abs(h)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if h == 0:
        return "0"
    out = []
    while h:
        h, rem = divmod(h, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def create_ai_response_hash(params: dict) -> str:
    """Hash request parameters independent of key order"""
    normalized = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return hash_string(normalized)


class CACHE_KEYS:
    """Cache key builders, grouped by concern"""

    @staticmethod
    def area_benchmarks(area: str) -> str:
        return f"benchmarks:{area.lower()}"

    @staticmethod
    def market_stats(area: str) -> str:
        return f"market-stats:{area.lower()}"

    @staticmethod
    def property_details(property_id) -> str:
        return f"property:{property_id}"

    @staticmethod
    def sync_areas() -> str:
        return "sync:areas"

    @staticmethod
    def affiliate_setting(setting_key: str) -> str:
        return f"affiliate:setting:{setting_key}"

    @staticmethod
    def ai_response(params_hash: str) -> str:
        return f"ai:response:{params_hash}"

    @staticmethod
    def search_results(query: str) -> str:
        return f"search:{hash_string(query)}"


class Cache:
    """Local bounded map + Redis with JSON serialization

    Local entries are evicted in insertion order once max_local_size is reached.
    Remote failures degrade to a miss (get) or False (set/delete); they never raise.
    """

    def __init__(
        self,
        redis_client=None,
        max_local_size: int = LOCAL_CACHE_MAX_SIZE,
        local_ttl: int = LOCAL_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.redis_client = redis_client
        self.max_local_size = max_local_size
        self.local_ttl = local_ttl
        self._clock = clock
        self._local: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()
        self._lock = Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0}

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    # ------------------------------------------------------------------
    # Local tier

    def _set_local(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            if key in self._local:
                del self._local[key]
            elif len(self._local) >= self.max_local_size:
                oldest_key, _ = self._local.popitem(last=False)
                logger.debug(f"Local cache full, evicted {oldest_key}")
            self._local[key] = (value, self._clock() + ttl_seconds)

    def _get_local(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            entry = self._local.get(key)
            if entry is None:
                return False, None
            value, expires_at = entry
            if self._clock() < expires_at:
                return True, value
            del self._local[key]
            return False, None

    def clear_local(self) -> None:
        with self._lock:
            self._local.clear()

    def cleanup_local(self) -> int:
        """Drop expired local entries; returns how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._local.items() if now >= expires_at]
            for k in expired:
                del self._local[k]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired local cache entries")
        return len(expired)

    # ------------------------------------------------------------------
    # Public API

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache (local first, then Redis)"""
        found, value = self._get_local(key)
        if found:
            self._stats["hits"] += 1
            return value
        self._stats["misses"] += 1

        client = self._get_client()
        if not client:
            return None

        try:
            raw = client.get(key)
        except Exception as e:
            logger.warning(f"⚠️ Cache get error for {key}: {e}")
            return None

        if raw is None:
            logger.debug(f"❌ Cache MISS: {key}")
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            value = raw

        self._set_local(key, value, self.local_ttl)
        logger.debug(f"✅ Cache HIT (remote): {key}")
        return value

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in both tiers; returns False if the remote write failed"""
        self._set_local(key, value, ttl)
        self._stats["sets"] += 1

        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.warning(f"⚠️ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from both tiers"""
        with self._lock:
            self._local.pop(key, None)

        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.warning(f"⚠️ Cache delete error for {key}: {e}")
            return False

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob-style prefix pattern (e.g. 'property:*')"""
        prefix = pattern.rstrip("*")
        with self._lock:
            local_keys = [k for k in self._local if k.startswith(prefix)]
            for k in local_keys:
                del self._local[k]

        client = self._get_client()
        if not client:
            return len(local_keys)

        try:
            keys = list(client.scan_iter(match=pattern))
            deleted = client.delete(*keys) if keys else 0
            logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
            return deleted
        except Exception as e:
            logger.warning(f"⚠️ Cache delete pattern error for {pattern}: {e}")
            return len(local_keys)

    def get_or_fetch(self, key: str, loader: Callable[[], Any], ttl: int) -> Any:
        """Return the cached value, or call loader and cache what it returns"""
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value
        value = loader()
        self.set(key, value, ttl)
        return value

    async def get_or_fetch_async(self, key: str, loader: Callable[[], Awaitable[Any]], ttl: int) -> Any:
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value
        value = await loader()
        self.set(key, value, ttl)
        return value

    def stats(self) -> dict:
        """Cache statistics for monitoring"""
        total = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "hit_rate": self._stats["hits"] / total if total else 0.0,
            "local_size": len(self._local),
        }

    def reset_stats(self) -> None:
        self._stats = {"hits": 0, "misses": 0, "sets": 0}


# Global cache instance
cache = Cache()
