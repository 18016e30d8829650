"""Cache backends - in-process memory and Redis."""
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from redis import Redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


def _sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            sanitized = parsed._replace(
                netloc=f"{parsed.username or ''}:*@{parsed.hostname}:{parsed.port or 6379}"
            )
            return sanitized.geturl()
        return url
    except ValueError:
        return url


class CacheBackend(ABC):
    """
    String key/value storage with TTL.

    Patterns are Redis-style globs ('score:org-1:*').
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        pass

    @abstractmethod
    def delete_matching(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern. Returns the number deleted."""
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        pass


class MemoryCacheBackend(CacheBackend):
    """Thread-safe in-process cache with monotonic-clock expiry."""

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (expires_at, value)
        self._entries: Dict[str, Tuple[float, str]] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[key] = (now + ttl_seconds, value)
        return True

    def _evict(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            # Drop whatever expires soonest
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]

    def delete_matching(self, pattern: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if fnmatchcase(key, pattern)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            live = sum(1 for expires_at, _ in self._entries.values() if expires_at > now)
        return {"available": True, "backend": "memory", "keys": live, "max_entries": self.max_entries}


class RedisCacheBackend(CacheBackend):
    """
    Redis-backed cache.

    Values are wrapped in a JSON envelope with cached_at and ttl_seconds.
    Redis errors are logged and reported as misses / failed writes so a
    cache outage never fails a scoring call.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", password: Optional[str] = None):
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self._available = False

        try:
            self._redis = Redis.from_url(
                redis_url,
                password=password,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            self._redis.ping()
            self._available = True
            logger.info(f"Score cache connected to Redis at {_sanitize_url(redis_url)}")
        except Exception as e:
            logger.warning(f"Score cache Redis unavailable: {e}")
            self._redis = None
            self._available = False

    @property
    def is_available(self) -> bool:
        return self._available and self._redis is not None

    def get(self, key: str) -> Optional[str]:
        if not self.is_available:
            return None

        try:
            data = self._redis.get(key)
            if not data:
                return None
            cache_entry = json.loads(data)
            return cache_entry.get("data")
        except Exception as e:
            logger.warning(f"Error reading from score cache: {e}")
            return None

    def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        if not self.is_available:
            return False

        try:
            cache_entry = {
                "data": value,
                "cached_at": datetime.now(timezone.utc).isoformat(),
                "ttl_seconds": ttl_seconds
            }
            self._redis.setex(key, ttl_seconds, json.dumps(cache_entry))
            return True
        except Exception as e:
            logger.warning(f"Error writing to score cache: {e}")
            return False

    def delete_matching(self, pattern: str) -> int:
        if not self.is_available:
            return 0

        try:
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = self._redis.scan(cursor=cursor, match=pattern, count=100)
                if keys:
                    self._redis.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            return deleted
        except Exception as e:
            logger.error(
                f"Failed to invalidate score cache pattern {pattern}; "
                f"stale entries may survive until TTL: {e}"
            )
            return 0

    def stats(self) -> Dict[str, Any]:
        if not self.is_available:
            return {"available": False, "backend": "redis"}

        try:
            info = self._redis.info()
            return {
                "available": True,
                "backend": "redis",
                "used_memory_human": info.get("used_memory_human", "unknown"),
            }
        except Exception as e:
            logger.warning(f"Error getting cache stats: {e}")
            return {"available": False, "backend": "redis", "error": str(e)}
