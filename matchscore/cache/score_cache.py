"""
Score Cache - memoizes computed scores with single-flight deduplication.

Concurrent callers asking for the same key while a computation is running
wait on the leader's future instead of computing again. Invalidation removes
stored entries and marks matching in-flight computations stale so their
results are returned to waiters but not stored.

Keys: score:{organization_id}:{profile_id}:{opportunity_id}:{digest}
where digest = sha256(profile_id|opportunity_id|method|algorithm_version).
"""
import logging
import threading
from concurrent.futures import Future
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel

from matchscore.cache.backends import DEFAULT_TTL_SECONDS, CacheBackend, MemoryCacheBackend
from matchscore.models import MatchScore, ScoringMethod
from matchscore.utils import CancellationToken, stable_digest, wait_for

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_GLOB_CHARS = set("*?[")


class _Flight:
    __slots__ = ("future", "stale")

    def __init__(self):
        self.future: Future = Future()
        self.stale = False


def _as_pattern(pattern: str) -> str:
    """A pattern without glob characters is treated as a prefix."""
    if _GLOB_CHARS & set(pattern):
        return pattern
    return f"{pattern}*"


class ScoreCache:
    """Single-flight, TTL-based cache of serialized pydantic models (MatchScore by default)."""

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = "score",
    ):
        self.backend = backend or MemoryCacheBackend()
        self.default_ttl_seconds = default_ttl_seconds
        self.key_prefix = key_prefix
        self._lock = threading.Lock()
        self._inflight: Dict[str, _Flight] = {}
        self._hits = 0
        self._misses = 0
        self._computations = 0

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    def make_key(
        self,
        organization_id: str,
        profile_id: str,
        opportunity_id: str,
        method: ScoringMethod,
        algorithm_version: str,
    ) -> str:
        method = ScoringMethod(method)
        digest = stable_digest(profile_id, opportunity_id, method.value, algorithm_version)
        return f"{self.key_prefix}:{organization_id}:{profile_id}:{opportunity_id}:{digest}"

    def key_for(self, score: MatchScore) -> str:
        return self.make_key(
            score.organization_id, score.profile_id, score.opportunity_id,
            score.scoring_method, score.algorithm_version,
        )

    def recent_key(self, organization_id: str, window_hours: int) -> str:
        return f"{self.key_prefix}:{organization_id}:recent:{window_hours}h"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, key: str, model: Type[T] = MatchScore) -> Optional[T]:
        raw = self.backend.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            self.backend.delete_matching(key)
            return None

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], T],
        ttl_seconds: Optional[int] = None,
        model: Type[T] = MatchScore,
        token: Optional[CancellationToken] = None,
        cacheable: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Return the cached value for key, or compute, store and return it.

        Exceptions from compute_fn propagate to the leader and every waiter;
        nothing is stored. Values rejected by cacheable are returned but not stored.
        """
        cached = self.get(key, model)
        if cached is not None:
            with self._lock:
                self._hits += 1
            logger.debug(f"Cache hit for {key}")
            return cached

        with self._lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[key] = flight
            self._misses += 1

        if not leader:
            logger.debug(f"Waiting on in-flight computation for {key}")
            return wait_for(flight.future, None, token)

        try:
            # Another leader may have finished between our miss and taking the slot
            cached = self.get(key, model)
            if cached is not None:
                flight.future.set_result(cached)
                return cached

            with self._lock:
                self._computations += 1
            value = compute_fn()

            if cacheable is not None and not cacheable(value):
                logger.debug(f"Not caching {key}: rejected by cacheable")
            else:
                # Held across the write so an invalidation either marks us stale first
                # or runs its delete after the entry exists
                with self._lock:
                    if flight.stale:
                        logger.debug(f"Not caching {key}: invalidated during computation")
                    else:
                        self.backend.set(key, value.model_dump_json(), ttl_seconds or self.default_ttl_seconds)
            flight.future.set_result(value)
            return value
        except BaseException as e:
            flight.future.set_exception(e)
            raise
        finally:
            with self._lock:
                if self._inflight.get(key) is flight:
                    del self._inflight[key]

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------
    def invalidate(self, pattern: str) -> int:
        """Remove entries matching a glob (or prefix) pattern. Returns the number removed."""
        pattern = _as_pattern(pattern)
        with self._lock:
            for key, flight in self._inflight.items():
                if fnmatchcase(key, pattern):
                    flight.stale = True
        deleted = self.backend.delete_matching(pattern)
        logger.debug(f"Invalidated {deleted} cache entries matching {pattern}")
        return deleted

    def invalidate_organization(self, organization_id: str) -> int:
        return self.invalidate(f"{self.key_prefix}:{organization_id}:")

    def invalidate_profile(self, organization_id: str, profile_id: str) -> int:
        removed = self.invalidate(f"{self.key_prefix}:{organization_id}:{profile_id}:")
        return removed + self.invalidate(f"{self.key_prefix}:{organization_id}:recent:")

    def invalidate_match(self, organization_id: str, profile_id: str, opportunity_id: str) -> int:
        """Every cached method/version for one profile-opportunity pair."""
        return self.invalidate(f"{self.key_prefix}:{organization_id}:{profile_id}:{opportunity_id}:")

    def invalidate_opportunity(self, opportunity_id: str) -> int:
        removed = self.invalidate(f"{self.key_prefix}:*:*:{opportunity_id}:*")
        return removed + self.invalidate(f"{self.key_prefix}:*:recent:*")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            counters = {
                "hits": self._hits,
                "misses": self._misses,
                "computations": self._computations,
                "in_flight": len(self._inflight),
            }
        counters.update(self.backend.stats())
        return counters
