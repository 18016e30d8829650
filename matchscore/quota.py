"""Usage Guard - per-organization monthly quotas kept in Redis."""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from redis import Redis

from matchscore.exceptions import LimitExceededError
from matchscore.interfaces import UsageGuard

logger = logging.getLogger(__name__)

# Counters outlive the month they count so late reads still see them
COUNTER_TTL_SECONDS = 35 * 24 * 60 * 60


class RedisUsageGuard(UsageGuard):
    """
    Counts consumption per organization, resource type and calendar month.

    Resource types without a configured limit are unlimited. A request that
    would exceed the limit is rolled back and raises LimitExceededError.
    """

    KEY_PREFIX = "usage"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        monthly_limits: Optional[Dict[str, int]] = None,
        redis_client: Optional[Redis] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._redis = redis_client or Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        self.monthly_limits = monthly_limits or {}
        self._clock = clock

    def _key(self, organization_id: str, resource_type: str) -> str:
        return f"{self.KEY_PREFIX}:{organization_id}:{resource_type}:{self._clock():%Y%m}"

    def usage(self, organization_id: str, resource_type: str) -> int:
        value = self._redis.get(self._key(organization_id, resource_type))
        return int(value) if value else 0

    def check_and_consume(self, organization_id: str, resource_type: str, quantity: int = 1) -> bool:
        limit = self.monthly_limits.get(resource_type)
        if limit is None:
            return True

        key = self._key(organization_id, resource_type)
        used = self._redis.incrby(key, quantity)
        if used == quantity:
            self._redis.expire(key, COUNTER_TTL_SECONDS)

        if used > limit:
            self._redis.decrby(key, quantity)
            logger.info(f"Organization {organization_id} over {resource_type} quota ({used - quantity}/{limit})")
            raise LimitExceededError(
                f"{resource_type} limit of {limit} per month reached",
                resource_type=resource_type,
                limit=limit,
                used=used - quantity,
            )
        return True
