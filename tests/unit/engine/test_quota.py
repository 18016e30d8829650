"""
Tests for the Redis-backed usage guard (Redis mocked).
"""
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from matchscore.exceptions import LimitExceededError
from matchscore.quota import COUNTER_TTL_SECONDS, RedisUsageGuard


class FakeCounterRedis:
    """Just enough of the Redis counter API for the guard."""

    def __init__(self):
        self.values = {}
        self.expirations = {}

    def incrby(self, key, amount):
        self.values[key] = self.values.get(key, 0) + amount
        return self.values[key]

    def decrby(self, key, amount):
        self.values[key] = self.values.get(key, 0) - amount
        return self.values[key]

    def expire(self, key, seconds):
        self.expirations[key] = seconds

    def get(self, key):
        value = self.values.get(key)
        return str(value) if value is not None else None


@pytest.fixture
def redis():
    return FakeCounterRedis()


@pytest.fixture
def guard(redis):
    return RedisUsageGuard(
        monthly_limits={"llm_scoring": 2},
        redis_client=redis,
        clock=lambda: datetime(2025, 3, 15, tzinfo=timezone.utc),
    )


class TestRedisUsageGuard:

    def test_consumes_until_limit(self, guard, redis):
        assert guard.check_and_consume("org-1", "llm_scoring") is True
        assert guard.check_and_consume("org-1", "llm_scoring") is True
        with pytest.raises(LimitExceededError) as exc_info:
            guard.check_and_consume("org-1", "llm_scoring")

        assert exc_info.value.limit == 2
        assert exc_info.value.used == 2
        assert exc_info.value.resource_type == "llm_scoring"
        # Denied request is rolled back
        assert guard.usage("org-1", "llm_scoring") == 2

    def test_monthly_key_and_expiry(self, guard, redis):
        guard.check_and_consume("org-1", "llm_scoring")
        assert list(redis.values) == ["usage:org-1:llm_scoring:202503"]
        assert redis.expirations["usage:org-1:llm_scoring:202503"] == COUNTER_TTL_SECONDS

    def test_organizations_are_independent(self, guard):
        guard.check_and_consume("org-1", "llm_scoring", 2)
        assert guard.check_and_consume("org-2", "llm_scoring") is True

    def test_unlimited_resource(self, guard, redis):
        assert guard.check_and_consume("org-1", "exports", 1000) is True
        assert redis.values == {}

    def test_usage_without_counter(self, guard):
        assert guard.usage("org-1", "llm_scoring") == 0

    def test_redis_errors_propagate(self):
        broken = Mock()
        broken.incrby.side_effect = ConnectionError("refused")
        guard = RedisUsageGuard(monthly_limits={"llm_scoring": 5}, redis_client=broken)
        with pytest.raises(ConnectionError):
            guard.check_and_consume("org-1", "llm_scoring")
