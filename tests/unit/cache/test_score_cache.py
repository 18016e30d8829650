"""
Tests for Score Cache

Single-flight deduplication, TTL expiry and pattern invalidation over the
in-process backend.
"""
import threading
import time

import pytest

from matchscore.cache import MemoryCacheBackend, ScoreCache
from matchscore.models import MatchScore, ScoringMethod
from matchscore.scorer import DeterministicScorer
from tests.factories import FakeClock, make_opportunity, make_profile


@pytest.fixture
def sample_score():
    return DeterministicScorer().score(make_profile(), make_opportunity())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ScoreCache(MemoryCacheBackend(clock=clock), default_ttl_seconds=3600)


class TestScoreCacheKeys:

    def test_key_layout(self, cache):
        key = cache.make_key("org-1", "profile-1", "opp-1", ScoringMethod.CALCULATION, "v4.0-deterministic")
        prefix, org, profile, opp, digest = key.split(":")
        assert (prefix, org, profile, opp) == ("score", "org-1", "profile-1", "opp-1")
        assert len(digest) == 32

    def test_method_and_version_change_the_key(self, cache):
        base = cache.make_key("org-1", "p", "o", ScoringMethod.CALCULATION, "v4")
        assert base != cache.make_key("org-1", "p", "o", ScoringMethod.HYBRID, "v4")
        assert base != cache.make_key("org-1", "p", "o", ScoringMethod.CALCULATION, "v5")
        assert base == cache.make_key("org-1", "p", "o", "calculation", "v4")

    def test_key_for_score(self, cache, sample_score):
        assert cache.key_for(sample_score) == cache.make_key(
            "org-1", "profile-1", "opp-1", ScoringMethod.CALCULATION, sample_score.algorithm_version
        )


class TestGetOrCompute:

    def test_miss_then_hit(self, cache, sample_score):
        calls = []

        def compute():
            calls.append(1)
            return sample_score

        first = cache.get_or_compute("score:org-1:k", compute)
        second = cache.get_or_compute("score:org-1:k", compute)

        assert len(calls) == 1
        assert first.id == second.id == sample_score.id
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["computations"] == 1

    def test_ttl_expiry(self, cache, clock, sample_score):
        cache.get_or_compute("score:org-1:k", lambda: sample_score, ttl_seconds=60)
        clock.advance(59)
        assert cache.get("score:org-1:k") is not None
        clock.advance(2)
        assert cache.get("score:org-1:k") is None

    @pytest.mark.slow
    def test_single_flight(self, cache, sample_score):
        """Concurrent callers for one key share a single computation."""
        started = threading.Event()
        release = threading.Event()
        calls = []
        results = []

        def compute():
            calls.append(1)
            started.set()
            release.wait(5)
            return sample_score

        def worker():
            results.append(cache.get_or_compute("score:org-1:shared", compute))

        leader = threading.Thread(target=worker)
        leader.start()
        assert started.wait(5)

        followers = [threading.Thread(target=worker) for _ in range(9)]
        for thread in followers:
            thread.start()
        time.sleep(0.1)
        release.set()
        for thread in [leader] + followers:
            thread.join(5)

        assert len(calls) == 1
        assert len(results) == 10
        assert {score.id for score in results} == {sample_score.id}

    @pytest.mark.slow
    def test_errors_reach_every_waiter_and_nothing_is_stored(self, cache):
        started = threading.Event()
        release = threading.Event()
        errors = []

        def compute():
            started.set()
            release.wait(5)
            raise RuntimeError("boom")

        def worker():
            try:
                cache.get_or_compute("score:org-1:err", compute)
            except RuntimeError as e:
                errors.append(str(e))

        leader = threading.Thread(target=worker)
        leader.start()
        assert started.wait(5)
        follower = threading.Thread(target=worker)
        follower.start()
        time.sleep(0.05)
        release.set()
        leader.join(5)
        follower.join(5)

        assert len(errors) >= 1
        assert all(message == "boom" for message in errors)
        assert cache.get("score:org-1:err") is None
        assert cache.stats()["in_flight"] == 0

    def test_rejected_values_are_not_stored(self, cache, sample_score):
        degraded = sample_score.model_copy(update={"degraded": True})
        result = cache.get_or_compute("score:org-1:d", lambda: degraded, cacheable=lambda s: not s.degraded)
        assert result.degraded is True
        assert cache.get("score:org-1:d") is None

    def test_invalidation_during_compute_skips_store(self, cache, sample_score):
        def compute():
            cache.invalidate("score:org-1:")
            return sample_score

        result = cache.get_or_compute("score:org-1:p:o:abc", compute)
        assert result.id == sample_score.id
        assert cache.get("score:org-1:p:o:abc") is None

    @pytest.mark.slow
    def test_invalidation_racing_the_store_wins(self, clock, sample_score):
        threads = []

        class RacingBackend(MemoryCacheBackend):
            """Fires an invalidation just before the write lands."""

            def set(self, key, value, ttl_seconds):
                racer = threading.Thread(target=cache.invalidate, args=("score:org-1:",))
                threads.append(racer)
                racer.start()
                racer.join(timeout=0.2)
                return super().set(key, value, ttl_seconds)

        cache = ScoreCache(RacingBackend(clock=clock), default_ttl_seconds=3600)
        result = cache.get_or_compute("score:org-1:p:o:abc", lambda: sample_score)
        for racer in threads:
            racer.join(timeout=5)

        assert result.id == sample_score.id
        assert cache.get("score:org-1:p:o:abc") is None

    def test_unreadable_entry_is_discarded(self, cache):
        cache.backend.set("score:org-1:bad", "{not json", 60)
        assert cache.get("score:org-1:bad") is None
        assert cache.backend.get("score:org-1:bad") is None


class TestInvalidation:

    def _fill(self, cache, score):
        keys = {
            "p1_o1": cache.make_key("org-1", "profile-1", "opp-1", ScoringMethod.CALCULATION, "v4"),
            "p1_o1_llm": cache.make_key("org-1", "profile-1", "opp-1", ScoringMethod.LLM, "v4"),
            "p1_o2": cache.make_key("org-1", "profile-1", "opp-2", ScoringMethod.CALCULATION, "v4"),
            "p2_o1": cache.make_key("org-1", "profile-2", "opp-1", ScoringMethod.CALCULATION, "v4"),
            "other_org": cache.make_key("org-2", "profile-9", "opp-1", ScoringMethod.CALCULATION, "v4"),
        }
        for key in keys.values():
            cache.backend.set(key, score.model_dump_json(), 3600)
        return keys

    def test_invalidate_match_clears_every_method(self, cache, sample_score):
        keys = self._fill(cache, sample_score)
        assert cache.invalidate_match("org-1", "profile-1", "opp-1") == 2
        assert cache.get(keys["p1_o1"]) is None
        assert cache.get(keys["p1_o1_llm"]) is None
        assert cache.get(keys["p1_o2"]) is not None

    def test_invalidate_profile(self, cache, sample_score):
        keys = self._fill(cache, sample_score)
        assert cache.invalidate_profile("org-1", "profile-1") == 3
        assert cache.get(keys["p2_o1"]) is not None

    def test_invalidate_opportunity_across_organizations(self, cache, sample_score):
        keys = self._fill(cache, sample_score)
        assert cache.invalidate_opportunity("opp-1") == 4
        assert cache.get(keys["p1_o2"]) is not None

    def test_invalidate_organization(self, cache, sample_score):
        keys = self._fill(cache, sample_score)
        assert cache.invalidate_organization("org-1") == 4
        assert cache.get(keys["other_org"]) is not None

    def test_explicit_glob(self, cache, sample_score):
        self._fill(cache, sample_score)
        assert cache.invalidate("score:org-?:profile-9:*") == 1


class TestMemoryBackend:

    def test_evicts_soonest_expiring_when_full(self, clock):
        backend = MemoryCacheBackend(max_entries=2, clock=clock)
        backend.set("a", "1", 10)
        backend.set("b", "2", 100)
        backend.set("c", "3", 100)
        assert backend.get("a") is None
        assert backend.get("b") == "2"
        assert backend.get("c") == "3"

    def test_stats_counts_live_keys(self, clock):
        backend = MemoryCacheBackend(clock=clock)
        backend.set("a", "1", 10)
        backend.set("b", "2", 100)
        clock.advance(50)
        assert backend.stats()["keys"] == 1
