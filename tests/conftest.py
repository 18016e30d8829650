"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For builders and fakes, see tests/factories.py
"""

import pytest

from database.memory_store import InMemoryRecordStore
from matchscore.batch import BatchCoordinator
from matchscore.cache import MemoryCacheBackend, ScoreCache
from matchscore.config_loader import BatchConfig, EnrichmentConfig
from matchscore.feedback import FeedbackRecorder
from matchscore.llm.enrichment import SemanticEnrichmentClient
from matchscore.scorer import DeterministicScorer
from matchscore.service import MatchScoringService
from tests.factories import FakeClock, RecordingNotifier, ScriptedProvider, make_opportunity, make_profile


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests that exercise real thread timing"
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    store = InMemoryRecordStore()
    store.save_profile(make_profile())
    store.save_opportunity(make_opportunity())
    return store


@pytest.fixture
def cache(clock):
    return ScoreCache(MemoryCacheBackend(clock=clock), default_ttl_seconds=3600)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scorer():
    return DeterministicScorer()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def enrichment(provider):
    client = SemanticEnrichmentClient(provider, EnrichmentConfig(timeout_seconds=5))
    yield client
    client.close()


@pytest.fixture
def scoring_service(store, scorer, cache, notifier):
    return MatchScoringService(store, scorer, cache, notifier=notifier)


@pytest.fixture
def batch_coordinator(scoring_service):
    return BatchCoordinator(scoring_service, BatchConfig())


@pytest.fixture
def feedback_recorder(store, cache, notifier):
    return FeedbackRecorder(store, cache, notifier)
