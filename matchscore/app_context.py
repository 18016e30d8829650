import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from matchscore.batch import BatchCoordinator
from matchscore.cache import MemoryCacheBackend, RedisCacheBackend, ScoreCache
from matchscore.cache.backends import CacheBackend
from matchscore.config_loader import AppConfig, CacheConfig, DatabaseConfig, EnrichmentConfig
from matchscore.dispatch import RQTaskTrigger
from matchscore.feedback import FeedbackRecorder
from matchscore.interfaces import Notifier, RecordStore, TaskTrigger, UsageGuard
from matchscore.llm.enrichment import SemanticEnrichmentClient
from matchscore.llm.openai_service import OpenAIService
from matchscore.quota import RedisUsageGuard
from matchscore.scorer import DeterministicScorer
from matchscore.service import MatchScoringService

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    One place builds the store, cache, scorer, enrichment client and the
    services on top of them, so the CLI and queue workers wire the engine
    the same way.
    """
    config: AppConfig
    store: RecordStore
    cache: ScoreCache
    scorer: DeterministicScorer
    scoring_service: MatchScoringService
    batch_coordinator: BatchCoordinator
    feedback_recorder: FeedbackRecorder
    enrichment: Optional[SemanticEnrichmentClient] = None
    usage_guard: Optional[UsageGuard] = None
    trigger: Optional[TaskTrigger] = None
    _closers: List[Callable[[], None]] = field(default_factory=list, repr=False)

    @classmethod
    def build(
        cls,
        config: AppConfig,
        store: Optional[RecordStore] = None,
        notifier: Optional[Notifier] = None,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            store: Record store to use instead of the configured one
            notifier: Event notifier; defaults to logging

        Returns:
            Fully wired AppContext instance
        """
        closers: List[Callable[[], None]] = []

        if store is None:
            store, dispose = cls._build_store(config.database)
            if dispose is not None:
                closers.append(dispose)

        cache = ScoreCache(
            cls._build_cache_backend(config.cache),
            default_ttl_seconds=config.cache.score_ttl_seconds,
            key_prefix=config.cache.key_prefix,
        )
        scorer = DeterministicScorer(config.scoring.weights, config.scoring.algorithm_version)

        # Usage Guard (only if enabled)
        usage_guard = None
        if config.quota.enabled:
            usage_guard = RedisUsageGuard(
                config.quota.redis_url or DEFAULT_REDIS_URL,
                monthly_limits=config.quota.monthly_limits,
            )

        # Semantic Enrichment (only if enabled and a key is available)
        enrichment = cls._build_enrichment(config.enrichment, usage_guard)
        if enrichment is not None:
            closers.append(enrichment.close)

        scoring_service = MatchScoringService(
            store, scorer, cache,
            enrichment=enrichment,
            notifier=notifier,
            cache_config=config.cache,
            batch_config=config.batch,
        )

        trigger = None
        if config.dispatch.enabled:
            trigger = RQTaskTrigger(
                config.dispatch.redis_url or DEFAULT_REDIS_URL,
                queue_name=config.dispatch.queue_name,
                job_timeout_seconds=config.dispatch.job_timeout_seconds,
            )

        return cls(
            config=config,
            store=store,
            cache=cache,
            scorer=scorer,
            scoring_service=scoring_service,
            batch_coordinator=BatchCoordinator(scoring_service, config.batch),
            feedback_recorder=FeedbackRecorder(store, cache, notifier),
            enrichment=enrichment,
            usage_guard=usage_guard,
            trigger=trigger,
            _closers=closers,
        )

    @staticmethod
    def _build_store(database_config: DatabaseConfig):
        """SQL store when a database URL is configured, otherwise in-memory."""
        if not database_config.url:
            from database.memory_store import InMemoryRecordStore
            logger.info("No database URL configured; using in-memory record store")
            return InMemoryRecordStore(), None

        from database.database import build_engine, build_session_factory, init_db
        from database.record_store import SqlRecordStore

        engine = build_engine(database_config.url, echo=database_config.echo)
        init_db(engine)
        return SqlRecordStore(build_session_factory(engine)), engine.dispose

    @staticmethod
    def _build_cache_backend(cache_config: CacheConfig) -> CacheBackend:
        if cache_config.backend == "redis":
            backend = RedisCacheBackend(cache_config.redis_url or DEFAULT_REDIS_URL)
            if backend.is_available:
                return backend
            logger.warning("Redis cache unavailable; falling back to in-process cache")
        return MemoryCacheBackend()

    @staticmethod
    def _build_enrichment(
        enrichment_config: EnrichmentConfig,
        usage_guard: Optional[UsageGuard],
    ) -> Optional[SemanticEnrichmentClient]:
        if not enrichment_config.enabled:
            return None
        if not enrichment_config.api_key:
            logger.warning("Enrichment enabled but no LLM API key configured; llm and hybrid requests will degrade")
            return None

        provider = OpenAIService(
            api_key=enrichment_config.api_key,
            base_url=enrichment_config.base_url,
            pricing=enrichment_config.pricing,
            max_retries=enrichment_config.max_retries,
        )
        return SemanticEnrichmentClient(provider, enrichment_config, usage_guard)

    def close(self) -> None:
        for closer in self._closers:
            closer()
        self._closers.clear()
