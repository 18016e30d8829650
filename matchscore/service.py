#!/usr/bin/env python3
"""
Match Scoring Service - orchestrates one scoring request.

Flow:
1. Validate method and weights (ValidationError before any work)
2. Load profile and opportunity snapshots (NotFoundError if missing)
3. Score Cache lookup; on miss, under single-flight:
   a. Deterministic Scorer
   b. Semantic Enrichment Client when method is llm or hybrid
   c. Persist through the Record Store (PersistenceError surfaces, nothing cached)
4. Cache and return

Scores computed with non-default weights bypass the cache; the cache key
only covers profile, opportunity, method and algorithm version.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from matchscore.cache import ScoreCache
from matchscore.config_loader import BatchConfig, CacheConfig
from matchscore.exceptions import NotFoundError, PersistenceError, ValidationError
from matchscore.interfaces import BestEffortNotifier, Notifier, RecordStore
from matchscore.llm.enrichment import SemanticEnrichmentClient
from matchscore.models import MatchScore, Opportunity, Profile, RecentScores, ScoringMethod
from matchscore.scorer import DeterministicScorer, notification_readiness, resolve_weights
from matchscore.scorer.service import WeightsInput
from matchscore.utils import CancellationToken

logger = logging.getLogger(__name__)


def parse_method(method) -> ScoringMethod:
    try:
        return ScoringMethod(method)
    except ValueError as e:
        allowed = [m.value for m in ScoringMethod]
        raise ValidationError(f"Unknown scoring method {method!r}; expected one of {allowed}") from e


@dataclass
class ExistingScores:
    """Scores already available for a set of opportunities, and the ids still to compute."""
    profile_id: str
    existing: Dict[str, MatchScore] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    # Opportunity ids answered from the cache rather than the store
    from_cache: List[str] = field(default_factory=list)


class MatchScoringService:
    """Single-request scoring API used directly, by the batch coordinator and by queue workers."""

    def __init__(
        self,
        store: RecordStore,
        scorer: DeterministicScorer,
        cache: ScoreCache,
        enrichment: Optional[SemanticEnrichmentClient] = None,
        notifier: Optional[Notifier] = None,
        cache_config: Optional[CacheConfig] = None,
        batch_config: Optional[BatchConfig] = None,
    ):
        self.store = store
        self.scorer = scorer
        self.cache = cache
        self.enrichment = enrichment
        self.notifier = notifier if isinstance(notifier, BestEffortNotifier) else BestEffortNotifier(notifier)
        self.cache_config = cache_config or CacheConfig()
        self.batch_config = batch_config or BatchConfig()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load_profile(self, profile_id: str, organization_id: Optional[str] = None) -> Profile:
        if not profile_id:
            raise ValidationError("profile_id is required")
        profile = self._read(self.store.get_profile, profile_id)
        if profile is None or (organization_id and profile.organization_id != organization_id):
            raise NotFoundError(f"Profile {profile_id} not found")
        return profile

    def load_opportunity(self, opportunity_id: str) -> Opportunity:
        if not opportunity_id:
            raise ValidationError("opportunity_id is required")
        opportunity = self._read(self.store.get_opportunity, opportunity_id)
        if opportunity is None:
            raise NotFoundError(f"Opportunity {opportunity_id} not found")
        return opportunity

    @staticmethod
    def _read(getter, record_id: str):
        try:
            return getter(record_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to read {record_id}: {e}") from e

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def score(
        self,
        profile_id: str,
        opportunity_id: str,
        method=ScoringMethod.CALCULATION,
        weights: WeightsInput = None,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        force_refresh: bool = False,
    ) -> MatchScore:
        method = parse_method(method)
        if weights is not None:
            resolve_weights(weights)
        profile = self.load_profile(profile_id, organization_id)
        return self.score_for_profile(
            profile, opportunity_id, method=method, weights=weights,
            user_id=user_id, token=token, force_refresh=force_refresh,
        )

    def score_for_profile(
        self,
        profile: Profile,
        opportunity_id: str,
        method=ScoringMethod.CALCULATION,
        weights: WeightsInput = None,
        user_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        force_refresh: bool = False,
    ) -> MatchScore:
        """Score an already-loaded profile against one opportunity."""
        method = parse_method(method)
        custom_weights = weights is not None and (
            resolve_weights(weights) != resolve_weights(self.scorer.default_weights)
        )
        if token is not None:
            token.raise_if_cancelled()

        opportunity = self.load_opportunity(opportunity_id)

        def compute() -> MatchScore:
            return self._compute_and_persist(profile, opportunity, method, weights, user_id, token)

        if custom_weights:
            return compute()

        key = self.cache.make_key(
            profile.organization_id, profile.id, opportunity.id, method, self.scorer.algorithm_version,
        )
        if force_refresh:
            self.cache.invalidate(key)

        return self.cache.get_or_compute(
            key,
            compute,
            ttl_seconds=self.cache_config.score_ttl_seconds,
            token=token,
            cacheable=lambda score: not score.degraded,
        )

    def _compute_and_persist(
        self,
        profile: Profile,
        opportunity: Opportunity,
        method: ScoringMethod,
        weights: WeightsInput,
        user_id: Optional[str],
        token: Optional[CancellationToken],
    ) -> MatchScore:
        score = self.scorer.score(profile, opportunity, weights, user_id=user_id)

        if method != ScoringMethod.CALCULATION:
            if self.enrichment is None:
                logger.warning("Enrichment requested but no LLM provider is configured")
                score = score.model_copy(update={
                    "degraded": True,
                    "degradation_reason": "enrichment_unavailable",
                })
            else:
                score = self.enrichment.enrich(profile, opportunity, score, method, token)

        saved = self._persist(score)
        self.cache.invalidate(f"{self.cache.key_prefix}:{saved.organization_id}:recent:")
        logger.info(
            f"Saved score {saved.id} ({saved.scoring_method.value}, v={saved.algorithm_version}) "
            f"profile={saved.profile_id} opportunity={saved.opportunity_id} overall={saved.overall_score}"
        )

        self.notifier.notify("match_score.created", {
            "score_id": saved.id,
            "organization_id": saved.organization_id,
            "opportunity_id": saved.opportunity_id,
            "overall_score": saved.overall_score,
            "scoring_method": saved.scoring_method.value,
        })
        readiness = notification_readiness(saved)
        if readiness.should_notify:
            self.notifier.notify("match_score.high_match", {
                "score_id": saved.id,
                "organization_id": saved.organization_id,
                "user_id": saved.user_id,
                "opportunity_id": saved.opportunity_id,
                "reasons": readiness.reasons,
            })
        return saved

    def _persist(self, score: MatchScore) -> MatchScore:
        try:
            return self.store.save_score(score)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save score for opportunity {score.opportunity_id}: {e}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_score(self, score_id: str, organization_id: str) -> MatchScore:
        score = self._read(self.store.get_score, score_id)
        if score is None or score.organization_id != organization_id:
            raise NotFoundError(f"Match score {score_id} not found")
        return score

    def get_score_history(
        self,
        profile_id: str,
        opportunity_id: str,
        organization_id: Optional[str] = None,
    ) -> List[MatchScore]:
        """Every stored version of a pair's score, oldest first."""
        profile = self.load_profile(profile_id, organization_id)
        if not opportunity_id:
            raise ValidationError("opportunity_id is required")
        return self._read(lambda opp_id: self.store.get_score_history(profile.id, opp_id), opportunity_id)

    def check_existing(
        self,
        profile_id: str,
        opportunity_ids: Iterable[str],
        organization_id: Optional[str] = None,
        method=ScoringMethod.CALCULATION,
    ) -> ExistingScores:
        """
        Report which opportunities already have a usable score for a profile.

        The cache is consulted first; the rest fall back to the newest stored,
        non-degraded score inside the recent window. Nothing is computed.
        """
        opportunity_ids = list(dict.fromkeys(opportunity_ids))
        if len(opportunity_ids) > self.batch_config.max_batch_size:
            raise ValidationError(
                f"Cannot check {len(opportunity_ids)} opportunities; "
                f"maximum is {self.batch_config.max_batch_size}"
            )
        if any(not opp_id for opp_id in opportunity_ids):
            raise ValidationError("Opportunity ids must be non-empty")
        method = parse_method(method)
        profile = self.load_profile(profile_id, organization_id)

        result = ExistingScores(profile_id=profile.id)
        not_cached = []
        for opp_id in opportunity_ids:
            key = self.cache.make_key(
                profile.organization_id, profile.id, opp_id, method, self.scorer.algorithm_version,
            )
            cached = self.cache.get(key)
            if cached is not None:
                result.existing[opp_id] = cached
                result.from_cache.append(opp_id)
            else:
                not_cached.append(opp_id)

        if not_cached:
            since = datetime.now(timezone.utc) - timedelta(hours=self.cache_config.recent_window_hours)
            stored = self._read(lambda pid: self.store.get_latest_scores(pid, not_cached, since), profile.id)
            for opp_id in not_cached:
                score = stored.get(opp_id)
                if score is not None and not score.degraded:
                    result.existing[opp_id] = score

        result.missing = [opp_id for opp_id in opportunity_ids if opp_id not in result.existing]
        logger.info(
            f"Existing-score check for profile {profile.id}: {len(result.existing)} found "
            f"({len(result.from_cache)} cached), {len(result.missing)} missing"
        )
        return result

    def list_recent_scores(self, organization_id: str, window_hours: Optional[int] = None) -> List[MatchScore]:
        """Scores created in the last window_hours (default 24), newest first. Cached briefly."""
        window = window_hours or self.cache_config.recent_window_hours

        def compute() -> RecentScores:
            since = datetime.now(timezone.utc) - timedelta(hours=window)
            scores = self._read(lambda org: self.store.get_recent_scores(org, since), organization_id)
            return RecentScores(organization_id=organization_id, since=since, scores=scores)

        listing = self.cache.get_or_compute(
            self.cache.recent_key(organization_id, window),
            compute,
            ttl_seconds=self.cache_config.recent_scores_ttl_seconds,
            model=RecentScores,
        )
        return listing.scores

    # ------------------------------------------------------------------
    # Mutation hooks
    # ------------------------------------------------------------------
    def on_profile_updated(self, organization_id: str, profile_id: str) -> int:
        removed = self.cache.invalidate_profile(organization_id, profile_id)
        logger.info(f"Profile {profile_id} updated; invalidated {removed} cached scores")
        return removed

    def on_opportunity_updated(self, opportunity_id: str) -> int:
        removed = self.cache.invalidate_opportunity(opportunity_id)
        logger.info(f"Opportunity {opportunity_id} updated; invalidated {removed} cached scores")
        return removed
