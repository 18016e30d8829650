#!/usr/bin/env python3
"""
Batch Coordinator - scores one profile against many opportunities.

- At most concurrency_limit items run at once (thread pool)
- One item's failure never aborts its siblings; it lands in `failures`
- Only batch-shape problems (size, limit, missing profile) abort up front
- On cancellation, unstarted items are reported as cancelled and finished
  results are still returned
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from matchscore.config_loader import BatchConfig
from matchscore.exceptions import ScoringCancelledError, ValidationError
from matchscore.models import MatchScore, ScoringMethod
from matchscore.service import MatchScoringService, parse_method
from matchscore.utils import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class BatchFailure:
    error_type: str
    message: str


@dataclass
class BatchResult:
    """Per-opportunity outcomes keyed by opportunity id."""
    profile_id: str
    results: Dict[str, MatchScore] = field(default_factory=dict)
    failures: Dict[str, BatchFailure] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.results) + len(self.failures)

    @property
    def total_cost_usd(self) -> float:
        return round(sum(score.cost_usd for score in self.results.values()), 6)

    def ranked(self) -> List[MatchScore]:
        """Results ordered best match first."""
        return sorted(self.results.values(), key=lambda s: (s.overall_score, s.confidence), reverse=True)


class BatchCoordinator:
    """Fans a scoring request out across opportunities with bounded concurrency."""

    def __init__(self, scoring_service: MatchScoringService, config: Optional[BatchConfig] = None):
        self.scoring_service = scoring_service
        self.config = config or BatchConfig()

    def _validate(self, profile_id: str, opportunity_ids: List[str], concurrency_limit: int) -> None:
        if not profile_id:
            raise ValidationError("profile_id is required")
        if len(opportunity_ids) > self.config.max_batch_size:
            raise ValidationError(
                f"Batch of {len(opportunity_ids)} exceeds maximum of {self.config.max_batch_size} opportunities"
            )
        if any(not opp_id for opp_id in opportunity_ids):
            raise ValidationError("Opportunity ids must be non-empty")
        if not 1 <= concurrency_limit <= self.config.max_concurrency:
            raise ValidationError(
                f"concurrency_limit must be between 1 and {self.config.max_concurrency}, got {concurrency_limit}"
            )

    def score_batch(
        self,
        profile_id: str,
        opportunity_ids: Iterable[str],
        concurrency_limit: Optional[int] = None,
        method=ScoringMethod.CALCULATION,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> BatchResult:
        # Duplicates collapse into one item; order of first appearance is kept
        opportunity_ids = list(dict.fromkeys(opportunity_ids))
        limit = concurrency_limit if concurrency_limit is not None else self.config.default_concurrency
        self._validate(profile_id, opportunity_ids, limit)
        method = parse_method(method)

        # Loaded once for the whole batch; NotFoundError aborts before any item runs
        profile = self.scoring_service.load_profile(profile_id, organization_id)

        started = time.monotonic()
        batch = BatchResult(profile_id=profile_id)
        if not opportunity_ids:
            return batch

        logger.info(
            f"Scoring batch of {len(opportunity_ids)} opportunities for profile {profile_id} "
            f"(method={method.value}, concurrency={limit})"
        )

        def _score_one(opportunity_id: str) -> MatchScore:
            if token is not None:
                token.raise_if_cancelled()
            return self.scoring_service.score_for_profile(
                profile, opportunity_id, method=method, user_id=user_id, token=token,
            )

        with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="batch-score") as executor:
            # Items that start after cancellation fail fast inside _score_one
            futures = {executor.submit(_score_one, opp_id): opp_id for opp_id in opportunity_ids}

            for future in as_completed(futures):
                opp_id = futures[future]
                error = future.exception()
                if error is None:
                    batch.results[opp_id] = future.result()
                elif isinstance(error, ScoringCancelledError):
                    batch.failures[opp_id] = BatchFailure(type(error).__name__, str(error))
                else:
                    logger.warning(f"Batch item {opp_id} failed: {type(error).__name__}: {error}")
                    batch.failures[opp_id] = BatchFailure(type(error).__name__, str(error))

        batch.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Batch for profile {profile_id} finished: {len(batch.results)} scored, "
            f"{len(batch.failures)} failed in {batch.duration_ms}ms"
        )
        return batch
