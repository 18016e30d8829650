"""
Tests for BatchCoordinator: bounded concurrency, per-item failure isolation
and batch-shape validation.
"""
import threading
from unittest.mock import patch

import pytest

from matchscore.batch import BatchCoordinator
from matchscore.config_loader import BatchConfig
from matchscore.exceptions import NotFoundError, ValidationError
from matchscore.utils import CancellationToken
from tests.factories import make_opportunity


@pytest.fixture
def opportunity_ids(store):
    ids = []
    for i in range(9):
        opportunity = make_opportunity(id=f"opp-{i}", naics_codes=["541511" if i % 2 else "999999"])
        store.save_opportunity(opportunity)
        ids.append(opportunity.id)
    return ids


class TestScoreBatch:

    def test_one_failure_does_not_abort_the_rest(self, batch_coordinator, opportunity_ids):
        result = batch_coordinator.score_batch("profile-1", opportunity_ids + ["opp-missing"])

        assert len(result.results) == 9
        assert set(result.failures) == {"opp-missing"}
        assert result.failures["opp-missing"].error_type == "NotFoundError"
        assert result.total == 10
        assert result.duration_ms >= 0

    def test_ranked_best_first(self, batch_coordinator, opportunity_ids):
        ranked = batch_coordinator.score_batch("profile-1", opportunity_ids).ranked()
        scores = [s.overall_score for s in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_duplicates_collapse(self, batch_coordinator, opportunity_ids):
        result = batch_coordinator.score_batch("profile-1", ["opp-1", "opp-1", "opp-2"])
        assert set(result.results) == {"opp-1", "opp-2"}

    def test_empty_batch(self, batch_coordinator):
        result = batch_coordinator.score_batch("profile-1", [])
        assert result.results == {}
        assert result.failures == {}

    @pytest.mark.slow
    def test_concurrency_is_bounded(self, scoring_service, opportunity_ids):
        coordinator = BatchCoordinator(scoring_service, BatchConfig())
        active = []
        peak = []
        lock = threading.Lock()
        original = scoring_service.score_for_profile

        def tracking(*args, **kwargs):
            with lock:
                active.append(1)
                peak.append(len(active))
            try:
                return original(*args, **kwargs)
            finally:
                with lock:
                    active.pop()

        with patch.object(scoring_service, "score_for_profile", side_effect=tracking):
            result = coordinator.score_batch("profile-1", opportunity_ids, concurrency_limit=2)

        assert len(result.results) == 9
        assert max(peak) <= 2

    def test_cost_total(self, batch_coordinator, opportunity_ids):
        assert batch_coordinator.score_batch("profile-1", opportunity_ids).total_cost_usd == 0.0


class TestBatchValidation:

    def test_oversized_batch(self, batch_coordinator):
        with pytest.raises(ValidationError, match="exceeds maximum of 50"):
            batch_coordinator.score_batch("profile-1", [f"opp-{i}" for i in range(51)])

    @pytest.mark.parametrize("limit", [0, 11, -1])
    def test_concurrency_out_of_range(self, batch_coordinator, limit):
        with pytest.raises(ValidationError):
            batch_coordinator.score_batch("profile-1", ["opp-1"], concurrency_limit=limit)

    def test_blank_opportunity_id(self, batch_coordinator):
        with pytest.raises(ValidationError):
            batch_coordinator.score_batch("profile-1", ["opp-1", ""])

    def test_unknown_method(self, batch_coordinator):
        with pytest.raises(ValidationError):
            batch_coordinator.score_batch("profile-1", ["opp-1"], method="guess")

    def test_missing_profile_aborts_before_any_item(self, batch_coordinator, scoring_service):
        with patch.object(scoring_service, "score_for_profile") as score_for_profile:
            with pytest.raises(NotFoundError):
                batch_coordinator.score_batch("nope", ["opp-1"])
            score_for_profile.assert_not_called()


class TestBatchCancellation:

    def test_cancelled_batch_reports_every_item(self, batch_coordinator, opportunity_ids):
        token = CancellationToken()
        token.cancel()
        result = batch_coordinator.score_batch("profile-1", opportunity_ids, token=token)

        assert result.results == {}
        assert len(result.failures) == 9
        assert {f.error_type for f in result.failures.values()} == {"ScoringCancelledError"}

    @pytest.mark.slow
    def test_cancel_mid_batch_keeps_finished_results(self, scoring_service, opportunity_ids):
        coordinator = BatchCoordinator(scoring_service, BatchConfig())
        token = CancellationToken()
        original = scoring_service.score_for_profile
        completed = []

        def cancel_after_first(*args, **kwargs):
            score = original(*args, **kwargs)
            completed.append(score)
            token.cancel()
            return score

        with patch.object(scoring_service, "score_for_profile", side_effect=cancel_after_first):
            result = coordinator.score_batch("profile-1", opportunity_ids, concurrency_limit=1, token=token)

        assert len(result.results) == 1
        assert len(result.failures) == 8
        assert result.total == 9
