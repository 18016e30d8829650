"""
Tests for MatchScoringService: loading, caching, persistence and side effects.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from matchscore.exceptions import NotFoundError, PersistenceError, ValidationError
from matchscore.interfaces import Notifier
from matchscore.models import ScoringMethod
from matchscore.service import MatchScoringService, parse_method
from tests.factories import make_opportunity, make_profile


class ExplodingNotifier(Notifier):
    def notify(self, event, payload):
        raise RuntimeError("webhook down")


class TestScore:

    def test_scores_and_persists(self, scoring_service, store):
        score = scoring_service.score("profile-1", "opp-1", organization_id="org-1", user_id="user-1")

        assert score.overall_score == 99
        assert score.user_id == "user-1"
        assert store.get_score(score.id) == score

    def test_second_call_is_served_from_cache(self, scoring_service, cache):
        first = scoring_service.score("profile-1", "opp-1")
        second = scoring_service.score("profile-1", "opp-1")

        assert first.id == second.id
        assert cache.stats()["computations"] == 1

    def test_methods_are_cached_separately(self, scoring_service, enrichment):
        scoring_service.enrichment = enrichment
        calculation = scoring_service.score("profile-1", "opp-1", method="calculation")
        hybrid = scoring_service.score("profile-1", "opp-1", method="hybrid")

        assert calculation.id != hybrid.id
        assert hybrid.scoring_method == ScoringMethod.HYBRID
        assert scoring_service.score("profile-1", "opp-1", method="hybrid").id == hybrid.id

    def test_force_refresh_recomputes(self, scoring_service):
        first = scoring_service.score("profile-1", "opp-1")
        refreshed = scoring_service.score("profile-1", "opp-1", force_refresh=True)
        assert first.id != refreshed.id
        assert refreshed.overall_score == first.overall_score

    def test_custom_weights_bypass_cache(self, scoring_service, cache):
        weights = {"past_performance": 25, "technical_capability": 25, "strategic_fit": 25, "credibility": 25}
        first = scoring_service.score("profile-1", "opp-1", weights=weights)
        second = scoring_service.score("profile-1", "opp-1", weights=weights)

        assert first.id != second.id
        assert first.categories["credibility"].weight == 25.0
        assert cache.stats()["computations"] == 0

    def test_enrichment_unavailable_degrades_and_is_not_cached(self, scoring_service):
        first = scoring_service.score("profile-1", "opp-1", method="llm")
        second = scoring_service.score("profile-1", "opp-1", method="llm")

        assert first.degraded is True
        assert first.degradation_reason == "enrichment_unavailable"
        assert first.id != second.id


class TestValidationAndLookup:

    def test_unknown_method(self, scoring_service):
        with pytest.raises(ValidationError):
            scoring_service.score("profile-1", "opp-1", method="magic")

    def test_parse_method(self):
        assert parse_method("hybrid") == ScoringMethod.HYBRID
        assert parse_method(ScoringMethod.LLM) == ScoringMethod.LLM

    def test_bad_weights_rejected_before_loading(self, scoring_service, store):
        with patch.object(store, "get_profile") as get_profile:
            with pytest.raises(ValidationError):
                scoring_service.score("profile-1", "opp-1", weights={"past_performance": 100})
            get_profile.assert_not_called()

    def test_missing_ids(self, scoring_service):
        with pytest.raises(ValidationError):
            scoring_service.score("", "opp-1")
        with pytest.raises(ValidationError):
            scoring_service.score("profile-1", "")

    def test_not_found(self, scoring_service):
        with pytest.raises(NotFoundError):
            scoring_service.score("nope", "opp-1")
        with pytest.raises(NotFoundError):
            scoring_service.score("profile-1", "nope")

    def test_profile_of_another_organization_is_not_visible(self, scoring_service):
        with pytest.raises(NotFoundError):
            scoring_service.score("profile-1", "opp-1", organization_id="org-2")

    def test_store_read_failure(self, scoring_service, store):
        with patch.object(store, "get_opportunity", side_effect=RuntimeError("connection reset")):
            with pytest.raises(PersistenceError):
                scoring_service.score("profile-1", "opp-1")

    def test_get_score_is_scoped_to_organization(self, scoring_service):
        score = scoring_service.score("profile-1", "opp-1")
        assert scoring_service.get_score(score.id, "org-1").id == score.id
        with pytest.raises(NotFoundError):
            scoring_service.get_score(score.id, "org-2")


class TestPersistenceFailure:

    def test_save_failure_surfaces_and_nothing_is_cached(self, scoring_service, store, cache):
        with patch.object(store, "save_score", side_effect=RuntimeError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                scoring_service.score("profile-1", "opp-1")

        key = cache.make_key("org-1", "profile-1", "opp-1", ScoringMethod.CALCULATION, "v4.0-deterministic")
        assert cache.get(key) is None

        score = scoring_service.score("profile-1", "opp-1")
        assert store.get_score(score.id) is not None


class TestSideEffects:

    def test_notifications(self, scoring_service, notifier):
        scoring_service.score("profile-1", "opp-1")
        assert notifier.names() == ["match_score.created", "match_score.high_match"]

    def test_weak_match_is_not_announced(self, scoring_service, store, notifier):
        store.save_opportunity(make_opportunity(id="opp-weak", naics_codes=["999999"], state="CA", city=None,
                                                set_aside="WOSB", agency="City of Fresno"))
        scoring_service.score("profile-1", "opp-weak")
        assert notifier.names() == ["match_score.created"]

    def test_notifier_failure_does_not_fail_scoring(self, store, scorer, cache):
        service = MatchScoringService(store, scorer, cache, notifier=ExplodingNotifier())
        score = service.score("profile-1", "opp-1")
        assert store.get_score(score.id) is not None


class TestRecentScoresAndHooks:

    def test_recent_scores_listing_is_cached_and_invalidated(self, scoring_service, store):
        first = scoring_service.score("profile-1", "opp-1")
        assert [s.id for s in scoring_service.list_recent_scores("org-1")] == [first.id]

        with patch.object(store, "get_recent_scores", wraps=store.get_recent_scores) as spy:
            scoring_service.list_recent_scores("org-1")
            spy.assert_not_called()

        store.save_opportunity(make_opportunity(id="opp-2"))
        second = scoring_service.score("profile-1", "opp-2")
        assert {s.id for s in scoring_service.list_recent_scores("org-1")} == {first.id, second.id}

    def test_recent_scores_other_org(self, scoring_service):
        scoring_service.score("profile-1", "opp-1")
        assert scoring_service.list_recent_scores("org-2") == []

    def test_profile_update_invalidates(self, scoring_service, store):
        first = scoring_service.score("profile-1", "opp-1")
        store.save_profile(make_profile(primary_naics="999999", secondary_naics=[]))

        assert scoring_service.on_profile_updated("org-1", "profile-1") >= 1
        updated = scoring_service.score("profile-1", "opp-1")
        assert updated.id != first.id
        assert updated.overall_score < first.overall_score

    def test_opportunity_update_invalidates(self, scoring_service):
        first = scoring_service.score("profile-1", "opp-1")
        assert scoring_service.on_opportunity_updated("opp-1") >= 1
        assert scoring_service.score("profile-1", "opp-1").id != first.id


class TestScoreHistory:

    def test_every_version_is_kept(self, scoring_service):
        first = scoring_service.score("profile-1", "opp-1")
        second = scoring_service.score("profile-1", "opp-1", force_refresh=True)

        history = scoring_service.get_score_history("profile-1", "opp-1", organization_id="org-1")
        assert [s.id for s in history] == [first.id, second.id]

    def test_other_organization(self, scoring_service):
        scoring_service.score("profile-1", "opp-1")
        with pytest.raises(NotFoundError):
            scoring_service.get_score_history("profile-1", "opp-1", organization_id="org-2")

    def test_unscored_pair(self, scoring_service):
        assert scoring_service.get_score_history("profile-1", "opp-1") == []


class TestCheckExisting:

    def test_cached_stored_and_missing(self, scoring_service, store, cache):
        for opp_id in ("opp-2", "opp-3"):
            store.save_opportunity(make_opportunity(id=opp_id))
        cached = scoring_service.score("profile-1", "opp-1")
        stored = scoring_service.score("profile-1", "opp-2")
        cache.invalidate_match("org-1", "profile-1", "opp-2")

        result = scoring_service.check_existing("profile-1", ["opp-1", "opp-2", "opp-3"], organization_id="org-1")

        assert result.existing["opp-1"].id == cached.id
        assert result.existing["opp-2"].id == stored.id
        assert result.from_cache == ["opp-1"]
        assert result.missing == ["opp-3"]

    def test_store_is_not_read_when_everything_is_cached(self, scoring_service, store):
        scoring_service.score("profile-1", "opp-1")
        with patch.object(store, "get_latest_scores", wraps=store.get_latest_scores) as spy:
            result = scoring_service.check_existing("profile-1", ["opp-1"])
        spy.assert_not_called()
        assert result.missing == []

    def test_stored_scores_outside_window_are_missing(self, scoring_service, store, cache):
        score = scoring_service.score("profile-1", "opp-1")
        cache.invalidate_match("org-1", "profile-1", "opp-1")
        old = score.model_copy(update={
            "id": "old-score",
            "opportunity_id": "opp-old",
            "created_at": datetime.now(timezone.utc) - timedelta(hours=30),
        })
        store.save_score(old)

        result = scoring_service.check_existing("profile-1", ["opp-1", "opp-old"])
        assert list(result.existing) == ["opp-1"]
        assert result.missing == ["opp-old"]

    def test_degraded_stored_scores_are_missing(self, scoring_service, store):
        scoring_service.score("profile-1", "opp-1", method="llm")

        result = scoring_service.check_existing("profile-1", ["opp-1"], method="llm")
        assert result.existing == {}
        assert result.missing == ["opp-1"]

    def test_nothing_is_computed(self, scoring_service, cache):
        result = scoring_service.check_existing("profile-1", ["opp-1", "opp-1"])
        assert result.missing == ["opp-1"]
        assert cache.stats()["computations"] == 0

    def test_size_cap(self, scoring_service):
        ids = [f"opp-{i}" for i in range(51)]
        with pytest.raises(ValidationError):
            scoring_service.check_existing("profile-1", ids)

    def test_unknown_profile(self, scoring_service):
        with pytest.raises(NotFoundError):
            scoring_service.check_existing("nope", ["opp-1"])
        with pytest.raises(NotFoundError):
            scoring_service.check_existing("profile-1", ["opp-1"], organization_id="org-2")

    def test_store_failure(self, scoring_service, store):
        with patch.object(store, "get_latest_scores", side_effect=RuntimeError("db down")):
            with pytest.raises(PersistenceError):
                scoring_service.check_existing("profile-1", ["opp-1"])
