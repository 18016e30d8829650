#!/usr/bin/env python3
"""
Test suite for the deterministic scorer: weighted aggregation, confidence and bounds.
"""

import math
import random
import unittest

from matchscore.exceptions import ValidationError
from matchscore.models import CATEGORY_KEYS, CategoryWeights, ScoringMethod
from matchscore.scorer import DeterministicScorer, compute_overall_score, notification_readiness, resolve_weights
from tests.factories import empty_opportunity, empty_profile, make_opportunity, make_profile


class TestOverallScore(unittest.TestCase):

    def test_uniform_category_scores(self):
        weights = {"past_performance": 35, "technical_capability": 35, "strategic_fit": 15, "credibility": 15}
        scores = {key: 80.0 for key in CATEGORY_KEYS}
        self.assertEqual(compute_overall_score(scores, weights), 80)

    def test_rounds_half_up(self):
        weights = {"past_performance": 50, "technical_capability": 50, "strategic_fit": 0, "credibility": 0}
        scores = {"past_performance": 80.0, "technical_capability": 81.0, "strategic_fit": 0.0, "credibility": 0.0}
        # 80.5 rounds to 81, where round() would give 80
        self.assertEqual(compute_overall_score(scores, weights), 81)

    def test_randomized_weights_match_weighted_sum(self):
        rng = random.Random(20240601)
        for _ in range(200):
            cuts = sorted(rng.randint(0, 100) for _ in range(3))
            parts = [cuts[0], cuts[1] - cuts[0], cuts[2] - cuts[1], 100 - cuts[2]]
            weights = dict(zip(CATEGORY_KEYS, parts))
            scores = {key: round(rng.uniform(0, 100), 2) for key in CATEGORY_KEYS}

            total = sum(scores[key] * weights[key] for key in CATEGORY_KEYS) / 100.0
            overall = compute_overall_score(scores, weights)

            self.assertEqual(overall, int(math.floor(total + 0.5)))
            self.assertTrue(0 <= overall <= 100)

    def test_invalid_weights(self):
        with self.assertRaises(ValidationError):
            resolve_weights({"past_performance": 50, "technical_capability": 35, "strategic_fit": 15, "credibility": 15})
        with self.assertRaises(ValidationError):
            resolve_weights({"past_performance": 100})
        with self.assertRaises(ValidationError):
            resolve_weights({"past_performance": 120, "technical_capability": -20, "strategic_fit": 0, "credibility": 0})
        with self.assertRaises(ValidationError):
            resolve_weights({"past_performance": "a lot", "technical_capability": 35, "strategic_fit": 15,
                             "credibility": 15})

    def test_default_weights(self):
        self.assertEqual(resolve_weights(None), CategoryWeights().as_dict())

    def test_scorer_rejects_bad_default_weights(self):
        with self.assertRaises(ValidationError):
            DeterministicScorer(CategoryWeights(past_performance=90))


class TestDeterministicScorer(unittest.TestCase):

    def setUp(self):
        self.scorer = DeterministicScorer()

    def test_strong_match(self):
        score = self.scorer.score(make_profile(), make_opportunity())

        self.assertEqual(score.scoring_method, ScoringMethod.CALCULATION)
        self.assertEqual(score.overall_score, 99)
        self.assertEqual(score.deterministic_score, score.overall_score)
        self.assertEqual(score.confidence, 100)
        self.assertEqual(score.categories["technical_capability"].score, 96.5)
        self.assertEqual(score.algorithm_version, "v4.0-deterministic")
        self.assertEqual(set(score.categories), set(CATEGORY_KEYS))
        self.assertEqual(len(score.factor_evidence), 10)
        self.assertEqual(score.factor_evidence["industry_alignment"].kind, "industry")
        self.assertFalse(score.degraded)

    def test_category_contribution(self):
        score = self.scorer.score(make_profile(), make_opportunity())
        category = score.categories["past_performance"]
        self.assertEqual(category.weight, 35.0)
        self.assertEqual(category.contribution, round(category.score * 35 / 100, 2))

    def test_custom_weights(self):
        weights = {"past_performance": 0, "technical_capability": 100, "strategic_fit": 0, "credibility": 0}
        score = self.scorer.score(make_profile(), make_opportunity(), weights)
        self.assertEqual(score.overall_score, 97)
        self.assertEqual(score.categories["technical_capability"].weight, 100.0)

    def test_empty_inputs_stay_in_bounds(self):
        score = self.scorer.score(empty_profile(), empty_opportunity())
        self.assertTrue(0 <= score.overall_score <= 100)
        self.assertEqual(score.confidence, 0)
        for category in score.categories.values():
            self.assertFalse(math.isnan(category.score))
            self.assertTrue(0 <= category.score <= 100)

    def test_idempotent(self):
        profile, opportunity = make_profile(), make_opportunity()
        first = self.scorer.score(profile, opportunity)
        second = self.scorer.score(profile, opportunity)
        self.assertEqual(first.overall_score, second.overall_score)
        self.assertEqual(
            {k: c.model_dump() for k, c in first.categories.items()},
            {k: c.model_dump() for k, c in second.categories.items()},
        )
        self.assertNotEqual(first.id, second.id)

    def test_organization_and_user(self):
        score = self.scorer.score(make_profile(), make_opportunity(), user_id="user-7")
        self.assertEqual(score.organization_id, "org-1")
        self.assertEqual(score.user_id, "user-7")

    def test_round_trips_through_json(self):
        score = self.scorer.score(make_profile(), make_opportunity(set_aside="WOSB"))
        restored = type(score).model_validate_json(score.model_dump_json())
        self.assertEqual(restored.factor_evidence["certification_match"].set_aside_ineligible, True)
        self.assertEqual(restored.overall_score, score.overall_score)


class TestRecommendations(unittest.TestCase):

    def setUp(self):
        self.scorer = DeterministicScorer()

    def test_strong_match_recommendations(self):
        score = self.scorer.score(make_profile(), make_opportunity())
        self.assertIn("Strong NAICS alignment makes this an excellent opportunity", score.recommendations)
        self.assertIn("Excellent government level match - highlight relevant experience", score.recommendations)

    def test_gap_recommendations(self):
        opportunity = make_opportunity(
            naics_codes=["999999"], state="CA", city=None, set_aside="WOSB",
            security_clearance_required="Top Secret",
        )
        recommendations = self.scorer.score(make_profile(security_clearance=None), opportunity).recommendations
        self.assertIn("Consider building capabilities in the required NAICS codes", recommendations)
        self.assertIn("Consider partnering with local firms for geographic advantage", recommendations)
        self.assertIn("Consider obtaining WOSB certification or teaming with an eligible prime", recommendations)
        self.assertIn("Clearance gap - consider a cleared teaming partner", recommendations)

    def test_notification_readiness(self):
        strong = notification_readiness(self.scorer.score(make_profile(), make_opportunity()))
        self.assertTrue(strong.should_notify)
        self.assertEqual(strong.scores["match"], 99)

        weak = notification_readiness(self.scorer.score(empty_profile(), empty_opportunity()))
        self.assertFalse(weak.should_notify)
        self.assertEqual(len(weak.recommendations), 3)


if __name__ == '__main__':
    unittest.main()
