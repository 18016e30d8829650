#!/usr/bin/env python3
"""
Deterministic Scorer - combines factor evaluators into a MatchScore.

Four categories, each a sub-weighted average of its factor evaluators:
- past_performance:     past performance
- technical_capability: industry 50, certification 25, competency 15, clearance 10
- strategic_fit:        geography 40, government level 30, geographic preference 20, business scale 10
- credibility:          contact / company info / SAM.gov readiness

overall = round_half_up(sum(category.score * weight) / 100), clamped to [0, 100].
Confidence reflects how much input data was present, not how high the score is.
"""

import logging
import time
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from matchscore.exceptions import ValidationError
from matchscore.models import (
    CATEGORY_KEYS,
    CategoryScore,
    CategoryWeights,
    FactorResult,
    MatchScore,
    Opportunity,
    Profile,
    ScoringMethod,
)
from matchscore.scorer import factors
from matchscore.scorer.recommendations import generate_recommendations
from matchscore.utils import clamp, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM_VERSION = "v4.0-deterministic"
WEIGHT_SUM_TOLERANCE = 1e-6

Evaluator = Callable[[Profile, Opportunity], FactorResult]

CATEGORY_FACTORS: Dict[str, Sequence[Tuple[str, Evaluator]]] = {
    "past_performance": (
        ("past_performance", factors.evaluate_past_performance),
    ),
    "technical_capability": (
        ("industry_alignment", factors.evaluate_industry_alignment),
        ("certification_match", factors.evaluate_certification_match),
        ("competency_alignment", factors.evaluate_competency_alignment),
        ("security_clearance", factors.evaluate_security_clearance),
    ),
    "strategic_fit": (
        ("geographic_proximity", factors.evaluate_geographic_proximity),
        ("government_level", factors.evaluate_government_level),
        ("geographic_preference", factors.evaluate_geographic_preference),
        ("business_scale", factors.evaluate_business_scale),
    ),
    "credibility": (
        ("credibility", factors.evaluate_credibility),
    ),
}

WeightsInput = Union[None, CategoryWeights, Mapping[str, float]]


def resolve_weights(weights: WeightsInput, default: Optional[CategoryWeights] = None) -> Dict[str, float]:
    """Validate caller weights; raises ValidationError unless they cover all categories and sum to 100."""
    if weights is None:
        weights = default or CategoryWeights()
    if isinstance(weights, CategoryWeights):
        resolved = weights.as_dict()
    else:
        unknown = set(weights) - set(CATEGORY_KEYS)
        missing = set(CATEGORY_KEYS) - set(weights)
        if unknown or missing:
            raise ValidationError(
                f"Weights must cover exactly {list(CATEGORY_KEYS)} "
                f"(missing={sorted(missing)}, unknown={sorted(unknown)})"
            )
        try:
            resolved = {key: float(weights[key]) for key in CATEGORY_KEYS}
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Weights must be numeric: {e}") from e

    negative = [key for key, value in resolved.items() if value < 0]
    if negative:
        raise ValidationError(f"Weights must be non-negative: {negative}")
    total = sum(resolved.values())
    if abs(total - 100.0) > WEIGHT_SUM_TOLERANCE:
        raise ValidationError(f"Weights must sum to 100, got {total:g}")
    return resolved


def compute_overall_score(category_scores: Mapping[str, float], weights: WeightsInput = None) -> int:
    """Weighted sum of category scores, rounded half-up and clamped to [0, 100]."""
    resolved = resolve_weights(weights)
    total = sum(clamp(category_scores.get(key, 0.0)) * resolved[key] for key in CATEGORY_KEYS) / 100.0
    return int(clamp(round_half_up(total)))


def data_completeness(profile: Profile, opportunity: Opportunity) -> Dict[str, float]:
    """Share (0-1) of relevant input fields present, per category."""
    history = profile.past_performance
    projects = history.key_projects[:factors.MAX_PROJECTS]
    checks = {
        "past_performance": [
            bool(projects),
            bool(history.description),
            history.years_in_business is not None,
            any(p.value for p in projects),
            opportunity.value is not None,
        ],
        "technical_capability": [
            bool(profile.primary_naics),
            bool(opportunity.naics_codes),
            bool(profile.certifications or profile.set_asides),
            bool(profile.capabilities),
            bool(opportunity.description),
        ],
        "strategic_fit": [
            bool(profile.state),
            bool(opportunity.state or opportunity.performance_states or opportunity.nationwide),
            bool(profile.government_levels),
            not profile.geographic_preferences.is_empty,
            bool(opportunity.agency),
            profile.annual_revenue is not None,
        ],
        "credibility": [
            bool(profile.contact_email),
            bool(profile.contact_phone),
            bool(profile.company_name),
            profile.sam_registered,
            bool(profile.uei),
        ],
    }
    return {key: sum(values) / len(values) for key, values in checks.items()}


def compute_confidence(profile: Profile, opportunity: Opportunity, weights: Mapping[str, float]) -> int:
    completeness = data_completeness(profile, opportunity)
    total = sum(completeness[key] * weights[key] for key in CATEGORY_KEYS)
    return int(clamp(round_half_up(total)))


class DeterministicScorer:
    """
    Rule-based scorer. Synchronous and free of I/O: the same inputs always
    produce the same scores.
    """

    def __init__(
        self,
        default_weights: Optional[CategoryWeights] = None,
        algorithm_version: str = DEFAULT_ALGORITHM_VERSION,
    ):
        self.default_weights = default_weights or CategoryWeights()
        self.algorithm_version = algorithm_version
        # Fail at construction rather than at first score
        resolve_weights(self.default_weights)

    def score(
        self,
        profile: Profile,
        opportunity: Opportunity,
        weights: WeightsInput = None,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> MatchScore:
        started = time.perf_counter()
        resolved = resolve_weights(weights, self.default_weights)

        categories: Dict[str, CategoryScore] = {}
        evidence = {}
        for key in CATEGORY_KEYS:
            results = {name: evaluate(profile, opportunity) for name, evaluate in CATEGORY_FACTORS[key]}
            weight_total = sum(r.weight for r in results.values())
            category_score = sum(r.score * r.weight for r in results.values()) / weight_total
            category_score = round(clamp(category_score), 2)
            categories[key] = CategoryScore(
                score=category_score,
                weight=resolved[key],
                contribution=round(category_score * resolved[key] / 100.0, 2),
                details="; ".join(r.details for r in results.values() if r.details),
                factors=results,
            )
            for name, result in results.items():
                evidence[name] = result.evidence

        overall = compute_overall_score({k: c.score for k, c in categories.items()}, resolved)
        confidence = compute_confidence(profile, opportunity, resolved)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            f"Scored profile {profile.id} vs opportunity {opportunity.id}: "
            f"overall={overall} confidence={confidence} ({elapsed_ms}ms)"
        )

        return MatchScore(
            organization_id=organization_id or profile.organization_id,
            user_id=user_id,
            profile_id=profile.id,
            opportunity_id=opportunity.id,
            overall_score=overall,
            deterministic_score=overall,
            confidence=confidence,
            categories=categories,
            factor_evidence=evidence,
            algorithm_version=self.algorithm_version,
            scoring_method=ScoringMethod.CALCULATION,
            recommendations=generate_recommendations(categories, opportunity),
            processing_time_ms=elapsed_ms,
        )
