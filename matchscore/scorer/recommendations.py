"""Recommendations and notification readiness derived from factor results."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from matchscore.models import CategoryScore, FactorResult, MatchScore, Opportunity
from matchscore.scorer.factors import classify_government_level, has_set_aside

MIN_NOTIFY_SCORE = 75
MIN_NOTIFY_CREDIBILITY = 60
MIN_NOTIFY_CONFIDENCE = 65


def _factor(categories: Dict[str, CategoryScore], category: str, name: str) -> Optional[FactorResult]:
    owner = categories.get(category)
    if owner is None:
        return None
    return owner.factors.get(name)


def generate_recommendations(categories: Dict[str, CategoryScore], opportunity: Opportunity) -> List[str]:
    recommendations: List[str] = []

    industry = _factor(categories, "technical_capability", "industry_alignment")
    if industry is not None:
        if industry.score >= 80:
            recommendations.append("Strong NAICS alignment makes this an excellent opportunity")
        elif industry.score < 40:
            recommendations.append("Consider building capabilities in the required NAICS codes")

    geography = _factor(categories, "strategic_fit", "geographic_proximity")
    if geography is not None and geography.score < 50:
        recommendations.append("Consider partnering with local firms for geographic advantage")

    certification = _factor(categories, "technical_capability", "certification_match")
    if certification is not None and certification.score < 50 and has_set_aside(opportunity):
        readable = (opportunity.set_aside or "").replace("_", " ")
        recommendations.append(f"Consider obtaining {readable} certification or teaming with an eligible prime")

    clearance = _factor(categories, "technical_capability", "security_clearance")
    if clearance is not None and clearance.score < 50:
        recommendations.append("Clearance gap - consider a cleared teaming partner")

    past = _factor(categories, "past_performance", "past_performance")
    if past is not None:
        if "exceed capacity" in past.details:
            recommendations.append("Consider teaming arrangements due to contract size")
        elif past.score <= 45:
            recommendations.append("Document past performance with project values and agencies")

    credibility = _factor(categories, "credibility", "credibility")
    if credibility is not None:
        if credibility.score < 50:
            recommendations.append(
                "Consider improving profile completeness and SAM.gov registration for better credibility"
            )
        elif credibility.score >= 80:
            recommendations.append("Strong market presence - highlight your professional profile and government readiness")

    level = _factor(categories, "strategic_fit", "government_level")
    if level is not None:
        if level.score < 50:
            opportunity_level = classify_government_level(opportunity.agency)
            if opportunity_level is not None:
                recommendations.append(
                    f"Consider building experience with {opportunity_level.value.lower()} agencies"
                )
        elif level.score >= 80:
            recommendations.append("Excellent government level match - highlight relevant experience")

    preference = _factor(categories, "strategic_fit", "geographic_preference")
    if preference is not None:
        if preference.score == 0:
            recommendations.append("This location is marked to avoid - review if this is still relevant")
        elif preference.score < 30:
            recommendations.append("Consider if travel requirements align with your geographic preferences")

    return recommendations


@dataclass
class NotificationReadiness:
    should_notify: bool
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


def notification_readiness(score: MatchScore) -> NotificationReadiness:
    """Check a score against the notify thresholds and explain the outcome."""
    overall = score.overall_score
    credibility = score.category_score("credibility")
    confidence = score.confidence

    reasons: List[str] = []
    recommendations: List[str] = []

    if overall >= MIN_NOTIFY_SCORE:
        reasons.append(f"Strong opportunity match ({overall}%)")
    else:
        reasons.append(f"Match score too low ({overall}% < {MIN_NOTIFY_SCORE}%)")
        recommendations.append("Focus on improving NAICS alignment and past performance")

    if credibility >= MIN_NOTIFY_CREDIBILITY:
        reasons.append(f"Adequate profile credibility ({credibility:g}%)")
    else:
        reasons.append(f"Profile credibility insufficient ({credibility:g}% < {MIN_NOTIFY_CREDIBILITY}%)")
        recommendations.append("Complete contact information, basic company details, and SAM.gov registration")

    if confidence >= MIN_NOTIFY_CONFIDENCE:
        reasons.append(f"High algorithm confidence ({confidence}%)")
    else:
        reasons.append(f"Algorithm confidence too low ({confidence}% < {MIN_NOTIFY_CONFIDENCE}%)")
        recommendations.append("Add more profile details to improve matching accuracy")

    return NotificationReadiness(
        should_notify=(
            overall >= MIN_NOTIFY_SCORE
            and credibility >= MIN_NOTIFY_CREDIBILITY
            and confidence >= MIN_NOTIFY_CONFIDENCE
        ),
        reasons=reasons,
        recommendations=recommendations,
        scores={"match": overall, "credibility": credibility, "confidence": confidence},
    )
