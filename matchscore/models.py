#!/usr/bin/env python3
"""
Match Scoring Models - wire records for profiles, opportunities and scores.

Profiles and opportunities are frozen snapshots for the duration of a scoring
call. MatchScore is treated as immutable once persisted: changes are made with
model_copy() and saved as a new record.

All numeric scores are percentages in [0, 100].
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


CATEGORY_KEYS = (
    "past_performance",
    "technical_capability",
    "strategic_fit",
    "credibility",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ScoringMethod(str, Enum):
    CALCULATION = "calculation"
    LLM = "llm"
    HYBRID = "hybrid"


class Outcome(str, Enum):
    WON = "won"
    LOST = "lost"
    NO_BID = "no_bid"
    WITHDRAWN = "withdrawn"


class GovernmentLevel(str, Enum):
    FEDERAL = "FEDERAL"
    STATE = "STATE"
    LOCAL = "LOCAL"


# ============================================================================
# INPUT SNAPSHOTS
# ============================================================================

class Certification(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status.lower() in ("active", "verified", "approved")


class PastProject(BaseModel):
    """A prior contract or project listed on a profile."""
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    description: Optional[str] = None
    value: Optional[float] = None
    customer_type: Optional[str] = None  # FEDERAL, STATE, LOCAL, COMMERCIAL
    agency: Optional[str] = None
    completed_year: Optional[int] = None


class PastPerformance(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: Optional[str] = None
    years_in_business: Optional[int] = None
    key_projects: List[PastProject] = Field(default_factory=list)


class GeographicPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    preferred_states: List[str] = Field(default_factory=list)
    preferred_cities: List[str] = Field(default_factory=list)
    willing_states: List[str] = Field(default_factory=list)
    avoid_states: List[str] = Field(default_factory=list)
    work_from_home: bool = False

    @property
    def is_empty(self) -> bool:
        return not (
            self.preferred_states or self.preferred_cities
            or self.willing_states or self.avoid_states or self.work_from_home
        )


class Profile(BaseModel):
    """Business capability profile of an organization."""
    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    company_name: Optional[str] = None

    primary_naics: Optional[str] = None
    secondary_naics: List[str] = Field(default_factory=list)

    state: Optional[str] = None
    city: Optional[str] = None

    certifications: List[Certification] = Field(default_factory=list)
    set_asides: List[str] = Field(default_factory=list)
    security_clearance: Optional[str] = None

    government_levels: List[GovernmentLevel] = Field(default_factory=list)
    geographic_preferences: GeographicPreferences = Field(default_factory=GeographicPreferences)
    capabilities: List[str] = Field(default_factory=list)
    past_performance: PastPerformance = Field(default_factory=PastPerformance)

    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    address_line1: Optional[str] = None
    zip_code: Optional[str] = None
    sam_registered: bool = False
    uei: Optional[str] = None
    cage_code: Optional[str] = None

    annual_revenue: Optional[float] = None
    completeness: float = Field(default=0.0, ge=0, le=100)
    updated_at: datetime = Field(default_factory=_utcnow)


class Opportunity(BaseModel):
    """Contract opportunity snapshot."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    agency: Optional[str] = None
    naics_codes: List[str] = Field(default_factory=list)

    state: Optional[str] = None
    city: Optional[str] = None
    performance_states: List[str] = Field(default_factory=list)
    nationwide: bool = False

    estimated_value: Optional[float] = None
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    response_deadline: Optional[datetime] = None

    set_aside: Optional[str] = None
    security_clearance_required: Optional[str] = None
    required_certifications: List[str] = Field(default_factory=list)
    description: str = ""

    @property
    def value(self) -> Optional[float]:
        """Best single estimate of contract value, using the range midpoint if needed."""
        if self.estimated_value:
            return self.estimated_value
        if self.value_min and self.value_max:
            return (self.value_min + self.value_max) / 2
        return self.value_max or self.value_min

    @property
    def is_multi_location(self) -> bool:
        return self.nationwide or len(set(self.performance_states)) > 1


# ============================================================================
# FACTOR EVIDENCE (tagged union, one schema per factor)
# ============================================================================

class IndustryEvidence(BaseModel):
    kind: Literal["industry"] = "industry"
    profile_codes: List[str] = Field(default_factory=list)
    opportunity_codes: List[str] = Field(default_factory=list)
    matched_code: Optional[str] = None
    match_level: Literal["primary", "secondary", "industry_group", "sector", "none", "missing"] = "missing"


class GeographyEvidence(BaseModel):
    kind: Literal["geography"] = "geography"
    profile_state: Optional[str] = None
    profile_city: Optional[str] = None
    opportunity_state: Optional[str] = None
    opportunity_city: Optional[str] = None
    match_level: Literal["same_city", "same_state", "different_state", "multi_location", "missing"] = "missing"


class CertificationEvidence(BaseModel):
    kind: Literal["certification"] = "certification"
    required: List[str] = Field(default_factory=list)
    held: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    set_aside_ineligible: bool = False


class PastPerformanceEvidence(BaseModel):
    kind: Literal["past_performance"] = "past_performance"
    project_count: int = 0
    government_project_count: int = 0
    recent_government_project_count: int = 0
    largest_project_value: Optional[float] = None
    value_ratio: Optional[float] = None
    years_in_business: Optional[int] = None


class ClearanceEvidence(BaseModel):
    kind: Literal["clearance"] = "clearance"
    required: Optional[str] = None
    held: Optional[str] = None
    sufficient: bool = True


class CompetencyEvidence(BaseModel):
    kind: Literal["competency"] = "competency"
    considered: int = 0
    matched: List[str] = Field(default_factory=list)


class GovernmentLevelEvidence(BaseModel):
    kind: Literal["government_level"] = "government_level"
    opportunity_level: Optional[GovernmentLevel] = None
    preferred_levels: List[GovernmentLevel] = Field(default_factory=list)


class GeographicPreferenceEvidence(BaseModel):
    kind: Literal["geographic_preference"] = "geographic_preference"
    opportunity_state: Optional[str] = None
    preference: Literal["preferred", "willing", "avoid", "work_from_home", "other", "none", "unknown_location"] = "none"


class BusinessScaleEvidence(BaseModel):
    kind: Literal["business_scale"] = "business_scale"
    opportunity_value: Optional[float] = None
    annual_revenue: Optional[float] = None
    value_to_revenue: Optional[float] = None


class CredibilityEvidence(BaseModel):
    kind: Literal["credibility"] = "credibility"
    contact_completeness: float = 0.0
    basic_info: float = 0.0
    sam_readiness: float = 0.0


FactorEvidence = Annotated[
    Union[
        IndustryEvidence,
        GeographyEvidence,
        CertificationEvidence,
        PastPerformanceEvidence,
        ClearanceEvidence,
        CompetencyEvidence,
        GovernmentLevelEvidence,
        GeographicPreferenceEvidence,
        BusinessScaleEvidence,
        CredibilityEvidence,
    ],
    Field(discriminator="kind"),
]


class FactorResult(BaseModel):
    """Outcome of a single factor evaluator."""
    score: float = Field(ge=0, le=100)
    weight: float = Field(ge=0)
    details: str = ""
    evidence: FactorEvidence
    notes: Dict[str, str] = Field(default_factory=dict)


class CategoryScore(BaseModel):
    score: float = Field(ge=0, le=100)
    weight: float = Field(ge=0, le=100)
    contribution: float = 0.0
    details: str = ""
    factors: Dict[str, FactorResult] = Field(default_factory=dict)


class CategoryWeights(BaseModel):
    """Category weights in percent. Must sum to 100."""
    past_performance: float = 35.0
    technical_capability: float = 35.0
    strategic_fit: float = 15.0
    credibility: float = 15.0

    def as_dict(self) -> Dict[str, float]:
        return {key: getattr(self, key) for key in CATEGORY_KEYS}


# ============================================================================
# LLM PAYLOADS
# ============================================================================

class CompetitiveLandscape(BaseModel):
    likely_incumbent: Optional[str] = None
    estimated_competitors: Optional[int] = None
    competitive_factors: List[str] = Field(default_factory=list)


class SemanticAnalysis(BaseModel):
    """Context analysis returned by the LLM."""
    llm_score: float = Field(ge=0, le=100)
    summary: str = ""
    implicit_requirements: List[str] = Field(default_factory=list)
    hidden_preferences: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    competitive_landscape: CompetitiveLandscape = Field(default_factory=CompetitiveLandscape)


class WinProbability(BaseModel):
    percentage: float = Field(ge=0, le=100)
    rationale: str = ""
    confidence_interval: Optional[List[float]] = None


class CriticalGap(BaseModel):
    gap: str
    severity: Literal["DISQUALIFYING", "CRITICAL", "IMPORTANT", "MINOR"] = "IMPORTANT"
    mitigation: Optional[str] = None


class TeamingRecommendation(BaseModel):
    partner_type: str
    reason: str = ""
    urgency: Literal["HIGH", "MEDIUM", "LOW"] = "MEDIUM"


class StrategicInsights(BaseModel):
    """Strategic insights returned by the LLM."""
    win_probability: WinProbability
    competitive_advantages: List[str] = Field(default_factory=list)
    critical_gaps: List[CriticalGap] = Field(default_factory=list)
    teaming_recommendations: List[TeamingRecommendation] = Field(default_factory=list)
    win_themes: List[str] = Field(default_factory=list)
    discriminators: List[str] = Field(default_factory=list)


# ============================================================================
# RESULTS
# ============================================================================

class MatchScore(BaseModel):
    """A computed, versioned compatibility score."""
    id: str = Field(default_factory=_new_id)
    organization_id: str
    user_id: Optional[str] = None
    profile_id: str
    opportunity_id: str

    overall_score: int = Field(ge=0, le=100)
    deterministic_score: int = Field(ge=0, le=100)
    confidence: int = Field(ge=0, le=100)
    categories: Dict[str, CategoryScore]
    factor_evidence: Dict[str, FactorEvidence] = Field(default_factory=dict)

    algorithm_version: str
    scoring_method: ScoringMethod = ScoringMethod.CALCULATION
    semantic_analysis: Optional[SemanticAnalysis] = None
    strategic_insights: Optional[StrategicInsights] = None
    recommendations: List[str] = Field(default_factory=list)

    processing_time_ms: int = 0
    cost_usd: float = 0.0
    degraded: bool = False
    degradation_reason: Optional[str] = None
    enrichment_adjustment: Optional[float] = None
    created_at: datetime = Field(default_factory=_utcnow)

    def category_score(self, key: str) -> float:
        category = self.categories.get(key)
        return category.score if category else 0.0


class RecentScores(BaseModel):
    """Cached listing of recent scores for an organization."""
    organization_id: str
    since: datetime
    scores: List[MatchScore] = Field(default_factory=list)


class FeedbackRecord(BaseModel):
    """Append-only user feedback or outcome attached to a score."""
    id: str = Field(default_factory=_new_id)
    match_score_id: str
    organization_id: str
    user_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None
    outcome: Optional[Outcome] = None
    actual_value: Optional[float] = None
    competitor_count: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)
