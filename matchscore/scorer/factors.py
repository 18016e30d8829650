#!/usr/bin/env python3
"""
Factor Evaluators v4.0

Each evaluator takes a profile and an opportunity snapshot and returns a
FactorResult with a 0-100 score, its sub-weight inside the owning category,
human-readable details and typed evidence.

Key behavior:
- Pure and total: missing optional data gives a neutral low-but-nonzero score,
  never an exception.
- Bounded: every loop runs over a capped slice of the input lists.
- Only a set-aside the profile cannot satisfy scores exactly zero.
"""

import re
from typing import Dict, Iterable, List, Optional, Set

from matchscore.models import (
    BusinessScaleEvidence,
    CertificationEvidence,
    ClearanceEvidence,
    CompetencyEvidence,
    CredibilityEvidence,
    FactorResult,
    GeographicPreferenceEvidence,
    GeographyEvidence,
    GovernmentLevel,
    GovernmentLevelEvidence,
    IndustryEvidence,
    Opportunity,
    PastPerformanceEvidence,
    Profile,
)
from matchscore.utils import clamp, normalize_code, round_half_up

# ----------------------------
# Sub-weights inside categories
# ----------------------------
INDUSTRY_WEIGHT = 50.0
CERTIFICATION_WEIGHT = 25.0
COMPETENCY_WEIGHT = 15.0
CLEARANCE_WEIGHT = 10.0

GEOGRAPHY_WEIGHT = 40.0
GOVERNMENT_LEVEL_WEIGHT = 30.0
GEOGRAPHIC_PREFERENCE_WEIGHT = 20.0
BUSINESS_SCALE_WEIGHT = 10.0

PAST_PERFORMANCE_WEIGHT = 100.0
CREDIBILITY_WEIGHT = 100.0

# ----------------------------
# Scores
# ----------------------------
INDUSTRY_PRIMARY = 100.0
INDUSTRY_SECONDARY = 80.0
INDUSTRY_GROUP = 60.0      # same 4-digit prefix
INDUSTRY_SECTOR = 40.0     # same 2-digit prefix
INDUSTRY_NO_OVERLAP = 5.0
INDUSTRY_MISSING = 20.0

GEO_SAME_CITY = 100.0
GEO_SAME_STATE = 75.0
GEO_DIFFERENT_STATE = 25.0
GEO_MULTI_LOCATION = 50.0
GEO_MISSING = 40.0

PAST_PERFORMANCE_FLOOR = 30.0
PAST_PERFORMANCE_NARRATIVE = 45.0
PAST_PERFORMANCE_TENURE = 50.0
PAST_PERFORMANCE_GENERAL = 55.0
PAST_PERFORMANCE_GOVERNMENT = 60.0
PAST_PERFORMANCE_RECENT_GOVERNMENT = 75.0
PAST_PERFORMANCE_SAME_LEVEL = 90.0
VALUE_SCALE_BONUS = 10.0
VALUE_SCALE_PENALTY = 15.0
RECENT_YEARS = 3
TENURE_YEARS = 5

# Only an unheld set-aside may score zero
CERTIFICATION_PARTIAL_FLOOR = 10.0
CREDIBILITY_FLOOR = 10.0

# ----------------------------
# Bounds
# ----------------------------
MAX_PROJECTS = 25
MAX_CODES = 20
MAX_CAPABILITIES = 20
MAX_REQUIREMENTS = 10
MAX_TEXT_CHARS = 20000
COMPETENCY_SATURATION = 5

_NO_SET_ASIDE = {"", "NONE", "NA", "NOSETASIDE", "NOTAPPLICABLE"}

# Canonical set-aside code -> accepted spellings (normalized)
SET_ASIDE_ALIASES: Dict[str, Set[str]] = {
    "SBA": {"SBA", "SB", "SMALLBUSINESS", "TOTALSMALLBUSINESS", "SBP"},
    "8A": {"8A", "8AN", "8AC", "8ASOLESOURCE", "8ACOMPETED", "SBA8A"},
    "HUBZONE": {"HUBZONE", "HZC", "HZS", "HUBZONESOLESOURCE"},
    "SDVOSB": {"SDVOSB", "SDVOSBC", "SDVOSBS", "SERVICEDISABLEDVETERANOWNED"},
    "WOSB": {"WOSB", "WOSBSS", "EDWOSB", "EDWOSBSS", "WOMENOWNED"},
    "VOSB": {"VOSB", "VSA", "VSS", "VETERANOWNED"},
}
_ALIAS_LOOKUP = {alias: code for code, aliases in SET_ASIDE_ALIASES.items() for alias in aliases}

# Any socio-economic designation implies small business status
_SMALL_BUSINESS_DESIGNATIONS = {"8A", "HUBZONE", "SDVOSB", "WOSB", "VOSB"}

CLEARANCE_LEVELS = {
    "PUBLICTRUST": 1,
    "CONFIDENTIAL": 2,
    "SECRET": 3,
    "TOPSECRET": 4,
    "TS": 4,
    "TSSCI": 5,
}

_FEDERAL_AGENCY = re.compile(
    r"\b(federal|u\.?s\.?|united states|dod|defense|army|navy|air force|marine corps|gsa|"
    r"general services|homeland security|dhs|veterans affairs|hhs|health and human services|"
    r"treasury|commerce|epa|environmental protection|nasa|national aeronautics|"
    r"small business administration|usda|agriculture|national)\b"
)
_STATE_AGENCY = re.compile(r"\b(state of|state)\b")
_LOCAL_AGENCY = re.compile(r"\b(city|county|municipal|town|village|district|borough|parish)\b")
_GENERIC_FEDERAL = re.compile(r"\b(department of|dept\.? of)\b")

GOVERNMENT_LEVEL_COMPATIBILITY = {
    GovernmentLevel.FEDERAL: {GovernmentLevel.FEDERAL: 100.0, GovernmentLevel.STATE: 60.0, GovernmentLevel.LOCAL: 40.0},
    GovernmentLevel.STATE: {GovernmentLevel.STATE: 100.0, GovernmentLevel.FEDERAL: 60.0, GovernmentLevel.LOCAL: 80.0},
    GovernmentLevel.LOCAL: {GovernmentLevel.LOCAL: 100.0, GovernmentLevel.STATE: 80.0, GovernmentLevel.FEDERAL: 30.0},
}


# ----------------------------
# Helpers
# ----------------------------
def _digits(code: Optional[str]) -> str:
    return re.sub(r"\D", "", code or "")


def _upper(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def _nonempty(values: Iterable[Optional[str]], limit: int) -> List[str]:
    result = []
    for value in values:
        if len(result) >= limit:
            break
        if value and value.strip():
            result.append(value.strip())
    return result


def canonical_set_aside(code: Optional[str]) -> str:
    normalized = normalize_code(code)
    return _ALIAS_LOOKUP.get(normalized, normalized)


def has_set_aside(opportunity: Opportunity) -> bool:
    return normalize_code(opportunity.set_aside) not in _NO_SET_ASIDE


def held_eligibility_codes(profile: Profile) -> Set[str]:
    """Canonical codes the profile can claim: declared set-asides plus active certifications."""
    held = {canonical_set_aside(code) for code in profile.set_asides[:MAX_REQUIREMENTS] if code}
    for cert in profile.certifications[:MAX_REQUIREMENTS]:
        if cert.is_active and cert.type:
            held.add(canonical_set_aside(cert.type))
    held.discard("")
    return held


def _satisfies(held: Set[str], required: str) -> bool:
    if required in held:
        return True
    return required == "SBA" and bool(held & _SMALL_BUSINESS_DESIGNATIONS)


def clearance_rank(level: Optional[str]) -> int:
    normalized = normalize_code(level)
    if not normalized or normalized in _NO_SET_ASIDE:
        return 0
    if "SCI" in normalized:
        return CLEARANCE_LEVELS["TSSCI"]
    if normalized in CLEARANCE_LEVELS:
        return CLEARANCE_LEVELS[normalized]
    if "TOPSECRET" in normalized:
        return CLEARANCE_LEVELS["TOPSECRET"]
    if "SECRET" in normalized:
        return CLEARANCE_LEVELS["SECRET"]
    # Unrecognized but present
    return 1


def classify_government_level(agency: Optional[str]) -> Optional[GovernmentLevel]:
    """Guess FEDERAL/STATE/LOCAL from an agency name. None when there is no agency."""
    text = (agency or "").lower()
    if not text.strip():
        return None
    if _FEDERAL_AGENCY.search(text):
        return GovernmentLevel.FEDERAL
    if _STATE_AGENCY.search(text):
        return GovernmentLevel.STATE
    if _LOCAL_AGENCY.search(text):
        return GovernmentLevel.LOCAL
    if _GENERIC_FEDERAL.search(text):
        return GovernmentLevel.FEDERAL
    return GovernmentLevel.FEDERAL


def _project_level(customer_type: Optional[str], agency: Optional[str]) -> Optional[GovernmentLevel]:
    customer = _upper(customer_type)
    if customer in GovernmentLevel.__members__:
        return GovernmentLevel[customer]
    if customer in ("MILITARY", "GOVERNMENT"):
        return GovernmentLevel.FEDERAL
    if agency:
        return classify_government_level(agency)
    return None


def _opportunity_state(opportunity: Opportunity) -> str:
    if opportunity.state:
        return _upper(opportunity.state)
    if len(opportunity.performance_states) == 1:
        return _upper(opportunity.performance_states[0])
    return ""


# ----------------------------
# Technical capability
# ----------------------------
def evaluate_industry_alignment(profile: Profile, opportunity: Opportunity) -> FactorResult:
    primary = _digits(profile.primary_naics)
    secondary = [_digits(code) for code in profile.secondary_naics[:MAX_CODES] if _digits(code)]
    opportunity_codes = [_digits(code) for code in opportunity.naics_codes[:MAX_CODES] if _digits(code)]
    profile_codes = ([primary] if primary else []) + secondary

    evidence = IndustryEvidence(profile_codes=profile_codes, opportunity_codes=opportunity_codes)

    def _result(score: float, details: str, level: str, matched: Optional[str] = None) -> FactorResult:
        evidence.match_level = level
        evidence.matched_code = matched
        return FactorResult(score=score, weight=INDUSTRY_WEIGHT, details=details, evidence=evidence)

    if not profile_codes or not opportunity_codes:
        return _result(INDUSTRY_MISSING, "NAICS information unavailable", "missing")

    if primary and primary in opportunity_codes:
        return _result(INDUSTRY_PRIMARY, f"Exact match on primary NAICS {primary}", "primary", primary)

    for code in secondary:
        if code in opportunity_codes:
            return _result(INDUSTRY_SECONDARY, f"Match on secondary NAICS {code}", "secondary", code)

    for prefix_len, score, level, label in (
        (4, INDUSTRY_GROUP, "industry_group", "industry group"),
        (2, INDUSTRY_SECTOR, "sector", "sector"),
    ):
        for code in profile_codes:
            prefix = code[:prefix_len]
            if len(prefix) < prefix_len:
                continue
            for opp_code in opportunity_codes:
                if opp_code.startswith(prefix):
                    return _result(score, f"Same NAICS {label} ({prefix})", level, opp_code)

    return _result(INDUSTRY_NO_OVERLAP, "No NAICS overlap", "none")


def evaluate_certification_match(profile: Profile, opportunity: Opportunity) -> FactorResult:
    held = held_eligibility_codes(profile)

    required: List[str] = []
    set_aside_code = canonical_set_aside(opportunity.set_aside) if has_set_aside(opportunity) else None
    if set_aside_code:
        required.append(set_aside_code)
    for cert in opportunity.required_certifications[:MAX_REQUIREMENTS]:
        code = canonical_set_aside(cert)
        if code and code not in required:
            required.append(code)

    matched = [code for code in required if _satisfies(held, code)]
    missing = [code for code in required if code not in matched]
    evidence = CertificationEvidence(required=required, held=sorted(held), missing=missing)

    if not required:
        return FactorResult(
            score=100.0, weight=CERTIFICATION_WEIGHT,
            details="No specific certifications or set-aside required", evidence=evidence,
        )

    if set_aside_code and set_aside_code in missing:
        evidence.set_aside_ineligible = True
        return FactorResult(
            score=0.0, weight=CERTIFICATION_WEIGHT,
            details=f"Not eligible for {set_aside_code} set-aside", evidence=evidence,
        )

    score = max(CERTIFICATION_PARTIAL_FLOOR, float(round_half_up(100.0 * len(matched) / len(required))))
    if missing:
        details = f"Holds {len(matched)} of {len(required)} required certifications (missing: {', '.join(missing)})"
    else:
        details = "Meets all certification and set-aside requirements"
    return FactorResult(score=score, weight=CERTIFICATION_WEIGHT, details=details, evidence=evidence)


def evaluate_competency_alignment(profile: Profile, opportunity: Opportunity) -> FactorResult:
    capabilities = _nonempty(profile.capabilities, MAX_CAPABILITIES)
    text = f"{opportunity.title} {opportunity.description}".lower()[:MAX_TEXT_CHARS]
    evidence = CompetencyEvidence(considered=len(capabilities))

    if not capabilities or not text.strip():
        return FactorResult(
            score=30.0, weight=COMPETENCY_WEIGHT,
            details="Insufficient information to compare competencies", evidence=evidence,
        )

    evidence.matched = [cap for cap in capabilities if cap.lower() in text]
    saturation = min(len(capabilities), COMPETENCY_SATURATION)
    score = clamp(30.0 + 70.0 * len(evidence.matched) / saturation)
    if evidence.matched:
        details = f"Core competencies referenced: {', '.join(evidence.matched[:5])}"
    else:
        details = "No core competencies referenced in the opportunity"
    return FactorResult(score=score, weight=COMPETENCY_WEIGHT, details=details, evidence=evidence)


def evaluate_security_clearance(profile: Profile, opportunity: Opportunity) -> FactorResult:
    required = clearance_rank(opportunity.security_clearance_required)
    held = clearance_rank(profile.security_clearance)
    evidence = ClearanceEvidence(
        required=opportunity.security_clearance_required,
        held=profile.security_clearance,
        sufficient=held >= required,
    )

    if required == 0:
        return FactorResult(score=100.0, weight=CLEARANCE_WEIGHT, details="No clearance required", evidence=evidence)
    if held >= required:
        return FactorResult(score=100.0, weight=CLEARANCE_WEIGHT, details="Clearance requirement met", evidence=evidence)
    if held > 0:
        return FactorResult(
            score=40.0, weight=CLEARANCE_WEIGHT,
            details=f"Clearance below required level ({opportunity.security_clearance_required})",
            evidence=evidence,
        )
    return FactorResult(
        score=10.0, weight=CLEARANCE_WEIGHT,
        details=f"Requires {opportunity.security_clearance_required} clearance", evidence=evidence,
    )


# ----------------------------
# Strategic fit
# ----------------------------
def evaluate_geographic_proximity(profile: Profile, opportunity: Opportunity) -> FactorResult:
    opp_state = _opportunity_state(opportunity)
    evidence = GeographyEvidence(
        profile_state=profile.state,
        profile_city=profile.city,
        opportunity_state=opportunity.state,
        opportunity_city=opportunity.city,
    )

    if opportunity.is_multi_location:
        evidence.match_level = "multi_location"
        return FactorResult(
            score=GEO_MULTI_LOCATION, weight=GEOGRAPHY_WEIGHT,
            details="Nationwide or multi-location performance", evidence=evidence,
        )

    profile_state = _upper(profile.state)
    if not profile_state or not opp_state:
        return FactorResult(
            score=GEO_MISSING, weight=GEOGRAPHY_WEIGHT,
            details="Location information unavailable", evidence=evidence,
        )

    if profile_state == opp_state:
        if profile.city and opportunity.city and profile.city.strip().lower() == opportunity.city.strip().lower():
            evidence.match_level = "same_city"
            return FactorResult(
                score=GEO_SAME_CITY, weight=GEOGRAPHY_WEIGHT,
                details=f"Same city ({opportunity.city}, {opp_state})", evidence=evidence,
            )
        evidence.match_level = "same_state"
        return FactorResult(
            score=GEO_SAME_STATE, weight=GEOGRAPHY_WEIGHT, details=f"Same state ({opp_state})", evidence=evidence,
        )

    evidence.match_level = "different_state"
    return FactorResult(
        score=GEO_DIFFERENT_STATE, weight=GEOGRAPHY_WEIGHT,
        details=f"Different state ({profile_state} vs {opp_state})", evidence=evidence,
    )


def evaluate_government_level(profile: Profile, opportunity: Opportunity) -> FactorResult:
    preferred = list(dict.fromkeys(profile.government_levels))
    level = classify_government_level(opportunity.agency)
    evidence = GovernmentLevelEvidence(opportunity_level=level, preferred_levels=preferred)

    if not preferred:
        return FactorResult(
            score=50.0, weight=GOVERNMENT_LEVEL_WEIGHT,
            details="No government level preferences specified", evidence=evidence,
        )
    if level is None:
        return FactorResult(
            score=50.0, weight=GOVERNMENT_LEVEL_WEIGHT,
            details="Opportunity government level unknown", evidence=evidence,
        )
    if level in preferred:
        return FactorResult(
            score=100.0, weight=GOVERNMENT_LEVEL_WEIGHT,
            details=f"Matches preferred {level.value.lower()} level", evidence=evidence,
        )

    score = max(GOVERNMENT_LEVEL_COMPATIBILITY[p].get(level, 25.0) for p in preferred)
    return FactorResult(
        score=score, weight=GOVERNMENT_LEVEL_WEIGHT,
        details=f"Partial government level fit ({level.value.lower()} opportunity)", evidence=evidence,
    )


def evaluate_geographic_preference(profile: Profile, opportunity: Opportunity) -> FactorResult:
    prefs = profile.geographic_preferences
    opp_state = _opportunity_state(opportunity)
    evidence = GeographicPreferenceEvidence(opportunity_state=opp_state or None)

    if prefs.is_empty:
        return FactorResult(
            score=50.0, weight=GEOGRAPHIC_PREFERENCE_WEIGHT,
            details="No geographic preferences specified", evidence=evidence,
        )

    if not opp_state:
        evidence.preference = "unknown_location"
        return FactorResult(
            score=25.0, weight=GEOGRAPHIC_PREFERENCE_WEIGHT,
            details="Opportunity location information incomplete", evidence=evidence,
        )

    city = (opportunity.city or "").strip().lower()
    preferred_cities = {c.strip().lower() for c in prefs.preferred_cities[:MAX_CODES]}
    checks = (
        ("preferred", 100.0, {_upper(s) for s in prefs.preferred_states[:MAX_CODES]}, "Matches preferred area"),
        ("willing", 75.0, {_upper(s) for s in prefs.willing_states[:MAX_CODES]}, "Matches acceptable area"),
        ("avoid", 0.0, {_upper(s) for s in prefs.avoid_states[:MAX_CODES]}, "Location marked to avoid"),
    )
    if city and city in preferred_cities:
        evidence.preference = "preferred"
        return FactorResult(
            score=100.0, weight=GEOGRAPHIC_PREFERENCE_WEIGHT,
            details=f"Matches preferred city ({opportunity.city})", evidence=evidence,
        )
    for preference, score, states, label in checks:
        if opp_state in states:
            evidence.preference = preference
            return FactorResult(
                score=score, weight=GEOGRAPHIC_PREFERENCE_WEIGHT, details=f"{label} ({opp_state})", evidence=evidence,
            )

    if prefs.work_from_home:
        evidence.preference = "work_from_home"
        return FactorResult(
            score=60.0, weight=GEOGRAPHIC_PREFERENCE_WEIGHT,
            details="Can work from home - location flexible", evidence=evidence,
        )

    evidence.preference = "other"
    return FactorResult(
        score=40.0, weight=GEOGRAPHIC_PREFERENCE_WEIGHT,
        details="No specific preference for this location", evidence=evidence,
    )


def evaluate_business_scale(profile: Profile, opportunity: Opportunity) -> FactorResult:
    value = opportunity.value
    revenue = profile.annual_revenue
    evidence = BusinessScaleEvidence(opportunity_value=value, annual_revenue=revenue)

    if not value or not revenue or value <= 0 or revenue <= 0:
        return FactorResult(
            score=50.0, weight=BUSINESS_SCALE_WEIGHT,
            details="Contract size or company revenue unknown", evidence=evidence,
        )

    ratio = value / revenue
    evidence.value_to_revenue = round(ratio, 3)
    if ratio <= 0.5:
        score, details = 100.0, "Contract size well within company scale"
    elif ratio <= 1.0:
        score, details = 75.0, "Contract size comparable to annual revenue"
    elif ratio <= 3.0:
        score, details = 50.0, "Contract size stretches company scale"
    else:
        score, details = 25.0, "Contract size far exceeds annual revenue"
    return FactorResult(score=score, weight=BUSINESS_SCALE_WEIGHT, details=details, evidence=evidence)


# ----------------------------
# Past performance
# ----------------------------
def evaluate_past_performance(profile: Profile, opportunity: Opportunity) -> FactorResult:
    history = profile.past_performance
    projects = history.key_projects[:MAX_PROJECTS]
    evidence = PastPerformanceEvidence(
        project_count=len(projects),
        years_in_business=history.years_in_business,
    )

    if not projects:
        if history.years_in_business and history.years_in_business >= TENURE_YEARS:
            return FactorResult(
                score=PAST_PERFORMANCE_TENURE, weight=PAST_PERFORMANCE_WEIGHT,
                details=f"{history.years_in_business} years in business, no projects listed", evidence=evidence,
            )
        if history.description and history.description.strip():
            return FactorResult(
                score=PAST_PERFORMANCE_NARRATIVE, weight=PAST_PERFORMANCE_WEIGHT,
                details="Past performance described but no projects listed", evidence=evidence,
            )
        return FactorResult(
            score=PAST_PERFORMANCE_FLOOR, weight=PAST_PERFORMANCE_WEIGHT,
            details="No past performance history provided", evidence=evidence,
        )

    # Recency is anchored to the opportunity (or profile) date so results stay reproducible
    reference = opportunity.response_deadline or profile.updated_at
    opportunity_level = classify_government_level(opportunity.agency)

    government = []
    recent = []
    same_level = []
    for project in projects:
        level = _project_level(project.customer_type, project.agency)
        if level is None:
            continue
        government.append(project)
        if project.completed_year and project.completed_year >= reference.year - RECENT_YEARS:
            recent.append(project)
            if opportunity_level is not None and level == opportunity_level:
                same_level.append(project)

    evidence.government_project_count = len(government)
    evidence.recent_government_project_count = len(recent)

    if same_level:
        score, details = PAST_PERFORMANCE_SAME_LEVEL, "Recent government work with the same agency type"
    elif recent:
        score, details = PAST_PERFORMANCE_RECENT_GOVERNMENT, "Recent government contract experience"
    elif government:
        score, details = PAST_PERFORMANCE_GOVERNMENT, "Government contract experience"
    else:
        score, details = PAST_PERFORMANCE_GENERAL, "General project experience"

    notes: Dict[str, str] = {}
    values = [p.value for p in projects if p.value and p.value > 0]
    opportunity_value = opportunity.value
    if values:
        evidence.largest_project_value = max(values)
    if values and opportunity_value and opportunity_value > 0:
        ratio = max(values) / opportunity_value
        evidence.value_ratio = round(ratio, 3)
        if ratio >= 0.5:
            score += VALUE_SCALE_BONUS
            notes["value_scale"] = "Prior projects of comparable size"
        elif ratio < 0.1:
            score -= VALUE_SCALE_PENALTY
            details += "; contract may exceed capacity shown by prior projects"
            notes["value_scale"] = "Opportunity far larger than prior projects"

    score = clamp(score, PAST_PERFORMANCE_FLOOR, 100.0)
    return FactorResult(
        score=score, weight=PAST_PERFORMANCE_WEIGHT, details=details, evidence=evidence, notes=notes,
    )


# ----------------------------
# Credibility
# ----------------------------
def _filled_ratio(values: Iterable) -> float:
    values = list(values)
    if not values:
        return 0.0
    return 100.0 * sum(1 for v in values if v) / len(values)


def contact_completeness(profile: Profile) -> float:
    return _filled_ratio([profile.contact_name, profile.contact_email, profile.contact_phone, profile.website])


def basic_info_completeness(profile: Profile) -> float:
    return _filled_ratio([profile.company_name, profile.address_line1, profile.city, profile.state, profile.zip_code])


def sam_readiness(profile: Profile) -> float:
    # Registration counts double
    points = (2 if profile.sam_registered else 0) + (1 if profile.uei else 0) + (1 if profile.cage_code else 0)
    return 100.0 * points / 4


def evaluate_credibility(profile: Profile, opportunity: Opportunity) -> FactorResult:
    contact = contact_completeness(profile)
    basic = basic_info_completeness(profile)
    sam = sam_readiness(profile)
    evidence = CredibilityEvidence(contact_completeness=contact, basic_info=basic, sam_readiness=sam)

    parts = []
    for value, label in ((contact, "contact information"), (basic, "company information")):
        if value >= 80:
            parts.append(f"Complete {label}")
        elif value >= 60:
            parts.append(f"Adequate {label}")
        else:
            parts.append(f"Incomplete {label}")
    if sam >= 80:
        parts.append("SAM.gov registered and ready")
    elif sam >= 50:
        parts.append("Partial SAM.gov registration")
    else:
        parts.append("SAM.gov registration incomplete")

    score = clamp(max(CREDIBILITY_FLOOR, contact * 0.40 + basic * 0.27 + sam * 0.33))
    return FactorResult(score=round(score, 2), weight=CREDIBILITY_WEIGHT, details=", ".join(parts), evidence=evidence)
