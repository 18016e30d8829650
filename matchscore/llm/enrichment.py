#!/usr/bin/env python3
"""
Semantic Enrichment Client - layers LLM analysis on top of a deterministic score.

Two provider calls per enrichment:
1. Semantic analysis: implicit requirements, competitive landscape, red flags, LLM score
2. Strategic insights: win probability, gaps, teaming, win themes (skipped in fast mode)

Failure handling:
- Provider errors, malformed output, timeouts, cancellation and quota denial
  all return the deterministic score with scoring_method=calculation and
  degraded=True. None of them raise.
- The whole enrichment shares one timeout budget. Each provider call gets the
  remaining budget as its request timeout and the caller stops waiting when
  it runs out.

Hybrid mode moves the overall score toward the LLM score by
hybrid_blend_ratio of the difference, capped at +/- hybrid_max_adjustment
points. The applied delta is stored in enrichment_adjustment and the
deterministic score is always kept alongside.
"""

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from matchscore.config_loader import EnrichmentConfig
from matchscore.exceptions import LimitExceededError, ProviderError, ScoringCancelledError
from matchscore.interfaces import UsageGuard
from matchscore.llm.interfaces import LLMProvider
from matchscore.llm.system_prompts import SEMANTIC_ANALYSIS_SYSTEM_PROMPT, STRATEGIC_INSIGHTS_SYSTEM_PROMPT
from matchscore.models import (
    MatchScore,
    Opportunity,
    Profile,
    ScoringMethod,
    SemanticAnalysis,
    StrategicInsights,
)
from matchscore.utils import CancellationToken, clamp, round_half_up, wait_for

logger = logging.getLogger(__name__)

LLM_RESOURCE_TYPE = "llm_scoring"
MAX_DESCRIPTION_CHARS = 6000

T = TypeVar("T", bound=BaseModel)

_PROFILE_FIELDS = {
    "company_name", "primary_naics", "secondary_naics", "state", "city", "certifications",
    "set_asides", "security_clearance", "government_levels", "capabilities", "past_performance",
    "annual_revenue", "sam_registered",
}


def _profile_context(profile: Profile) -> str:
    return json.dumps(profile.model_dump(mode="json", include=_PROFILE_FIELDS), indent=2)


def _opportunity_context(opportunity: Opportunity) -> str:
    data = opportunity.model_dump(mode="json", exclude={"description"})
    data["description"] = opportunity.description[:MAX_DESCRIPTION_CHARS]
    return json.dumps(data, indent=2)


def _score_context(score: MatchScore) -> str:
    lines = [f"Deterministic overall score: {score.deterministic_score}/100 (confidence {score.confidence})"]
    for key, category in score.categories.items():
        lines.append(f"- {key}: {category.score:g} (weight {category.weight:g}) - {category.details}")
    return "\n".join(lines)


def build_analysis_prompt(profile: Profile, opportunity: Opportunity, score: MatchScore) -> str:
    return (
        f"<PROFILE>\n{_profile_context(profile)}\n</PROFILE>\n\n"
        f"<OPPORTUNITY>\n{_opportunity_context(opportunity)}\n</OPPORTUNITY>\n\n"
        f"<DETERMINISTIC_SCORE>\n{_score_context(score)}\n</DETERMINISTIC_SCORE>\n\n"
        "Analyze the fit."
    )


def build_insights_prompt(
    profile: Profile,
    opportunity: Opportunity,
    score: MatchScore,
    analysis: SemanticAnalysis,
) -> str:
    return (
        f"<PROFILE>\n{_profile_context(profile)}\n</PROFILE>\n\n"
        f"<OPPORTUNITY>\n{_opportunity_context(opportunity)}\n</OPPORTUNITY>\n\n"
        f"<DETERMINISTIC_SCORE>\n{_score_context(score)}\n</DETERMINISTIC_SCORE>\n\n"
        f"<PRIOR_ANALYSIS>\n{analysis.model_dump_json(indent=2)}\n</PRIOR_ANALYSIS>\n\n"
        "Produce the strategy."
    )


class SemanticEnrichmentClient:
    """Enriches deterministic scores with LLM analysis, degrading instead of failing."""

    def __init__(
        self,
        provider: LLMProvider,
        config: Optional[EnrichmentConfig] = None,
        usage_guard: Optional[UsageGuard] = None,
        max_workers: int = 4,
    ):
        self.provider = provider
        self.config = config or EnrichmentConfig()
        self.usage_guard = usage_guard
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrichment")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def hybrid_adjustment(self, deterministic: float, llm_score: float) -> float:
        """Bounded delta applied to the deterministic score in hybrid mode."""
        limit = self.config.hybrid_max_adjustment
        raw = self.config.hybrid_blend_ratio * (llm_score - deterministic)
        return clamp(raw, -limit, limit)

    def enrich(
        self,
        profile: Profile,
        opportunity: Opportunity,
        base_score: MatchScore,
        method: ScoringMethod = ScoringMethod.LLM,
        token: Optional[CancellationToken] = None,
    ) -> MatchScore:
        method = ScoringMethod(method)
        if method == ScoringMethod.CALCULATION:
            return base_score

        started = time.monotonic()
        deadline = started + self.config.timeout_seconds

        try:
            self._consume_quota(base_score.organization_id)

            analysis, cost = self._request(
                SemanticAnalysis,
                SEMANTIC_ANALYSIS_SYSTEM_PROMPT,
                build_analysis_prompt(profile, opportunity, base_score),
                self.config.max_tokens,
                self.config.temperature,
                deadline,
                token,
            )

            insights = None
            if not self.config.fast_mode:
                insights, insights_cost = self._request(
                    StrategicInsights,
                    STRATEGIC_INSIGHTS_SYSTEM_PROMPT,
                    build_insights_prompt(profile, opportunity, base_score, analysis),
                    self.config.insights_max_tokens,
                    self.config.insights_temperature,
                    deadline,
                    token,
                )
                cost += insights_cost
        except LimitExceededError as e:
            return self._degrade(base_score, f"quota_exceeded: {e}", started)
        except ScoringCancelledError:
            return self._degrade(base_score, "cancelled", started)
        except ProviderError as e:
            return self._degrade(base_score, f"provider_error: {e}", started)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        update = {
            "scoring_method": method,
            "semantic_analysis": analysis,
            "strategic_insights": insights,
            "cost_usd": round(base_score.cost_usd + cost, 6),
            "processing_time_ms": base_score.processing_time_ms + elapsed_ms,
            "recommendations": self._merge_recommendations(base_score.recommendations, insights),
            "degraded": False,
            "degradation_reason": None,
        }

        if method == ScoringMethod.HYBRID:
            delta = self.hybrid_adjustment(base_score.deterministic_score, analysis.llm_score)
            overall = int(clamp(round_half_up(base_score.deterministic_score + delta)))
            update["overall_score"] = overall
            update["enrichment_adjustment"] = float(overall - base_score.deterministic_score)

        logger.info(
            f"Enriched score for profile {base_score.profile_id} / opportunity {base_score.opportunity_id} "
            f"({method.value}, {elapsed_ms}ms, ${update['cost_usd']:.4f})"
        )
        return base_score.model_copy(update=update)

    def _consume_quota(self, organization_id: str) -> None:
        if self.usage_guard is None:
            return
        try:
            allowed = self.usage_guard.check_and_consume(organization_id, LLM_RESOURCE_TYPE, 1)
        except LimitExceededError:
            raise
        except Exception as e:
            # Fail closed: no quota answer means no LLM spend
            raise LimitExceededError(f"usage guard unavailable: {e}", resource_type=LLM_RESOURCE_TYPE) from e
        if not allowed:
            raise LimitExceededError(
                f"LLM scoring quota exhausted for organization {organization_id}",
                resource_type=LLM_RESOURCE_TYPE,
            )

    def _request(
        self,
        schema: Type[T],
        system_prompt: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        deadline: float,
        token: Optional[CancellationToken],
    ) -> Tuple[T, float]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderError(f"Enrichment exceeded {self.config.timeout_seconds:g}s timeout")

        future = self._executor.submit(
            self.provider.complete,
            prompt=prompt,
            model=self.config.model,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=remaining,
            system_prompt=system_prompt,
        )
        try:
            completion = wait_for(future, remaining, token)
        except FuturesTimeout as e:
            future.cancel()
            raise ProviderError(f"Enrichment exceeded {self.config.timeout_seconds:g}s timeout") from e
        except ScoringCancelledError:
            future.cancel()
            raise
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"{type(e).__name__}: {e}") from e

        try:
            parsed = schema.model_validate(json.loads(completion.text))
        except ValueError as e:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            raise ProviderError(f"Malformed {schema.__name__} response: {e}") from e
        return parsed, completion.cost_usd

    def _degrade(self, base_score: MatchScore, reason: str, started: float) -> MatchScore:
        logger.warning(
            f"Enrichment degraded to calculation for profile {base_score.profile_id} / "
            f"opportunity {base_score.opportunity_id}: {reason}"
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return base_score.model_copy(update={
            "scoring_method": ScoringMethod.CALCULATION,
            "overall_score": base_score.deterministic_score,
            "degraded": True,
            "degradation_reason": reason,
            "processing_time_ms": base_score.processing_time_ms + elapsed_ms,
        })

    @staticmethod
    def _merge_recommendations(existing: List[str], insights: Optional[StrategicInsights]) -> List[str]:
        merged = list(existing)
        if insights is None:
            return merged
        for gap in insights.critical_gaps:
            if gap.severity in ("DISQUALIFYING", "CRITICAL"):
                merged.append(f"Address {gap.severity.lower()} gap: {gap.gap}")
        for teaming in insights.teaming_recommendations:
            if teaming.urgency == "HIGH":
                merged.append(f"Pursue teaming with a {teaming.partner_type}: {teaming.reason}")
        return list(dict.fromkeys(merged))
