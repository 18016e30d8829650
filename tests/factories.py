"""Builders for profiles, opportunities and fake collaborators shared by the test suite."""
import json
import threading
from datetime import datetime, timezone
from typing import List, Optional

from matchscore.interfaces import Notifier, UsageGuard
from matchscore.llm.interfaces import Completion, LLMProvider
from matchscore.models import (
    Certification,
    GeographicPreferences,
    GovernmentLevel,
    Opportunity,
    PastPerformance,
    PastProject,
    Profile,
)

REFERENCE_DATE = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_profile(**overrides) -> Profile:
    """A reasonably complete Virginia IT services profile."""
    data = dict(
        id="profile-1",
        organization_id="org-1",
        company_name="Acme Federal IT",
        primary_naics="541511",
        secondary_naics=["541512"],
        state="VA",
        city="Arlington",
        certifications=[Certification(type="8(a)", status="active")],
        set_asides=["SBA"],
        security_clearance="Secret",
        government_levels=[GovernmentLevel.FEDERAL],
        geographic_preferences=GeographicPreferences(preferred_states=["VA"], willing_states=["MD", "DC"]),
        capabilities=["cloud migration", "cybersecurity", "data analytics"],
        past_performance=PastPerformance(
            description="Fifteen years supporting civilian and defense agencies.",
            years_in_business=15,
            key_projects=[
                PastProject(name="VA cloud", value=2_000_000, customer_type="FEDERAL",
                            agency="Department of Veterans Affairs", completed_year=2024),
                PastProject(name="County portal", value=300_000, customer_type="LOCAL",
                            agency="Fairfax County", completed_year=2019),
            ],
        ),
        contact_name="Jane Doe",
        contact_email="jane@acme.example",
        contact_phone="555-0100",
        website="https://acme.example",
        address_line1="1 Main St",
        zip_code="22201",
        sam_registered=True,
        uei="ABC123DEF456",
        cage_code="1A2B3",
        annual_revenue=10_000_000,
        completeness=90,
        updated_at=REFERENCE_DATE,
    )
    data.update(overrides)
    return Profile(**data)


def make_opportunity(**overrides) -> Opportunity:
    data = dict(
        id="opp-1",
        title="Cloud migration support services",
        agency="Department of Veterans Affairs",
        naics_codes=["541511"],
        state="VA",
        city="Arlington",
        estimated_value=1_500_000,
        response_deadline=REFERENCE_DATE,
        set_aside="SBA",
        description="Provide cloud migration and cybersecurity services for legacy systems.",
    )
    data.update(overrides)
    return Opportunity(**data)


def empty_profile(**overrides) -> Profile:
    data = dict(id="profile-empty", organization_id="org-1", updated_at=REFERENCE_DATE)
    data.update(overrides)
    return Profile(**data)


def empty_opportunity(**overrides) -> Opportunity:
    data = dict(id="opp-empty")
    data.update(overrides)
    return Opportunity(**data)


ANALYSIS_JSON = json.dumps({
    "llm_score": 90,
    "summary": "Strong technical fit",
    "implicit_requirements": ["FedRAMP experience"],
    "hidden_preferences": [],
    "red_flags": [],
    "competitive_landscape": {"likely_incumbent": None, "estimated_competitors": 6, "competitive_factors": []},
})

INSIGHTS_JSON = json.dumps({
    "win_probability": {"percentage": 40, "rationale": "Incumbent advantage"},
    "competitive_advantages": ["8(a) status"],
    "critical_gaps": [{"gap": "No FedRAMP authorization", "severity": "CRITICAL", "mitigation": "Team"}],
    "teaming_recommendations": [{"partner_type": "FedRAMP-authorized CSP", "reason": "Hosting", "urgency": "HIGH"}],
    "win_themes": ["Modernization track record"],
    "discriminators": [],
})


class ScriptedProvider(LLMProvider):
    """Returns queued responses in order; a queued exception is raised instead."""

    def __init__(self, responses: Optional[List] = None, cost_usd: float = 0.001):
        self.responses = list(responses or [ANALYSIS_JSON, INSIGHTS_JSON])
        self.cost_usd = cost_usd
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, prompt, model, max_tokens, temperature, timeout, system_prompt=None, json_mode=True):
        with self._lock:
            self.calls.append({"prompt": prompt, "model": model, "timeout": timeout})
            response = self.responses.pop(0) if self.responses else ANALYSIS_JSON
        if isinstance(response, Exception):
            raise response
        return Completion(text=response, usage={"total_tokens": 100}, cost_usd=self.cost_usd, model=model)


class BlockingProvider(LLMProvider):
    """Blocks until released, to exercise timeouts and cancellation."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Event()

    def complete(self, prompt, model, max_tokens, temperature, timeout, system_prompt=None, json_mode=True):
        self.started.set()
        self.release.wait(5)
        return Completion(text=ANALYSIS_JSON, usage={}, cost_usd=0.0, model=model)


class StaticUsageGuard(UsageGuard):
    def __init__(self, allowed: bool = True, error: Optional[Exception] = None):
        self.allowed = allowed
        self.error = error
        self.calls = []

    def check_and_consume(self, organization_id, resource_type, quantity=1):
        self.calls.append((organization_id, resource_type, quantity))
        if self.error is not None:
            raise self.error
        return self.allowed


class RecordingNotifier(Notifier):
    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [event for event, _ in self.events]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
