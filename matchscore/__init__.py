"""
Match scoring engine for government contract opportunities.

Scores a business capability profile against a contract opportunity with a
deterministic, explainable algorithm and optionally layers LLM analysis on top.
"""
from matchscore.exceptions import (
    LimitExceededError,
    MatchScoreError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    ScoringCancelledError,
    ValidationError,
)
from matchscore.models import MatchScore, Opportunity, Profile, ScoringMethod
from matchscore.utils import CancellationToken

__version__ = "4.0.0"

__all__ = [
    'MatchScore',
    'Opportunity',
    'Profile',
    'ScoringMethod',
    'CancellationToken',
    'MatchScoreError',
    'ValidationError',
    'NotFoundError',
    'ProviderError',
    'LimitExceededError',
    'PersistenceError',
    'ScoringCancelledError',
]
