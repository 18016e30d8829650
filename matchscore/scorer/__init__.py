#!/usr/bin/env python3
"""
Scoring Module - deterministic, rule-based match scoring.

Public API:
- DeterministicScorer: combines factor evaluators into a MatchScore
- compute_overall_score: weighted category sum with half-up rounding
- resolve_weights: validates caller-supplied category weights
- notification_readiness: checks a score against the notify thresholds

- factors.py: Factor evaluators (industry, geography, certification, past performance, ...)
- recommendations.py: Recommendations and notification readiness
- service.py: DeterministicScorer orchestrator
"""

from matchscore.scorer.recommendations import NotificationReadiness, notification_readiness
from matchscore.scorer.service import DeterministicScorer, compute_overall_score, resolve_weights

__all__ = [
    'DeterministicScorer',
    'compute_overall_score',
    'resolve_weights',
    'NotificationReadiness',
    'notification_readiness',
]
