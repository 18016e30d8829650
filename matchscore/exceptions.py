#!/usr/bin/env python3
"""
Exceptions raised by the match scoring engine.

Callers can catch MatchScoreError for anything the engine raises on purpose.
ProviderError and LimitExceededError are recovered inside semantic enrichment
and only reach callers that use the provider or usage guard directly.
"""


class MatchScoreError(Exception):
    """Base exception for scoring engine errors."""
    pass


class ValidationError(MatchScoreError):
    """Raised when a request is rejected before any computation starts."""
    pass


class NotFoundError(MatchScoreError):
    """Raised when a profile, opportunity or score does not exist or is not visible."""
    pass


class ProviderError(MatchScoreError):
    """Raised when the LLM provider fails, times out or returns unusable output."""
    pass


class LimitExceededError(MatchScoreError):
    """Raised by a usage guard when an organization is over quota."""

    def __init__(self, message: str, resource_type: str = "", limit: int = 0, used: int = 0):
        super().__init__(message)
        self.resource_type = resource_type
        self.limit = limit
        self.used = used


class PersistenceError(MatchScoreError):
    """Raised when the record store fails to read or write."""
    pass


class ScoringCancelledError(MatchScoreError):
    """Raised when a cancellation token fires or its deadline passes."""
    pass
