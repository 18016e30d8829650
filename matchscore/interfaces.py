"""
Collaborator Interfaces - abstract bases for the systems the engine talks to.

The engine only depends on these: record storage, task dispatch, usage quota
and best-effort notifications. The LLM provider interface lives in
matchscore.llm.interfaces.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from matchscore.models import FeedbackRecord, MatchScore, Opportunity, Profile

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """
    Persistence for profiles, opportunities, scores and feedback.

    Implementations raise PersistenceError for storage failures and return
    None for missing records; callers decide whether that is NotFoundError.
    """

    @abstractmethod
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    def get_opportunity(self, opportunity_id: str) -> Optional[Opportunity]:
        pass

    @abstractmethod
    def save_score(self, score: MatchScore) -> MatchScore:
        """Insert a new score version. Existing records are never overwritten."""
        pass

    @abstractmethod
    def get_score(self, score_id: str) -> Optional[MatchScore]:
        pass

    @abstractmethod
    def get_recent_scores(self, organization_id: str, since: datetime, limit: int = 100) -> List[MatchScore]:
        """Scores for an organization created at or after `since`, newest first."""
        pass

    @abstractmethod
    def get_score_history(self, profile_id: str, opportunity_id: str) -> List[MatchScore]:
        """Every stored version for a profile/opportunity pair, oldest first."""
        pass

    @abstractmethod
    def get_latest_scores(
        self,
        profile_id: str,
        opportunity_ids: List[str],
        since: datetime,
    ) -> Dict[str, MatchScore]:
        """Newest score per opportunity for one profile, created at or after `since`."""
        pass

    @abstractmethod
    def save_feedback(self, feedback: FeedbackRecord) -> FeedbackRecord:
        pass

    @abstractmethod
    def list_feedback(
        self,
        score_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> List[FeedbackRecord]:
        pass


class TaskTrigger(ABC):
    """Hands work to an out-of-process worker."""

    @abstractmethod
    def enqueue(self, event_name: str, payload: Dict[str, Any]) -> str:
        """Enqueue an event and return a job id."""
        pass


class UsageGuard(ABC):
    """Per-organization quota check."""

    @abstractmethod
    def check_and_consume(self, organization_id: str, resource_type: str, quantity: int = 1) -> bool:
        """
        Consume quota. Returns True when allowed; raises LimitExceededError
        (or returns False) when the organization is over its limit.
        """
        pass


class Notifier(ABC):
    """Delivery of engine events (audit log, high-match alerts)."""

    @abstractmethod
    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        pass


class LoggingNotifier(Notifier):
    """Writes events to the log. Used when no delivery channel is configured."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[{event}] {payload}")


class BestEffortNotifier(Notifier):
    """
    Wraps a Notifier so that delivery failures never reach the scoring path.

    Errors are logged with a traceback and discarded.
    """

    def __init__(self, delegate: Optional[Notifier] = None):
        self.delegate = delegate or LoggingNotifier()

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            self.delegate.notify(event, payload)
        except Exception as e:
            logger.warning(f"Notification '{event}' failed: {e}", exc_info=True)
