"""
Feedback Recorder - append-only ratings, comments and bid outcomes on scores.

Recording feedback never changes the score it refers to. It invalidates the
cached entries for that profile/opportunity pair so the next request is
recomputed.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional

from matchscore.cache import ScoreCache
from matchscore.exceptions import NotFoundError, PersistenceError, ValidationError
from matchscore.interfaces import BestEffortNotifier, Notifier, RecordStore
from matchscore.models import FeedbackRecord, Outcome

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 2000

SCORE_BANDS = ((80, "80-100"), (60, "60-79"), (40, "40-59"), (0, "0-39"))


def _score_band(score: int) -> str:
    for floor, label in SCORE_BANDS:
        if score >= floor:
            return label
    return SCORE_BANDS[-1][1]


@dataclass
class CalibrationSummary:
    """Aggregate of feedback for an organization, used to tune weights."""
    organization_id: str
    feedback_count: int = 0
    average_rating: Optional[float] = None
    outcomes: Dict[str, int] = field(default_factory=dict)
    # band -> {"won": n, "decided": n, "win_rate": float}
    win_rate_by_band: Dict[str, Dict[str, float]] = field(default_factory=dict)


class FeedbackRecorder:

    def __init__(self, store: RecordStore, cache: ScoreCache, notifier: Optional[Notifier] = None):
        self.store = store
        self.cache = cache
        self.notifier = notifier if isinstance(notifier, BestEffortNotifier) else BestEffortNotifier(notifier)

    @staticmethod
    def _validate(rating, comment, outcome, actual_value, competitor_count) -> Optional[Outcome]:
        if rating is None and not comment and outcome is None:
            raise ValidationError("Feedback needs a rating, a comment or an outcome")
        if rating is not None:
            if isinstance(rating, bool) or not isinstance(rating, int):
                raise ValidationError(f"Rating must be an integer, got {rating!r}")
            if not MIN_RATING <= rating <= MAX_RATING:
                raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment exceeds {MAX_COMMENT_LENGTH} characters")
        if actual_value is not None and actual_value < 0:
            raise ValidationError("actual_value must be non-negative")
        if competitor_count is not None and competitor_count < 0:
            raise ValidationError("competitor_count must be non-negative")
        if outcome is None:
            return None
        try:
            return Outcome(outcome)
        except ValueError as e:
            raise ValidationError(
                f"Unknown outcome {outcome!r}; expected one of {[o.value for o in Outcome]}"
            ) from e

    def record_feedback(
        self,
        score_id: str,
        organization_id: str,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        outcome=None,
        user_id: Optional[str] = None,
        actual_value: Optional[float] = None,
        competitor_count: Optional[int] = None,
    ) -> FeedbackRecord:
        outcome = self._validate(rating, comment, outcome, actual_value, competitor_count)

        try:
            score = self.store.get_score(score_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to load score {score_id}: {e}") from e
        if score is None or score.organization_id != organization_id:
            raise NotFoundError(f"Match score {score_id} not found")

        record = FeedbackRecord(
            match_score_id=score.id,
            organization_id=organization_id,
            user_id=user_id,
            rating=rating,
            comment=comment,
            outcome=outcome,
            actual_value=actual_value,
            competitor_count=competitor_count,
        )
        try:
            saved = self.store.save_feedback(record)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save feedback for score {score_id}: {e}") from e

        removed = self.cache.invalidate_match(score.organization_id, score.profile_id, score.opportunity_id)
        logger.info(
            f"Recorded feedback {saved.id} on score {score_id} "
            f"(rating={rating}, outcome={outcome.value if outcome else None}); invalidated {removed} cache entries"
        )
        self.notifier.notify("match_score.feedback_recorded", {
            "feedback_id": saved.id,
            "score_id": score_id,
            "organization_id": organization_id,
            "rating": rating,
            "outcome": outcome.value if outcome else None,
        })
        return saved

    def record_outcome(
        self,
        score_id: str,
        organization_id: str,
        outcome,
        notes: Optional[str] = None,
        actual_value: Optional[float] = None,
        competitor_count: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> FeedbackRecord:
        """Record how a bid on the scored opportunity turned out."""
        if outcome is None:
            raise ValidationError("outcome is required")
        return self.record_feedback(
            score_id, organization_id, comment=notes, outcome=outcome, user_id=user_id,
            actual_value=actual_value, competitor_count=competitor_count,
        )

    def calibration_summary(self, organization_id: str) -> CalibrationSummary:
        records = self.store.list_feedback(organization_id=organization_id)
        summary = CalibrationSummary(organization_id=organization_id, feedback_count=len(records))

        ratings = [r.rating for r in records if r.rating is not None]
        if ratings:
            summary.average_rating = round(sum(ratings) / len(ratings), 2)

        summary.outcomes = dict(Counter(r.outcome.value for r in records if r.outcome is not None))

        bands: Dict[str, Dict[str, float]] = {}
        for record in records:
            if record.outcome not in (Outcome.WON, Outcome.LOST):
                continue
            score = self.store.get_score(record.match_score_id)
            if score is None:
                continue
            band = bands.setdefault(_score_band(score.overall_score), {"won": 0, "decided": 0})
            band["decided"] += 1
            if record.outcome == Outcome.WON:
                band["won"] += 1
        for band in bands.values():
            band["win_rate"] = round(band["won"] / band["decided"], 3)
        summary.win_rate_by_band = bands
        return summary
