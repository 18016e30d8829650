"""SQL-backed RecordStore: the persistence adapter used when a database URL is configured."""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from database.models import MatchScoreFeedback, MatchScoreRecord, OpportunityRecord, ProfileRecord
from database.uow import scoring_uow
from matchscore.exceptions import PersistenceError
from matchscore.interfaces import RecordStore
from matchscore.models import FeedbackRecord, MatchScore, Opportunity, Outcome, Profile

logger = logging.getLogger(__name__)


def _to_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo, so everything is stored and compared as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlRecordStore(RecordStore):

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Profiles and opportunities
    # ------------------------------------------------------------------
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        try:
            with scoring_uow(self.session_factory) as repos:
                record = repos.profiles.get(profile_id)
                return Profile.model_validate(record.payload) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load profile {profile_id}: {e}") from e

    def save_profile(self, profile: Profile) -> Profile:
        try:
            with scoring_uow(self.session_factory) as repos:
                repos.profiles.upsert(ProfileRecord(
                    id=profile.id,
                    organization_id=profile.organization_id,
                    payload=profile.model_dump(mode="json"),
                    updated_at=_to_utc(profile.updated_at),
                ))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save profile {profile.id}: {e}") from e
        return profile

    def get_opportunity(self, opportunity_id: str) -> Optional[Opportunity]:
        try:
            with scoring_uow(self.session_factory) as repos:
                record = repos.opportunities.get(opportunity_id)
                return Opportunity.model_validate(record.payload) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load opportunity {opportunity_id}: {e}") from e

    def save_opportunity(self, opportunity: Opportunity) -> Opportunity:
        try:
            with scoring_uow(self.session_factory) as repos:
                repos.opportunities.upsert(OpportunityRecord(
                    id=opportunity.id,
                    payload=opportunity.model_dump(mode="json"),
                    updated_at=datetime.now(timezone.utc),
                ))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save opportunity {opportunity.id}: {e}") from e
        return opportunity

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------
    def save_score(self, score: MatchScore) -> MatchScore:
        try:
            with scoring_uow(self.session_factory) as repos:
                if repos.scores.get(score.id) is not None:
                    raise PersistenceError(f"Match score {score.id} already exists")
                repos.scores.add(MatchScoreRecord(
                    id=score.id,
                    organization_id=score.organization_id,
                    user_id=score.user_id,
                    profile_id=score.profile_id,
                    opportunity_id=score.opportunity_id,
                    overall_score=score.overall_score,
                    confidence=score.confidence,
                    algorithm_version=score.algorithm_version,
                    scoring_method=score.scoring_method.value,
                    degraded=score.degraded,
                    payload=score.model_dump(mode="json"),
                    created_at=_to_utc(score.created_at),
                ))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save score {score.id}: {e}") from e
        return score

    def get_score(self, score_id: str) -> Optional[MatchScore]:
        try:
            with scoring_uow(self.session_factory) as repos:
                record = repos.scores.get(score_id)
                return MatchScore.model_validate(record.payload) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load score {score_id}: {e}") from e

    def get_recent_scores(self, organization_id: str, since: datetime, limit: int = 100) -> List[MatchScore]:
        try:
            with scoring_uow(self.session_factory) as repos:
                records = repos.scores.get_recent(organization_id, _to_utc(since), limit)
                return [MatchScore.model_validate(r.payload) for r in records]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list recent scores for {organization_id}: {e}") from e

    def get_score_history(self, profile_id: str, opportunity_id: str) -> List[MatchScore]:
        try:
            with scoring_uow(self.session_factory) as repos:
                records = repos.scores.get_history(profile_id, opportunity_id)
                return [MatchScore.model_validate(r.payload) for r in records]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load score history: {e}") from e

    def get_latest_scores(
        self,
        profile_id: str,
        opportunity_ids: List[str],
        since: datetime,
    ) -> Dict[str, MatchScore]:
        try:
            with scoring_uow(self.session_factory) as repos:
                records = repos.scores.get_latest_for_opportunities(profile_id, opportunity_ids, _to_utc(since))
                return {opp_id: MatchScore.model_validate(r.payload) for opp_id, r in records.items()}
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load latest scores for profile {profile_id}: {e}") from e

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------
    def save_feedback(self, feedback: FeedbackRecord) -> FeedbackRecord:
        try:
            with scoring_uow(self.session_factory) as repos:
                repos.feedback.add(MatchScoreFeedback(
                    id=feedback.id,
                    match_score_id=feedback.match_score_id,
                    organization_id=feedback.organization_id,
                    user_id=feedback.user_id,
                    rating=feedback.rating,
                    comment=feedback.comment,
                    outcome=feedback.outcome.value if feedback.outcome else None,
                    actual_value=feedback.actual_value,
                    competitor_count=feedback.competitor_count,
                    created_at=_to_utc(feedback.created_at),
                ))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save feedback {feedback.id}: {e}") from e
        return feedback

    def list_feedback(
        self,
        score_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> List[FeedbackRecord]:
        try:
            with scoring_uow(self.session_factory) as repos:
                return [self._to_feedback(r) for r in repos.feedback.list(score_id, organization_id)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list feedback: {e}") from e

    @staticmethod
    def _to_feedback(record: MatchScoreFeedback) -> FeedbackRecord:
        return FeedbackRecord(
            id=record.id,
            match_score_id=record.match_score_id,
            organization_id=record.organization_id,
            user_id=record.user_id,
            rating=record.rating,
            comment=record.comment,
            outcome=Outcome(record.outcome) if record.outcome else None,
            actual_value=record.actual_value,
            competitor_count=record.competitor_count,
            created_at=_to_utc(record.created_at),
        )
