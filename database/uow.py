import contextlib
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker

from database.database import db_session_scope
from database.repositories import (
    FeedbackRepository,
    MatchScoreRepository,
    OpportunityRepository,
    ProfileRepository,
)


@dataclass
class ScoringRepositories:
    session: Session
    profiles: ProfileRepository
    opportunities: OpportunityRepository
    scores: MatchScoreRepository
    feedback: FeedbackRepository


@contextlib.contextmanager
def scoring_uow(session_factory: sessionmaker) -> Iterator[ScoringRepositories]:
    """Per-unit-of-work transaction scope.

    Yields the scoring repositories bound to a fresh Session. Commits on
    success, rolls back on exception, always closes.

    Usage:
        with scoring_uow(session_factory) as repos:
            record = repos.scores.get(score_id)
    """
    with db_session_scope(session_factory) as session:
        yield ScoringRepositories(
            session=session,
            profiles=ProfileRepository(session),
            opportunities=OpportunityRepository(session),
            scores=MatchScoreRepository(session),
            feedback=FeedbackRepository(session),
        )
