import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select

from database.models import MatchScoreRecord, MatchScoreFeedback
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchScoreRepository(BaseRepository):
    def add(self, record: MatchScoreRecord) -> MatchScoreRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, score_id: str) -> Optional[MatchScoreRecord]:
        return self.db.get(MatchScoreRecord, score_id)

    def get_recent(self, organization_id: str, since: datetime, limit: int = 100) -> List[MatchScoreRecord]:
        stmt = select(MatchScoreRecord).where(
            MatchScoreRecord.organization_id == organization_id,
            MatchScoreRecord.created_at >= since
        ).order_by(MatchScoreRecord.created_at.desc()).limit(limit)
        return self.db.execute(stmt).scalars().all()

    def get_history(self, profile_id: str, opportunity_id: str) -> List[MatchScoreRecord]:
        """Every stored version for a profile/opportunity pair, oldest first."""
        stmt = select(MatchScoreRecord).where(
            MatchScoreRecord.profile_id == profile_id,
            MatchScoreRecord.opportunity_id == opportunity_id
        ).order_by(MatchScoreRecord.created_at.asc())
        return self.db.execute(stmt).scalars().all()

    def get_latest_for_opportunities(
        self,
        profile_id: str,
        opportunity_ids: List[str],
        since: datetime
    ) -> Dict[str, MatchScoreRecord]:
        """Newest record per opportunity for one profile since a cutoff."""
        if not opportunity_ids:
            return {}
        stmt = select(MatchScoreRecord).where(
            MatchScoreRecord.profile_id == profile_id,
            MatchScoreRecord.opportunity_id.in_(opportunity_ids),
            MatchScoreRecord.created_at >= since
        ).order_by(MatchScoreRecord.created_at.desc())

        latest: Dict[str, MatchScoreRecord] = {}
        for record in self.db.execute(stmt).scalars():
            latest.setdefault(record.opportunity_id, record)
        return latest


class FeedbackRepository(BaseRepository):
    def add(self, record: MatchScoreFeedback) -> MatchScoreFeedback:
        self.db.add(record)
        self.db.flush()
        return record

    def list(
        self,
        score_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> List[MatchScoreFeedback]:
        stmt = select(MatchScoreFeedback)
        if score_id is not None:
            stmt = stmt.where(MatchScoreFeedback.match_score_id == score_id)
        if organization_id is not None:
            stmt = stmt.where(MatchScoreFeedback.organization_id == organization_id)
        stmt = stmt.order_by(MatchScoreFeedback.created_at.asc())
        return self.db.execute(stmt).scalars().all()
