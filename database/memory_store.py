"""In-process RecordStore used when no database is configured, and in tests."""
import threading
from datetime import datetime
from typing import Dict, List, Optional

from matchscore.exceptions import PersistenceError
from matchscore.interfaces import RecordStore
from matchscore.models import FeedbackRecord, MatchScore, Opportunity, Profile


class InMemoryRecordStore(RecordStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._profiles: Dict[str, Profile] = {}
        self._opportunities: Dict[str, Opportunity] = {}
        self._scores: Dict[str, MatchScore] = {}
        self._feedback: List[FeedbackRecord] = []

    def save_profile(self, profile: Profile) -> Profile:
        with self._lock:
            self._profiles[profile.id] = profile
        return profile

    def save_opportunity(self, opportunity: Opportunity) -> Opportunity:
        with self._lock:
            self._opportunities[opportunity.id] = opportunity
        return opportunity

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._lock:
            return self._profiles.get(profile_id)

    def get_opportunity(self, opportunity_id: str) -> Optional[Opportunity]:
        with self._lock:
            return self._opportunities.get(opportunity_id)

    def save_score(self, score: MatchScore) -> MatchScore:
        with self._lock:
            if score.id in self._scores:
                raise PersistenceError(f"Match score {score.id} already exists")
            self._scores[score.id] = score
        return score

    def get_score(self, score_id: str) -> Optional[MatchScore]:
        with self._lock:
            return self._scores.get(score_id)

    def get_recent_scores(self, organization_id: str, since: datetime, limit: int = 100) -> List[MatchScore]:
        with self._lock:
            scores = [
                s for s in self._scores.values()
                if s.organization_id == organization_id and s.created_at >= since
            ]
        scores.sort(key=lambda s: s.created_at, reverse=True)
        return scores[:limit]

    def get_score_history(self, profile_id: str, opportunity_id: str) -> List[MatchScore]:
        with self._lock:
            scores = [
                s for s in self._scores.values()
                if s.profile_id == profile_id and s.opportunity_id == opportunity_id
            ]
        return sorted(scores, key=lambda s: s.created_at)

    def get_latest_scores(
        self,
        profile_id: str,
        opportunity_ids: List[str],
        since: datetime,
    ) -> Dict[str, MatchScore]:
        wanted = set(opportunity_ids)
        latest: Dict[str, MatchScore] = {}
        with self._lock:
            for score in self._scores.values():
                if score.profile_id != profile_id or score.opportunity_id not in wanted:
                    continue
                if score.created_at < since:
                    continue
                current = latest.get(score.opportunity_id)
                if current is None or score.created_at > current.created_at:
                    latest[score.opportunity_id] = score
        return latest

    def save_feedback(self, feedback: FeedbackRecord) -> FeedbackRecord:
        with self._lock:
            self._feedback.append(feedback)
        return feedback

    def list_feedback(
        self,
        score_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> List[FeedbackRecord]:
        with self._lock:
            return [
                f for f in self._feedback
                if (score_id is None or f.match_score_id == score_id)
                and (organization_id is None or f.organization_id == organization_id)
            ]
