from typing import Optional

from database.models import ProfileRecord, OpportunityRecord
from database.repositories.base import BaseRepository


class ProfileRepository(BaseRepository):
    def get(self, profile_id: str) -> Optional[ProfileRecord]:
        return self.db.get(ProfileRecord, profile_id)

    def upsert(self, record: ProfileRecord) -> ProfileRecord:
        return self.db.merge(record)


class OpportunityRepository(BaseRepository):
    def get(self, opportunity_id: str) -> Optional[OpportunityRecord]:
        return self.db.get(OpportunityRecord, opportunity_id)

    def upsert(self, record: OpportunityRecord) -> OpportunityRecord:
        return self.db.merge(record)
