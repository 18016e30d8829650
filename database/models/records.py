from sqlalchemy import Column, Text, TIMESTAMP, JSON

from .base import Base


class ProfileRecord(Base):
    """Snapshot of a business capability profile, stored as its JSON payload."""
    __tablename__ = 'match_profile'

    id = Column(Text, primary_key=True)
    organization_id = Column(Text, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)


class OpportunityRecord(Base):
    """Snapshot of a contract opportunity."""
    __tablename__ = 'match_opportunity'

    id = Column(Text, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)
