from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Boolean, Integer, Float, JSON, Index
from sqlalchemy.orm import relationship

from .base import Base


class MatchScoreRecord(Base):
    """
    One computed score version.

    Rows are insert-only: re-scoring adds a row with a newer created_at and,
    when the algorithm changed, a new algorithm_version. The full MatchScore
    lives in payload; the scalar columns exist for filtering and ordering.
    """
    __tablename__ = 'match_score'

    id = Column(Text, primary_key=True)
    organization_id = Column(Text, nullable=False)
    user_id = Column(Text, nullable=True)
    profile_id = Column(Text, nullable=False)
    opportunity_id = Column(Text, nullable=False)

    overall_score = Column(Integer, nullable=False)
    confidence = Column(Integer, nullable=False)
    algorithm_version = Column(Text, nullable=False)
    scoring_method = Column(Text, nullable=False)
    degraded = Column(Boolean, default=False)

    payload = Column(JSON, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    feedback = relationship("MatchScoreFeedback", back_populates="match_score")

    __table_args__ = (
        Index('ix_match_score_org_created', 'organization_id', 'created_at'),
        Index('ix_match_score_pair', 'profile_id', 'opportunity_id'),
    )


class MatchScoreFeedback(Base):
    """Append-only feedback and bid outcomes for a score."""
    __tablename__ = 'match_score_feedback'

    id = Column(Text, primary_key=True)
    match_score_id = Column(Text, ForeignKey('match_score.id', ondelete='CASCADE'), nullable=False, index=True)
    organization_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=True)

    rating = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    outcome = Column(Text, nullable=True)
    actual_value = Column(Float, nullable=True)
    competitor_count = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    match_score = relationship("MatchScoreRecord", back_populates="feedback")
