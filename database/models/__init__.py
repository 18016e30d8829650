from .base import Base
from .records import ProfileRecord, OpportunityRecord
from .match import MatchScoreRecord, MatchScoreFeedback

__all__ = [
    'Base',
    'ProfileRecord',
    'OpportunityRecord',
    'MatchScoreRecord',
    'MatchScoreFeedback',
]
