from database.repositories.base import BaseRepository
from database.repositories.profile import ProfileRepository, OpportunityRepository
from database.repositories.match import MatchScoreRepository, FeedbackRepository

__all__ = [
    'BaseRepository',
    'ProfileRepository',
    'OpportunityRepository',
    'MatchScoreRepository',
    'FeedbackRepository',
]
