"""Cache Module - Score caching services."""
from matchscore.cache.backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
    DEFAULT_TTL_SECONDS
)
from matchscore.cache.score_cache import ScoreCache

__all__ = [
    'CacheBackend',
    'MemoryCacheBackend',
    'RedisCacheBackend',
    'ScoreCache',
    'DEFAULT_TTL_SECONDS'
]
