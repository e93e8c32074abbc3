"""
Cache Service Singleton - Innovation Assessment Client
assessment_app/services/cache.py

Provides a singleton Redis cache instance with TTL constants.
Gracefully handles Redis unavailability.
"""
import redis
from typing import Optional
from assessment_app.services.redis_cache import RedisCache
from assessment_app.config import settings

# TTL constants (in seconds)
TTL_APPLICATION = settings.CACHE_TTL_APPLICATION   # loaded application
TTL_STEP_VALIDATION = 60                           # server-side step validation

# Singleton instance
_cache: Optional[RedisCache] = None


def get_cache() -> Optional[RedisCache]:
    """
    Get or create Redis cache instance.

    Returns:
        RedisCache instance if Redis is available, None otherwise.

    Note:
        Returns None if Redis is unavailable, so the session keeps working
        against the remote store without caching.
    """
    global _cache
    if _cache is None:
        try:
            _cache = RedisCache()
            _cache.client.ping()  # Test connection
        except (redis.RedisError, ConnectionError):
            _cache = None
    return _cache


def reset_cache() -> None:
    """
    Reset the cache singleton.

    Useful for testing or when Redis connection needs to be re-established.
    """
    global _cache
    _cache = None
