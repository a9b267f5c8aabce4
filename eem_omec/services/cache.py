"""
Cache Service Singleton - EEM-OMEC Scoring Engine
eem_omec/services/cache.py

Provides a singleton Redis cache instance and the result key layout.
Gracefully handles Redis unavailability.
"""
import redis
from typing import Optional
from eem_omec.services.redis_cache import RedisCache
from eem_omec.config import settings

RESULT_KEY_PREFIX = "scoring"

# Singleton instance
_cache: Optional[RedisCache] = None


def result_key(rule_set_version: str, tier_version: str, submission_id: str) -> str:
    """Results are keyed by rubric and tier table versions so neither change serves stale scores."""
    return f"{RESULT_KEY_PREFIX}:{rule_set_version}:{tier_version}:{submission_id}"


def result_pattern(rule_set_version: str) -> str:
    """Every cached result for one rubric version, whatever the tier table."""
    return f"{RESULT_KEY_PREFIX}:{rule_set_version}:*"


def get_cache() -> Optional[RedisCache]:
    """
    Get or create Redis cache instance.

    Returns:
        RedisCache instance if Redis is available and caching is enabled,
        None otherwise (the engine then runs uncached).
    """
    global _cache
    if not settings.CACHE_ENABLED:
        return None
    if _cache is None:
        try:
            _cache = RedisCache()
            _cache.ping()  # Test connection
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
