"""
Services module for the EEM-OMEC Scoring Engine.
"""

from eem_omec.services.cache import get_cache
from eem_omec.services.redis_cache import RedisCache
from eem_omec.services.scoring_service import ScoringService, get_scoring_service

__all__ = [
    "get_cache",
    "RedisCache",
    "ScoringService",
    "get_scoring_service",
]
