"""
Dependencies - EEM-OMEC Scoring Engine
eem_omec/core/dependencies.py

FastAPI dependency injection for the scoring service and the survey client.
Tests swap these out through app.dependency_overrides.
"""

from functools import lru_cache

from eem_omec.services.kobo_client import KoboToolboxClient
from eem_omec.services.scoring_service import ScoringService, get_scoring_service


@lru_cache()
def get_kobo_client() -> KoboToolboxClient:
    """Get cached KoboToolboxClient instance."""
    return KoboToolboxClient.from_settings()


__all__ = ["ScoringService", "get_scoring_service", "get_kobo_client"]
