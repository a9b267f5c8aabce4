"""
Health Check Router - EEM-OMEC Scoring Engine
eem_omec/routers/health.py

Reports the rubric source, the result cache and the survey API config.
Only the rubric is required: without it nothing can be scored (503).
A missing cache or Kobo token only degrades the service.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Dict
from datetime import datetime, timezone

import redis

from eem_omec.config import settings
from eem_omec.core.dependencies import ScoringService, get_kobo_client, get_scoring_service
from eem_omec.core.exceptions import DataUnavailable
from eem_omec.services.cache import get_cache
from eem_omec.services.kobo_client import KoboToolboxClient

router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["Health"])


#  Schemas


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    dependencies: Dict[str, str]


#  Dependency Health Checks


def check_rubric(service: ScoringService) -> str:
    try:
        rule_set = service.rule_set()
    except DataUnavailable as e:
        return f"unhealthy: {e.reason}"
    return f"healthy ({len(rule_set)} rules, version {rule_set.version})"


def check_cache() -> str:
    if not settings.CACHE_ENABLED:
        return "disabled"
    cache = get_cache()
    if cache is None:
        return "unavailable"
    try:
        cache.ping()
    except redis.RedisError as e:
        return f"unhealthy: {str(e)[:100]}"
    return "healthy"


def check_kobo(client: KoboToolboxClient) -> str:
    if not client.configured:
        return "not configured"
    return f"configured (form {client.form_id})"


#  Main Health Check Route


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "Rubric loaded (cache / Kobo may be degraded)"},
        503: {"description": "Rubric unavailable"},
    },
    summary="Health check",
)
async def health_check(
    service: ScoringService = Depends(get_scoring_service),
    client: KoboToolboxClient = Depends(get_kobo_client),
):
    dependencies = {
        "rubric": check_rubric(service),
        "cache": check_cache(),
        "kobo": check_kobo(client),
    }

    rubric_ok = dependencies["rubric"].startswith("healthy")
    all_ok = rubric_ok and dependencies["cache"] in ("healthy", "disabled") \
        and dependencies["kobo"].startswith("configured")

    response = HealthResponse(
        status="healthy" if all_ok else ("degraded" if rubric_ok else "unhealthy"),
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        dependencies=dependencies,
    )

    if rubric_ok:
        return response
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )
