"""
Submissions Router - EEM-OMEC Scoring Engine
eem_omec/routers/submissions.py

Read-only passthrough to KoboToolbox:
  GET /api/v1/submissions           paginated listing
  GET /api/v1/submissions/form      form definition
  GET /api/v1/submissions/{id}      one flattened submission
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from eem_omec.config import settings
from eem_omec.core.dependencies import get_kobo_client
from eem_omec.models.scoring import SubmissionPage
from eem_omec.services.kobo_client import KoboToolboxClient

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/submissions", tags=["Submissions"])


@router.get("", response_model=SubmissionPage, summary="List submissions")
async def list_submissions(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.KOBO_PAGE_SIZE, ge=1, le=1000),
    client: KoboToolboxClient = Depends(get_kobo_client),
) -> SubmissionPage:
    return await client.list_submissions(page=page, page_size=page_size)


@router.get("/form", summary="Form definition")
async def get_form(
    client: KoboToolboxClient = Depends(get_kobo_client),
) -> Dict[str, Any]:
    return await client.fetch_form()


@router.get("/{submission_id}", summary="Get one submission, flattened")
async def get_submission(
    submission_id: str,
    client: KoboToolboxClient = Depends(get_kobo_client),
) -> Dict[str, Any]:
    return await client.fetch_submission(submission_id)
