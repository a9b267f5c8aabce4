"""
Scoring Router - EEM-OMEC Scoring Engine
eem_omec/routers/scoring.py

Endpoints:
  POST /api/v1/scoring                score a submission (inline or by Kobo ID)
  GET  /api/v1/scoring/rules          rubric summary
  POST /api/v1/scoring/rules/reload   re-read the rubric and swap it in
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from eem_omec.config import settings
from eem_omec.core.dependencies import ScoringService, get_scoring_service
from eem_omec.models.scoring import RuleSetResponse, ScoringRequest, ScoringResponse

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/scoring", tags=["Scoring"])


@router.post(
    "",
    response_model=ScoringResponse,
    summary="Score one EEM/OMEC submission",
    description=(
        "Send either `submissionId` (fetched from KoboToolbox) or a full "
        "`submission` object. `submissionId` wins when both are present. "
        "`test: true` only checks that the endpoint is up."
    ),
    responses={
        400: {"description": "Neither submission nor submissionId given"},
        404: {"description": "Submission not found in KoboToolbox"},
        502: {"description": "KoboToolbox unavailable"},
        503: {"description": "Rubric unavailable"},
    },
)
async def score_submission(
    request: ScoringRequest,
    service: ScoringService = Depends(get_scoring_service),
):
    if request.test:
        return JSONResponse(
            content={
                "status": "success",
                "message": "Scoring API endpoint is working",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    if request.submission_id:
        result = await service.evaluate_by_id(request.submission_id)
    elif request.submission is not None:
        result = service.evaluate(request.submission)
    else:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "INVALID_REQUEST",
                "message": "Either submission data or submissionId is required",
            },
        )

    return ScoringResponse(
        result=result,
        validation=service.validate(result),
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/rules",
    response_model=RuleSetResponse,
    summary="Summary of the loaded rubric",
)
async def get_rules_summary(
    service: ScoringService = Depends(get_scoring_service),
) -> RuleSetResponse:
    return RuleSetResponse(summary=service.load_rules(), timestamp=datetime.now(timezone.utc))


@router.post(
    "/rules/reload",
    response_model=RuleSetResponse,
    summary="Reload the rubric",
    description="Re-reads the rubric source. On failure the previous rubric stays active.",
)
async def reload_rules(
    service: ScoringService = Depends(get_scoring_service),
) -> RuleSetResponse:
    return RuleSetResponse(summary=service.reload_rules(), timestamp=datetime.now(timezone.utc))
