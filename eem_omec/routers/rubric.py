"""
Rubric Router - EEM-OMEC Scoring Engine
eem_omec/routers/rubric.py

GET /api/v1/rubric   the admitted rubric rows, in file order
"""

from typing import List

from fastapi import APIRouter, Depends

from eem_omec.config import settings
from eem_omec.core.dependencies import ScoringService, get_scoring_service
from eem_omec.models.scoring import RubricRecord

router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["Rubric"])


@router.get("/rubric", response_model=List[RubricRecord], summary="Rubric rows")
async def get_rubric(
    service: ScoringService = Depends(get_scoring_service),
) -> List[RubricRecord]:
    return [RubricRecord.model_validate(r) for r in service.rubric_records()]
