"""
Resumos diários gerados por IA.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import Capability, get_current_user, require_capability
from sis_portal.db.base import get_db
from sis_portal.db.models import User
from sis_portal.schemas.ai import GenerateSummaryRequest, SummaryResponse
from sis_portal.services.ai_summary_service import AISummaryService, get_ai_summary_service


router = APIRouter(
    prefix="/ai",
    tags=["AI"],
    dependencies=[Depends(require_capability(Capability.AUTHENTICATED))],
)


@router.post("/generate-summary", response_model=SummaryResponse)
async def generate_summary(
    payload: GenerateSummaryRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AISummaryService = Depends(get_ai_summary_service),
) -> SummaryResponse:
    summary = await service.generate_summary(
        db,
        current_user,
        role_id=payload.role_id,
        priorities_data=payload.priorities_data,
        fetch_powerbi_data=payload.fetch_powerbi_data,
    )
    return SummaryResponse.model_validate(summary)


@router.get("/summaries/latest", response_model=Optional[SummaryResponse])
async def get_latest_summary(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AISummaryService = Depends(get_ai_summary_service),
) -> Optional[SummaryResponse]:
    summary = await service.latest_summary(db, current_user)
    if summary is None:
        return None
    return SummaryResponse.model_validate(summary)
