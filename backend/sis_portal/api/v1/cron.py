"""
Gatilho externo do job diário (cron da plataforma de hospedagem).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sis_portal.api.deps import require_shared_secret
from sis_portal.schemas.ai import DailySummaryResult, DailySummaryRunResponse
from sis_portal.tasks.daily_summaries import run_daily_summaries


router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(require_shared_secret("cron_secret"))],
)


@router.get("/generate-daily-summaries", response_model=DailySummaryRunResponse)
async def generate_daily_summaries() -> DailySummaryRunResponse:
    outcome = await run_daily_summaries()
    return DailySummaryRunResponse(
        total_users=outcome["total_users"],
        results=[DailySummaryResult(**entry) for entry in outcome["results"]],
    )
