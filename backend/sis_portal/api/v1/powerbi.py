"""
Integração PowerBI: embed token para relatórios implantados.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import Capability, get_current_user, require_capability
from sis_portal.core.errors import ForbiddenError
from sis_portal.db.base import get_db
from sis_portal.db.models import OrganizationReport, User
from sis_portal.schemas.ai import EmbedTokenRequest, EmbedTokenResponse
from sis_portal.services.powerbi_client import PowerBIClient, get_powerbi_client


router = APIRouter(
    prefix="/powerbi",
    tags=["PowerBI"],
    dependencies=[Depends(require_capability(Capability.AUTHENTICATED))],
)


@router.post("/embed-token", response_model=EmbedTokenResponse)
async def generate_embed_token(
    payload: EmbedTokenRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    powerbi: PowerBIClient = Depends(get_powerbi_client),
) -> EmbedTokenResponse:
    """
    Embed token de leitura.

    Usuários comuns só recebem token para relatórios implantados na própria
    organização, sempre no workspace registrado na implantação; super admins
    para qualquer relatório.
    """
    workspace_id = payload.workspace_id
    if not current_user.is_super_admin:
        result = await db.execute(
            select(OrganizationReport).where(
                OrganizationReport.organization_id == current_user.organization_id,
                OrganizationReport.powerbi_report_id == payload.report_id,
                OrganizationReport.is_active.is_(True),
            )
        )
        deployment = result.scalars().first()
        if deployment is None:
            raise ForbiddenError("Report not available for your organization")
        workspace_id = deployment.powerbi_workspace_id or workspace_id

    token = await powerbi.generate_embed_token(workspace_id, payload.report_id)
    return EmbedTokenResponse(**token)
