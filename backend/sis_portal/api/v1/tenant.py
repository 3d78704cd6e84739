"""
Endpoints do portal para usuários autenticados da organização.

Módulos e abas aqui já passam pelo filtro de permissões do usuário.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import (
    Capability,
    get_current_organization,
    get_current_user,
    require_capability,
)
from sis_portal.db.base import get_db
from sis_portal.db.models import GlobalRole, Organization, User
from sis_portal.schemas.tabs import (
    EffectiveTabResponse,
    ModuleReportResponse,
    ModuleResponse,
    ModuleTabsResponse,
    PriorityReportDetails,
    PriorityReportResponse,
)
from sis_portal.schemas.user import UserInfoResponse, UserInfoRole
from sis_portal.services.access_resolver import AccessResolver, get_access_resolver
from sis_portal.services.ai_summary_service import AISummaryService, get_ai_summary_service
from sis_portal.services.user_service import UserService, get_user_service


router = APIRouter(
    prefix="/tenant",
    tags=["Tenant"],
    dependencies=[Depends(require_capability(Capability.AUTHENTICATED))],
)


@router.get("/modules", response_model=List[ModuleResponse], summary="Módulos visíveis")
async def list_modules(
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> List[ModuleResponse]:
    modules = await resolver.get_modules_for_organization(db, organization.id, user=current_user)
    return [ModuleResponse.model_validate(module) for module in modules]


@router.get("/modules/{module_name}/tabs", response_model=ModuleTabsResponse)
async def get_module_tabs(
    module_name: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> ModuleTabsResponse:
    """
    Abas efetivas do módulo para o usuário.

    Lista vazia quando nenhum role do usuário concede abas; 404 quando o
    módulo não está provisionado para a organização.
    """
    tabs = await resolver.get_accessible_tabs_for_user(
        db, organization.id, module_name, current_user
    )
    return ModuleTabsResponse(
        module_name=module_name,
        tabs=[EffectiveTabResponse.model_validate(tab) for tab in tabs],
    )


@router.get("/modules/{module_name}/reports", response_model=List[ModuleReportResponse])
async def get_module_reports(
    module_name: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> List[ModuleReportResponse]:
    reports = await resolver.get_user_reports_for_module(
        db, organization.id, module_name, current_user
    )
    return [ModuleReportResponse(**report) for report in reports]


@router.get("/user-info", response_model=UserInfoResponse)
async def get_user_info(
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserInfoResponse:
    role = None
    if current_user.primary_role_id is not None:
        primary_role = await db.get(GlobalRole, current_user.primary_role_id)
        if primary_role is not None:
            role = UserInfoRole.model_validate(primary_role)

    return UserInfoResponse(
        user_id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        organization_id=organization.id,
        organization_name=organization.name,
        subdomain=organization.subdomain,
        role_id=current_user.primary_role_id,
        role=role,
        role_ids=await service.get_role_ids(db, current_user),
        is_super_admin=current_user.is_super_admin,
        is_tenant_admin=current_user.is_tenant_admin,
    )


@router.get("/priority-report", response_model=PriorityReportResponse)
async def get_priority_report(
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> PriorityReportResponse:
    priority = await resolver.get_priority_report(db, current_user, organization.id)
    report = None
    if priority.deployment is not None:
        report = PriorityReportDetails(
            id=priority.deployment.id,
            name=priority.deployment.name,
            report_id=priority.deployment.powerbi_report_id,
            workspace_id=priority.deployment.powerbi_workspace_id,
            template_report_id=priority.template_report_id,
        )
    return PriorityReportResponse(
        has_role=priority.has_role,
        role_name=priority.role_name,
        has_priority_report=priority.has_priority_report,
        is_deployed=priority.is_deployed,
        message=priority.message,
        report=report,
    )


@router.get("/powerbi-data", summary="Dados do relatório configurado no prompt do role")
async def get_powerbi_data(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AISummaryService = Depends(get_ai_summary_service),
) -> dict:
    return await service.fetch_priority_data(db, current_user)
