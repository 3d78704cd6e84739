"""
Endpoints de super admin para organizações.

Provisionamento, módulos, relatórios implantados e overrides de aba
(deploy-tab / hide-tab / remove-tab) por organização.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import Capability, require_capability
from sis_portal.db.base import get_db
from sis_portal.schemas.organization import (
    OrganizationCreate,
    OrganizationListItem,
    OrganizationListResponse,
    OrganizationResponse,
    OrganizationUpdate,
)
from sis_portal.schemas.tabs import (
    CleanupResponse,
    DeployedReportResponse,
    DeployReportsRequest,
    DeployTabRequest,
    DeployTabResponse,
    EffectiveTabResponse,
    HideTabRequest,
    ModuleResponse,
    ModuleTabsResponse,
    TabOverrideResponse,
)
from sis_portal.services.access_resolver import AccessResolver, get_access_resolver
from sis_portal.services.deployment_service import (
    DeploymentService,
    ReportDeployment,
    get_deployment_service,
)
from sis_portal.services.organization_service import (
    OrganizationService,
    get_organization_service,
)
from sis_portal.services.powerbi_client import PowerBIClient, get_powerbi_client


router = APIRouter(
    prefix="/super-admin/organizations",
    tags=["Super Admin - Organizations"],
    dependencies=[Depends(require_capability(Capability.SUPER_ADMIN))],
)


def _override_payload(tab, module_name: str | None = None) -> TabOverrideResponse:
    payload = TabOverrideResponse.model_validate(tab)
    return payload.model_copy(update={"module_name": module_name})


@router.get("", response_model=OrganizationListResponse, summary="Listar organizações")
async def list_organizations(
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationListResponse:
    rows = await service.list_organizations(db)
    items = [
        OrganizationListItem.model_validate(organization).model_copy(
            update={"user_count": user_count}
        )
        for organization, user_count in rows
    ]
    return OrganizationListResponse(total=len(items), items=items)


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Provisionar organização",
)
async def create_organization(
    payload: OrganizationCreate,
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    organization = await service.create_organization(db, payload.model_dump())
    return OrganizationResponse.model_validate(organization)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    return OrganizationResponse.model_validate(await service.get_organization(db, organization_id))


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: uuid.UUID,
    payload: OrganizationUpdate,
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    organization = await service.update_organization(
        db, organization_id, payload.model_dump(exclude_unset=True)
    )
    return OrganizationResponse.model_validate(organization)


@router.delete("/{organization_id}", response_model=OrganizationResponse, summary="Desativar organização")
async def deactivate_organization(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    organization = await service.deactivate_organization(db, organization_id)
    return OrganizationResponse.model_validate(organization)


@router.get("/{organization_id}/modules", response_model=List[ModuleResponse])
async def list_organization_modules(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    organization_service: OrganizationService = Depends(get_organization_service),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> List[ModuleResponse]:
    await organization_service.get_organization(db, organization_id)
    modules = await resolver.get_modules_for_organization(db, organization_id)
    return [ModuleResponse.model_validate(module) for module in modules]


@router.post("/{organization_id}/modules/initialize", summary="Inicializar módulos do catálogo")
async def initialize_organization_modules(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> dict:
    organization = await service.get_organization(db, organization_id)
    created = await service.initialize_modules(db, organization)
    await db.commit()
    return {"success": True, "modules_created": created}


@router.get(
    "/{organization_id}/modules/{module_name}/tabs",
    response_model=ModuleTabsResponse,
    summary="Abas efetivas do módulo (sem filtro de usuário)",
)
async def get_organization_module_tabs(
    organization_id: uuid.UUID,
    module_name: str,
    db: AsyncSession = Depends(get_db),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> ModuleTabsResponse:
    tabs = await resolver.get_module_tabs_for_tenant(db, organization_id, module_name)
    return ModuleTabsResponse(
        module_name=module_name,
        tabs=[EffectiveTabResponse.model_validate(tab) for tab in tabs],
    )


@router.get("/{organization_id}/tab-overrides", response_model=List[TabOverrideResponse])
async def list_tab_overrides(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> List[TabOverrideResponse]:
    rows = await service.list_overrides(db, organization_id)
    return [_override_payload(tab, module_name) for tab, module_name in rows]


@router.get("/{organization_id}/reports", response_model=List[DeployedReportResponse])
async def list_deployed_reports(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> List[DeployedReportResponse]:
    reports = await service.list_deployed_reports(db, organization_id)
    return [DeployedReportResponse.model_validate(report) for report in reports]


@router.post(
    "/{organization_id}/reports",
    response_model=List[DeployedReportResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Implantar relatórios template",
)
async def deploy_reports(
    organization_id: uuid.UUID,
    payload: DeployReportsRequest,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> List[DeployedReportResponse]:
    deployed = await service.deploy_reports(
        db,
        organization_id,
        [ReportDeployment(**item.model_dump()) for item in payload.deployments],
    )
    return [DeployedReportResponse.model_validate(report) for report in deployed]


@router.post(
    "/{organization_id}/templates/{template_report_id}/deploy",
    response_model=DeployedReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Implantar template no workspace da organização",
)
async def deploy_template_report(
    organization_id: uuid.UUID,
    template_report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> DeployedReportResponse:
    deployment = await service.deploy_template_report(db, organization_id, template_report_id)
    return DeployedReportResponse.model_validate(deployment)


@router.post("/{organization_id}/reports/deploy-tab", response_model=DeployTabResponse)
async def deploy_tab(
    organization_id: uuid.UUID,
    payload: DeployTabRequest,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> DeployTabResponse:
    result = await service.deploy_tab(
        db,
        organization_id=organization_id,
        module_name=payload.module_name,
        tab_name=payload.tab_name,
        report_id=payload.report_id,
        page_name=payload.page_name,
        template_report_id=payload.template_report_id,
        sort_order=payload.sort_order,
    )
    return DeployTabResponse(
        tenant_tab=(
            _override_payload(result.tab, payload.module_name) if result.tab is not None else None
        ),
        organization_report_id=result.organization_report_id,
        organization_module_id=result.organization_module_id,
    )


@router.post("/{organization_id}/reports/hide-tab", response_model=TabOverrideResponse)
async def hide_tab(
    organization_id: uuid.UUID,
    payload: HideTabRequest,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> TabOverrideResponse:
    tab = await service.hide_tab(
        db,
        organization_id=organization_id,
        module_name=payload.module_name,
        tab_name=payload.tab_name,
        global_tab_id=payload.global_tab_id,
    )
    return _override_payload(tab, payload.module_name)


@router.delete("/{organization_id}/reports/remove-tab/{tab_id}")
async def remove_tab(
    organization_id: uuid.UUID,
    tab_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> dict:
    await service.remove_tab_override(db, organization_id, tab_id)
    return {"success": True, "message": "Tab removed successfully"}


@router.post("/{organization_id}/reports/cleanup-duplicates", response_model=CleanupResponse)
async def cleanup_duplicate_tabs(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> CleanupResponse:
    removed = await service.cleanup_duplicate_overrides(db, organization_id)
    return CleanupResponse(removed=removed)


@router.delete("/{organization_id}/reports/{organization_report_id}")
async def undeploy_report(
    organization_id: uuid.UUID,
    organization_report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> dict:
    await service.undeploy_report(db, organization_id, organization_report_id)
    return {"success": True, "message": "Report removed successfully"}


@router.get("/{organization_id}/workspace-reports", summary="Relatórios no workspace PowerBI")
async def list_workspace_reports(
    organization_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    organization_service: OrganizationService = Depends(get_organization_service),
    powerbi: PowerBIClient = Depends(get_powerbi_client),
) -> dict:
    organization = await organization_service.get_organization(db, organization_id)
    if not organization.powerbi_workspace_id:
        return {"workspace_id": None, "reports": []}

    reports = await powerbi.list_workspace_reports(organization.powerbi_workspace_id)
    return {
        "workspace_id": organization.powerbi_workspace_id,
        "reports": [
            {"id": report.get("id"), "name": report.get("name"), "dataset_id": report.get("datasetId")}
            for report in reports
        ],
    }
