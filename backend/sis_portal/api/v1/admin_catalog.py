"""
Endpoints de super admin para o catálogo global.

Módulos globais, abas padrão, relatórios template, configurações do
sistema e prompts de IA.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import Capability, require_capability
from sis_portal.core.errors import InvalidRequestError
from sis_portal.db.base import get_db
from sis_portal.schemas.ai import AIPromptResponse, AIPromptUpsert
from sis_portal.schemas.catalog import (
    GlobalModuleCreate,
    GlobalModuleResponse,
    GlobalModuleUpdate,
    ModuleReorderRequest,
    ModuleTabCreate,
    ModuleTabResponse,
    ModuleTabUpdate,
    ReportPage,
    SystemSettingsResponse,
    SystemSettingsUpdate,
    TemplateReportCreate,
    TemplateReportResponse,
    TemplateReportUpdate,
)
from sis_portal.schemas.tabs import CleanupResponse
from sis_portal.services.ai_summary_service import AISummaryService, get_ai_summary_service
from sis_portal.services.catalog_service import CatalogService, get_catalog_service
from sis_portal.services.deployment_service import DeploymentService, get_deployment_service
from sis_portal.services.powerbi_client import PowerBIClient, get_powerbi_client
from sis_portal.services.role_service import RoleService, get_role_service


router = APIRouter(
    prefix="/super-admin",
    tags=["Super Admin - Catalog"],
    dependencies=[Depends(require_capability(Capability.SUPER_ADMIN))],
)


def _settings_payload(settings_row) -> SystemSettingsResponse:
    payload = SystemSettingsResponse.model_validate(settings_row)
    return payload.model_copy(
        update={"azure_openai_api_key_configured": bool(settings_row.azure_openai_api_key)}
    )


# Módulos globais

@router.get("/global-modules", response_model=List[GlobalModuleResponse])
async def list_global_modules(
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> List[GlobalModuleResponse]:
    return [GlobalModuleResponse.model_validate(module) for module in await service.list_modules(db)]


@router.post(
    "/global-modules",
    response_model=GlobalModuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_global_module(
    payload: GlobalModuleCreate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> GlobalModuleResponse:
    return GlobalModuleResponse.model_validate(await service.create_module(db, payload.model_dump()))


@router.patch("/global-modules", response_model=List[GlobalModuleResponse], summary="Reordenar módulos")
async def reorder_global_modules(
    payload: ModuleReorderRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> List[GlobalModuleResponse]:
    modules = await service.reorder_modules(
        db, [(item.id, item.sort_order) for item in payload.modules]
    )
    return [GlobalModuleResponse.model_validate(module) for module in modules]


@router.patch("/global-modules/{module_id}", response_model=GlobalModuleResponse)
async def update_global_module(
    module_id: uuid.UUID,
    payload: GlobalModuleUpdate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> GlobalModuleResponse:
    module = await service.update_module(db, module_id, payload.model_dump(exclude_unset=True))
    return GlobalModuleResponse.model_validate(module)


@router.delete("/global-modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_global_module(
    module_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    await service.delete_module(db, module_id)


# Abas globais

@router.get("/module-tabs", response_model=List[ModuleTabResponse])
async def list_module_tabs(
    module_name: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> List[ModuleTabResponse]:
    return [ModuleTabResponse.model_validate(tab) for tab in await service.list_tabs(db, module_name)]


@router.post("/module-tabs", response_model=ModuleTabResponse, status_code=status.HTTP_201_CREATED)
async def create_module_tab(
    payload: ModuleTabCreate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> ModuleTabResponse:
    return ModuleTabResponse.model_validate(await service.create_tab(db, payload.model_dump()))


@router.get("/module-tabs/{tab_id}", response_model=ModuleTabResponse)
async def get_module_tab(
    tab_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> ModuleTabResponse:
    return ModuleTabResponse.model_validate(await service.get_tab(db, tab_id))


@router.patch("/module-tabs/{tab_id}", response_model=ModuleTabResponse)
async def update_module_tab(
    tab_id: uuid.UUID,
    payload: ModuleTabUpdate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> ModuleTabResponse:
    tab = await service.update_tab(db, tab_id, payload.model_dump(exclude_unset=True))
    return ModuleTabResponse.model_validate(tab)


@router.delete("/module-tabs/{tab_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module_tab(
    tab_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    await service.delete_tab(db, tab_id)


@router.post("/fix-duplicate-tabs", response_model=CleanupResponse)
async def fix_duplicate_tabs(
    db: AsyncSession = Depends(get_db),
    service: DeploymentService = Depends(get_deployment_service),
) -> CleanupResponse:
    """Remove abas adicionadas que repetem abas globais, em todas as organizações."""
    return CleanupResponse(removed=await service.cleanup_duplicate_overrides(db))


# Relatórios template

@router.get("/reports", response_model=List[TemplateReportResponse])
async def list_reports(
    templates_only: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> List[TemplateReportResponse]:
    reports = await service.list_reports(db, templates_only=templates_only)
    return [TemplateReportResponse.model_validate(report) for report in reports]


@router.post("/reports", response_model=TemplateReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: TemplateReportCreate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> TemplateReportResponse:
    return TemplateReportResponse.model_validate(await service.create_report(db, payload.model_dump()))


@router.get("/reports/{report_id}", response_model=TemplateReportResponse)
async def get_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> TemplateReportResponse:
    return TemplateReportResponse.model_validate(await service.get_report(db, report_id))


@router.patch("/reports/{report_id}", response_model=TemplateReportResponse)
async def update_report(
    report_id: uuid.UUID,
    payload: TemplateReportUpdate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> TemplateReportResponse:
    report = await service.update_report(db, report_id, payload.model_dump(exclude_unset=True))
    return TemplateReportResponse.model_validate(report)


@router.delete("/reports/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    await service.delete_report(db, report_id)


@router.get("/reports/{report_id}/pages", response_model=List[ReportPage])
async def list_report_pages(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
    powerbi: PowerBIClient = Depends(get_powerbi_client),
) -> List[ReportPage]:
    """Páginas do relatório template, lidas do PowerBI."""
    report = await service.get_report(db, report_id)
    workspace_id = report.powerbi_workspace_id
    if not workspace_id:
        workspace_id = (await service.get_settings(db)).powerbi_master_workspace_id
    if not workspace_id:
        raise InvalidRequestError("Report has no PowerBI workspace configured")

    pages = await powerbi.get_report_pages(workspace_id, report.powerbi_report_id)
    return [
        ReportPage(name=page["name"], display_name=page.get("displayName"), order=page.get("order"))
        for page in pages
    ]


# Configurações e prompts de IA

@router.get("/settings", response_model=SystemSettingsResponse)
async def get_system_settings(
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> SystemSettingsResponse:
    return _settings_payload(await service.get_settings(db))


@router.put("/settings", response_model=SystemSettingsResponse)
async def update_system_settings(
    payload: SystemSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
) -> SystemSettingsResponse:
    settings_row = await service.update_settings(db, payload.model_dump(exclude_unset=True))
    return _settings_payload(settings_row)


@router.get("/ai-prompts", response_model=List[AIPromptResponse])
async def list_ai_prompts(
    db: AsyncSession = Depends(get_db),
    service: AISummaryService = Depends(get_ai_summary_service),
) -> List[AIPromptResponse]:
    return [AIPromptResponse.model_validate(prompt) for prompt in await service.list_prompts(db)]


@router.put("/ai-prompts", response_model=AIPromptResponse)
async def save_ai_prompt(
    payload: AIPromptUpsert,
    db: AsyncSession = Depends(get_db),
    service: AISummaryService = Depends(get_ai_summary_service),
    role_service: RoleService = Depends(get_role_service),
) -> AIPromptResponse:
    await role_service.get_role(db, payload.role_id)
    prompt = await service.upsert_prompt(
        db,
        role_id=payload.role_id,
        prompt_text=payload.prompt_text,
        report_id=payload.report_id,
        selected_pages=payload.selected_pages,
        is_active=payload.is_active,
    )
    return AIPromptResponse.model_validate(prompt)
