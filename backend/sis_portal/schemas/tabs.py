"""
Schemas de abas efetivas, implantação e overrides por organização.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


class EffectiveTabResponse(BaseModel):
    """Aba visível para o usuário dentro de um módulo."""

    model_config = ConfigDict(from_attributes=True)

    tab_name: str
    report_id: Optional[str] = None
    workspace_id: Optional[str] = None
    page_name: Optional[str] = None
    sort_order: int
    source: str


class ModuleTabsResponse(BaseModel):
    module_name: str
    tabs: List[EffectiveTabResponse]


class ModuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    icon: Optional[str] = None
    sort_order: int


class ModuleReportResponse(BaseModel):
    organization_report_id: Optional[UUID] = None
    report_id: str
    workspace_id: Optional[str] = None
    tab_names: List[str]


class PriorityReportDetails(BaseModel):
    id: UUID
    name: Optional[str] = None
    report_id: str
    workspace_id: Optional[str] = None
    template_report_id: UUID


class PriorityReportResponse(BaseModel):
    """Relatório de prioridades imediatas do role primário do usuário."""

    has_role: bool
    role_name: Optional[str] = None
    has_priority_report: bool = False
    is_deployed: bool = False
    message: Optional[str] = None
    report: Optional[PriorityReportDetails] = None


class DeployTabRequest(BaseModel):
    module_name: str = Field(..., min_length=1, max_length=100)
    tab_name: str = Field(..., min_length=1, max_length=255)
    report_id: str = Field(..., min_length=1, max_length=64)
    page_name: str = Field(..., min_length=1, max_length=255)
    template_report_id: Optional[UUID] = None
    sort_order: int = 0

    @field_validator("module_name", "tab_name", "report_id", "page_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class HideTabRequest(BaseModel):
    module_name: str = Field(..., min_length=1, max_length=100)
    tab_name: str = Field(..., min_length=1, max_length=255)
    global_tab_id: Optional[UUID] = None

    @field_validator("module_name", "tab_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class TabOverrideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    module_name: Optional[str] = None
    tab_name: str
    override_mode: str
    hidden_global_tab_id: Optional[UUID] = None
    organization_report_id: Optional[UUID] = None
    page_name: Optional[str] = None
    sort_order: int


class DeployTabResponse(BaseModel):
    success: bool = True
    message: str = "Tab deployed successfully"
    tenant_tab: Optional[TabOverrideResponse] = None
    organization_report_id: UUID
    organization_module_id: UUID


class DeployedReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    template_report_id: UUID
    powerbi_report_id: str
    powerbi_workspace_id: Optional[str] = None
    name: Optional[str] = None
    deployment_status: str
    deployed_at: Optional[datetime] = None
    is_active: bool


class ReportDeploymentItem(BaseModel):
    template_report_id: UUID
    powerbi_report_id: str = Field(..., min_length=1, max_length=64)
    powerbi_workspace_id: Optional[str] = Field(default=None, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)


class DeployReportsRequest(BaseModel):
    deployments: List[ReportDeploymentItem] = Field(..., min_length=1)


class CleanupResponse(BaseModel):
    success: bool = True
    removed: int
