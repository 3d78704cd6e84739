"""
Schemas do catálogo global: módulos, abas padrão, relatórios template e
configurações do sistema.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


MODULE_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")


class GlobalModuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=100)
    module_group: Optional[str] = Field(default=None, max_length=100)
    sort_order: int = 0
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not MODULE_NAME_PATTERN.match(normalized):
            raise ValueError("module name must contain only lowercase letters, numbers, '-' and '_'")
        return normalized


class GlobalModuleUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=100)
    module_group: Optional[str] = Field(default=None, max_length=100)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class GlobalModuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    module_group: Optional[str] = None
    sort_order: int
    is_active: bool


class ModuleOrderItem(BaseModel):
    id: UUID
    sort_order: int


class ModuleReorderRequest(BaseModel):
    """Nova ordem de vários módulos."""

    modules: List[ModuleOrderItem] = Field(..., min_length=1)


class ModuleTabCreate(BaseModel):
    module_name: str = Field(..., min_length=1, max_length=100)
    tab_name: str = Field(..., min_length=1, max_length=255)
    sort_order: int = 0
    report_id: UUID
    page_name: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = True

    @field_validator("tab_name")
    @classmethod
    def _strip_tab_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("tab_name is required")
        return stripped


class ModuleTabUpdate(BaseModel):
    module_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    tab_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sort_order: Optional[int] = None
    report_id: Optional[UUID] = None
    page_name: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None


class ModuleTabResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_name: str
    tab_name: str
    sort_order: int
    report_id: Optional[UUID] = None
    page_name: Optional[str] = None
    is_active: bool


class TemplateReportCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    powerbi_report_id: str = Field(..., min_length=1, max_length=64)
    powerbi_workspace_id: Optional[str] = Field(default=None, max_length=64)
    powerbi_dataset_id: Optional[str] = Field(default=None, max_length=64)
    category: Optional[str] = Field(default=None, max_length=100)
    version: Optional[str] = Field(default=None, max_length=50)
    is_template: bool = True
    is_active: bool = True


class TemplateReportUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    powerbi_report_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    powerbi_workspace_id: Optional[str] = Field(default=None, max_length=64)
    powerbi_dataset_id: Optional[str] = Field(default=None, max_length=64)
    category: Optional[str] = Field(default=None, max_length=100)
    version: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class TemplateReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    powerbi_report_id: str
    powerbi_workspace_id: Optional[str] = None
    powerbi_dataset_id: Optional[str] = None
    category: Optional[str] = None
    version: Optional[str] = None
    is_template: bool
    is_active: bool


class ReportPage(BaseModel):
    name: str
    display_name: Optional[str] = None
    order: Optional[int] = None


class SystemSettingsUpdate(BaseModel):
    ai_enabled: Optional[bool] = None
    azure_openai_endpoint: Optional[str] = Field(default=None, max_length=512)
    azure_openai_api_key: Optional[str] = Field(default=None, max_length=512)
    azure_openai_deployment_name: Optional[str] = Field(default=None, max_length=255)
    azure_openai_api_version: Optional[str] = Field(default=None, max_length=50)
    powerbi_master_workspace_id: Optional[str] = Field(default=None, max_length=64)


class SystemSettingsResponse(BaseModel):
    """Configurações do sistema; a chave da API nunca é devolvida."""

    model_config = ConfigDict(from_attributes=True)

    ai_enabled: bool
    azure_openai_endpoint: Optional[str] = None
    azure_openai_deployment_name: Optional[str] = None
    azure_openai_api_version: Optional[str] = None
    azure_openai_api_key_configured: bool = False
    powerbi_master_workspace_id: Optional[str] = None
    updated_at: Optional[datetime] = None
