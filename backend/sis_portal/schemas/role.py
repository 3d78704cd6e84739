"""
Schemas de roles globais e permissões.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=100)
    parent_role_id: Optional[UUID] = None
    role_level: int = 0
    role_category: Optional[str] = Field(default=None, max_length=100)
    sort_order: int = 0
    priority_report_id: Optional[UUID] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name is required")
        return stripped


class RoleUpdate(BaseModel):
    """Atualização parcial; ``parent_role_id: null`` move o role para a raiz."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(default=None, max_length=100)
    parent_role_id: Optional[UUID] = None
    role_level: Optional[int] = None
    role_category: Optional[str] = Field(default=None, max_length=100)
    sort_order: Optional[int] = None
    priority_report_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    parent_role_id: Optional[UUID] = None
    role_level: int
    role_category: Optional[str] = None
    sort_order: int
    priority_report_id: Optional[UUID] = None
    is_active: bool


class RoleTreeNode(RoleResponse):
    children: List["RoleTreeNode"] = Field(default_factory=list)


class RoleModulesPayload(BaseModel):
    module_ids: List[UUID]


class TabIdentity(BaseModel):
    module_name: str = Field(..., min_length=1, max_length=100)
    tab_name: str = Field(..., min_length=1, max_length=255)


class RoleTabsPayload(BaseModel):
    tabs: List[TabIdentity]


class AssignableRole(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    role_category: Optional[str] = None
    role_level: int


RoleTreeNode.model_rebuild()
