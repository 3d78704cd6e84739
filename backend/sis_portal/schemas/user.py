"""
Schemas de usuários: convite, manutenção pelo tenant admin, sincronização
com o provedor de identidade e informações do usuário atual.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from sis_portal.db.models.user import USER_STATUSES
from sis_portal.schemas.catalog import GlobalModuleResponse
from sis_portal.schemas.role import RoleResponse, TabIdentity


class UserInvite(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=255)
    is_tenant_admin: bool = False
    role_ids: List[UUID] = Field(default_factory=list)
    primary_role_id: Optional[UUID] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)
    is_tenant_admin: Optional[bool] = None
    primary_role_id: Optional[UUID] = None
    role_ids: Optional[List[UUID]] = None


class UserStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in USER_STATUSES:
            raise ValueError("Invalid status. Must be one of: " + ", ".join(USER_STATUSES))
        return normalized


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: Optional[str] = None
    organization_id: Optional[UUID] = None
    is_super_admin: bool
    is_tenant_admin: bool
    primary_role_id: Optional[UUID] = None
    status: str
    invited_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserWithRoles(UserResponse):
    role_ids: List[UUID] = Field(default_factory=list)


class UserListResponse(BaseModel):
    total: int
    items: List[UserWithRoles]


class UserPermissionsResponse(BaseModel):
    user: UserResponse
    roles: List[RoleResponse]
    modules: List[GlobalModuleResponse]
    tabs: List[TabIdentity]


class SyncUserRequest(BaseModel):
    """Payload enviado pela ação pós-login do provedor de identidade."""

    auth_subject: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=255)
    organization_subdomain: Optional[str] = Field(default=None, max_length=63)
    roles: List[str] = Field(default_factory=list)


class SyncUserResponse(BaseModel):
    success: bool = True
    message: str
    user_id: UUID


class UserInfoRole(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str


class UserInfoResponse(BaseModel):
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    organization_id: Optional[UUID] = None
    organization_name: Optional[str] = None
    subdomain: Optional[str] = None
    role_id: Optional[UUID] = None
    role: Optional[UserInfoRole] = None
    role_ids: List[UUID] = Field(default_factory=list)
    is_super_admin: bool
    is_tenant_admin: bool
