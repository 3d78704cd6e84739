"""
Endpoints de super admin para roles globais e suas permissões.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import Capability, require_capability
from sis_portal.db.base import get_db
from sis_portal.schemas.catalog import GlobalModuleResponse
from sis_portal.schemas.role import (
    RoleCreate,
    RoleModulesPayload,
    RoleResponse,
    RoleTabsPayload,
    RoleTreeNode,
    RoleUpdate,
    TabIdentity,
)
from sis_portal.schemas.user import UserPermissionsResponse, UserResponse
from sis_portal.services.role_service import RoleNode, RoleService, get_role_service
from sis_portal.services.user_service import UserService, get_user_service


router = APIRouter(
    prefix="/super-admin",
    tags=["Super Admin - Roles"],
    dependencies=[Depends(require_capability(Capability.SUPER_ADMIN))],
)


def _tree_payload(node: RoleNode) -> RoleTreeNode:
    payload = RoleTreeNode.model_validate(node.role)
    return payload.model_copy(update={"children": [_tree_payload(child) for child in node.children]})


def _tabs_payload(tabs) -> List[TabIdentity]:
    return [TabIdentity(module_name=module_name, tab_name=tab_name) for module_name, tab_name in tabs]


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    active_only: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> List[RoleResponse]:
    return [RoleResponse.model_validate(role) for role in await service.list_roles(db, active_only)]


@router.get("/roles/tree", response_model=List[RoleTreeNode], summary="Hierarquia de roles")
async def get_role_tree(
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> List[RoleTreeNode]:
    return [_tree_payload(node) for node in await service.get_role_tree(db)]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    return RoleResponse.model_validate(await service.create_role(db, payload.model_dump()))


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    return RoleResponse.model_validate(await service.get_role(db, role_id))


@router.patch("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: uuid.UUID,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    role = await service.update_role(db, role_id, payload.model_dump(exclude_unset=True))
    return RoleResponse.model_validate(role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> None:
    await service.delete_role(db, role_id)


@router.get("/roles/{role_id}/modules", response_model=RoleModulesPayload)
async def get_role_modules(
    role_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleModulesPayload:
    return RoleModulesPayload(module_ids=await service.get_module_permissions(db, role_id))


@router.put("/roles/{role_id}/modules", response_model=RoleModulesPayload)
async def set_role_modules(
    role_id: uuid.UUID,
    payload: RoleModulesPayload,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleModulesPayload:
    module_ids = await service.set_module_permissions(db, role_id, payload.module_ids)
    return RoleModulesPayload(module_ids=module_ids)


@router.get("/roles/{role_id}/tabs", response_model=RoleTabsPayload)
async def get_role_tabs(
    role_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleTabsPayload:
    return RoleTabsPayload(tabs=_tabs_payload(await service.get_tab_permissions(db, role_id)))


@router.put("/roles/{role_id}/tabs", response_model=RoleTabsPayload)
async def set_role_tabs(
    role_id: uuid.UUID,
    payload: RoleTabsPayload,
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> RoleTabsPayload:
    tabs = await service.set_tab_permissions(
        db, role_id, [(tab.module_name, tab.tab_name) for tab in payload.tabs]
    )
    return RoleTabsPayload(tabs=_tabs_payload(tabs))


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserPermissionsResponse:
    permissions = await service.get_permissions(db, user_id)
    return UserPermissionsResponse(
        user=UserResponse.model_validate(permissions.user),
        roles=[RoleResponse.model_validate(role) for role in permissions.roles],
        modules=[GlobalModuleResponse.model_validate(module) for module in permissions.modules],
        tabs=_tabs_payload(permissions.tabs),
    )
