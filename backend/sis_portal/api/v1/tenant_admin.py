"""
Endpoints de tenant admin: usuários e dados da própria organização.

Todas as operações atuam sobre a organização resolvida da requisição
(subdomínio ou organização do usuário).
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.api.deps import (
    Capability,
    get_current_organization,
    get_current_user,
    require_capability,
)
from sis_portal.db.base import get_db
from sis_portal.db.models import Organization, User
from sis_portal.schemas.organization import (
    OrganizationResponse,
    SubscriptionResponse,
    TenantOrganizationUpdate,
)
from sis_portal.schemas.role import AssignableRole
from sis_portal.schemas.user import (
    UserInvite,
    UserListResponse,
    UserResponse,
    UserStatusUpdate,
    UserUpdate,
    UserWithRoles,
)
from sis_portal.services.organization_service import (
    OrganizationService,
    get_organization_service,
)
from sis_portal.services.role_service import RoleService, get_role_service
from sis_portal.services.subscription_tiers import (
    SUBSCRIPTION_TIERS,
    get_pricing_bracket,
    get_tier,
)
from sis_portal.services.user_service import UserService, get_user_service


router = APIRouter(
    prefix="/tenant-admin",
    tags=["Tenant Admin"],
    dependencies=[Depends(require_capability(Capability.TENANT_ADMIN))],
)

# Rotas sob /tenant-admin abertas a qualquer usuário autenticado
roles_router = APIRouter(
    prefix="/tenant-admin",
    tags=["Tenant Admin"],
    dependencies=[Depends(require_capability(Capability.AUTHENTICATED))],
)


async def _user_payload(db: AsyncSession, service: UserService, user: User) -> UserWithRoles:
    role_ids = await service.get_role_ids(db, user)
    return UserWithRoles.model_validate(user).model_copy(update={"role_ids": role_ids})


@router.get("/users", response_model=UserListResponse)
async def list_users(
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserListResponse:
    rows = await service.list_organization_users(db, organization.id)
    items = [
        UserWithRoles.model_validate(user).model_copy(update={"role_ids": role_ids})
        for user, role_ids in rows
    ]
    return UserListResponse(total=len(items), items=items)


@router.post("/users", response_model=UserWithRoles, status_code=status.HTTP_201_CREATED)
async def invite_user(
    payload: UserInvite,
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserWithRoles:
    user = await service.invite_user(
        db,
        organization_id=organization.id,
        email=payload.email,
        full_name=payload.full_name,
        is_tenant_admin=payload.is_tenant_admin,
        role_ids=payload.role_ids,
        primary_role_id=payload.primary_role_id,
    )
    return await _user_payload(db, service, user)


@router.patch("/users/{user_id}", response_model=UserWithRoles)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserWithRoles:
    user = await service.update_user(
        db, user_id, organization.id, payload.model_dump(exclude_unset=True)
    )
    return await _user_payload(db, service, user)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusUpdate,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await service.set_status(
        db,
        user_id=user_id,
        organization_id=organization.id,
        status=payload.status,
        acting_user=current_user,
    )
    return UserResponse.model_validate(user)


@router.get("/organization", response_model=OrganizationResponse)
async def get_organization(
    organization: Organization = Depends(get_current_organization),
) -> OrganizationResponse:
    return OrganizationResponse.model_validate(organization)


@router.patch("/organization", response_model=OrganizationResponse)
async def update_organization(
    payload: TenantOrganizationUpdate,
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    updated = await service.update_organization(
        db, organization.id, payload.model_dump(exclude_unset=True)
    )
    return OrganizationResponse.model_validate(updated)


@router.post("/users/{user_id}/resend-invite", response_model=UserResponse)
async def resend_invite(
    user_id: uuid.UUID,
    organization: Organization = Depends(get_current_organization),
    db: AsyncSession = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await service.resend_invite(db, user_id, organization.id)
    return UserResponse.model_validate(user)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    learner_count: Optional[int] = Query(default=None, ge=0),
    organization: Organization = Depends(get_current_organization),
) -> SubscriptionResponse:
    """Plano da organização; com ``learner_count`` inclui a faixa de preço aplicável."""
    tier = get_tier(organization.subscription_tier)
    bracket = None
    if learner_count is not None:
        bracket = get_pricing_bracket(tier.name, learner_count)
    return SubscriptionResponse(
        organization_id=organization.id,
        organization_name=organization.name,
        subscription_tier=tier.name,
        tier=tier.to_dict(),
        available_tiers=[item.to_dict() for item in SUBSCRIPTION_TIERS.values()],
        learner_count=learner_count,
        pricing_bracket=bracket.to_dict() if bracket is not None else None,
    )


@roles_router.get("/roles/assignable", response_model=List[AssignableRole])
async def list_assignable_roles(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: RoleService = Depends(get_role_service),
) -> List[AssignableRole]:
    """Admins recebem todos os roles ativos; demais usuários, os abaixo do próprio role."""
    roles = await service.assignable_roles(db, current_user)
    return [AssignableRole.model_validate(role) for role in roles]
