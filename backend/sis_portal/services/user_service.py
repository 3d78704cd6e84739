"""
Serviço de usuários.

Convites e manutenção de usuários pelo tenant admin, visão de permissões
para super admins e sincronização com o provedor de identidade.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from sis_portal.core.logging import get_logger
from sis_portal.db.base import utcnow
from sis_portal.db.models import (
    GlobalModule,
    GlobalRole,
    Organization,
    RoleModulePermission,
    RoleTabPermission,
    User,
    UserRole,
)
from sis_portal.db.models.user import USER_STATUSES
from sis_portal.services.access_resolver import get_user_role_ids

logger = get_logger(__name__)

# Nomes de role do provedor de identidade que viram flags administrativas
PROVIDER_SUPER_ADMIN_ROLE = "Super Admin"
PROVIDER_TENANT_ADMIN_ROLE = "Tenant Admin"


@dataclass(frozen=True)
class SyncResult:
    user: User
    created: bool


@dataclass(frozen=True)
class UserPermissions:
    user: User
    roles: list[GlobalRole]
    modules: list[GlobalModule]
    tabs: list[tuple[str, str]]


class UserService:
    """Operações de usuário."""

    async def get_user(self, db: AsyncSession, user_id: UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_user_in_organization(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: UUID,
    ) -> User:
        user = await self.get_user(db, user_id)
        if user.organization_id != organization_id:
            raise ForbiddenError("User does not belong to your organization")
        return user

    async def get_role_ids(self, db: AsyncSession, user: User) -> list[UUID]:
        """Roles adicionais do usuário (tabela ``user_roles``)."""
        result = await db.execute(
            select(UserRole.global_role_id).where(UserRole.user_id == user.id)
        )
        return list(result.scalars())

    async def list_organization_users(
        self,
        db: AsyncSession,
        organization_id: UUID,
    ) -> list[tuple[User, list[UUID]]]:
        result = await db.execute(
            select(User).where(User.organization_id == organization_id).order_by(User.email)
        )
        users = list(result.scalars())
        if not users:
            return []

        roles_result = await db.execute(
            select(UserRole.user_id, UserRole.global_role_id).where(
                UserRole.user_id.in_([user.id for user in users])
            )
        )
        roles_by_user: dict[UUID, list[UUID]] = {user.id: [] for user in users}
        for user_id, role_id in roles_result.all():
            roles_by_user[user_id].append(role_id)
        return [(user, roles_by_user[user.id]) for user in users]

    async def _validate_role_ids(self, db: AsyncSession, role_ids: Sequence[UUID]) -> None:
        if not role_ids:
            return
        result = await db.execute(
            select(GlobalRole.id).where(
                GlobalRole.id.in_(role_ids),
                GlobalRole.is_active.is_(True),
            )
        )
        if len(set(result.scalars())) != len(set(role_ids)):
            raise InvalidRequestError("Unknown or inactive role")

    async def _replace_roles(self, db: AsyncSession, user: User, role_ids: Iterable[UUID]) -> None:
        await db.execute(delete(UserRole).where(UserRole.user_id == user.id))
        db.add_all(
            UserRole(user_id=user.id, global_role_id=role_id)
            for role_id in dict.fromkeys(role_ids)
        )

    async def invite_user(
        self,
        db: AsyncSession,
        organization_id: UUID,
        email: str,
        full_name: Optional[str] = None,
        is_tenant_admin: bool = False,
        role_ids: Sequence[UUID] = (),
        primary_role_id: Optional[UUID] = None,
    ) -> User:
        """
        Cria o usuário com status ``invited``.

        O envio do convite por email fica a cargo do provedor de identidade.
        """
        email = email.strip().lower()
        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.first() is not None:
            raise ConflictError("User with this email already exists")

        role_ids = list(role_ids)
        await self._validate_role_ids(db, role_ids + ([primary_role_id] if primary_role_id else []))

        user = User(
            email=email,
            full_name=full_name,
            organization_id=organization_id,
            is_tenant_admin=is_tenant_admin,
            primary_role_id=primary_role_id or (role_ids[0] if role_ids else None),
            status="invited",
            invited_at=utcnow(),
        )
        db.add(user)
        await db.flush()
        await self._replace_roles(db, user, role_ids)
        await db.commit()

        logger.info(
            "user_invited",
            invited_user_id=str(user.id),
            organization_id=str(organization_id),
            roles=len(role_ids),
        )
        return user

    async def update_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: UUID,
        changes: Mapping[str, Any],
    ) -> User:
        user = await self.get_user_in_organization(db, user_id, organization_id)

        if "full_name" in changes:
            user.full_name = changes["full_name"]
        if changes.get("is_tenant_admin") is not None:
            user.is_tenant_admin = changes["is_tenant_admin"]
        if "primary_role_id" in changes:
            if changes["primary_role_id"] is not None:
                await self._validate_role_ids(db, [changes["primary_role_id"]])
            user.primary_role_id = changes["primary_role_id"]
        if changes.get("role_ids") is not None:
            role_ids = list(changes["role_ids"])
            await self._validate_role_ids(db, role_ids)
            await self._replace_roles(db, user, role_ids)

        await db.commit()
        logger.info("user_updated", updated_user_id=str(user.id), fields=sorted(changes))
        return user

    async def set_status(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: UUID,
        status: str,
        acting_user: User,
    ) -> User:
        if status not in USER_STATUSES:
            raise InvalidRequestError(
                "Invalid status. Must be one of: " + ", ".join(USER_STATUSES)
            )
        if user_id == acting_user.id and status != "active":
            raise InvalidRequestError("You cannot change your own status")

        user = await self.get_user_in_organization(db, user_id, organization_id)
        user.status = status
        await db.commit()

        logger.info("user_status_changed", target_user_id=str(user.id), status=status)
        return user

    async def resend_invite(
        self,
        db: AsyncSession,
        user_id: UUID,
        organization_id: UUID,
    ) -> User:
        """Renova ``invited_at`` de um convite ainda pendente."""
        user = await self.get_user_in_organization(db, user_id, organization_id)
        if user.status != "invited":
            raise InvalidRequestError("User is not in invited status")

        user.invited_at = utcnow()
        await db.commit()

        logger.info("user_invite_resent", target_user_id=str(user.id))
        return user

    async def get_permissions(self, db: AsyncSession, user_id: UUID) -> UserPermissions:
        """Roles, módulos e abas efetivamente concedidos ao usuário."""
        user = await self.get_user(db, user_id)
        role_ids = await get_user_role_ids(db, user)
        if not role_ids:
            return UserPermissions(user=user, roles=[], modules=[], tabs=[])

        roles_result = await db.execute(
            select(GlobalRole).where(GlobalRole.id.in_(role_ids)).order_by(GlobalRole.name)
        )
        modules_result = await db.execute(
            select(GlobalModule)
            .join(RoleModulePermission, RoleModulePermission.module_id == GlobalModule.id)
            .where(RoleModulePermission.role_id.in_(role_ids))
            .distinct()
            .order_by(GlobalModule.sort_order, GlobalModule.name)
        )
        tabs_result = await db.execute(
            select(RoleTabPermission.module_name, RoleTabPermission.tab_name)
            .where(RoleTabPermission.role_id.in_(role_ids))
            .distinct()
            .order_by(RoleTabPermission.module_name, RoleTabPermission.tab_name)
        )
        return UserPermissions(
            user=user,
            roles=list(roles_result.scalars()),
            modules=list(modules_result.scalars()),
            tabs=[(module_name, tab_name) for module_name, tab_name in tabs_result.all()],
        )

    async def sync_user(
        self,
        db: AsyncSession,
        auth_subject: str,
        email: str,
        full_name: Optional[str] = None,
        organization_subdomain: Optional[str] = None,
        provider_roles: Sequence[str] = (),
    ) -> SyncResult:
        """
        Cria ou atualiza o usuário a partir do provedor de identidade.

        Usuário existente (por ``auth_subject`` ou email convidado) tem apenas
        email, nome e último login atualizados; flags administrativas só são
        derivadas dos roles do provedor na criação.
        """
        email = email.strip().lower()
        result = await db.execute(select(User).where(User.auth_subject == auth_subject))
        user = result.scalar_one_or_none()
        if user is None:
            # Convite pendente: vincula o subject ao usuário já criado
            invited = await db.execute(
                select(User).where(User.email == email, User.auth_subject.is_(None))
            )
            user = invited.scalar_one_or_none()
            if user is not None:
                user.auth_subject = auth_subject
                if user.status == "invited":
                    user.status = "active"

        if user is not None:
            user.email = email
            if full_name:
                user.full_name = full_name
            user.last_login_at = utcnow()
            await db.commit()
            logger.info("user_synced", synced_user_id=str(user.id), created=False)
            return SyncResult(user=user, created=False)

        organization_id = None
        if organization_subdomain:
            org_result = await db.execute(
                select(Organization.id).where(Organization.subdomain == organization_subdomain)
            )
            organization_id = org_result.scalar_one_or_none()

        user = User(
            auth_subject=auth_subject,
            email=email,
            full_name=full_name,
            organization_id=organization_id,
            is_super_admin=PROVIDER_SUPER_ADMIN_ROLE in provider_roles,
            is_tenant_admin=PROVIDER_TENANT_ADMIN_ROLE in provider_roles,
            status="active",
            last_login_at=utcnow(),
        )
        db.add(user)
        await db.flush()

        role_names = [
            name
            for name in provider_roles
            if name not in (PROVIDER_SUPER_ADMIN_ROLE, PROVIDER_TENANT_ADMIN_ROLE)
        ]
        if role_names and organization_id is not None:
            roles_result = await db.execute(
                select(GlobalRole.id).where(GlobalRole.name.in_(role_names))
            )
            await self._replace_roles(db, user, roles_result.scalars())

        await db.commit()
        logger.info("user_synced", synced_user_id=str(user.id), created=True)
        return SyncResult(user=user, created=True)


def get_user_service() -> UserService:
    """Dependency provider."""

    return UserService()
