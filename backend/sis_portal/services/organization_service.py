"""
Serviço de organizações (tenants).

Provisionamento, listagem e resolução da organização efetiva de uma
requisição (subdomínio ou organização de origem do usuário).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import ConflictError, InvalidRequestError, NotFoundError
from sis_portal.core.logging import get_logger
from sis_portal.db.models import GlobalModule, Organization, OrganizationModule, User

logger = get_logger(__name__)

ORGANIZATION_FIELDS = (
    "name",
    "subdomain",
    "powerbi_workspace_id",
    "powerbi_workspace_name",
    "billing_email",
    "contact_name",
    "subscription_tier",
    "logo_url",
    "is_active",
)


class OrganizationService:
    """Operações sobre organizações."""

    async def _ensure_subdomain_available(
        self,
        db: AsyncSession,
        subdomain: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(Organization.id).where(Organization.subdomain == subdomain)
        if exclude_id is not None:
            query = query.where(Organization.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("Subdomain is already taken")

    async def initialize_modules(self, db: AsyncSession, organization: Organization) -> int:
        """Cria as instâncias de módulo que ainda faltam, a partir do catálogo ativo."""
        existing_result = await db.execute(
            select(OrganizationModule.name).where(
                OrganizationModule.organization_id == organization.id
            )
        )
        existing = set(existing_result.scalars())

        catalog_result = await db.execute(
            select(GlobalModule)
            .where(GlobalModule.is_active.is_(True))
            .order_by(GlobalModule.sort_order, GlobalModule.name)
        )
        created = 0
        for global_module in catalog_result.scalars():
            if global_module.name in existing:
                continue
            db.add(
                OrganizationModule(
                    organization_id=organization.id,
                    global_module_id=global_module.id,
                    name=global_module.name,
                    is_active=True,
                )
            )
            created += 1
        await db.flush()
        return created

    async def create_organization(
        self,
        db: AsyncSession,
        data: Mapping[str, Any],
    ) -> Organization:
        """
        Provisiona uma organização e inicializa seus módulos.

        Raises:
            ConflictError: subdomínio já utilizado
        """
        await self._ensure_subdomain_available(db, data["subdomain"])

        organization = Organization(
            **{key: value for key, value in data.items() if key in ORGANIZATION_FIELDS}
        )
        db.add(organization)
        await db.flush()

        modules = await self.initialize_modules(db, organization)
        await db.commit()

        logger.info(
            "organization_created",
            organization_id=str(organization.id),
            subdomain=organization.subdomain,
            modules_initialized=modules,
        )
        return organization

    async def list_organizations(self, db: AsyncSession) -> list[tuple[Organization, int]]:
        """Organizações com a contagem de usuários."""
        user_counts = (
            select(User.organization_id, func.count(User.id).label("user_count"))
            .group_by(User.organization_id)
            .subquery()
        )
        result = await db.execute(
            select(Organization, func.coalesce(user_counts.c.user_count, 0))
            .outerjoin(user_counts, user_counts.c.organization_id == Organization.id)
            .order_by(Organization.name)
        )
        return [(organization, int(count)) for organization, count in result.all()]

    async def get_organization(self, db: AsyncSession, organization_id: UUID) -> Organization:
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def update_organization(
        self,
        db: AsyncSession,
        organization_id: UUID,
        changes: Mapping[str, Any],
    ) -> Organization:
        organization = await self.get_organization(db, organization_id)

        if "powerbi_workspace_id" in changes or "powerbi_workspace_name" in changes:
            workspace_id = changes.get("powerbi_workspace_id", organization.powerbi_workspace_id)
            workspace_name = changes.get(
                "powerbi_workspace_name", organization.powerbi_workspace_name
            )
            if bool(workspace_id) != bool(workspace_name):
                raise InvalidRequestError(
                    "Both PowerBI Workspace ID and Name must be provided together"
                )

        subdomain = changes.get("subdomain")
        if subdomain and subdomain != organization.subdomain:
            await self._ensure_subdomain_available(db, subdomain, exclude_id=organization.id)

        for key, value in changes.items():
            if key in ORGANIZATION_FIELDS:
                setattr(organization, key, value)
        await db.commit()

        logger.info(
            "organization_updated",
            organization_id=str(organization.id),
            fields=sorted(changes),
        )
        return organization

    async def deactivate_organization(self, db: AsyncSession, organization_id: UUID) -> Organization:
        organization = await self.get_organization(db, organization_id)
        organization.is_active = False
        await db.commit()
        logger.info("organization_deactivated", organization_id=str(organization.id))
        return organization

    async def get_by_subdomain(self, db: AsyncSession, subdomain: str) -> Optional[Organization]:
        result = await db.execute(
            select(Organization).where(Organization.subdomain == subdomain)
        )
        return result.scalar_one_or_none()

    async def resolve_organization(
        self,
        db: AsyncSession,
        subdomain: Optional[str],
        user: User,
    ) -> Organization:
        """
        Organização efetiva da requisição.

        O subdomínio tem prioridade; sem ele vale a organização do usuário.
        Usuários comuns só acessam a própria organização.
        """
        organization: Optional[Organization] = None
        if subdomain:
            organization = await self.get_by_subdomain(db, subdomain)
            if organization is None:
                raise NotFoundError("Organization not found")
            if not user.is_super_admin and organization.id != user.organization_id:
                raise NotFoundError("Organization not found")
        elif user.organization_id is not None:
            organization = await db.get(Organization, user.organization_id)

        if organization is None or not organization.is_active:
            raise NotFoundError("Organization not found")
        return organization


def get_organization_service() -> OrganizationService:
    """Dependency provider."""

    return OrganizationService()
