"""
Resolução de acesso a módulos e abas.

Três camadas determinam o que um usuário vê dentro de um módulo:

1. Abas globais padrão do módulo (``module_tabs``);
2. Overrides da organização (``tenant_module_tabs``): esconder ou adicionar;
3. Permissões de aba dos roles do usuário (primário + adicionais).

As duas primeiras camadas são combinadas por ``resolve_tenant_tabs`` e a
terceira por ``filter_by_permissions``, ambas puras. ``AccessResolver``
carrega os dados do banco e aplica as funções.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Collection, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import ModuleNotFoundForOrganization
from sis_portal.core.logging import get_logger
from sis_portal.db.models import (
    GlobalModule,
    GlobalRole,
    ModuleTab,
    OrganizationModule,
    OrganizationReport,
    RoleModulePermission,
    RoleTabPermission,
    TenantModuleTab,
    User,
    UserRole,
)
from sis_portal.services.tab_overrides import AddedOverride, HiddenOverride, TabOverride, tab_identity

logger = get_logger(__name__)

SOURCE_GLOBAL = "global"
SOURCE_TENANT = "tenant"


@dataclass(frozen=True)
class EffectiveTab:
    """Aba efetiva de um módulo para uma organização."""

    tab_name: str
    sort_order: int
    page_name: Optional[str]
    source: str
    tab_id: Optional[UUID] = None
    template_report_id: Optional[UUID] = None
    organization_report_id: Optional[UUID] = None
    report_id: Optional[str] = None
    workspace_id: Optional[str] = None

    @property
    def identity(self) -> str:
        return tab_identity(self.tab_name)


@dataclass(frozen=True)
class PriorityReport:
    """Relatório prioritário do role primário e sua implantação na organização."""

    has_role: bool
    role_name: Optional[str] = None
    has_priority_report: bool = False
    template_report_id: Optional[UUID] = None
    deployment: Optional[OrganizationReport] = None

    @property
    def is_deployed(self) -> bool:
        return self.deployment is not None

    @property
    def message(self) -> Optional[str]:
        if not self.has_role:
            return "No primary role assigned. Please contact your administrator."
        if not self.has_priority_report:
            return f"No Immediate Priorities report configured for {self.role_name} role."
        if not self.is_deployed:
            return (
                f"{self.role_name} Immediate Priorities report is not deployed "
                "to your organization yet."
            )
        return None


@dataclass(frozen=True)
class ModuleSummary:
    id: UUID
    name: str
    display_name: str
    icon: Optional[str]
    sort_order: int
    global_module_id: Optional[UUID]


def resolve_tenant_tabs(
    global_tabs: Iterable[ModuleTab],
    overrides: Iterable[TabOverride],
) -> list[EffectiveTab]:
    """
    Combina abas globais e overrides da organização.

    Resultado: (globais ativas - escondidas) + adicionadas, sem identidades
    repetidas. Uma aba adicionada substitui a global de mesma identidade.
    Uma aba global é escondida pela identidade ou pelo ``global_tab_id`` do
    override, que continua valendo depois de a aba global ser renomeada.
    Ordenado por ``sort_order``; empates mantêm globais antes das adicionadas.
    """
    hidden: set[str] = set()
    hidden_ids: set[UUID] = set()
    added: dict[str, AddedOverride] = {}
    for override in overrides:
        if isinstance(override, HiddenOverride):
            hidden.add(override.identity)
            if override.global_tab_id is not None:
                hidden_ids.add(override.global_tab_id)
        elif isinstance(override, AddedOverride):
            added.setdefault(override.identity, override)

    ordered_globals = sorted(
        (tab for tab in global_tabs if tab.is_active is not False),
        key=lambda tab: tab.sort_order or 0,
    )

    effective: list[EffectiveTab] = []
    seen: set[str] = set()
    for tab in ordered_globals:
        identity = tab_identity(tab.tab_name)
        if tab.id in hidden_ids or identity in hidden:
            continue
        if identity in added or identity in seen:
            continue
        seen.add(identity)
        effective.append(
            EffectiveTab(
                tab_name=tab.tab_name,
                sort_order=tab.sort_order or 0,
                page_name=tab.page_name,
                source=SOURCE_GLOBAL,
                tab_id=tab.id,
                template_report_id=tab.report_id,
            )
        )

    for identity, override in added.items():
        effective.append(
            EffectiveTab(
                tab_name=override.tab_name,
                sort_order=override.sort_order,
                page_name=override.page_name,
                source=SOURCE_TENANT,
                organization_report_id=override.organization_report_id,
            )
        )

    return sorted(effective, key=lambda tab: tab.sort_order)


def filter_by_permissions(
    tabs: Sequence[EffectiveTab],
    permitted_identities: Collection[str],
) -> list[EffectiveTab]:
    """Mantém apenas abas concedidas; sem permissões o resultado é vazio."""
    permitted = {tab_identity(name) for name in permitted_identities}
    if not permitted:
        return []
    return [tab for tab in tabs if tab.identity in permitted]


async def get_user_role_ids(db: AsyncSession, user: User) -> list[UUID]:
    """Role primário seguido dos roles adicionais, sem repetição."""
    result = await db.execute(
        select(UserRole.global_role_id).where(UserRole.user_id == user.id)
    )
    role_ids: list[UUID] = []
    if user.primary_role_id is not None:
        role_ids.append(user.primary_role_id)
    for role_id in result.scalars():
        if role_id not in role_ids:
            role_ids.append(role_id)
    return role_ids


class AccessResolver:
    """Resolve módulos e abas visíveis por organização e por usuário."""

    async def get_organization_module(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
    ) -> OrganizationModule:
        result = await db.execute(
            select(OrganizationModule).where(
                OrganizationModule.organization_id == organization_id,
                OrganizationModule.name == module_name,
                OrganizationModule.is_active.is_(True),
            )
        )
        org_module = result.scalar_one_or_none()
        if org_module is None:
            raise ModuleNotFoundForOrganization(module_name)
        return org_module

    async def get_module_tabs_for_tenant(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
    ) -> list[EffectiveTab]:
        """
        Abas efetivas do módulo para a organização, sem filtro de usuário.

        Raises:
            ModuleNotFoundForOrganization: módulo ausente ou inativo
        """
        org_module = await self.get_organization_module(db, organization_id, module_name)

        global_result = await db.execute(
            select(ModuleTab).where(
                ModuleTab.module_name == org_module.name,
                ModuleTab.is_active.is_(True),
            )
        )
        override_result = await db.execute(
            select(TenantModuleTab).where(
                TenantModuleTab.organization_id == organization_id,
                TenantModuleTab.module_id == org_module.id,
            )
        )
        overrides = [row.to_override() for row in override_result.scalars()]
        tabs = resolve_tenant_tabs(global_result.scalars().all(), overrides)
        return await self._attach_reports(db, organization_id, tabs)

    async def _attach_reports(
        self,
        db: AsyncSession,
        organization_id: UUID,
        tabs: list[EffectiveTab],
    ) -> list[EffectiveTab]:
        if not tabs:
            return tabs

        result = await db.execute(
            select(OrganizationReport).where(
                OrganizationReport.organization_id == organization_id,
                OrganizationReport.is_active.is_(True),
            )
        )
        deployments = result.scalars().all()
        by_id = {row.id: row for row in deployments}
        by_template = {row.template_report_id: row for row in deployments}

        attached: list[EffectiveTab] = []
        for tab in tabs:
            if tab.source == SOURCE_TENANT:
                deployment = by_id.get(tab.organization_report_id)
            else:
                deployment = by_template.get(tab.template_report_id)

            if deployment is None:
                attached.append(tab)
                continue
            attached.append(
                replace(
                    tab,
                    organization_report_id=deployment.id,
                    report_id=deployment.powerbi_report_id,
                    workspace_id=deployment.powerbi_workspace_id,
                )
            )
        return attached

    async def get_accessible_tab_identities(
        self,
        db: AsyncSession,
        user: User,
        module_name: str,
    ) -> set[str]:
        """União das abas concedidas a todos os roles do usuário no módulo."""
        role_ids = await get_user_role_ids(db, user)
        if not role_ids:
            return set()

        result = await db.execute(
            select(RoleTabPermission.tab_name).where(
                RoleTabPermission.role_id.in_(role_ids),
                RoleTabPermission.module_name == module_name,
            )
        )
        return {tab_identity(name) for name in result.scalars()}

    async def get_accessible_tabs_for_user(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
        user: User,
    ) -> list[EffectiveTab]:
        tabs = await self.get_module_tabs_for_tenant(db, organization_id, module_name)
        permitted = await self.get_accessible_tab_identities(db, user, module_name)
        accessible = filter_by_permissions(tabs, permitted)

        logger.debug(
            "tabs_resolved",
            module_name=module_name,
            tenant_tabs=len(tabs),
            accessible_tabs=len(accessible),
        )
        return accessible

    async def get_modules_for_organization(
        self,
        db: AsyncSession,
        organization_id: UUID,
        user: Optional[User] = None,
    ) -> list[ModuleSummary]:
        """
        Módulos ativos da organização.

        Com ``user`` informado, usuários comuns só veem módulos concedidos a
        algum de seus roles; admins veem todos.
        """
        result = await db.execute(
            select(OrganizationModule, GlobalModule)
            .outerjoin(GlobalModule, OrganizationModule.global_module_id == GlobalModule.id)
            .where(
                OrganizationModule.organization_id == organization_id,
                OrganizationModule.is_active.is_(True),
            )
        )
        rows = [
            (org_module, global_module)
            for org_module, global_module in result.all()
            if global_module is None or global_module.is_active
        ]

        if user is not None and not (user.is_super_admin or user.is_tenant_admin):
            role_ids = await get_user_role_ids(db, user)
            permitted: set[UUID] = set()
            if role_ids:
                permission_result = await db.execute(
                    select(RoleModulePermission.module_id).where(
                        RoleModulePermission.role_id.in_(role_ids)
                    )
                )
                permitted = set(permission_result.scalars())
            rows = [
                (org_module, global_module)
                for org_module, global_module in rows
                if org_module.global_module_id in permitted
            ]

        modules = [
            ModuleSummary(
                id=org_module.id,
                name=org_module.name,
                display_name=(
                    org_module.display_name
                    or (global_module.display_name if global_module else None)
                    or org_module.name
                ),
                icon=global_module.icon if global_module else None,
                sort_order=(
                    org_module.sort_order
                    if org_module.sort_order is not None
                    else (global_module.sort_order if global_module else 0)
                ),
                global_module_id=org_module.global_module_id,
            )
            for org_module, global_module in rows
        ]
        return sorted(modules, key=lambda module: (module.sort_order, module.name))

    async def get_user_reports_for_module(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
        user: User,
    ) -> list[dict]:
        """Relatórios implantados por trás das abas acessíveis, sem repetição."""
        tabs = await self.get_accessible_tabs_for_user(db, organization_id, module_name, user)

        reports: list[dict] = []
        seen: set[str] = set()
        for tab in tabs:
            if not tab.report_id or tab.report_id in seen:
                continue
            seen.add(tab.report_id)
            reports.append(
                {
                    "organization_report_id": tab.organization_report_id,
                    "report_id": tab.report_id,
                    "workspace_id": tab.workspace_id,
                    "tab_names": [
                        other.tab_name for other in tabs if other.report_id == tab.report_id
                    ],
                }
            )
        return reports

    async def get_priority_report(
        self,
        db: AsyncSession,
        user: User,
        organization_id: UUID,
    ) -> PriorityReport:
        """Relatório prioritário do role primário, implantado e ativo na organização."""
        role = None
        if user.primary_role_id is not None:
            role = await db.get(GlobalRole, user.primary_role_id)
        if role is None:
            return PriorityReport(has_role=False)

        role_name = role.display_name or role.name
        if role.priority_report_id is None:
            return PriorityReport(has_role=True, role_name=role_name)

        result = await db.execute(
            select(OrganizationReport).where(
                OrganizationReport.organization_id == organization_id,
                OrganizationReport.template_report_id == role.priority_report_id,
                OrganizationReport.deployment_status == "active",
            )
        )
        return PriorityReport(
            has_role=True,
            role_name=role_name,
            has_priority_report=True,
            template_report_id=role.priority_report_id,
            deployment=result.scalars().first(),
        )


def get_access_resolver() -> AccessResolver:
    """Dependency provider."""

    return AccessResolver()
