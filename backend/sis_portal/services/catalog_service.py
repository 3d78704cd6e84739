"""
Catálogo global administrado por super admins: módulos, abas padrão,
relatórios template e configurações do sistema.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import ConflictError, InvalidRequestError, NotFoundError
from sis_portal.core.logging import get_logger
from sis_portal.db.models import (
    GlobalModule,
    ModuleTab,
    OrganizationModule,
    PowerBIReport,
    RoleTabPermission,
    SystemSettings,
    TenantModuleTab,
)
from sis_portal.services.tab_overrides import OVERRIDE_HIDDEN, tab_identity

logger = get_logger(__name__)

MODULE_FIELDS = ("name", "display_name", "description", "icon", "module_group", "sort_order", "is_active")
TAB_FIELDS = ("module_name", "tab_name", "sort_order", "report_id", "page_name", "is_active")
REPORT_FIELDS = (
    "name",
    "description",
    "powerbi_report_id",
    "powerbi_workspace_id",
    "powerbi_dataset_id",
    "category",
    "version",
    "is_template",
    "is_active",
)
SETTINGS_FIELDS = (
    "ai_enabled",
    "azure_openai_endpoint",
    "azure_openai_api_key",
    "azure_openai_deployment_name",
    "azure_openai_api_version",
    "powerbi_master_workspace_id",
)
SETTINGS_ID = 1


def _pick(data: Mapping[str, Any], fields: Sequence[str]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key in fields}


class CatalogService:
    """CRUD do catálogo global."""

    # Módulos globais

    async def list_modules(self, db: AsyncSession) -> list[GlobalModule]:
        result = await db.execute(
            select(GlobalModule).order_by(GlobalModule.sort_order, GlobalModule.name)
        )
        return list(result.scalars())

    async def get_module(self, db: AsyncSession, module_id: UUID) -> GlobalModule:
        module = await db.get(GlobalModule, module_id)
        if module is None:
            raise NotFoundError("Global module not found")
        return module

    async def create_module(self, db: AsyncSession, data: Mapping[str, Any]) -> GlobalModule:
        existing = await db.execute(select(GlobalModule.id).where(GlobalModule.name == data["name"]))
        if existing.first() is not None:
            raise ConflictError("A module with this name already exists")

        module = GlobalModule(**_pick(data, MODULE_FIELDS))
        db.add(module)
        await db.commit()
        logger.info("global_module_created", module_name=module.name)
        return module

    async def update_module(
        self,
        db: AsyncSession,
        module_id: UUID,
        changes: Mapping[str, Any],
    ) -> GlobalModule:
        module = await self.get_module(db, module_id)
        if "name" in changes and changes["name"] != module.name:
            raise InvalidRequestError("Module name cannot be changed")

        for key, value in _pick(changes, MODULE_FIELDS).items():
            setattr(module, key, value)
        await db.commit()
        return module

    async def delete_module(self, db: AsyncSession, module_id: UUID) -> None:
        module = await self.get_module(db, module_id)
        await db.delete(module)
        await db.commit()
        logger.info("global_module_deleted", module_name=module.name)

    async def reorder_modules(
        self,
        db: AsyncSession,
        ordering: Sequence[tuple[UUID, int]],
    ) -> list[GlobalModule]:
        """Aplica novos ``sort_order`` a vários módulos numa única transação."""
        for module_id, sort_order in ordering:
            module = await self.get_module(db, module_id)
            module.sort_order = sort_order
        await db.commit()
        return await self.list_modules(db)

    # Abas globais

    async def list_tabs(self, db: AsyncSession, module_name: Optional[str] = None) -> list[ModuleTab]:
        query = select(ModuleTab).order_by(ModuleTab.module_name, ModuleTab.sort_order)
        if module_name:
            query = query.where(ModuleTab.module_name == module_name)
        result = await db.execute(query)
        return list(result.scalars())

    async def get_tab(self, db: AsyncSession, tab_id: UUID) -> ModuleTab:
        tab = await db.get(ModuleTab, tab_id)
        if tab is None:
            raise NotFoundError("Module tab not found")
        return tab

    async def _ensure_tab_identity_free(
        self,
        db: AsyncSession,
        module_name: str,
        tab_name: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(ModuleTab.id).where(
            ModuleTab.module_name == module_name,
            ModuleTab.tab_name == tab_name,
        )
        if exclude_id is not None:
            query = query.where(ModuleTab.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("A tab with this name already exists in the module")

    async def create_tab(self, db: AsyncSession, data: Mapping[str, Any]) -> ModuleTab:
        values = _pick(data, TAB_FIELDS)
        values["tab_name"] = tab_identity(values["tab_name"])
        await self._ensure_tab_identity_free(db, values["module_name"], values["tab_name"])

        tab = ModuleTab(**values)
        db.add(tab)
        await db.commit()
        logger.info("module_tab_created", module_name=tab.module_name, tab_name=tab.tab_name)
        return tab

    async def update_tab(
        self,
        db: AsyncSession,
        tab_id: UUID,
        changes: Mapping[str, Any],
    ) -> ModuleTab:
        """
        Atualiza a aba global.

        Renomear a aba renomeia também as permissões de role e os overrides
        ``hidden`` das organizações que apontam para a identidade antiga.
        """
        tab = await self.get_tab(db, tab_id)
        values = _pick(changes, TAB_FIELDS)
        if "tab_name" in values:
            values["tab_name"] = tab_identity(values["tab_name"])

        old_identity = (tab.module_name, tab.tab_name)
        new_identity = (
            values.get("module_name", tab.module_name),
            values.get("tab_name", tab.tab_name),
        )
        if new_identity != old_identity:
            await self._ensure_tab_identity_free(db, *new_identity, exclude_id=tab.id)
            await self._move_role_permissions(db, old_identity, new_identity)
            await self._move_hidden_overrides(db, tab.id, old_identity, new_identity)

        for key, value in values.items():
            setattr(tab, key, value)
        await db.commit()

        if new_identity != old_identity:
            logger.info(
                "module_tab_renamed",
                old_module_name=old_identity[0],
                old_tab_name=old_identity[1],
                module_name=new_identity[0],
                tab_name=new_identity[1],
            )
        return tab

    async def _move_role_permissions(
        self,
        db: AsyncSession,
        old_identity: tuple[str, str],
        new_identity: tuple[str, str],
    ) -> None:
        # Roles que já têm a identidade nova ficam só com essa linha.
        holders = await db.execute(
            select(RoleTabPermission.role_id).where(
                RoleTabPermission.module_name == new_identity[0],
                RoleTabPermission.tab_name == new_identity[1],
            )
        )
        holder_ids = list(holders.scalars())
        old_match = and_(
            RoleTabPermission.module_name == old_identity[0],
            RoleTabPermission.tab_name == old_identity[1],
        )
        if holder_ids:
            await db.execute(
                delete(RoleTabPermission).where(
                    old_match,
                    RoleTabPermission.role_id.in_(holder_ids),
                )
            )
        await db.execute(
            update(RoleTabPermission)
            .where(old_match)
            .values(module_name=new_identity[0], tab_name=new_identity[1])
        )

    async def _move_hidden_overrides(
        self,
        db: AsyncSession,
        global_tab_id: UUID,
        old_identity: tuple[str, str],
        new_identity: tuple[str, str],
    ) -> None:
        """
        Leva os overrides ``hidden`` da aba para a identidade nova.

        Se a organização já tem um override com a identidade nova, ele
        prevalece e o ``hidden`` antigo é removido. Sem módulo de destino na
        organização a linha fica onde está, ligada à aba pelo id.
        """
        module_result = await db.execute(
            select(
                OrganizationModule.id,
                OrganizationModule.organization_id,
                OrganizationModule.name,
            ).where(OrganizationModule.name.in_([old_identity[0], new_identity[0]]))
        )
        old_module_ids: list[UUID] = []
        target_modules: dict[UUID, UUID] = {}
        for module_id, organization_id, name in module_result.all():
            if name == old_identity[0]:
                old_module_ids.append(module_id)
            if name == new_identity[0]:
                target_modules[organization_id] = module_id

        conditions = [TenantModuleTab.hidden_global_tab_id == global_tab_id]
        if old_module_ids:
            conditions.append(
                and_(
                    TenantModuleTab.module_id.in_(old_module_ids),
                    TenantModuleTab.tab_name == old_identity[1],
                )
            )
        result = await db.execute(
            select(TenantModuleTab).where(
                TenantModuleTab.override_mode == OVERRIDE_HIDDEN,
                or_(*conditions),
            )
        )
        for row in result.scalars().all():
            row.hidden_global_tab_id = global_tab_id
            target_module_id = target_modules.get(row.organization_id)
            if target_module_id is None:
                continue

            conflict = await db.execute(
                select(TenantModuleTab.id).where(
                    TenantModuleTab.organization_id == row.organization_id,
                    TenantModuleTab.module_id == target_module_id,
                    TenantModuleTab.tab_name == new_identity[1],
                    TenantModuleTab.id != row.id,
                )
            )
            if conflict.first() is not None:
                await db.delete(row)
                continue
            row.module_id = target_module_id
            row.tab_name = new_identity[1]

    async def delete_tab(self, db: AsyncSession, tab_id: UUID) -> None:
        tab = await self.get_tab(db, tab_id)
        await db.delete(tab)
        await db.commit()
        logger.info("module_tab_deleted", module_name=tab.module_name, tab_name=tab.tab_name)

    # Relatórios template

    async def list_reports(self, db: AsyncSession, templates_only: bool = False) -> list[PowerBIReport]:
        query = select(PowerBIReport).order_by(PowerBIReport.category, PowerBIReport.name)
        if templates_only:
            query = query.where(PowerBIReport.is_template.is_(True))
        result = await db.execute(query)
        return list(result.scalars())

    async def get_report(self, db: AsyncSession, report_id: UUID) -> PowerBIReport:
        report = await db.get(PowerBIReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    async def create_report(self, db: AsyncSession, data: Mapping[str, Any]) -> PowerBIReport:
        report = PowerBIReport(**_pick(data, REPORT_FIELDS))
        db.add(report)
        await db.commit()
        logger.info("template_report_created", report_name=report.name)
        return report

    async def update_report(
        self,
        db: AsyncSession,
        report_id: UUID,
        changes: Mapping[str, Any],
    ) -> PowerBIReport:
        report = await self.get_report(db, report_id)
        for key, value in _pick(changes, REPORT_FIELDS).items():
            setattr(report, key, value)
        await db.commit()
        return report

    async def delete_report(self, db: AsyncSession, report_id: UUID) -> None:
        report = await self.get_report(db, report_id)
        await db.delete(report)
        await db.commit()
        logger.info("template_report_deleted", report_name=report.name)

    # Configurações do sistema

    async def get_settings(self, db: AsyncSession) -> SystemSettings:
        """Linha única de configurações; criada com valores padrão se ausente."""
        settings_row = await db.get(SystemSettings, SETTINGS_ID)
        if settings_row is None:
            settings_row = SystemSettings(id=SETTINGS_ID, ai_enabled=False)
            db.add(settings_row)
            await db.commit()
        return settings_row

    async def update_settings(self, db: AsyncSession, changes: Mapping[str, Any]) -> SystemSettings:
        settings_row = await self.get_settings(db)
        for key, value in _pick(changes, SETTINGS_FIELDS).items():
            setattr(settings_row, key, value)
        await db.commit()
        logger.info("system_settings_updated", fields=sorted(_pick(changes, SETTINGS_FIELDS)))
        return settings_row


def get_catalog_service() -> CatalogService:
    """Dependency provider."""

    return CatalogService()
