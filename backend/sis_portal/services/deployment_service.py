"""
Implantação de relatórios e abas por organização.

Toda implantação passa pela mesma cadeia idempotente:

1. garante a linha ``organization_modules`` do módulo;
2. garante a linha ``organization_powerbi_reports`` (única por
   organização + template);
3. grava o override da aba, ou remove um ``add`` obsoleto quando a aba já
   existe como aba global.

Repetir a chamada com os mesmos argumentos não cria linhas novas.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.core.errors import InvalidRequestError, NotFoundError
from sis_portal.core.logging import get_logger
from sis_portal.db.base import utcnow
from sis_portal.db.models import (
    GlobalModule,
    ModuleTab,
    Organization,
    OrganizationModule,
    OrganizationReport,
    PowerBIReport,
    TenantModuleTab,
)
from sis_portal.services.tab_overrides import OVERRIDE_ADD, OVERRIDE_HIDDEN, tab_identity

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeploymentResult:
    """Resultado de ``deploy_tab``; ``tab`` é None quando a aba é global."""

    tab: Optional[TenantModuleTab]
    organization_report_id: UUID
    organization_module_id: UUID


@dataclass(frozen=True)
class ReportDeployment:
    template_report_id: UUID
    powerbi_report_id: str
    powerbi_workspace_id: Optional[str] = None
    name: Optional[str] = None


class DeploymentService:
    """Operações de implantação executadas por super admins."""

    async def get_organization(self, db: AsyncSession, organization_id: UUID) -> Organization:
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def ensure_organization_module(
        self,
        db: AsyncSession,
        organization: Organization,
        module_name: str,
    ) -> OrganizationModule:
        """Busca ou cria o módulo da organização, ligado ao módulo global se houver."""
        result = await db.execute(
            select(OrganizationModule).where(
                OrganizationModule.organization_id == organization.id,
                OrganizationModule.name == module_name,
            )
        )
        org_module = result.scalar_one_or_none()
        if org_module is not None:
            return org_module

        global_result = await db.execute(
            select(GlobalModule).where(GlobalModule.name == module_name)
        )
        global_module = global_result.scalar_one_or_none()

        org_module = OrganizationModule(
            organization_id=organization.id,
            name=module_name,
            global_module_id=global_module.id if global_module else None,
            is_active=True,
        )
        db.add(org_module)
        await db.flush()

        logger.info(
            "organization_module_created",
            organization_id=str(organization.id),
            module_name=module_name,
        )
        return org_module

    async def ensure_deployed_report(
        self,
        db: AsyncSession,
        organization: Organization,
        powerbi_report_id: str,
        template_report_id: Optional[UUID] = None,
        powerbi_workspace_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> OrganizationReport:
        """
        Garante um relatório implantado para (organização, template).

        Sem template, procura pelo report id concreto e, se não existir,
        registra um relatório não-template para servir de âncora.
        """
        workspace_id = powerbi_workspace_id or organization.powerbi_workspace_id

        if template_report_id is not None:
            template = await db.get(PowerBIReport, template_report_id)
            if template is None:
                raise NotFoundError("Template report not found")

            result = await db.execute(
                select(OrganizationReport).where(
                    OrganizationReport.organization_id == organization.id,
                    OrganizationReport.template_report_id == template_report_id,
                )
            )
            deployment = result.scalar_one_or_none()
            if deployment is not None:
                if deployment.powerbi_report_id != powerbi_report_id:
                    deployment.powerbi_report_id = powerbi_report_id
                    deployment.powerbi_workspace_id = workspace_id
                    deployment.deployed_at = utcnow()
                deployment.is_active = True
                deployment.deployment_status = "active"
                await db.flush()
                return deployment
            report_name = name or template.name
        else:
            result = await db.execute(
                select(OrganizationReport).where(
                    OrganizationReport.organization_id == organization.id,
                    OrganizationReport.powerbi_report_id == powerbi_report_id,
                )
            )
            deployment = result.scalars().first()
            if deployment is not None:
                return deployment

            template = PowerBIReport(
                name=name or "Deployed Report",
                powerbi_report_id=powerbi_report_id,
                powerbi_workspace_id=workspace_id,
                is_template=False,
                is_active=True,
            )
            db.add(template)
            await db.flush()
            template_report_id = template.id
            report_name = template.name

        deployment = OrganizationReport(
            organization_id=organization.id,
            template_report_id=template_report_id,
            powerbi_report_id=powerbi_report_id,
            powerbi_workspace_id=workspace_id,
            name=report_name,
            deployment_status="active",
            deployed_at=utcnow(),
            is_active=True,
        )
        db.add(deployment)
        await db.flush()

        logger.info(
            "report_deployed",
            organization_id=str(organization.id),
            template_report_id=str(template_report_id),
            powerbi_report_id=powerbi_report_id,
        )
        return deployment

    async def _find_override(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_id: UUID,
        tab_name: str,
    ) -> Optional[TenantModuleTab]:
        result = await db.execute(
            select(TenantModuleTab).where(
                TenantModuleTab.organization_id == organization_id,
                TenantModuleTab.module_id == module_id,
                TenantModuleTab.tab_name == tab_name,
            )
        )
        return result.scalar_one_or_none()

    async def _find_global_tab(
        self,
        db: AsyncSession,
        module_name: str,
        tab_name: str,
    ) -> Optional[ModuleTab]:
        result = await db.execute(
            select(ModuleTab).where(
                ModuleTab.module_name == module_name,
                ModuleTab.tab_name == tab_name,
                ModuleTab.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def deploy_tab(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
        tab_name: str,
        report_id: str,
        page_name: str,
        template_report_id: Optional[UUID] = None,
        sort_order: int = 0,
    ) -> DeploymentResult:
        """Implanta uma aba (global ou exclusiva) para a organização."""
        tab_name = tab_identity(tab_name)
        if not module_name or not tab_name or not report_id or not page_name:
            raise InvalidRequestError(
                "Missing required fields: module_name, tab_name, report_id, page_name"
            )

        organization = await self.get_organization(db, organization_id)
        org_module = await self.ensure_organization_module(db, organization, module_name)
        deployment = await self.ensure_deployed_report(
            db,
            organization,
            powerbi_report_id=report_id,
            template_report_id=template_report_id,
        )

        global_tab = await self._find_global_tab(db, module_name, tab_name)
        existing = await self._find_override(db, organization.id, org_module.id, tab_name)

        tenant_tab: Optional[TenantModuleTab] = None
        if global_tab is not None:
            # Aba global + relatório implantado bastam; um ``add`` restante
            # duplicaria a aba. Um ``hidden`` continua valendo.
            if existing is not None and existing.override_mode == OVERRIDE_ADD:
                await db.delete(existing)
        elif existing is not None:
            existing.override_mode = OVERRIDE_ADD
            existing.hidden_global_tab_id = None
            existing.organization_report_id = deployment.id
            existing.page_name = page_name
            existing.sort_order = sort_order
            tenant_tab = existing
        else:
            tenant_tab = TenantModuleTab(
                organization_id=organization.id,
                module_id=org_module.id,
                tab_name=tab_name,
                override_mode=OVERRIDE_ADD,
                organization_report_id=deployment.id,
                page_name=page_name,
                sort_order=sort_order,
            )
            db.add(tenant_tab)

        await db.commit()

        logger.info(
            "tab_deployed",
            organization_id=str(organization.id),
            module_name=module_name,
            tab_name=tab_name,
            global_tab=global_tab is not None,
        )
        return DeploymentResult(
            tab=tenant_tab,
            organization_report_id=deployment.id,
            organization_module_id=org_module.id,
        )

    async def hide_tab(
        self,
        db: AsyncSession,
        organization_id: UUID,
        module_name: str,
        tab_name: str,
        global_tab_id: Optional[UUID] = None,
    ) -> TenantModuleTab:
        """
        Esconde a aba para a organização.

        Não exige que a aba exista globalmente: o override fica gravado e
        passa a valer se a aba global for criada depois.
        """
        tab_name = tab_identity(tab_name)
        if not module_name or not tab_name:
            raise InvalidRequestError("Missing required fields: module_name, tab_name")

        organization = await self.get_organization(db, organization_id)
        org_module = await self.ensure_organization_module(db, organization, module_name)

        if global_tab_id is None:
            global_tab = await self._find_global_tab(db, module_name, tab_name)
            global_tab_id = global_tab.id if global_tab else None

        existing = await self._find_override(db, organization.id, org_module.id, tab_name)
        if existing is None:
            existing = TenantModuleTab(
                organization_id=organization.id,
                module_id=org_module.id,
                tab_name=tab_name,
            )
            db.add(existing)

        existing.override_mode = OVERRIDE_HIDDEN
        existing.hidden_global_tab_id = global_tab_id
        existing.organization_report_id = None
        existing.page_name = None
        existing.sort_order = 0
        await db.commit()

        logger.info(
            "tab_hidden",
            organization_id=str(organization.id),
            module_name=module_name,
            tab_name=tab_name,
            global_tab=global_tab_id is not None,
        )
        return existing

    async def remove_tab_override(
        self,
        db: AsyncSession,
        organization_id: UUID,
        tab_id: UUID,
    ) -> None:
        """Remove um override, voltando a aba ao comportamento padrão."""
        result = await db.execute(
            select(TenantModuleTab).where(
                TenantModuleTab.id == tab_id,
                TenantModuleTab.organization_id == organization_id,
            )
        )
        tab = result.scalar_one_or_none()
        if tab is None:
            raise NotFoundError("Tab not found or does not belong to this organization")

        await db.delete(tab)
        await db.commit()
        logger.info(
            "tab_override_removed",
            organization_id=str(organization_id),
            tab_name=tab.tab_name,
        )

    async def list_overrides(
        self,
        db: AsyncSession,
        organization_id: UUID,
    ) -> list[tuple[TenantModuleTab, str]]:
        """Overrides da organização com o nome do módulo."""
        result = await db.execute(
            select(TenantModuleTab, OrganizationModule.name)
            .join(OrganizationModule, TenantModuleTab.module_id == OrganizationModule.id)
            .where(TenantModuleTab.organization_id == organization_id)
            .order_by(OrganizationModule.name, TenantModuleTab.sort_order, TenantModuleTab.tab_name)
        )
        return [(tab, module_name) for tab, module_name in result.all()]

    async def list_deployed_reports(
        self,
        db: AsyncSession,
        organization_id: UUID,
    ) -> list[OrganizationReport]:
        await self.get_organization(db, organization_id)
        result = await db.execute(
            select(OrganizationReport)
            .where(OrganizationReport.organization_id == organization_id)
            .order_by(OrganizationReport.name)
        )
        return list(result.scalars())

    async def deploy_reports(
        self,
        db: AsyncSession,
        organization_id: UUID,
        deployments: Iterable[ReportDeployment],
    ) -> list[OrganizationReport]:
        """Implanta vários templates de uma vez (modo manual)."""
        deployments = list(deployments)
        if not deployments:
            raise InvalidRequestError("No deployments provided")

        organization = await self.get_organization(db, organization_id)
        deployed = []
        for item in deployments:
            deployed.append(
                await self.ensure_deployed_report(
                    db,
                    organization,
                    powerbi_report_id=item.powerbi_report_id,
                    template_report_id=item.template_report_id,
                    powerbi_workspace_id=item.powerbi_workspace_id,
                    name=item.name,
                )
            )
        await db.commit()
        return deployed

    async def deploy_template_report(
        self,
        db: AsyncSession,
        organization_id: UUID,
        template_report_id: UUID,
    ) -> OrganizationReport:
        """Implanta o template no workspace da organização com o mesmo id de relatório."""
        template = await db.get(PowerBIReport, template_report_id)
        if template is None:
            raise NotFoundError("Template report not found")

        organization = await self.get_organization(db, organization_id)
        deployment = await self.ensure_deployed_report(
            db,
            organization,
            powerbi_report_id=template.powerbi_report_id,
            template_report_id=template.id,
            powerbi_workspace_id=organization.powerbi_workspace_id,
            name=template.name,
        )
        await db.commit()
        return deployment

    async def undeploy_report(
        self,
        db: AsyncSession,
        organization_id: UUID,
        organization_report_id: UUID,
    ) -> None:
        """Remove o relatório implantado e as abas adicionadas que o usam."""
        result = await db.execute(
            select(OrganizationReport).where(
                OrganizationReport.id == organization_report_id,
                OrganizationReport.organization_id == organization_id,
            )
        )
        deployment = result.scalar_one_or_none()
        if deployment is None:
            raise NotFoundError("Deployed report not found")

        await db.execute(
            delete(TenantModuleTab).where(
                TenantModuleTab.organization_id == organization_id,
                TenantModuleTab.organization_report_id == deployment.id,
            )
        )
        await db.delete(deployment)
        await db.commit()
        logger.info(
            "report_undeployed",
            organization_id=str(organization_id),
            powerbi_report_id=deployment.powerbi_report_id,
        )

    async def cleanup_duplicate_overrides(
        self,
        db: AsyncSession,
        organization_id: Optional[UUID] = None,
    ) -> int:
        """
        Remove overrides ``add`` que repetem uma aba global ativa.

        Retorna o número de linhas removidas (normalmente zero).
        """
        query = (
            select(TenantModuleTab, OrganizationModule.name)
            .join(OrganizationModule, TenantModuleTab.module_id == OrganizationModule.id)
            .where(TenantModuleTab.override_mode == OVERRIDE_ADD)
        )
        if organization_id is not None:
            query = query.where(TenantModuleTab.organization_id == organization_id)
        rows = (await db.execute(query)).all()

        global_result = await db.execute(
            select(ModuleTab.module_name, ModuleTab.tab_name).where(ModuleTab.is_active.is_(True))
        )
        global_identities = {
            (module_name, tab_identity(tab_name)) for module_name, tab_name in global_result.all()
        }

        removed = 0
        for tab, module_name in rows:
            if (module_name, tab_identity(tab.tab_name)) in global_identities:
                await db.delete(tab)
                removed += 1

        await db.commit()
        logger.info(
            "duplicate_overrides_cleaned",
            organization_id=str(organization_id) if organization_id else None,
            removed=removed,
        )
        return removed


def get_deployment_service() -> DeploymentService:
    """Dependency provider."""

    return DeploymentService()
