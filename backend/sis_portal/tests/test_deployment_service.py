"""Testes da cadeia de implantação (módulo → relatório → override de aba)."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from sis_portal.core.errors import InvalidRequestError, NotFoundError
from sis_portal.db.models import (
    OrganizationModule,
    OrganizationReport,
    PowerBIReport,
    TenantModuleTab,
)
from sis_portal.services.access_resolver import AccessResolver
from sis_portal.services.deployment_service import DeploymentService, ReportDeployment


async def _count(db, model, *criteria) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_deploying_same_template_twice_keeps_one_row(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops")
    service = DeploymentService()

    for _ in range(2):
        await service.deploy_tab(
            db,
            organization_id=organization.id,
            module_name="ops",
            tab_name="Extra",
            report_id="rpt-1",
            page_name="Page1",
            template_report_id=template.id,
        )

    assert await _count(db, OrganizationReport, OrganizationReport.organization_id == organization.id) == 1
    assert await _count(db, OrganizationModule, OrganizationModule.organization_id == organization.id) == 1
    assert await _count(db, TenantModuleTab, TenantModuleTab.organization_id == organization.id) == 1


@pytest.mark.asyncio
async def test_redeploy_updates_concrete_report_id(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops")
    service = DeploymentService()

    first = await service.deploy_tab(
        db, organization.id, "ops", "Extra", "rpt-old", "Page1", template_report_id=template.id
    )
    second = await service.deploy_tab(
        db, organization.id, "ops", "Extra", "rpt-new", "Page1", template_report_id=template.id
    )

    assert first.organization_report_id == second.organization_report_id
    deployment = await db.get(OrganizationReport, second.organization_report_id)
    assert deployment.powerbi_report_id == "rpt-new"


@pytest.mark.asyncio
async def test_deploying_global_tab_creates_no_override(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops")
    await factory.global_tab("A", "ops", report=template)

    result = await DeploymentService().deploy_tab(
        db, organization.id, "ops", "A", "rpt-1", "PageA", template_report_id=template.id
    )

    assert result.tab is None
    assert await _count(db, TenantModuleTab) == 0
    tabs = await AccessResolver().get_module_tabs_for_tenant(db, organization.id, "ops")
    assert [(tab.tab_name, tab.report_id) for tab in tabs] == [("A", "rpt-1")]


@pytest.mark.asyncio
async def test_deploying_global_tab_removes_stale_add_row(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops")
    service = DeploymentService()
    await service.deploy_tab(
        db, organization.id, "ops", "A", "rpt-1", "PageA", template_report_id=template.id
    )
    assert await _count(db, TenantModuleTab) == 1

    await factory.global_tab("A", "ops", report=template)
    await service.deploy_tab(
        db, organization.id, "ops", "A", "rpt-1", "PageA", template_report_id=template.id
    )

    assert await _count(db, TenantModuleTab) == 0


@pytest.mark.asyncio
async def test_deploy_without_template_registers_report(db, factory):
    organization = await factory.organization("acme")

    result = await DeploymentService().deploy_tab(
        db, organization.id, "ops", "Manual", "rpt-manual", "Page1"
    )

    deployment = await db.get(OrganizationReport, result.organization_report_id)
    template = await db.get(PowerBIReport, deployment.template_report_id)
    assert template.is_template is False
    assert template.powerbi_report_id == "rpt-manual"


@pytest.mark.asyncio
async def test_deploy_tab_requires_fields(db, factory):
    organization = await factory.organization("acme")

    with pytest.raises(InvalidRequestError):
        await DeploymentService().deploy_tab(db, organization.id, "ops", "  ", "rpt-1", "Page1")


@pytest.mark.asyncio
async def test_hiding_non_global_tab_creates_override(db, factory):
    organization = await factory.organization("acme")

    tab = await DeploymentService().hide_tab(db, organization.id, "ops", "Ghost")

    assert tab.override_mode == "hidden"
    assert tab.hidden_global_tab_id is None
    assert await _count(db, TenantModuleTab) == 1


@pytest.mark.asyncio
async def test_hide_links_global_tab_and_replaces_add(db, factory):
    organization = await factory.organization("acme")
    service = DeploymentService()
    await service.deploy_tab(db, organization.id, "ops", "B", "rpt-1", "PageB")
    global_tab = await factory.global_tab("B", "ops")

    tab = await service.hide_tab(db, organization.id, "ops", "B")

    assert tab.override_mode == "hidden"
    assert tab.hidden_global_tab_id == global_tab.id
    assert tab.organization_report_id is None
    assert await _count(db, TenantModuleTab) == 1


@pytest.mark.asyncio
async def test_remove_override_checks_ownership(db, factory):
    acme = await factory.organization("acme")
    other = await factory.organization("other")
    service = DeploymentService()
    tab = await service.hide_tab(db, acme.id, "ops", "B")

    with pytest.raises(NotFoundError):
        await service.remove_tab_override(db, other.id, tab.id)

    await service.remove_tab_override(db, acme.id, tab.id)
    assert await _count(db, TenantModuleTab) == 0


@pytest.mark.asyncio
async def test_cleanup_removes_add_rows_shadowing_globals(db, factory):
    organization = await factory.organization("acme")
    service = DeploymentService()
    await service.deploy_tab(db, organization.id, "ops", "A", "rpt-1", "PageA")
    await service.deploy_tab(db, organization.id, "ops", "Only", "rpt-1", "PageO")
    await factory.global_tab("A", "ops")

    removed = await service.cleanup_duplicate_overrides(db, organization.id)

    assert removed == 1
    remaining = (await db.execute(select(TenantModuleTab.tab_name))).scalars().all()
    assert remaining == ["Only"]


@pytest.mark.asyncio
async def test_deploy_reports_and_undeploy(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops")
    service = DeploymentService()

    with pytest.raises(InvalidRequestError):
        await service.deploy_reports(db, organization.id, [])

    deployed = await service.deploy_reports(
        db,
        organization.id,
        [ReportDeployment(template_report_id=template.id, powerbi_report_id="rpt-9")],
    )
    assert [row.powerbi_report_id for row in deployed] == ["rpt-9"]

    await service.undeploy_report(db, organization.id, deployed[0].id)
    assert await _count(db, OrganizationReport) == 0

    with pytest.raises(NotFoundError):
        await service.undeploy_report(db, organization.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_deploy_template_report_uses_organization_workspace(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Ops", powerbi_report_id="tpl-ops")

    deployment = await DeploymentService().deploy_template_report(db, organization.id, template.id)
    again = await DeploymentService().deploy_template_report(db, organization.id, template.id)

    assert deployment.id == again.id
    assert deployment.powerbi_workspace_id == "ws-acme"
    assert deployment.powerbi_report_id == "tpl-ops"
