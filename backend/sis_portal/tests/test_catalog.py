"""Testes do catálogo global e das rotas de roles do super admin."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from sis_portal.core.errors import ConflictError, InvalidRequestError
from sis_portal.db.models import ModuleTab, RoleTabPermission, TenantModuleTab
from sis_portal.services.access_resolver import AccessResolver, resolve_tenant_tabs
from sis_portal.services.catalog_service import CatalogService
from sis_portal.services.deployment_service import DeploymentService
from sis_portal.services.tab_overrides import HiddenOverride
from sis_portal.tests.http_test_client import make_async_asgi_client


@pytest.mark.asyncio
async def test_module_name_is_immutable(db, factory):
    module = await factory.global_module("ops")
    service = CatalogService()

    with pytest.raises(InvalidRequestError):
        await service.update_module(db, module.id, {"name": "operations"})

    updated = await service.update_module(db, module.id, {"display_name": "Operações"})
    assert updated.display_name == "Operações"


@pytest.mark.asyncio
async def test_duplicate_module_conflicts(db, factory):
    await factory.global_module("ops")

    with pytest.raises(ConflictError):
        await CatalogService().create_module(db, {"name": "ops", "display_name": "Ops"})


@pytest.mark.asyncio
async def test_reorder_modules(db, factory):
    ops = await factory.global_module("ops", sort_order=1)
    sales = await factory.global_module("sales", sort_order=2)

    modules = await CatalogService().reorder_modules(db, [(ops.id, 5), (sales.id, 0)])

    assert [module.name for module in modules] == ["sales", "ops"]


@pytest.mark.asyncio
async def test_tab_identity_is_unique_per_module(db, factory):
    template = await factory.template_report("Ops")
    service = CatalogService()
    await service.create_tab(
        db, {"module_name": "ops", "tab_name": "Overview", "report_id": template.id}
    )

    with pytest.raises(ConflictError):
        await service.create_tab(
            db, {"module_name": "ops", "tab_name": " Overview ", "report_id": template.id}
        )

    other = await service.create_tab(
        db, {"module_name": "sales", "tab_name": "Overview", "report_id": template.id}
    )
    assert other.module_name == "sales"


@pytest.mark.asyncio
async def test_tab_rename_moves_role_permissions(db, factory):
    template = await factory.template_report("Ops")
    tab = await factory.global_tab("Old", "ops", report=template)
    role = await factory.role("analyst")
    await factory.grant_tabs(role, "ops", "Old")

    await CatalogService().update_tab(db, tab.id, {"tab_name": "New "})

    permissions = (
        await db.execute(select(RoleTabPermission.module_name, RoleTabPermission.tab_name))
    ).all()
    assert [tuple(row) for row in permissions] == [("ops", "New")]


@pytest.mark.asyncio
async def test_settings_hide_api_key(app, factory, as_user):
    as_user(await factory.user("root@sis.test", is_super_admin=True))

    async with make_async_asgi_client(app) as client:
        saved = await client.put(
            "/api/v1/super-admin/settings",
            json={"ai_enabled": True, "azure_openai_api_key": "very-secret"},
        )
        fetched = await client.get("/api/v1/super-admin/settings")

    assert saved.status_code == 200
    body = fetched.json()
    assert body["ai_enabled"] is True
    assert body["azure_openai_api_key_configured"] is True
    assert "very-secret" not in fetched.text


@pytest.mark.asyncio
async def test_global_module_routes(app, factory, as_user):
    as_user(await factory.user("root@sis.test", is_super_admin=True))

    async with make_async_asgi_client(app) as client:
        created = await client.post(
            "/api/v1/super-admin/global-modules",
            json={"name": "Ops", "display_name": "Operations"},
        )
        invalid = await client.post(
            "/api/v1/super-admin/global-modules",
            json={"name": "bad name", "display_name": "Bad"},
        )
        deleted = await client.delete(
            f"/api/v1/super-admin/global-modules/{created.json()['id']}"
        )
        listing = await client.get("/api/v1/super-admin/global-modules")

    assert created.status_code == 201
    assert created.json()["name"] == "ops"
    assert invalid.status_code == 422
    assert deleted.status_code == 204
    assert listing.json() == []


@pytest.mark.asyncio
async def test_role_tree_route(app, factory, as_user):
    director = await factory.role("director")
    await factory.role("manager", parent_role_id=director.id)
    await factory.role("standalone", sort_order=1)
    as_user(await factory.user("root@sis.test", is_super_admin=True))

    async with make_async_asgi_client(app) as client:
        response = await client.get("/api/v1/super-admin/roles/tree")
        cycle = await client.patch(
            f"/api/v1/super-admin/roles/{director.id}",
            json={"parent_role_id": str(director.id)},
        )

    assert response.status_code == 200
    tree = response.json()
    assert [node["name"] for node in tree] == ["director", "standalone"]
    assert [child["name"] for child in tree[0]["children"]] == ["manager"]
    assert cycle.status_code == 400


@pytest.mark.asyncio
async def test_role_tab_permissions_route(app, factory, as_user):
    role = await factory.role("analyst")
    as_user(await factory.user("root@sis.test", is_super_admin=True))

    async with make_async_asgi_client(app) as client:
        saved = await client.put(
            f"/api/v1/super-admin/roles/{role.id}/tabs",
            json={"tabs": [{"module_name": "ops", "tab_name": "B"}, {"module_name": "ops", "tab_name": "A"}]},
        )
        fetched = await client.get(f"/api/v1/super-admin/roles/{role.id}/tabs")

    assert saved.status_code == 200
    assert fetched.json()["tabs"] == [
        {"module_name": "ops", "tab_name": "A"},
        {"module_name": "ops", "tab_name": "B"},
    ]


async def _acme_with_hidden_tab(db, factory):
    organization = await factory.organization("acme")
    global_module = await factory.global_module("ops")
    await factory.organization_module(organization, "ops", global_module)
    template = await factory.template_report("Ops")
    await factory.global_tab("A", "ops", sort_order=1, report=template)
    hidden = await factory.global_tab("B", "ops", sort_order=2, report=template)
    await DeploymentService().hide_tab(db, organization.id, "ops", "B")
    return organization, hidden


@pytest.mark.asyncio
async def test_renamed_tab_stays_hidden_for_tenant(db, factory):
    organization, hidden = await _acme_with_hidden_tab(db, factory)
    resolver = AccessResolver()

    before = await resolver.get_module_tabs_for_tenant(db, organization.id, "ops")
    await CatalogService().update_tab(db, hidden.id, {"tab_name": "B2"})
    after = await resolver.get_module_tabs_for_tenant(db, organization.id, "ops")

    assert [tab.tab_name for tab in before] == ["A"]
    assert [tab.tab_name for tab in after] == ["A"]

    overrides = (await db.execute(select(TenantModuleTab))).scalars().all()
    assert [(row.tab_name, row.hidden_global_tab_id) for row in overrides] == [("B2", hidden.id)]


def test_hidden_override_matches_global_tab_id():
    tab_id = uuid.uuid4()
    renamed = ModuleTab(id=tab_id, module_name="ops", tab_name="New", sort_order=0, is_active=True)
    kept = ModuleTab(id=uuid.uuid4(), module_name="ops", tab_name="Kept", sort_order=1, is_active=True)

    tabs = resolve_tenant_tabs([renamed, kept], [HiddenOverride(tab_name="Old", global_tab_id=tab_id)])

    assert [tab.tab_name for tab in tabs] == ["Kept"]


@pytest.mark.asyncio
async def test_tab_rename_keeps_existing_permission_on_new_name(db, factory):
    template = await factory.template_report("Ops")
    tab = await factory.global_tab("Old", "ops", report=template)
    both = await factory.role("analyst")
    only_old = await factory.role("viewer")
    await factory.grant_tabs(both, "ops", "Old", "New")
    await factory.grant_tabs(only_old, "ops", "Old")

    await CatalogService().update_tab(db, tab.id, {"tab_name": "New"})

    rows = (
        await db.execute(
            select(RoleTabPermission.role_id, RoleTabPermission.tab_name)
        )
    ).all()
    assert sorted((str(role_id), name) for role_id, name in rows) == sorted(
        [(str(both.id), "New"), (str(only_old.id), "New")]
    )
