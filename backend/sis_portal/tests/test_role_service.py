"""Testes da hierarquia e das permissões de roles."""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from sis_portal.core.errors import ConflictError, InvalidRequestError, NotFoundError
from sis_portal.db.models import GlobalRole, RoleTabPermission, UserRole
from sis_portal.services.role_service import (
    RoleService,
    build_role_tree,
    descendant_ids,
    would_create_cycle,
)


def _role(name: str, parent=None, sort_order: int = 0):
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        parent_role_id=parent.id if parent else None,
        sort_order=sort_order,
    )


def _flatten(nodes, depth=0):
    for node in nodes:
        yield depth, node.role.name
        yield from _flatten(node.children, depth + 1)


class TestBuildRoleTree:
    def test_children_sorted_by_sort_order_then_name(self):
        director = _role("director")
        roles = [
            director,
            _role("b-manager", director, sort_order=1),
            _role("a-manager", director, sort_order=1),
            _role("first", director, sort_order=0),
        ]
        assert list(_flatten(build_role_tree(roles))) == [
            (0, "director"),
            (1, "first"),
            (1, "a-manager"),
            (1, "b-manager"),
        ]

    def test_orphans_become_roots(self):
        missing_parent = _role("ghost")
        orphan = _role("orphan", missing_parent)
        root = _role("root", sort_order=1)
        assert list(_flatten(build_role_tree([root, orphan]))) == [(0, "orphan"), (0, "root")]

    def test_cycle_in_data_does_not_recurse_forever(self):
        a = _role("a")
        b = _role("b", a)
        a.parent_role_id = b.id
        root = _role("root")
        assert list(_flatten(build_role_tree([root, a, b]))) == [(0, "root")]


class TestHierarchyHelpers:
    def test_would_create_cycle(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        parents = {a: None, b: a, c: b}
        assert would_create_cycle(parents, a, c) is True
        assert would_create_cycle(parents, a, a) is True
        assert would_create_cycle(parents, c, a) is False
        assert would_create_cycle(parents, b, None) is False

    def test_descendant_ids(self):
        a, b, c, d = uuid.uuid4(), uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        parents = {a: None, b: a, c: b, d: None}
        assert descendant_ids(parents, a) == {b, c}
        assert descendant_ids(parents, d) == set()


@pytest.mark.asyncio
async def test_create_role_rejects_duplicate_name(db):
    service = RoleService()
    await service.create_role(db, {"name": "analyst", "display_name": "Analyst"})

    with pytest.raises(ConflictError):
        await service.create_role(db, {"name": "analyst", "display_name": "Other"})


@pytest.mark.asyncio
async def test_create_role_with_unknown_parent(db):
    with pytest.raises(InvalidRequestError):
        await RoleService().create_role(
            db, {"name": "x", "display_name": "X", "parent_role_id": uuid.uuid4()}
        )


@pytest.mark.asyncio
async def test_update_role_rejects_cycle(db, factory):
    director = await factory.role("director")
    manager = await factory.role("manager", parent_role_id=director.id)

    with pytest.raises(InvalidRequestError):
        await RoleService().update_role(db, director.id, {"parent_role_id": manager.id})

    updated = await RoleService().update_role(db, manager.id, {"display_name": "Gerente"})
    assert updated.display_name == "Gerente"
    assert updated.parent_role_id == director.id


@pytest.mark.asyncio
async def test_delete_role_blocked_while_assigned(db, factory):
    organization = await factory.organization("acme")
    role = await factory.role("analyst")
    extra = await factory.role("extra")
    await factory.user(organization=organization, primary_role_id=role.id)
    other = await factory.user("other@acme.test", organization=organization)
    db.add(UserRole(user_id=other.id, global_role_id=extra.id))
    await db.commit()

    service = RoleService()
    with pytest.raises(InvalidRequestError):
        await service.delete_role(db, role.id)
    with pytest.raises(InvalidRequestError):
        await service.delete_role(db, extra.id)


@pytest.mark.asyncio
async def test_delete_role_promotes_children_and_drops_permissions(db, factory):
    director = await factory.role("director")
    manager = await factory.role("manager", parent_role_id=director.id)
    await factory.grant_tabs(director, "ops", "A")

    await RoleService().delete_role(db, director.id)

    await db.refresh(manager)
    assert manager.parent_role_id is None
    remaining = (await db.execute(select(RoleTabPermission))).scalars().all()
    assert remaining == []
    assert await db.get(GlobalRole, director.id) is None


@pytest.mark.asyncio
async def test_get_missing_role(db):
    with pytest.raises(NotFoundError):
        await RoleService().get_role(db, uuid.uuid4())


@pytest.mark.asyncio
async def test_set_tab_permissions_replaces_and_deduplicates(db, factory):
    role = await factory.role("analyst")
    await factory.grant_tabs(role, "ops", "Old")
    service = RoleService()

    saved = await service.set_tab_permissions(
        db, role.id, [("ops", "B "), ("ops", "B"), ("ops", "A"), ("ops", "  ")]
    )

    assert saved == [("ops", "A"), ("ops", "B")]
    assert await service.get_tab_permissions(db, role.id) == [("ops", "A"), ("ops", "B")]


@pytest.mark.asyncio
async def test_set_module_permissions_rejects_unknown_module(db, factory):
    role = await factory.role("analyst")
    ops = await factory.global_module("ops")
    service = RoleService()

    with pytest.raises(InvalidRequestError):
        await service.set_module_permissions(db, role.id, [ops.id, uuid.uuid4()])

    assert await service.set_module_permissions(db, role.id, [ops.id, ops.id]) == [ops.id]
    assert await service.get_module_permissions(db, role.id) == [ops.id]


@pytest.mark.asyncio
async def test_assignable_roles_below_primary_role(db, factory):
    organization = await factory.organization("acme")
    director = await factory.role("director")
    manager = await factory.role("manager", parent_role_id=director.id)
    analyst = await factory.role("analyst", parent_role_id=manager.id)
    await factory.role("inactive", parent_role_id=manager.id, is_active=False)
    user = await factory.user(organization=organization, primary_role_id=manager.id)
    admin = await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True)
    nobody = await factory.user("nobody@acme.test", organization=organization)

    service = RoleService()
    assert [role.id for role in await service.assignable_roles(db, user)] == [analyst.id]
    assert {role.name for role in await service.assignable_roles(db, admin)} == {
        "director",
        "manager",
        "analyst",
    }
    assert await service.assignable_roles(db, nobody) == []
