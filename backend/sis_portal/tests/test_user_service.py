"""Testes de convites, status e sincronização de usuários."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from sis_portal.core.errors import ConflictError, ForbiddenError, InvalidRequestError
from sis_portal.db.models import User, UserRole
from sis_portal.services.role_service import RoleService
from sis_portal.services.user_service import UserService


@pytest.mark.asyncio
async def test_invite_user_normalizes_email_and_assigns_roles(db, factory):
    organization = await factory.organization("acme")
    analyst = await factory.role("analyst")

    user = await UserService().invite_user(
        db, organization.id, "  New@Acme.Test ", full_name="New", role_ids=[analyst.id]
    )

    assert user.email == "new@acme.test"
    assert user.status == "invited"
    assert user.primary_role_id == analyst.id
    role_rows = (await db.execute(select(UserRole.global_role_id))).scalars().all()
    assert role_rows == [analyst.id]


@pytest.mark.asyncio
async def test_invite_duplicate_email_conflicts(db, factory):
    organization = await factory.organization("acme")
    await factory.user("taken@acme.test", organization=organization)

    with pytest.raises(ConflictError):
        await UserService().invite_user(db, organization.id, "TAKEN@acme.test")


@pytest.mark.asyncio
async def test_invite_with_inactive_role_is_rejected(db, factory):
    organization = await factory.organization("acme")
    retired = await factory.role("retired", is_active=False)

    with pytest.raises(InvalidRequestError):
        await UserService().invite_user(db, organization.id, "x@acme.test", role_ids=[retired.id])


@pytest.mark.asyncio
async def test_set_status_rules(db, factory):
    acme = await factory.organization("acme")
    other = await factory.organization("other")
    admin = await factory.user("admin@acme.test", organization=acme, is_tenant_admin=True)
    member = await factory.user("member@acme.test", organization=acme)
    outsider = await factory.user("outsider@other.test", organization=other)
    service = UserService()

    with pytest.raises(InvalidRequestError):
        await service.set_status(db, member.id, acme.id, "archived", acting_user=admin)
    with pytest.raises(InvalidRequestError):
        await service.set_status(db, admin.id, acme.id, "suspended", acting_user=admin)
    with pytest.raises(ForbiddenError):
        await service.set_status(db, outsider.id, acme.id, "suspended", acting_user=admin)

    updated = await service.set_status(db, member.id, acme.id, "suspended", acting_user=admin)
    assert updated.status == "suspended"


@pytest.mark.asyncio
async def test_update_user_replaces_roles(db, factory):
    organization = await factory.organization("acme")
    first = await factory.role("first")
    second = await factory.role("second")
    user = await factory.user(organization=organization)
    service = UserService()

    await service.update_user(db, user.id, organization.id, {"role_ids": [first.id]})
    await service.update_user(
        db, user.id, organization.id, {"role_ids": [second.id], "full_name": "Renamed"}
    )

    assert await service.get_role_ids(db, user) == [second.id]
    assert user.full_name == "Renamed"


@pytest.mark.asyncio
async def test_sync_user_links_pending_invite(db, factory):
    organization = await factory.organization("acme")
    service = UserService()
    invited = await service.invite_user(db, organization.id, "invitee@acme.test")

    result = await service.sync_user(db, "auth0|abc", "Invitee@acme.test", full_name="Invitee")

    assert result.created is False
    assert result.user.id == invited.id
    assert result.user.auth_subject == "auth0|abc"
    assert result.user.status == "active"
    assert result.user.last_login_at is not None


@pytest.mark.asyncio
async def test_sync_user_creates_with_provider_roles(db, factory):
    organization = await factory.organization("acme")
    analyst = await factory.role("analyst")

    result = await UserService().sync_user(
        db,
        "auth0|new",
        "fresh@acme.test",
        organization_subdomain="acme",
        provider_roles=["Tenant Admin", "analyst"],
    )

    assert result.created is True
    assert result.user.organization_id == organization.id
    assert result.user.is_tenant_admin is True
    assert result.user.is_super_admin is False
    assert await UserService().get_role_ids(db, result.user) == [analyst.id]


@pytest.mark.asyncio
async def test_sync_existing_user_keeps_admin_flags(db, factory):
    organization = await factory.organization("acme")
    user = await factory.user(
        "kept@acme.test", organization=organization, auth_subject="auth0|kept"
    )

    result = await UserService().sync_user(
        db, "auth0|kept", "kept@acme.test", provider_roles=["Super Admin"]
    )

    assert result.created is False
    stored = await db.get(User, user.id)
    assert stored.is_super_admin is False


@pytest.mark.asyncio
async def test_permissions_union_roles_modules_and_tabs(db, factory):
    organization = await factory.organization("acme")
    ops = await factory.global_module("ops")
    primary = await factory.role("primary")
    extra = await factory.role("extra")
    await factory.grant_tabs(primary, "ops", "A")
    await factory.grant_tabs(extra, "ops", "A", "B")
    await RoleService().set_module_permissions(db, extra.id, [ops.id])
    user = await factory.user(organization=organization, primary_role_id=primary.id)
    db.add(UserRole(user_id=user.id, global_role_id=extra.id))
    await db.commit()

    permissions = await UserService().get_permissions(db, user.id)

    assert [role.name for role in permissions.roles] == ["extra", "primary"]
    assert [module.name for module in permissions.modules] == ["ops"]
    assert permissions.tabs == [("ops", "A"), ("ops", "B")]

