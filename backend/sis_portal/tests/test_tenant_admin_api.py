"""Testes HTTP das rotas de tenant admin e da sincronização de usuários."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from sis_portal.db.models import User
from sis_portal.tests.http_test_client import make_async_asgi_client


@pytest.mark.asyncio
async def test_regular_user_cannot_use_tenant_admin_routes(app, factory, as_user):
    organization = await factory.organization("acme")
    as_user(await factory.user(organization=organization))

    async with make_async_asgi_client(app) as client:
        response = await client.get("/api/v1/tenant-admin/users")

    assert response.status_code == 403
    assert response.json()["detail"] == "Tenant Admin access required"


@pytest.mark.asyncio
async def test_invite_and_list_users(app, factory, as_user, session_factory):
    organization = await factory.organization("acme")
    other = await factory.organization("other")
    role = await factory.role("analyst")
    await factory.user("stranger@other.test", organization=other)
    as_user(await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True))

    async with make_async_asgi_client(app) as client:
        invited = await client.post(
            "/api/v1/tenant-admin/users",
            json={"email": "New.Hire@acme.com", "role_ids": [str(role.id)]},
        )
        duplicate = await client.post(
            "/api/v1/tenant-admin/users", json={"email": "new.hire@acme.com"}
        )
        listing = await client.get("/api/v1/tenant-admin/users")

    assert invited.status_code == 201
    assert invited.json()["status"] == "invited"
    assert invited.json()["role_ids"] == [str(role.id)]
    assert duplicate.status_code == 409
    emails = [item["email"] for item in listing.json()["items"]]
    assert emails == ["admin@acme.test", "new.hire@acme.com"]

    async with session_factory() as session:
        stored = (
            await session.execute(select(User).where(User.email == "new.hire@acme.com"))
        ).scalar_one()
    assert stored.organization_id == organization.id


@pytest.mark.asyncio
async def test_status_change_rules(app, factory, as_user):
    organization = await factory.organization("acme")
    admin = await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True)
    member = await factory.user("member@acme.test", organization=organization)
    as_user(admin)

    async with make_async_asgi_client(app) as client:
        own = await client.patch(
            f"/api/v1/tenant-admin/users/{admin.id}/status", json={"status": "suspended"}
        )
        invalid = await client.patch(
            f"/api/v1/tenant-admin/users/{member.id}/status", json={"status": "deleted"}
        )
        ok = await client.patch(
            f"/api/v1/tenant-admin/users/{member.id}/status", json={"status": "Suspended"}
        )

    assert own.status_code == 400
    assert own.json()["detail"] == "You cannot change your own status"
    assert invalid.status_code == 422
    assert ok.status_code == 200
    assert ok.json()["status"] == "suspended"


@pytest.mark.asyncio
async def test_tenant_admin_updates_own_organization(app, factory, as_user):
    organization = await factory.organization("acme")
    as_user(await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True))

    async with make_async_asgi_client(app) as client:
        response = await client.patch(
            "/api/v1/tenant-admin/organization", json={"name": "Acme Renamed"}
        )

    assert response.status_code == 200
    assert response.json()["name"] == "Acme Renamed"
    assert response.json()["subdomain"] == "acme"


@pytest.mark.asyncio
async def test_sync_user_requires_shared_secret(app):
    async with make_async_asgi_client(app) as client:
        response = await client.post(
            "/api/v1/auth/sync-user",
            json={"auth_subject": "auth0|x", "email": "x@acme.com"},
        )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_sync_user_creates_then_updates(app, factory, session_factory):
    organization = await factory.organization("acme")
    headers = {"Authorization": "Bearer test-sync-secret"}
    payload = {
        "auth_subject": "auth0|sync",
        "email": "synced@acme.com",
        "full_name": "Synced",
        "organization_subdomain": "acme",
        "roles": ["Tenant Admin"],
    }

    async with make_async_asgi_client(app) as client:
        created = await client.post("/api/v1/auth/sync-user", json=payload, headers=headers)
        updated = await client.post("/api/v1/auth/sync-user", json=payload, headers=headers)

    assert created.status_code == 200
    assert created.json()["message"] == "User created"
    assert updated.json()["message"] == "User updated"
    assert created.json()["user_id"] == updated.json()["user_id"]

    async with session_factory() as session:
        stored = await session.get(User, uuid.UUID(created.json()["user_id"]))
    assert stored.organization_id == organization.id
    assert stored.is_tenant_admin is True


@pytest.mark.asyncio
async def test_regular_user_gets_roles_below_primary_role(app, factory, as_user):
    organization = await factory.organization("acme")
    lead = await factory.role("lead")
    await factory.role("member", parent_role_id=lead.id)
    await factory.role("outsider")
    as_user(await factory.user(organization=organization, primary_role_id=lead.id))

    async with make_async_asgi_client(app) as client:
        response = await client.get("/api/v1/tenant-admin/roles/assignable")

    assert response.status_code == 200
    assert [role["name"] for role in response.json()] == ["member"]


@pytest.mark.asyncio
async def test_resend_invite_only_for_invited_users(app, factory, as_user, session_factory):
    organization = await factory.organization("acme")
    admin = await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True)
    pending = await factory.user("pending@acme.test", organization=organization, status="invited")
    active = await factory.user("active@acme.test", organization=organization)
    as_user(admin)

    async with make_async_asgi_client(app) as client:
        resent = await client.post(f"/api/v1/tenant-admin/users/{pending.id}/resend-invite")
        rejected = await client.post(f"/api/v1/tenant-admin/users/{active.id}/resend-invite")

    assert resent.status_code == 200
    assert resent.json()["invited_at"] is not None
    assert rejected.status_code == 400
    assert rejected.json()["detail"] == "User is not in invited status"

    async with session_factory() as session:
        stored = await session.get(User, pending.id)
    assert stored.invited_at is not None


@pytest.mark.asyncio
async def test_subscription_reports_tier_features(app, factory, as_user):
    organization = await factory.organization("acme", subscription_tier="clarity")
    as_user(await factory.user("admin@acme.test", organization=organization, is_tenant_admin=True))

    async with make_async_asgi_client(app) as client:
        response = await client.get(
            "/api/v1/tenant-admin/subscription", params={"learner_count": 180}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["subscription_tier"] == "clarity"
    assert body["tier"]["features"]["ai_summary"] is False
    assert body["tier"]["features"]["export_reports"] is True
    assert [tier["name"] for tier in body["available_tiers"]] == ["core", "clarity", "intelligence"]
    assert body["pricing_bracket"] == {
        "min_learners": 151,
        "max_learners": 200,
        "monthly_price": 699,
        "yearly_price": 6990,
        "label": "151-200 learners",
    }
