"""Testes do job diário de resumos e do gatilho via cron."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from sis_portal.core.errors import NotFoundError
from sis_portal.tasks.daily_summaries import run_daily_summaries
from sis_portal.tests.http_test_client import make_async_asgi_client


@pytest.mark.asyncio
async def test_failures_do_not_stop_remaining_users(session_factory, factory):
    organization = await factory.organization("acme")
    role = await factory.role("analyst")
    await factory.user("a@acme.test", organization=organization, primary_role_id=role.id)
    await factory.user("b@acme.test", organization=organization, primary_role_id=role.id)
    await factory.user("c@acme.test", organization=organization, primary_role_id=role.id)
    await factory.user("norole@acme.test", organization=organization)
    await factory.user(
        "off@acme.test", organization=organization, primary_role_id=role.id, status="suspended"
    )

    seen: list[str] = []

    async def generator(db, user):
        seen.append(user.email)
        if user.email == "a@acme.test":
            raise NotFoundError("No active prompt found for this role")
        if user.email == "b@acme.test":
            raise RuntimeError("unexpected")
        return None

    outcome = await run_daily_summaries(session_factory=session_factory, generator=generator)

    assert seen == ["a@acme.test", "b@acme.test", "c@acme.test"]
    assert outcome["total_users"] == 3
    statuses = {entry["email"]: entry["status"] for entry in outcome["results"]}
    assert statuses == {"a@acme.test": "failed", "b@acme.test": "error", "c@acme.test": "success"}
    assert outcome["results"][0]["error"] == "No active prompt found for this role"
    assert "error" not in outcome["results"][2]


@pytest.mark.asyncio
async def test_no_eligible_users(session_factory):
    outcome = await run_daily_summaries(
        session_factory=session_factory, generator=AsyncMock()
    )
    assert outcome == {"total_users": 0, "results": []}


@pytest.mark.asyncio
async def test_cron_endpoint_requires_secret(app):
    async with make_async_asgi_client(app) as client:
        missing = await client.get("/api/v1/cron/generate-daily-summaries")
        wrong = await client.get(
            "/api/v1/cron/generate-daily-summaries",
            headers={"Authorization": "Bearer nope"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Unauthorized"


@pytest.mark.asyncio
async def test_cron_endpoint_runs_job(app, monkeypatch):
    import sis_portal.api.v1.cron as cron_module

    job = AsyncMock(
        return_value={
            "total_users": 1,
            "results": [
                {
                    "user_id": "00000000-0000-0000-0000-000000000001",
                    "email": "a@acme.test",
                    "status": "success",
                }
            ],
        }
    )
    monkeypatch.setattr(cron_module, "run_daily_summaries", job)

    async with make_async_asgi_client(app) as client:
        response = await client.get(
            "/api/v1/cron/generate-daily-summaries",
            headers={"Authorization": "Bearer test-cron-secret"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["total_users"] == 1
    assert body["results"][0]["status"] == "success"
    job.assert_awaited_once()
