"""Testes da geração de resumos de IA."""

from __future__ import annotations

import json

import httpx
import pytest

from sis_portal.config import Settings
from sis_portal.core.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UpstreamServiceError,
)
from sis_portal.db.models import SystemSettings
from sis_portal.services.ai_summary_service import (
    AISummaryService,
    normalize_endpoint,
    render_prompt,
)
from sis_portal.services.catalog_service import SETTINGS_ID


class StubPowerBI:
    """Substitui o cliente PowerBI com respostas fixas."""

    def __init__(self, dataset_id=None, fail_query=False):
        self.dataset_id = dataset_id
        self.fail_query = fail_query

    async def get_report(self, workspace_id, report_id):
        return {"id": report_id, "datasetId": self.dataset_id}

    async def get_report_pages(self, workspace_id, report_id):
        return [
            {"name": "S1", "displayName": "Overview"},
            {"name": "S2", "displayName": "Details"},
        ]

    async def execute_queries(self, workspace_id, dataset_id, query):
        if self.fail_query:
            raise UpstreamServiceError("powerbi", "Dataset query failed", "boom")
        return {"results": [{"tables": []}]}


def _openai_transport(captured: list, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        if status_code != 200:
            return httpx.Response(status_code, text="quota exceeded")
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": "Resumo do dia"}}],
                "usage": {"total_tokens": 42},
            },
        )

    return httpx.MockTransport(handler)


async def _enable_ai(db):
    db.add(
        SystemSettings(
            id=SETTINGS_ID,
            ai_enabled=True,
            azure_openai_endpoint="https://sis.openai.azure.com/api/",
            azure_openai_api_key="key-1",
        )
    )
    await db.commit()


def _service(transport=None, powerbi=None) -> AISummaryService:
    return AISummaryService(
        powerbi=powerbi or StubPowerBI(),
        settings=Settings(),
        transport=transport,
    )


def test_normalize_endpoint_strips_api_suffix():
    assert normalize_endpoint("https://x.openai.azure.com/api/") == "https://x.openai.azure.com"
    assert normalize_endpoint("https://x.openai.azure.com/") == "https://x.openai.azure.com"
    assert normalize_endpoint(None) is None


def test_render_prompt_replaces_placeholder():
    rendered = render_prompt("Dados: {priorities_data}", {"a": 1})
    assert json.loads(rendered.split("Dados: ", 1)[1]) == {"a": 1}


@pytest.mark.asyncio
async def test_generate_summary_persists_result(db, factory):
    await _enable_ai(db)
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)
    captured: list = []
    service = _service(transport=_openai_transport(captured))
    await service.upsert_prompt(db, role.id, "Resuma: {priorities_data}")

    summary = await service.generate_summary(db, user, role.id, priorities_data={"kpi": 7})

    assert summary.summary_text == "Resumo do dia"
    assert summary.tokens_used == 42
    assert '"kpi": 7' in summary.prompt_used
    request = captured[0]
    assert request.headers["api-key"] == "key-1"
    assert str(request.url).startswith(
        "https://sis.openai.azure.com/openai/deployments/gpt-4o/chat/completions"
    )
    latest = await service.latest_summary(db, user)
    assert latest.id == summary.id


@pytest.mark.asyncio
async def test_generate_summary_requires_enabled_ai(db, factory):
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)

    with pytest.raises(ForbiddenError):
        await _service().generate_summary(db, user, role.id, priorities_data={})


@pytest.mark.asyncio
async def test_generate_summary_requires_data_source(db, factory):
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)

    with pytest.raises(InvalidRequestError):
        await _service().generate_summary(db, user, role.id)


@pytest.mark.asyncio
async def test_generate_summary_without_prompt(db, factory):
    await _enable_ai(db)
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)

    with pytest.raises(NotFoundError):
        await _service().generate_summary(db, user, role.id, priorities_data={})


@pytest.mark.asyncio
async def test_openai_error_is_wrapped(db, factory):
    await _enable_ai(db)
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)
    service = _service(transport=_openai_transport([], status_code=429))
    await service.upsert_prompt(db, role.id, "{priorities_data}")

    with pytest.raises(UpstreamServiceError):
        await service.generate_summary(db, user, role.id, priorities_data={})


@pytest.mark.asyncio
async def test_fetch_priority_data_filters_selected_pages(db, factory):
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    template = await factory.template_report("Priorities")
    await factory.deployed_report(organization, template, powerbi_report_id="rpt-acme")
    user = await factory.user(organization=organization, primary_role_id=role.id)
    service = _service(powerbi=StubPowerBI(dataset_id="ds-1", fail_query=True))
    await service.upsert_prompt(
        db, role.id, "{priorities_data}", report_id=template.id, selected_pages=["S2"]
    )

    snapshot = await service.fetch_priority_data(db, user)

    assert snapshot["report_name"] == "Priorities"
    assert snapshot["selected_pages"] == ["Details"]
    assert snapshot["source"] == "pages_metadata"


@pytest.mark.asyncio
async def test_fetch_priority_data_uses_dataset_query(db, factory):
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    template = await factory.template_report("Priorities")
    await factory.deployed_report(organization, template)
    user = await factory.user(organization=organization, primary_role_id=role.id)
    service = _service(powerbi=StubPowerBI(dataset_id="ds-1"))
    await service.upsert_prompt(db, role.id, "{priorities_data}", report_id=template.id)

    snapshot = await service.fetch_priority_data(db, user)

    assert snapshot["source"] == "dataset_query"
    assert snapshot["dataset_data"] == {"results": [{"tables": []}]}


@pytest.mark.asyncio
async def test_fetch_priority_data_requires_deployment(db, factory):
    organization = await factory.organization("acme", subscription_tier="intelligence")
    role = await factory.role("analyst")
    template = await factory.template_report("Priorities")
    user = await factory.user(organization=organization, primary_role_id=role.id)
    service = _service()
    await service.upsert_prompt(db, role.id, "{priorities_data}", report_id=template.id)

    with pytest.raises(NotFoundError):
        await service.fetch_priority_data(db, user)


@pytest.mark.asyncio
async def test_generate_summary_requires_ai_tier(db, factory):
    await _enable_ai(db)
    organization = await factory.organization("acme", subscription_tier="clarity")
    role = await factory.role("analyst")
    user = await factory.user(organization=organization, primary_role_id=role.id)
    captured: list = []
    service = _service(transport=_openai_transport(captured))
    await service.upsert_prompt(db, role.id, "{priorities_data}")

    with pytest.raises(ForbiddenError) as exc_info:
        await service.generate_summary(db, user, role.id, priorities_data={})

    assert exc_info.value.message == "AI summaries are not included in your subscription tier"
    assert captured == []


@pytest.mark.asyncio
async def test_fetch_priority_data_falls_back_to_role_priority_report(db, factory):
    organization = await factory.organization("acme")
    template = await factory.template_report("Immediate Priorities")
    await factory.deployed_report(organization, template)
    role = await factory.role("coach", priority_report_id=template.id)
    user = await factory.user(organization=organization, primary_role_id=role.id)
    service = _service()
    await service.upsert_prompt(db, role.id, "{priorities_data}")

    snapshot = await service.fetch_priority_data(db, user)

    assert snapshot["report_name"] == "Immediate Priorities"
    assert snapshot["selected_pages"] == ["Overview", "Details"]
