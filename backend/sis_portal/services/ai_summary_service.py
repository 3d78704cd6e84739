"""
Resumos diários gerados por IA (Azure OpenAI).

O prompt ativo do role recebe o snapshot de dados prioritários no lugar do
placeholder ``{priorities_data}``; o texto gerado é gravado em
``ai_summaries``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.config import Settings, get_settings
from sis_portal.core import metrics
from sis_portal.core.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    PortalError,
    ServiceNotConfiguredError,
    UpstreamServiceError,
)
from sis_portal.core.logging import get_logger
from sis_portal.db.models import (
    AIPrompt,
    AISummary,
    GlobalRole,
    Organization,
    OrganizationReport,
    PowerBIReport,
    User,
)
from sis_portal.services.catalog_service import CatalogService
from sis_portal.services.powerbi_client import PowerBIClient, get_powerbi_client
from sis_portal.services.subscription_tiers import FEATURE_AI_SUMMARY, has_feature

logger = get_logger(__name__)

PROMPT_TYPE_DAILY_SUMMARY = "daily_summary"
PRIORITIES_PLACEHOLDER = "{priorities_data}"
SYSTEM_MESSAGE = "You are a helpful AI assistant for apprenticeship training organizations."
MEASURES_QUERY = "EVALUATE INFO.MEASURES()"


@dataclass(frozen=True)
class AzureOpenAIConfig:
    endpoint: str
    api_key: str
    deployment_name: str
    api_version: str

    @property
    def chat_completions_url(self) -> str:
        return (
            f"{self.endpoint}/openai/deployments/{self.deployment_name}"
            f"/chat/completions?api-version={self.api_version}"
        )


def normalize_endpoint(endpoint: Optional[str]) -> Optional[str]:
    """Remove barra final e o sufixo ``/api`` informado por engano."""
    if not endpoint:
        return endpoint
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith("/api"):
        endpoint = endpoint[: -len("/api")]
    return endpoint


def render_prompt(prompt_text: str, priorities_data: Any) -> str:
    return prompt_text.replace(
        PRIORITIES_PLACEHOLDER,
        json.dumps(priorities_data, indent=2, default=str),
    )


class AISummaryService:
    """Gera e consulta resumos de IA."""

    def __init__(
        self,
        powerbi: Optional[PowerBIClient] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.powerbi = powerbi or get_powerbi_client()
        self._transport = transport
        self._catalog = CatalogService()

    async def _resolve_openai_config(self, db: AsyncSession) -> AzureOpenAIConfig:
        settings_row = await self._catalog.get_settings(db)
        if not settings_row.ai_enabled:
            raise ForbiddenError("AI features are not enabled")

        endpoint = normalize_endpoint(
            settings_row.azure_openai_endpoint or self.settings.azure_openai_endpoint
        )
        api_key = settings_row.azure_openai_api_key or self.settings.azure_openai_api_key
        deployment = (
            settings_row.azure_openai_deployment_name
            or self.settings.azure_openai_deployment_name
        )
        api_version = (
            settings_row.azure_openai_api_version or self.settings.azure_openai_api_version
        )
        if not (endpoint and api_key and deployment and api_version):
            raise ServiceNotConfiguredError("Azure OpenAI is not properly configured")

        return AzureOpenAIConfig(
            endpoint=endpoint,
            api_key=api_key,
            deployment_name=deployment,
            api_version=api_version,
        )

    async def _ensure_tier_allows_summary(self, db: AsyncSession, user: User) -> None:
        if user.is_super_admin or user.organization_id is None:
            return
        organization = await db.get(Organization, user.organization_id)
        if organization is not None and not has_feature(
            organization.subscription_tier, FEATURE_AI_SUMMARY
        ):
            raise ForbiddenError("AI summaries are not included in your subscription tier")

    async def get_active_prompt(self, db: AsyncSession, role_id: UUID) -> Optional[AIPrompt]:
        result = await db.execute(
            select(AIPrompt)
            .where(
                AIPrompt.role_id == role_id,
                AIPrompt.prompt_type == PROMPT_TYPE_DAILY_SUMMARY,
                AIPrompt.is_active.is_(True),
            )
            .order_by(AIPrompt.updated_at.desc())
        )
        return result.scalars().first()

    async def fetch_priority_data(self, db: AsyncSession, user: User) -> dict[str, Any]:
        """
        Snapshot de dados do relatório configurado no prompt do role do usuário.

        Consulta as medidas do dataset; se a consulta falhar, devolve só os
        metadados das páginas selecionadas.
        """
        if user.primary_role_id is None:
            raise InvalidRequestError("No role assigned")

        prompt = await self.get_active_prompt(db, user.primary_role_id)
        template_report_id = prompt.report_id if prompt is not None else None
        if template_report_id is None:
            # Sem relatório no prompt vale o relatório prioritário do role
            role = await db.get(GlobalRole, user.primary_role_id)
            template_report_id = role.priority_report_id if role is not None else None
        if template_report_id is None:
            raise NotFoundError("No PowerBI report configured for AI analysis")

        template = await db.get(PowerBIReport, template_report_id)
        deployment_result = await db.execute(
            select(OrganizationReport).where(
                OrganizationReport.organization_id == user.organization_id,
                OrganizationReport.template_report_id == template_report_id,
                OrganizationReport.deployment_status == "active",
            )
        )
        deployment = deployment_result.scalar_one_or_none()
        if deployment is None:
            raise NotFoundError("Report not deployed to your organization")

        workspace_id = deployment.powerbi_workspace_id
        report = await self.powerbi.get_report(workspace_id, deployment.powerbi_report_id)
        pages = await self.powerbi.get_report_pages(workspace_id, deployment.powerbi_report_id)
        if not pages:
            raise NotFoundError("No pages found in report")

        selected = (prompt.selected_pages if prompt is not None else None) or []
        pages = [page for page in pages if not selected or page.get("name") in selected]
        if not pages:
            raise NotFoundError("Selected pages not found in report")

        snapshot: dict[str, Any] = {
            "report_name": template.name if template else None,
            "selected_pages": [page.get("displayName") or page.get("name") for page in pages],
            "pages": [
                {"name": page.get("name"), "display_name": page.get("displayName")}
                for page in pages
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        dataset_id = report.get("datasetId")
        if not dataset_id:
            snapshot["source"] = "pages_metadata"
            snapshot["note"] = "Report has no dataset. Using page metadata only."
            return snapshot

        try:
            query_result = await self.powerbi.execute_queries(
                report.get("datasetWorkspaceId") or workspace_id,
                dataset_id,
                MEASURES_QUERY,
            )
        except UpstreamServiceError as exc:
            logger.warning("powerbi_dataset_query_failed", dataset_id=dataset_id, error=exc.details)
            snapshot["source"] = "pages_metadata"
            snapshot["note"] = "Dataset query failed. Using page metadata only."
            return snapshot

        snapshot["source"] = "dataset_query"
        snapshot["dataset_data"] = query_result
        return snapshot

    async def _complete(self, config: AzureOpenAIConfig, prompt: str) -> tuple[str, int]:
        body = {
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self.settings.ai_summary_max_tokens,
            "temperature": self.settings.ai_summary_temperature,
        }
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    config.chat_completions_url,
                    json=body,
                    headers={"api-key": config.api_key},
                )
            except httpx.HTTPError as exc:
                metrics.record_upstream_call("azure_openai", "error")
                raise UpstreamServiceError(
                    "azure_openai", "Failed to connect to Azure OpenAI", str(exc)
                ) from exc

        if response.status_code >= 400:
            metrics.record_upstream_call("azure_openai", "error")
            raise UpstreamServiceError(
                "azure_openai",
                "Failed to generate summary from Azure OpenAI",
                f"{response.status_code}: {response.text[:500]}",
            )

        metrics.record_upstream_call("azure_openai", "success")
        payload = response.json()
        choices = payload.get("choices") or [{}]
        summary = (choices[0].get("message") or {}).get("content")
        if not summary:
            raise UpstreamServiceError("azure_openai", "No summary generated")
        tokens_used = int((payload.get("usage") or {}).get("total_tokens") or 0)
        return summary, tokens_used

    async def generate_summary(
        self,
        db: AsyncSession,
        user: User,
        role_id: UUID,
        priorities_data: Any = None,
        fetch_powerbi_data: bool = False,
    ) -> AISummary:
        """
        Gera e grava o resumo do usuário para o role.

        Raises:
            ForbiddenError: IA desabilitada nas configurações do sistema ou
                fora do plano da organização
            NotFoundError: role sem prompt ativo
            ServiceNotConfiguredError: Azure OpenAI sem configuração completa
            UpstreamServiceError: falha no Azure OpenAI
        """
        await self._ensure_tier_allows_summary(db, user)
        if fetch_powerbi_data:
            try:
                priorities_data = await self.fetch_priority_data(db, user)
            except PortalError as exc:
                # O resumo segue com a nota; o prompt decide como tratar a ausência de dados
                logger.info("priority_data_unavailable", reason=exc.message)
                priorities_data = {"note": exc.message}
        elif priorities_data is None:
            raise InvalidRequestError(
                "Either priorities_data or fetch_powerbi_data must be provided"
            )

        config = await self._resolve_openai_config(db)
        prompt = await self.get_active_prompt(db, role_id)
        if prompt is None:
            raise NotFoundError("No active prompt found for this role")

        full_prompt = render_prompt(prompt.prompt_text, priorities_data)
        summary_text, tokens_used = await self._complete(config, full_prompt)

        summary = AISummary(
            organization_id=user.organization_id,
            user_id=user.id,
            role_id=role_id,
            summary_text=summary_text,
            summary_date=datetime.now(timezone.utc).date(),
            priorities_data=priorities_data,
            prompt_used=full_prompt,
            tokens_used=tokens_used,
        )
        db.add(summary)
        await db.commit()

        logger.info(
            "ai_summary_generated",
            summary_user_id=str(user.id),
            role_id=str(role_id),
            tokens_used=tokens_used,
        )
        return summary

    async def latest_summary(self, db: AsyncSession, user: User) -> Optional[AISummary]:
        result = await db.execute(
            select(AISummary)
            .where(AISummary.user_id == user.id)
            .order_by(AISummary.summary_date.desc(), AISummary.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_prompts(self, db: AsyncSession) -> list[AIPrompt]:
        result = await db.execute(select(AIPrompt).order_by(AIPrompt.role_id, AIPrompt.prompt_type))
        return list(result.scalars())

    async def upsert_prompt(
        self,
        db: AsyncSession,
        role_id: UUID,
        prompt_text: str,
        report_id: Optional[UUID] = None,
        selected_pages: Optional[list[str]] = None,
        is_active: bool = True,
        prompt_type: str = PROMPT_TYPE_DAILY_SUMMARY,
    ) -> AIPrompt:
        """Um prompt por (role, tipo): atualiza o existente ou cria."""
        result = await db.execute(
            select(AIPrompt).where(
                AIPrompt.role_id == role_id,
                AIPrompt.prompt_type == prompt_type,
            )
        )
        prompt = result.scalars().first()
        if prompt is None:
            prompt = AIPrompt(role_id=role_id, prompt_type=prompt_type)
            db.add(prompt)

        prompt.prompt_text = prompt_text
        prompt.report_id = report_id
        prompt.selected_pages = selected_pages or []
        prompt.is_active = is_active
        await db.commit()

        logger.info("ai_prompt_saved", role_id=str(role_id), prompt_type=prompt_type)
        return prompt


def get_ai_summary_service() -> AISummaryService:
    """Dependency provider."""

    return AISummaryService()
