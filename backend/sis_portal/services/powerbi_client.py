"""
Cliente da API REST do PowerBI.

Autentica como service principal (client credentials no Azure AD) e expõe
as chamadas usadas pelo portal: detalhes/páginas de relatório, embed token,
listagem de workspace e consultas DAX em datasets.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from sis_portal.config import Settings, get_settings
from sis_portal.core import metrics
from sis_portal.core.errors import ServiceNotConfiguredError, UpstreamServiceError
from sis_portal.core.logging import get_logger

logger = get_logger(__name__)

# Margem antes da expiração para renovar o token do Azure AD
TOKEN_REFRESH_MARGIN_SECONDS = 60


class PowerBIClient:
    """Cliente assíncrono do PowerBI (uma instância por processo)."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return self.settings.powerbi_configured

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        )

    def _ensure_configured(self) -> None:
        if not self.configured:
            raise ServiceNotConfiguredError(
                "PowerBI integration not configured",
                "Set POWERBI_TENANT_ID, POWERBI_CLIENT_ID and POWERBI_CLIENT_SECRET",
            )

    async def get_access_token(self) -> str:
        """Token do Azure AD para a API do PowerBI, reutilizado até expirar."""
        self._ensure_configured()
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        url = (
            f"{self.settings.powerbi_authority_url}/"
            f"{self.settings.powerbi_tenant_id}/oauth2/v2.0/token"
        )
        data = {
            "grant_type": "client_credentials",
            "client_id": self.settings.powerbi_client_id,
            "client_secret": self.settings.powerbi_client_secret,
            "scope": self.settings.powerbi_scope,
        }
        async with self._client() as client:
            try:
                response = await client.post(url, data=data)
            except httpx.HTTPError as exc:
                metrics.record_upstream_call("azure_ad", "error")
                raise UpstreamServiceError(
                    "azure_ad", "Failed to authenticate with Azure AD", str(exc)
                ) from exc

        if response.status_code != 200:
            metrics.record_upstream_call("azure_ad", "error")
            logger.warning("azure_ad_token_failed", status_code=response.status_code)
            raise UpstreamServiceError(
                "azure_ad", "Failed to authenticate with Azure AD", response.text[:500]
            )

        metrics.record_upstream_call("azure_ad", "success")
        payload = response.json()
        self._access_token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_REFRESH_MARGIN_SECONDS, 0)
        return self._access_token

    async def _request(
        self,
        method: str,
        path: str,
        error_message: str,
        json: Any = None,
    ) -> dict[str, Any]:
        token = await self.get_access_token()
        url = f"{self.settings.powerbi_api_base_url}{path}"
        async with self._client() as client:
            try:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as exc:
                metrics.record_upstream_call("powerbi", "error")
                raise UpstreamServiceError("powerbi", error_message, str(exc)) from exc

        if response.status_code >= 400:
            metrics.record_upstream_call("powerbi", "error")
            logger.warning(
                "powerbi_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise UpstreamServiceError("powerbi", error_message, response.text[:500])

        metrics.record_upstream_call("powerbi", "success")
        return response.json() if response.content else {}

    async def get_report(self, workspace_id: str, report_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/groups/{workspace_id}/reports/{report_id}",
            "Failed to get report details",
        )

    async def get_report_pages(self, workspace_id: str, report_id: str) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            f"/groups/{workspace_id}/reports/{report_id}/pages",
            "Unable to fetch report pages",
        )
        return payload.get("value", [])

    async def list_workspace_reports(self, workspace_id: str) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            f"/groups/{workspace_id}/reports",
            "Unable to list workspace reports",
        )
        return payload.get("value", [])

    async def generate_embed_token(self, workspace_id: str, report_id: str) -> dict[str, Any]:
        """
        Gera embed token de leitura e devolve junto a URL de embed.

        Returns:
            dict com access_token, embed_url, expiration, token_id
        """
        token_payload = await self._request(
            "POST",
            f"/groups/{workspace_id}/reports/{report_id}/GenerateToken",
            "Failed to generate PowerBI embed token",
            json={"accessLevel": "View"},
        )
        report = await self.get_report(workspace_id, report_id)

        logger.info("embed_token_generated", report_id=report_id, workspace_id=workspace_id)
        return {
            "access_token": token_payload.get("token"),
            "embed_url": report.get("embedUrl"),
            "expiration": token_payload.get("expiration"),
            "token_id": token_payload.get("tokenId"),
        }

    async def execute_queries(
        self,
        workspace_id: str,
        dataset_id: str,
        query: str,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/groups/{workspace_id}/datasets/{dataset_id}/executeQueries",
            "Dataset query failed",
            json={
                "queries": [{"query": query}],
                "serializerSettings": {"includeNulls": True},
            },
        )


_client_instance: Optional[PowerBIClient] = None


def get_powerbi_client() -> PowerBIClient:
    """Dependency provider (instância compartilhada para reaproveitar o token)."""
    global _client_instance
    if _client_instance is None:
        _client_instance = PowerBIClient()
    return _client_instance
