"""Métricas leves de execução (Prometheus)."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from sis_portal.config import get_settings

_registry = CollectorRegistry()

_http_requests_total = Counter(
    "http_requests_total",
    "Total de requisições HTTP",
    ["method", "path", "status"],
    registry=_registry,
)
_http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duração das requisições HTTP",
    ["method", "path", "status"],
    registry=_registry,
    buckets=[0.05, 0.1, 0.5, 1, 3, 5, 10],
)
_daily_summaries_total = Counter(
    "daily_summaries_total",
    "Resumos diários processados por status",
    ["status"],
    registry=_registry,
)
_upstream_requests_total = Counter(
    "upstream_requests_total",
    "Chamadas HTTP para serviços externos",
    ["service", "outcome"],
    registry=_registry,
)


def is_enabled() -> bool:
    """Métricas habilitadas globalmente."""
    return bool(get_settings().metrics_enabled)


def record_http_request(
    method: str,
    path: str,
    status: int,
    duration_seconds: float,
) -> None:
    """Registra métrica de request HTTP."""
    if not is_enabled():
        return

    labels = {"method": method.upper(), "path": path, "status": str(status)}
    _http_requests_total.labels(**labels).inc()
    _http_request_duration_seconds.labels(**labels).observe(duration_seconds)


def record_daily_summary(status: str) -> None:
    """Registra o resultado de um resumo diário (success/failed/error)."""
    if not is_enabled():
        return
    _daily_summaries_total.labels(status=status).inc()


def record_upstream_call(service: str, outcome: str) -> None:
    """Registra chamada a PowerBI/Azure AD/Azure OpenAI."""
    if not is_enabled():
        return
    _upstream_requests_total.labels(service=service, outcome=outcome).inc()


def get_metrics_payload() -> bytes:
    """Serializa o registry no formato texto do Prometheus."""
    return generate_latest(_registry)
