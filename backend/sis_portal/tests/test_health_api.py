"""Testes para os endpoints de health check e observabilidade."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI

from sis_portal.tests.http_test_client import make_sync_asgi_client


@pytest.fixture
def health_app(monkeypatch):
    """App com as checagens de dependência substituídas por mocks."""
    import sis_portal.main as app_module

    def _build(checks: dict) -> FastAPI:
        for name in ("postgres", "redis"):
            monkeypatch.setattr(
                app_module,
                f"_check_{name}",
                AsyncMock(return_value=checks[name]),
            )
        return app_module.app

    return _build


def test_health_endpoint_returns_dependency_map(health_app):
    app_main = health_app(
        {"postgres": {"status": "connected"}, "redis": {"status": "connected"}}
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health")

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "healthy"
    assert payload["dependencies"]["postgres"]["status"] == "connected"
    assert payload["dependencies"]["redis"]["status"] == "connected"


def test_ready_endpoint_returns_200_when_all_dependencies_ok(health_app):
    app_main = health_app(
        {"postgres": {"status": "connected"}, "redis": {"status": "connected"}}
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health/ready")

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["status"] == "ready"
    assert payload["dependencies"]["postgres"]["status"] == "connected"


def test_ready_endpoint_returns_503_when_dependency_fails(health_app):
    app_main = health_app(
        {
            "postgres": {"status": "disconnected", "error": "connection timeout"},
            "redis": {"status": "connected"},
        }
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health/ready")

    assert resp.status_code == 503
    payload = resp.json()
    assert payload["detail"]["status"] == "unready"
    assert payload["detail"]["dependencies"]["postgres"]["status"] == "disconnected"


def test_live_endpoint_and_request_timing_header(health_app):
    app_main = health_app(
        {"postgres": {"status": "disconnected"}, "redis": {"status": "disconnected"}}
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health/live")

    assert resp.status_code == 200
    assert resp.json()["status"] == "alive"
    assert "X-Request-Duration-Ms" in resp.headers


def test_request_timing_preserves_header_request_id(health_app):
    app_main = health_app(
        {"postgres": {"status": "connected"}, "redis": {"status": "connected"}}
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health", headers={"X-Request-Id": "test-req-1"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"] == "test-req-1"


def test_request_without_id_gets_generated_one(health_app):
    app_main = health_app(
        {"postgres": {"status": "connected"}, "redis": {"status": "connected"}}
    )

    client = make_sync_asgi_client(app_main)
    resp = client.get("/health/live")

    assert resp.headers["X-Request-Id"]


def test_metrics_endpoint_is_plain_text(health_app):
    app_main = health_app(
        {"postgres": {"status": "connected"}, "redis": {"status": "connected"}}
    )

    client = make_sync_asgi_client(app_main)
    client.get("/health/live")
    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
