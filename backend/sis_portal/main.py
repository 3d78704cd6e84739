"""
Aplicação Principal FastAPI - Skills Intelligence System

Entry point do portal multi-tenant: catálogo global, organizações,
permissões por role e integração PowerBI / Azure OpenAI.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from time import perf_counter
from typing import Any
from uuid import uuid4

import redis.asyncio as aioredis
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from sis_portal.api.v1 import (
    admin_catalog,
    admin_organizations,
    admin_roles,
    ai,
    auth,
    cron,
    powerbi,
    tenant,
    tenant_admin,
)
from sis_portal.config import get_settings
from sis_portal.core.errors import register_exception_handlers
from sis_portal.core.logging import bind_request_context, configure_structlog, get_logger
from sis_portal.core.metrics import get_metrics_payload, is_enabled, record_http_request
from sis_portal.core.security import bearer_token, decode_access_token
from sis_portal.core.tenant import TenantContextMiddleware
from sis_portal.db.base import engine

settings = get_settings()
configure_structlog()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.

    Startup: Conexões, pools, etc.
    Shutdown: Limpeza de recursos
    """
    logger.info(
        "app_startup_started",
        app_name=settings.app_name,
        app_version=settings.app_version,
        environment=settings.environment,
    )

    yield

    await engine.dispose()
    logger.info("app_shutdown")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Middleware de observabilidade básica com duração de request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-Id") or request.headers.get(
            "X-Request-ID"
        ) or str(uuid4())
        request.state.request_id = request_id
        start = perf_counter()
        subdomain = getattr(request.state, "subdomain", None)
        user_id = self._extract_user_id(request)

        with bind_request_context(request_id=request_id, user_id=user_id):
            response = await call_next(request)

        elapsed_ms = (perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.2f}"

        logger.info(
            "http_request_complete",
            method=request.method,
            path=request.url.path,
            status_code=getattr(response, "status_code", None),
            request_id=request_id,
            duration_ms=round(elapsed_ms, 2),
            subdomain=subdomain,
        )
        return response

    @staticmethod
    def _extract_user_id(request: Request) -> str | None:
        token = bearer_token(request.headers.get("Authorization"))
        if not token:
            return None

        payload = decode_access_token(token)
        if not payload:
            return None
        return payload.get("sub")


class MetricsMiddleware(BaseHTTPMiddleware):
    """Mede duração/contagem de requisições para o endpoint /metrics."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = perf_counter()
        response = await call_next(request)
        elapsed = perf_counter() - start
        if is_enabled():
            record_http_request(
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_seconds=elapsed,
            )
        return response


# Criar aplicação FastAPI
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Portal multi-tenant de relatórios PowerBI do Skills Intelligence System",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Sincronização com o provedor de identidade."},
        {"name": "Super Admin - Organizations", "description": "Provisionamento e implantação por organização."},
        {"name": "Super Admin - Catalog", "description": "Módulos, abas, relatórios e configurações globais."},
        {"name": "Super Admin - Roles", "description": "Hierarquia de roles e permissões."},
        {"name": "Tenant Admin", "description": "Usuários e dados da organização."},
        {"name": "Tenant", "description": "Módulos e abas do usuário."},
    ],
    lifespan=lifespan,
)

register_exception_handlers(app)


# =====================================================
# Middlewares
# =====================================================

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(MetricsMiddleware)

# Multi-tenancy: registrado por último para rodar antes dos demais
app.add_middleware(TenantContextMiddleware)


def _build_health_result() -> dict[str, Any]:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }


async def _check_postgres() -> dict[str, Any]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "connected"}
    except (OSError, SQLAlchemyError) as exc:
        return {"status": "disconnected", "error": str(exc)}


async def _check_redis() -> dict[str, Any]:
    redis_client = aioredis.from_url(settings.redis_url)
    try:
        ping_result = await redis_client.ping()
        if ping_result is True:
            return {"status": "connected"}
        return {"status": "disconnected", "error": f"ping={ping_result!r}"}
    except (OSError, aioredis.RedisError) as exc:
        return {"status": "disconnected", "error": str(exc)}
    finally:
        await redis_client.aclose()


async def _collect_dependency_checks() -> dict[str, Any]:
    postgres = await _check_postgres()
    redis_check = await _check_redis()

    return {
        "dependencies": {
            "postgres": postgres,
            "redis": redis_check,
        },
    }


# =====================================================
# Rotas API v1
# =====================================================

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router)
api_router.include_router(admin_organizations.router)
api_router.include_router(admin_catalog.router)
api_router.include_router(admin_roles.router)
api_router.include_router(tenant_admin.router)
api_router.include_router(tenant_admin.roles_router)
api_router.include_router(tenant.router)
api_router.include_router(powerbi.router)
api_router.include_router(ai.router)
api_router.include_router(cron.router)

app.include_router(api_router)


# =====================================================
# Health Check
# =====================================================

@app.get("/")
async def root():
    """Health check básico."""
    payload = _build_health_result()
    payload["status"] = "healthy"
    return payload


@app.get("/health")
async def health():
    """Health check simples: sempre retorna resumo consolidado."""
    payload = _build_health_result()
    payload["status"] = "healthy"
    checks = await _collect_dependency_checks()
    payload.update(checks)
    return payload


@app.get("/health/ready")
async def ready():
    """Readiness para orquestradores (carregamento de tráfego)."""
    payload = _build_health_result()
    checks = await _collect_dependency_checks()
    payload.update(checks)

    all_connected = all(
        dependency.get("status") == "connected"
        for dependency in checks["dependencies"].values()
    )

    if all_connected:
        payload["status"] = "ready"
        return payload

    payload["status"] = "unready"
    raise HTTPException(status_code=503, detail=payload)


@app.get("/health/live")
async def live():
    """Liveness: verifica se o processo está vivo."""
    payload = _build_health_result()
    payload["status"] = "alive"
    return payload


# =====================================================
# Métricas Prometheus
# =====================================================


@app.get("/metrics", include_in_schema=False)
async def metrics() -> PlainTextResponse:
    if not is_enabled():
        return PlainTextResponse("metrics_disabled 0\n")

    payload = get_metrics_payload()
    return PlainTextResponse(payload.decode("utf-8"), media_type="text/plain; version=0.0.4")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sis_portal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
