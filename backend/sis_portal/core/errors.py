"""
Exceções de domínio do portal.

Serviços levantam estas exceções; ``register_exception_handlers`` as traduz
para respostas HTTP ``{"detail": ...}`` com o status correspondente.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from sis_portal.core.logging import get_logger

logger = get_logger(__name__)


class PortalError(Exception):
    """Exceção base para erros de regra de negócio."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class InvalidRequestError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND


class ModuleNotFoundForOrganization(NotFoundError):
    """Módulo não provisionado ou inativo para a organização."""

    def __init__(self, module_name: str):
        super().__init__("Module not found or not accessible")
        self.module_name = module_name


class ConflictError(PortalError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamServiceError(PortalError):
    """Falha em serviço externo (PowerBI, Azure AD, Azure OpenAI)."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service: str, message: str, details: Optional[str] = None):
        super().__init__(message, details)
        self.service = service


class ServiceNotConfiguredError(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    content = {"detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    if exc.status_code >= 500:
        logger.error(
            "portal_error",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
            details=exc.details,
        )
    return JSONResponse(status_code=exc.status_code, content=content)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registra os handlers de exceção de domínio e de fallback."""
    app.add_exception_handler(PortalError, _portal_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
