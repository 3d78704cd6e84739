"""
Middleware de Multi-tenancy.

Resolve o subdomínio da requisição (``acme.<root_domain>``) e injeta no
contexto. A organização efetiva é resolvida depois, com acesso ao banco,
em ``OrganizationService.resolve_organization``.
"""

from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from sis_portal.config import get_settings


# Subdomínios que pertencem à plataforma e não a um tenant
RESERVED_SUBDOMAINS = {"www", "app", "admin", "api"}


def extract_subdomain(host: Optional[str], root_domain: str) -> Optional[str]:
    """
    Extrai o subdomínio do header Host.

    Args:
        host: Valor do header Host (pode conter porta)
        root_domain: Domínio raiz configurado

    Returns:
        Subdomínio em minúsculas, ou None para o domínio principal
    """
    if not host:
        return None

    hostname = host.split(":", 1)[0].strip().lower().rstrip(".")
    root = root_domain.strip().lower()
    if not hostname.endswith("." + root):
        return None

    subdomain = hostname[: -(len(root) + 1)]
    if not subdomain or "." in subdomain or subdomain in RESERVED_SUBDOMAINS:
        return None
    return subdomain


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware que identifica o subdomínio do tenant.

    O header ``X-Subdomain`` (definido pelo proxy/front-end) tem prioridade
    sobre o header Host.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        subdomain = request.headers.get("X-Subdomain")
        if subdomain:
            subdomain = subdomain.strip().lower() or None
        else:
            subdomain = extract_subdomain(
                request.headers.get("host"),
                get_settings().root_domain,
            )

        request.state.subdomain = subdomain
        return await call_next(request)


async def get_request_subdomain(request: Request) -> Optional[str]:
    """
    Dependency para injetar o subdomínio nos endpoints.

    Returns:
        Subdomínio da requisição ou None no domínio principal
    """
    return getattr(request.state, "subdomain", None)
