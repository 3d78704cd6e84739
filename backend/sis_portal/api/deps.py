"""
Dependencies para endpoints FastAPI.

Autenticação pelo token Bearer do provedor de identidade, capacidades
administrativas e resolução da organização da requisição.
"""
from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sis_portal.config import get_settings
from sis_portal.core.security import decode_access_token, verify_shared_secret
from sis_portal.core.tenant import get_request_subdomain
from sis_portal.db.base import get_db
from sis_portal.db.models import Organization, User
from sis_portal.services.organization_service import (
    OrganizationService,
    get_organization_service,
)


# Security scheme opcional: a ausência do token vira 401 com mensagem própria
security_optional = HTTPBearer(auto_error=False)


class Capability(str, Enum):
    """Capacidades exigidas pelos grupos de rotas."""

    AUTHENTICATED = "authenticated"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


def has_capability(user: User, capability: Capability) -> bool:
    """Super admin implica tenant admin."""
    if capability == Capability.AUTHENTICATED:
        return True
    if capability == Capability.TENANT_ADMIN:
        return bool(user.is_tenant_admin or user.is_super_admin)
    if capability == Capability.SUPER_ADMIN:
        return bool(user.is_super_admin)
    return False


async def _get_user_from_token(
    credentials: HTTPAuthorizationCredentials,
    db: AsyncSession,
) -> User:
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    email = payload.get("email")
    if not subject and not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = None
    if subject:
        result = await db.execute(select(User).where(User.auth_subject == subject))
        user = result.scalar_one_or_none()
    if user is None and email:
        result = await db.execute(select(User).where(User.email == str(email).lower()))
        user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if user.status == "suspended":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is suspended",
        )
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Obtém o usuário atual a partir do token JWT.

    O ``sub`` do token é comparado com ``users.auth_subject``; tokens sem
    subject conhecido caem para a busca por email.

    Raises:
        HTTPException: 401 sem token, token inválido ou usuário desconhecido
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _get_user_from_token(credentials, db)


def require_capability(capability: Capability) -> Callable:
    """
    Dependency factory que exige uma capacidade do usuário autenticado.

    Declarada no ``APIRouter(dependencies=[...])`` de cada grupo de rotas.
    """

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_capability(current_user, capability):
            detail = {
                Capability.SUPER_ADMIN: "Super Admin access required",
                Capability.TENANT_ADMIN: "Tenant Admin access required",
            }.get(capability, "Forbidden")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return current_user

    return _checker


async def get_current_organization(
    current_user: User = Depends(get_current_user),
    subdomain: Optional[str] = Depends(get_request_subdomain),
    db: AsyncSession = Depends(get_db),
    organization_service: OrganizationService = Depends(get_organization_service),
) -> Organization:
    """Organização efetiva: subdomínio da requisição ou organização do usuário."""
    return await organization_service.resolve_organization(db, subdomain, current_user)


def require_shared_secret(setting_name: str) -> Callable:
    """
    Exige ``Authorization: Bearer <segredo>`` igual ao segredo configurado.

    Usado pelo cron externo e pela sincronização do provedor de identidade.
    """

    async def _checker(authorization: Optional[str] = Header(default=None)) -> None:
        expected = getattr(get_settings(), setting_name)
        if not verify_shared_secret(authorization, expected):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )

    return _checker
