"""
Módulo de Segurança - verificação de JWT e segredos compartilhados.

A sessão do usuário é emitida pelo provedor de identidade externo; aqui
apenas validamos o token Bearer recebido. ``create_access_token`` existe
para ambientes locais e testes.
"""

from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Optional
from uuid import uuid4

from sis_portal.config import get_settings
from sis_portal.core.logging import get_logger

logger = get_logger(__name__)


def _jwt_now() -> datetime:
    """Retorna timestamp atual em UTC."""
    return datetime.now(timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Cria um token JWT compatível com o provedor de identidade.

    Args:
        data: Payload do token (geralmente {"sub": ..., "email": ...})
        expires_delta: Tempo de expiração opcional

    Returns:
        Token JWT codificado
    """
    settings = get_settings()
    to_encode = data.copy()
    expire = _jwt_now() + (expires_delta or timedelta(minutes=30))

    to_encode.update(
        {
            "exp": int(expire.timestamp()),
            "iat": int(_jwt_now().timestamp()),
            "jti": str(uuid4()),
        }
    )
    if settings.jwt_audience:
        to_encode.setdefault("aud", settings.jwt_audience)

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decodifica e valida um token JWT.

    Args:
        token: Token JWT codificado

    Returns:
        Payload do token se válido, None se inválido
    """
    settings = get_settings()
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        logger.info("jwt_rejected", reason=str(exc))
        return None


def bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Extrai o token de um header ``Authorization: Bearer ...``."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    return token or None


def verify_shared_secret(auth_header: Optional[str], expected: Optional[str]) -> bool:
    """
    Valida segredo compartilhado enviado como Bearer (cron, sync de usuário).

    Sem segredo configurado a chamada é sempre recusada.
    """
    if not expected:
        return False
    provided = bearer_token(auth_header)
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
