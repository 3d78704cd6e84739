"""
Base de dados SQLAlchemy.

Configuração assíncrona e sessão para o PostgreSQL.
"""

from collections.abc import AsyncIterator
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from sis_portal.config import get_settings

settings = get_settings()

# Engine assíncrono
engine = create_async_engine(
    settings.postgres_url,
    echo=settings.debug,
    pool_size=settings.postgres_pool_size,
    max_overflow=settings.postgres_max_overflow,
)

# Session factory assíncrono
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# JSONB no PostgreSQL, JSON genérico nos demais dialetos (testes em SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Classe base para todos os modelos SQLAlchemy."""

    pass


def utcnow() -> datetime:
    """Timestamp atual em UTC (default de ``created_at``/``updated_at``)."""
    return datetime.now(timezone.utc)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency para injetar sessão de banco nos endpoints.

    Yields:
        AsyncSession: Sessão assíncrona do PostgreSQL
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
