"""
Catálogo global de módulos e instâncias de módulo por organização.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from sis_portal.db.base import Base, utcnow


class GlobalModule(Base):
    """Módulo do catálogo global (ex: 'operations', 'quality')."""

    __tablename__ = "global_modules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    module_group = Column(String(100), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<GlobalModule(name={self.name})>"


class OrganizationModule(Base):
    """
    Instância de um módulo provisionada para uma organização.

    ``name`` replica o nome do módulo global (quando houver) e é a chave
    usada nas rotas ``/tenant/modules/{module_name}``.
    """

    __tablename__ = "organization_modules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    global_module_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_modules.id", ondelete="SET NULL"),
        nullable=True,
    )
    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_organization_module_name"),
    )
