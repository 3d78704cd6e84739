"""
Roles globais (hierárquicos) e suas permissões de módulo e de aba.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from sis_portal.db.base import Base, utcnow


class GlobalRole(Base):
    """
    Role compartilhado entre organizações.

    Atributos:
        parent_role_id: Role pai na hierarquia (None = raiz)
        role_level: Nível informativo (0 = topo)
        role_category: Agrupamento livre (ex: 'leadership', 'delivery')
        priority_report_id: Relatório prioritário exibido no resumo diário
    """

    __tablename__ = "global_roles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    parent_role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    role_level = Column(Integer, default=0, nullable=False)
    role_category = Column(String(100), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    priority_report_id = Column(
        UUID(as_uuid=True),
        ForeignKey("powerbi_reports.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<GlobalRole(name={self.name}, parent={self.parent_role_id})>"


class RoleModulePermission(Base):
    """Concede a um role acesso a um módulo global."""

    __tablename__ = "global_role_module_permissions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_modules.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("role_id", "module_id", name="uq_role_module_permission"),
    )


class RoleTabPermission(Base):
    """Concede a um role acesso a uma aba, identificada por (módulo, nome da aba)."""

    __tablename__ = "global_role_tab_permissions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_name = Column(String(100), nullable=False)
    tab_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "role_id",
            "module_name",
            "tab_name",
            name="uq_role_tab_permission",
        ),
    )
