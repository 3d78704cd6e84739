"""
Abas de módulo: padrões globais e overrides por organização.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from sis_portal.db.base import Base, utcnow
from sis_portal.services.tab_overrides import (
    OVERRIDE_ADD,
    OVERRIDE_HIDDEN,
    AddedOverride,
    HiddenOverride,
    TabOverride,
)


class ModuleTab(Base):
    """
    Aba padrão global de um módulo.

    A identidade da aba é ``(module_name, tab_name)``; a mesma chave é
    usada pelos overrides de tenant e pelas permissões de aba dos roles.
    """

    __tablename__ = "module_tabs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    module_name = Column(String(100), nullable=False, index=True)
    tab_name = Column(String(255), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    report_id = Column(
        UUID(as_uuid=True),
        ForeignKey("powerbi_reports.id", ondelete="SET NULL"),
        nullable=True,
    )
    page_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("module_name", "tab_name", name="uq_module_tab_identity"),
    )

    def __repr__(self) -> str:
        return f"<ModuleTab(module={self.module_name}, tab={self.tab_name})>"


class TenantModuleTab(Base):
    """
    Override de aba por organização.

    Cada identidade tem no máximo uma linha por (organização, módulo):
    ``hidden`` esconde a aba global, ``add`` adiciona uma aba própria apontando
    para um relatório implantado. Ausência de linha = comportamento padrão.
    """

    __tablename__ = "tenant_module_tabs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organization_modules.id", ondelete="CASCADE"),
        nullable=False,
    )
    tab_name = Column(String(255), nullable=False)
    override_mode = Column(String(10), nullable=False)

    hidden_global_tab_id = Column(
        UUID(as_uuid=True),
        ForeignKey("module_tabs.id", ondelete="SET NULL"),
        nullable=True,
    )
    organization_report_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organization_powerbi_reports.id", ondelete="CASCADE"),
        nullable=True,
    )
    page_name = Column(String(255), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "module_id",
            "tab_name",
            name="uq_tenant_module_tab_identity",
        ),
        CheckConstraint(
            "override_mode IN ('hidden', 'add')",
            name="ck_tenant_module_tab_mode",
        ),
        CheckConstraint(
            "override_mode = 'hidden' OR "
            "(organization_report_id IS NOT NULL AND page_name IS NOT NULL)",
            name="ck_tenant_module_tab_add_target",
        ),
    )

    def to_override(self) -> TabOverride:
        """Converte a linha na variante tipada do override."""
        if self.override_mode == OVERRIDE_HIDDEN:
            return HiddenOverride(
                tab_name=self.tab_name,
                global_tab_id=self.hidden_global_tab_id,
            )
        if self.override_mode == OVERRIDE_ADD:
            return AddedOverride(
                tab_name=self.tab_name,
                organization_report_id=self.organization_report_id,
                page_name=self.page_name,
                sort_order=self.sort_order or 0,
            )
        raise ValueError(f"Unknown override mode: {self.override_mode}")

    def __repr__(self) -> str:
        return (
            f"<TenantModuleTab(org={self.organization_id}, tab={self.tab_name}, "
            f"mode={self.override_mode})>"
        )
