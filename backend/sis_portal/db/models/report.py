"""
Relatórios PowerBI: templates globais e implantações por organização.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from sis_portal.db.base import Base, utcnow


class PowerBIReport(Base):
    """
    Relatório do registro global.

    Templates (``is_template=True``) vivem no workspace mestre e são
    implantados em cada organização. Registros não-template são criados
    quando um admin informa manualmente um report id.
    """

    __tablename__ = "powerbi_reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    powerbi_report_id = Column(String(64), nullable=False)
    powerbi_workspace_id = Column(String(64), nullable=True)
    powerbi_dataset_id = Column(String(64), nullable=True)
    category = Column(String(100), nullable=True)
    version = Column(String(50), nullable=True)
    is_template = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class OrganizationReport(Base):
    """Relatório implantado: liga (organização, template) ao report concreto."""

    __tablename__ = "organization_powerbi_reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_report_id = Column(
        UUID(as_uuid=True),
        ForeignKey("powerbi_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    powerbi_report_id = Column(String(64), nullable=False)
    powerbi_workspace_id = Column(String(64), nullable=True)
    name = Column(String(255), nullable=True)
    deployment_status = Column(String(20), default="active", nullable=False)
    deployed_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

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
            "template_report_id",
            name="uq_organization_report_template",
        ),
    )
