"""
Modelo SQLAlchemy para Organization (tenant).
"""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sis_portal.db.base import Base, utcnow
import uuid


class Organization(Base):
    """
    Representa uma organização (tenant) do portal.

    Atributos:
        id: UUID único
        name: Nome da organização
        subdomain: Subdomínio de roteamento (ex: 'acme' em acme.<dominio>)
        powerbi_workspace_id: Workspace PowerBI dedicado (GUID, opcional)
        powerbi_workspace_name: Nome do workspace PowerBI
        billing_email: Email de cobrança
        contact_name: Contato principal
        subscription_tier: Plano contratado (core, clarity, intelligence)
        logo_url: Logo exibido no portal
        is_active: Status da organização
    """

    __tablename__ = "organizations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    powerbi_workspace_id = Column(String(64), nullable=True)
    powerbi_workspace_name = Column(String(255), nullable=True)

    billing_email = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    subscription_tier = Column(String(50), default="core", nullable=False)
    logo_url = Column(String(1024), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, subdomain={self.subdomain})>"
