"""
Modelo SQLAlchemy para User e atribuições de role.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sis_portal.db.base import Base, utcnow
import uuid


USER_STATUSES = ("active", "suspended", "invited")


class User(Base):
    """
    Representa um usuário do portal.

    A autenticação é feita pelo provedor externo; ``auth_subject`` guarda o
    ``sub`` do token emitido por ele.

    Atributos:
        id: UUID único
        auth_subject: Identificador do usuário no provedor de identidade
        email: Email do usuário (único)
        full_name: Nome completo
        organization_id: Organização de origem (None para super admins globais)
        is_super_admin: Administra toda a plataforma
        is_tenant_admin: Administra a própria organização
        primary_role_id: Role principal (usado no resumo diário)
        status: active, suspended ou invited
    """

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    auth_subject = Column(String(255), unique=True, nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_super_admin = Column(Boolean, default=False, nullable=False)
    is_tenant_admin = Column(Boolean, default=False, nullable=False)
    primary_role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(String(20), default="active", nullable=False, index=True)

    invited_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, organization_id={self.organization_id})>"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class UserRole(Base):
    """Role adicional atribuído a um usuário."""

    __tablename__ = "user_roles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    global_role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "global_role_id", name="uq_user_role"),
    )
