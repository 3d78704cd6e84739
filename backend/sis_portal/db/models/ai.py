"""
Prompts e resumos gerados por IA, e configurações globais do sistema.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from sis_portal.db.base import Base, JSONType, utcnow


class AIPrompt(Base):
    """
    Prompt de IA por role.

    ``prompt_text`` pode conter o placeholder ``{priorities_data}``, que é
    substituído pelo snapshot de dados no momento da geração.
    """

    __tablename__ = "ai_prompts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prompt_type = Column(String(50), default="daily_summary", nullable=False)
    prompt_text = Column(Text, nullable=False)
    report_id = Column(
        UUID(as_uuid=True),
        ForeignKey("powerbi_reports.id", ondelete="SET NULL"),
        nullable=True,
    )
    selected_pages = Column(JSONType, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class AISummary(Base):
    """Resumo diário gerado para um usuário."""

    __tablename__ = "ai_summaries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id = Column(
        UUID(as_uuid=True),
        ForeignKey("global_roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    summary_text = Column(Text, nullable=False)
    summary_date = Column(Date, nullable=False)
    priorities_data = Column(JSONType, nullable=True)
    prompt_used = Column(Text, nullable=True)
    tokens_used = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class SystemSettings(Base):
    """
    Configuração global (linha única).

    Valores nulos caem para as variáveis de ambiente em ``Settings``.
    """

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, default=1)
    ai_enabled = Column(Boolean, default=False, nullable=False)
    azure_openai_endpoint = Column(String(512), nullable=True)
    azure_openai_api_key = Column(String(512), nullable=True)
    azure_openai_deployment_name = Column(String(255), nullable=True)
    azure_openai_api_version = Column(String(50), nullable=True)
    powerbi_master_workspace_id = Column(String(64), nullable=True)

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )
