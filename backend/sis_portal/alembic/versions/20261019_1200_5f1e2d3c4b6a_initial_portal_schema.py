"""Initial portal schema.

Revisão:
  - organizações e módulos (catálogo global + instância por organização)
  - relatórios template e relatórios implantados por organização
  - abas globais e overrides por organização (hidden / add)
  - roles globais com hierarquia e permissões por módulo e por aba
  - usuários, roles adicionais, prompts e resumos de IA, system_settings
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "5f1e2d3c4b6a"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
    ]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=True,
    )


def upgrade() -> None:
    op.create_table(
        "organizations",
        _uuid_pk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("subdomain", sa.String(length=63), nullable=False),
        sa.Column("powerbi_workspace_id", sa.String(length=64), nullable=True),
        sa.Column("powerbi_workspace_name", sa.String(length=255), nullable=True),
        sa.Column("billing_email", sa.String(length=255), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("subscription_tier", sa.String(length=50), nullable=False),
        sa.Column("logo_url", sa.String(length=1024), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_organizations"),
    )
    op.create_index(op.f("ix_organizations_subdomain"), "organizations", ["subdomain"], unique=True)
    op.create_index(op.f("ix_organizations_is_active"), "organizations", ["is_active"], unique=False)

    op.create_table(
        "global_modules",
        _uuid_pk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=100), nullable=True),
        sa.Column("module_group", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_global_modules"),
    )
    op.create_index(op.f("ix_global_modules_name"), "global_modules", ["name"], unique=True)

    op.create_table(
        "organization_modules",
        _uuid_pk(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("global_module_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["global_module_id"], ["global_modules.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_organization_modules"),
        sa.UniqueConstraint("organization_id", "name", name="uq_organization_module_name"),
    )
    op.create_index(
        op.f("ix_organization_modules_organization_id"),
        "organization_modules",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "powerbi_reports",
        _uuid_pk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("powerbi_report_id", sa.String(length=64), nullable=False),
        sa.Column("powerbi_workspace_id", sa.String(length=64), nullable=True),
        sa.Column("powerbi_dataset_id", sa.String(length=64), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("version", sa.String(length=50), nullable=True),
        sa.Column("is_template", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_powerbi_reports"),
    )

    op.create_table(
        "organization_powerbi_reports",
        _uuid_pk(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("template_report_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("powerbi_report_id", sa.String(length=64), nullable=False),
        sa.Column("powerbi_workspace_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("deployment_status", sa.String(length=20), nullable=False),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_report_id"], ["powerbi_reports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_organization_powerbi_reports"),
        sa.UniqueConstraint(
            "organization_id",
            "template_report_id",
            name="uq_organization_report_template",
        ),
    )
    op.create_index(
        op.f("ix_organization_powerbi_reports_organization_id"),
        "organization_powerbi_reports",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "module_tabs",
        _uuid_pk(),
        sa.Column("module_name", sa.String(length=100), nullable=False),
        sa.Column("tab_name", sa.String(length=255), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("report_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("page_name", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["report_id"], ["powerbi_reports.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_module_tabs"),
        sa.UniqueConstraint("module_name", "tab_name", name="uq_module_tab_identity"),
    )
    op.create_index(op.f("ix_module_tabs_module_name"), "module_tabs", ["module_name"], unique=False)

    op.create_table(
        "tenant_module_tabs",
        _uuid_pk(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("module_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tab_name", sa.String(length=255), nullable=False),
        sa.Column("override_mode", sa.String(length=10), nullable=False),
        sa.Column("hidden_global_tab_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("organization_report_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("page_name", sa.String(length=255), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["organization_modules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["hidden_global_tab_id"], ["module_tabs.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["organization_report_id"],
            ["organization_powerbi_reports.id"],
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "override_mode IN ('hidden', 'add')",
            name="ck_tenant_module_tab_mode",
        ),
        sa.CheckConstraint(
            "override_mode = 'hidden' OR "
            "(organization_report_id IS NOT NULL AND page_name IS NOT NULL)",
            name="ck_tenant_module_tab_add_target",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_tenant_module_tabs"),
        sa.UniqueConstraint(
            "organization_id",
            "module_id",
            "tab_name",
            name="uq_tenant_module_tab_identity",
        ),
    )
    op.create_index(
        op.f("ix_tenant_module_tabs_organization_id"),
        "tenant_module_tabs",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "global_roles",
        _uuid_pk(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=100), nullable=True),
        sa.Column("parent_role_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("role_level", sa.Integer(), nullable=False),
        sa.Column("role_category", sa.String(length=100), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("priority_report_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["parent_role_id"], ["global_roles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["priority_report_id"], ["powerbi_reports.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_global_roles"),
    )
    op.create_index(op.f("ix_global_roles_name"), "global_roles", ["name"], unique=True)

    op.create_table(
        "global_role_module_permissions",
        _uuid_pk(),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("module_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["role_id"], ["global_roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["global_modules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_global_role_module_permissions"),
        sa.UniqueConstraint("role_id", "module_id", name="uq_role_module_permission"),
    )
    op.create_index(
        op.f("ix_global_role_module_permissions_role_id"),
        "global_role_module_permissions",
        ["role_id"],
        unique=False,
    )

    op.create_table(
        "global_role_tab_permissions",
        _uuid_pk(),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("module_name", sa.String(length=100), nullable=False),
        sa.Column("tab_name", sa.String(length=255), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["role_id"], ["global_roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_global_role_tab_permissions"),
        sa.UniqueConstraint("role_id", "module_name", "tab_name", name="uq_role_tab_permission"),
    )
    op.create_index(
        op.f("ix_global_role_tab_permissions_role_id"),
        "global_role_tab_permissions",
        ["role_id"],
        unique=False,
    )

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("auth_subject", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False),
        sa.Column("is_tenant_admin", sa.Boolean(), nullable=False),
        sa.Column("primary_role_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["primary_role_id"], ["global_roles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("auth_subject", name="uq_users_auth_subject"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_organization_id"), "users", ["organization_id"], unique=False)
    op.create_index(op.f("ix_users_status"), "users", ["status"], unique=False)

    op.create_table(
        "user_roles",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("global_role_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["global_role_id"], ["global_roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_user_roles"),
        sa.UniqueConstraint("user_id", "global_role_id", name="uq_user_role"),
    )
    op.create_index(op.f("ix_user_roles_user_id"), "user_roles", ["user_id"], unique=False)

    op.create_table(
        "ai_prompts",
        _uuid_pk(),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("prompt_type", sa.String(length=50), nullable=False),
        sa.Column("prompt_text", sa.Text(), nullable=False),
        sa.Column("report_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("selected_pages", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["role_id"], ["global_roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["report_id"], ["powerbi_reports.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_ai_prompts"),
    )
    op.create_index(op.f("ix_ai_prompts_role_id"), "ai_prompts", ["role_id"], unique=False)

    op.create_table(
        "ai_summaries",
        _uuid_pk(),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("summary_text", sa.Text(), nullable=False),
        sa.Column("summary_date", sa.Date(), nullable=False),
        sa.Column("priorities_data", postgresql.JSONB(), nullable=True),
        sa.Column("prompt_used", sa.Text(), nullable=True),
        sa.Column("tokens_used", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["global_roles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name="pk_ai_summaries"),
    )
    op.create_index(
        op.f("ix_ai_summaries_organization_id"), "ai_summaries", ["organization_id"], unique=False
    )
    op.create_index(op.f("ix_ai_summaries_user_id"), "ai_summaries", ["user_id"], unique=False)

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ai_enabled", sa.Boolean(), nullable=False),
        sa.Column("azure_openai_endpoint", sa.String(length=512), nullable=True),
        sa.Column("azure_openai_api_key", sa.String(length=512), nullable=True),
        sa.Column("azure_openai_deployment_name", sa.String(length=255), nullable=True),
        sa.Column("azure_openai_api_version", sa.String(length=50), nullable=True),
        sa.Column("powerbi_master_workspace_id", sa.String(length=64), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_system_settings"),
    )


def downgrade() -> None:
    op.drop_table("system_settings")
    op.drop_index(op.f("ix_ai_summaries_user_id"), table_name="ai_summaries")
    op.drop_index(op.f("ix_ai_summaries_organization_id"), table_name="ai_summaries")
    op.drop_table("ai_summaries")
    op.drop_index(op.f("ix_ai_prompts_role_id"), table_name="ai_prompts")
    op.drop_table("ai_prompts")
    op.drop_index(op.f("ix_user_roles_user_id"), table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_index(op.f("ix_users_status"), table_name="users")
    op.drop_index(op.f("ix_users_organization_id"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    op.drop_index(
        op.f("ix_global_role_tab_permissions_role_id"), table_name="global_role_tab_permissions"
    )
    op.drop_table("global_role_tab_permissions")
    op.drop_index(
        op.f("ix_global_role_module_permissions_role_id"),
        table_name="global_role_module_permissions",
    )
    op.drop_table("global_role_module_permissions")
    op.drop_index(op.f("ix_global_roles_name"), table_name="global_roles")
    op.drop_table("global_roles")
    op.drop_index(op.f("ix_tenant_module_tabs_organization_id"), table_name="tenant_module_tabs")
    op.drop_table("tenant_module_tabs")
    op.drop_index(op.f("ix_module_tabs_module_name"), table_name="module_tabs")
    op.drop_table("module_tabs")
    op.drop_index(
        op.f("ix_organization_powerbi_reports_organization_id"),
        table_name="organization_powerbi_reports",
    )
    op.drop_table("organization_powerbi_reports")
    op.drop_table("powerbi_reports")
    op.drop_index(op.f("ix_organization_modules_organization_id"), table_name="organization_modules")
    op.drop_table("organization_modules")
    op.drop_index(op.f("ix_global_modules_name"), table_name="global_modules")
    op.drop_table("global_modules")
    op.drop_index(op.f("ix_organizations_is_active"), table_name="organizations")
    op.drop_index(op.f("ix_organizations_subdomain"), table_name="organizations")
    op.drop_table("organizations")
