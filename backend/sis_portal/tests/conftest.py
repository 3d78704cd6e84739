"""Configuração global do pytest para os testes do backend.

Os testes de banco rodam em SQLite em memória (``aiosqlite``) com o mesmo
metadata dos modelos; as rotas recebem a sessão de teste via
``dependency_overrides``.
"""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from typing import Any, Optional


def _set_env_defaults() -> None:
    """Seta variáveis de ambiente mínimas para que pydantic Settings não falhe."""
    defaults = {
        "JWT_SECRET_KEY": "test-jwt-secret-key-32chars-min!",
        "CRON_SECRET": "test-cron-secret",
        "AUTH_SYNC_SECRET": "test-sync-secret",
        "DEBUG": "false",
        "ENVIRONMENT": "test",
        "POSTGRES_POOL_SIZE": "1",
        "POSTGRES_MAX_OVERFLOW": "0",
        "CELERY_BROKER_URL": "redis://localhost:6379/1",
        "CELERY_RESULT_BACKEND": "redis://localhost:6379/2",
    }
    for key, val in defaults.items():
        os.environ.setdefault(key, val)


# Executa antes de qualquer import de módulo da app
_set_env_defaults()

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from sis_portal.db.base import Base  # noqa: E402
from sis_portal.db.models import (  # noqa: E402
    GlobalModule,
    GlobalRole,
    ModuleTab,
    Organization,
    OrganizationModule,
    OrganizationReport,
    PowerBIReport,
    RoleTabPermission,
    User,
)


def _configure_celery_eager() -> None:
    """Tasks executam inline, sem broker Redis."""
    from sis_portal.tasks.celery_app import celery_app

    celery_app.conf.update(
        task_always_eager=True,
        task_eager_propagates=True,
        result_backend="cache+memory://",
        broker_url="memory://",
    )


_configure_celery_eager()


# ---------------------------------------------------------------------------
# Banco em memória
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Fábricas de dados
# ---------------------------------------------------------------------------


class PortalFactory:
    """Cria linhas mínimas já persistidas para os cenários de teste."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj: Any) -> Any:
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def organization(self, subdomain: str = "acme", **kwargs) -> Organization:
        kwargs.setdefault("name", subdomain.title())
        kwargs.setdefault("powerbi_workspace_id", f"ws-{subdomain}")
        return await self._save(Organization(subdomain=subdomain, **kwargs))

    async def global_module(self, name: str = "ops", **kwargs) -> GlobalModule:
        kwargs.setdefault("display_name", name.title())
        return await self._save(GlobalModule(name=name, **kwargs))

    async def organization_module(
        self,
        organization: Organization,
        name: str = "ops",
        global_module: Optional[GlobalModule] = None,
        **kwargs,
    ) -> OrganizationModule:
        return await self._save(
            OrganizationModule(
                organization_id=organization.id,
                global_module_id=global_module.id if global_module else None,
                name=name,
                **kwargs,
            )
        )

    async def template_report(self, name: str = "Operations", **kwargs) -> PowerBIReport:
        kwargs.setdefault("powerbi_report_id", f"tpl-{uuid.uuid4().hex[:8]}")
        return await self._save(PowerBIReport(name=name, **kwargs))

    async def deployed_report(
        self,
        organization: Organization,
        template: PowerBIReport,
        powerbi_report_id: Optional[str] = None,
    ) -> OrganizationReport:
        return await self._save(
            OrganizationReport(
                organization_id=organization.id,
                template_report_id=template.id,
                powerbi_report_id=powerbi_report_id or f"rpt-{uuid.uuid4().hex[:8]}",
                powerbi_workspace_id=organization.powerbi_workspace_id,
                name=template.name,
            )
        )

    async def global_tab(
        self,
        tab_name: str,
        module_name: str = "ops",
        sort_order: int = 0,
        report: Optional[PowerBIReport] = None,
        **kwargs,
    ) -> ModuleTab:
        kwargs.setdefault("page_name", f"Page{tab_name}")
        return await self._save(
            ModuleTab(
                module_name=module_name,
                tab_name=tab_name,
                sort_order=sort_order,
                report_id=report.id if report else None,
                **kwargs,
            )
        )

    async def role(self, name: str = "analyst", **kwargs) -> GlobalRole:
        kwargs.setdefault("display_name", name.title())
        return await self._save(GlobalRole(name=name, **kwargs))

    async def grant_tabs(self, role: GlobalRole, module_name: str, *tab_names: str) -> None:
        for tab_name in tab_names:
            self.session.add(
                RoleTabPermission(role_id=role.id, module_name=module_name, tab_name=tab_name)
            )
        await self.session.commit()

    async def user(
        self,
        email: str = "user@acme.test",
        organization: Optional[Organization] = None,
        **kwargs,
    ) -> User:
        kwargs.setdefault("auth_subject", f"auth0|{uuid.uuid4().hex[:12]}")
        return await self._save(
            User(
                email=email,
                organization_id=organization.id if organization else None,
                **kwargs,
            )
        )


@pytest_asyncio.fixture
async def factory(db) -> PortalFactory:
    return PortalFactory(db)


# ---------------------------------------------------------------------------
# Aplicação com overrides
# ---------------------------------------------------------------------------


@pytest.fixture
def app(session_factory):
    """App FastAPI usando a sessão do SQLite em memória."""
    from sis_portal.db.base import get_db
    from sis_portal.main import app as fastapi_app

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def as_user(app):
    """Faz as rotas enxergarem o usuário informado como autenticado."""
    from sis_portal.api.deps import get_current_user

    def _login(user: User) -> None:
        async def _override() -> User:
            return user

        app.dependency_overrides[get_current_user] = _override

    return _login
