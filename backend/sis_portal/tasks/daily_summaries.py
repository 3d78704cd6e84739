"""Geração diária dos resumos de IA para todos os usuários ativos com role."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sis_portal.core import metrics
from sis_portal.core.errors import PortalError
from sis_portal.core.logging import bind_request_context, get_logger
from sis_portal.db.base import AsyncSessionLocal
from sis_portal.db.models import User
from sis_portal.services.ai_summary_service import AISummaryService
from sis_portal.tasks.celery_app import celery_app

logger = get_logger(__name__)

SummaryGenerator = Callable[[AsyncSession, User], Awaitable[Any]]


async def generate_with_powerbi_data(db: AsyncSession, user: User) -> Any:
    """Gerador padrão: busca os dados do relatório do role e gera o resumo."""
    return await AISummaryService().generate_summary(
        db,
        user,
        role_id=user.primary_role_id,
        fetch_powerbi_data=True,
    )


async def _load_users(session_factory: async_sessionmaker) -> list[User]:
    async with session_factory() as db:
        result = await db.execute(
            select(User)
            .where(User.status == "active", User.primary_role_id.is_not(None))
            .order_by(User.email)
        )
        return list(result.scalars())


async def run_daily_summaries(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    generator: Optional[SummaryGenerator] = None,
) -> dict[str, Any]:
    """
    Gera o resumo de cada usuário, um por vez.

    A falha de um usuário fica registrada no resultado e não interrompe os
    demais: ``failed`` para erros de regra de negócio ou de serviço externo,
    ``error`` para exceções inesperadas.
    """
    generator = generator or generate_with_powerbi_data
    users = await _load_users(session_factory)
    logger.info("daily_summaries_started", total_users=len(users))

    results: list[dict[str, Any]] = []
    for user in users:
        entry: dict[str, Any] = {"user_id": user.id, "email": user.email}
        with bind_request_context(organization_id=user.organization_id, user_id=user.id):
            try:
                async with session_factory() as db:
                    await generator(db, user)
                entry["status"] = "success"
            except PortalError as exc:
                entry["status"] = "failed"
                entry["error"] = exc.message
                logger.warning("daily_summary_failed", error=exc.message)
            except Exception as exc:
                entry["status"] = "error"
                entry["error"] = str(exc)
                logger.exception("daily_summary_error")

        metrics.record_daily_summary(entry["status"])
        results.append(entry)

    logger.info(
        "daily_summaries_finished",
        total_users=len(users),
        succeeded=sum(1 for entry in results if entry["status"] == "success"),
    )
    return {"total_users": len(users), "results": results}


@celery_app.task(name="sis_portal.tasks.daily_summaries.generate_daily_summaries", bind=True)
def generate_daily_summaries(self) -> dict[str, Any]:
    """Task agendada pelo beat (``generate-daily-summaries``)."""
    with bind_request_context(task_id=self.request.id):
        outcome = asyncio.run(run_daily_summaries())

    # Resultado do Celery precisa ser serializável em JSON
    for entry in outcome["results"]:
        entry["user_id"] = str(entry["user_id"])
    return outcome
