"""
Instância Celery centralizada do portal SIS.

Configurações carregadas via ``sis_portal.config.Settings``:
  - ``celery_broker_url``  → Redis db=1 (fila de mensagens)
  - ``celery_result_backend`` → Redis db=2 (resultados de tasks)

Uso:
    # Worker + beat em desenvolvimento:
    celery -A sis_portal.tasks.celery_app.celery_app worker -B --loglevel=info -c 1
"""
from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from sis_portal.config import get_settings

settings = get_settings()

# ── Instância principal ────────────────────────────────────────────────────
celery_app = Celery(
    "sis_portal",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["sis_portal.tasks.daily_summaries"],
)

# ── Configuração global ────────────────────────────────────────────────────
celery_app.conf.update(
    # Serialização
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Confiabilidade
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Uma chamada ao Azure OpenAI por usuário; a rodada inteira pode demorar
    task_soft_time_limit=1800,
    task_time_limit=2400,
)

celery_app.conf.beat_schedule = {
    "generate-daily-summaries": {
        "task": "sis_portal.tasks.daily_summaries.generate_daily_summaries",
        "schedule": crontab(
            hour=settings.daily_summary_hour_utc,
            minute=settings.daily_summary_minute_utc,
        ),
    }
}
