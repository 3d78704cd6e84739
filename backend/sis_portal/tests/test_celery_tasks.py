"""Testes unitários da instância Celery e da task de resumos diários.

Cobertura:
  TestCeleryApp: configuração da instância (serialização, timeouts, beat)
  TestGenerateDailySummaries: task executada em modo eager, sem broker
"""
from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

from celery.schedules import crontab


class TestCeleryApp:
    """Valida a configuração da instância Celery sem broker real."""

    def _get_app(self):
        from sis_portal.tasks.celery_app import celery_app
        return celery_app

    def test_app_name(self):
        assert self._get_app().main == "sis_portal"

    def test_task_serializer_json(self):
        conf = self._get_app().conf
        assert conf.task_serializer == "json"
        assert conf.result_serializer == "json"
        assert conf.accept_content == ["json"]

    def test_timezone_utc(self):
        conf = self._get_app().conf
        assert conf.timezone == "UTC"
        assert conf.enable_utc is True

    def test_reliability_settings(self):
        conf = self._get_app().conf
        assert conf.task_acks_late is True
        assert conf.worker_prefetch_multiplier == 1
        assert conf.task_soft_time_limit < conf.task_time_limit

    def test_daily_summary_task_registered(self):
        from sis_portal.tasks import daily_summaries  # noqa: F401

        app = self._get_app()
        assert "sis_portal.tasks.daily_summaries.generate_daily_summaries" in app.tasks

    def test_beat_schedule_uses_configured_time(self):
        from sis_portal.config import get_settings

        settings = get_settings()
        entry = self._get_app().conf.beat_schedule["generate-daily-summaries"]
        assert entry["task"] == "sis_portal.tasks.daily_summaries.generate_daily_summaries"
        assert entry["schedule"] == crontab(
            hour=settings.daily_summary_hour_utc,
            minute=settings.daily_summary_minute_utc,
        )


class TestGenerateDailySummaries:
    def test_task_returns_json_safe_results(self):
        from sis_portal.tasks import daily_summaries

        user_id = uuid.uuid4()
        outcome = {
            "total_users": 1,
            "results": [{"user_id": user_id, "email": "a@acme.test", "status": "success"}],
        }
        with patch.object(
            daily_summaries, "run_daily_summaries", AsyncMock(return_value=outcome)
        ) as run:
            result = daily_summaries.generate_daily_summaries.apply().get()

        run.assert_awaited_once_with()
        assert result["total_users"] == 1
        assert result["results"][0]["user_id"] == str(user_id)
