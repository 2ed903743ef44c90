"""Celery 애플리케이션 부트스트랩."""

from __future__ import annotations

import logging
from typing import Any, Dict

from celery import Celery, signals
from celery.schedules import crontab

from .settings import Settings, get_settings
from .utils.logging import configure_logging

_CELERY_APP: Celery | None = None

TASK_MODULES = [
    "ingestion.tasks.investigate",
    "ingestion.tasks.filter",
    "analysis.tasks.enhance",
    "ingestion.tasks.pipeline",
]
PIPELINE_TASK = "ingestion.tasks.pipeline.run_daily_pipeline"


def create_celery_app(settings: Settings | None = None) -> Celery:
    """설정을 기반으로 Celery 인스턴스를 생성한다."""
    config = settings or get_settings()
    configure_logging(config.structlog_level, json_enabled=config.log_json)

    app = Celery("newsdesk", broker=config.redis_url, backend=config.redis_url, include=TASK_MODULES)
    app.conf.update(
        task_default_queue="ingestion.default",
        task_default_exchange="ingestion",
        task_default_routing_key="ingestion.default",
        task_soft_time_limit=config.celery_task_soft_time_limit,
        worker_concurrency=config.celery_worker_concurrency,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
        worker_send_task_events=True,
        task_send_sent_event=True,
    )

    _install_signal_handlers(app)
    return app


def get_celery_app() -> Celery:
    """싱글톤 Celery 인스턴스를 반환한다."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    return {
        "pipeline.daily": {
            "task": PIPELINE_TASK,
            "schedule": crontab(minute=0, hour=settings.pipeline_schedule_hour_utc),
            "options": {"queue": "ingestion.pipeline"},
        }
    }


def _install_signal_handlers(app: Celery) -> None:
    logger = logging.getLogger("ingestion.worker")

    @signals.worker_shutdown.connect  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("Celery worker shutdown detected", extra={"sender": sender})
