"""Celery application configuration"""
from __future__ import annotations

import os
from core.logging_config import get_logger
from celery import Celery
from kombu import Queue

from core.config import settings
from .beat import CELERY_BEAT_SCHEDULE


CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)

NOTIFICATION_QUEUE = "notifications"
MAINTENANCE_QUEUE = "maintenance"


def _broker_url() -> str | None:
    return settings.redis.url or os.getenv("CELERY_BROKER_URL")


celery_app = Celery("auth_core")

celery_app.conf.update(
    broker_url=_broker_url(),
    # 通知与清理都是 fire-and-forget，不保留结果
    task_ignore_result=True,
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # 执行完成后再 ack，worker 崩溃时任务会重新投递
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue=NOTIFICATION_QUEUE,
    task_default_retry_delay=5,
    task_queues=(
        Queue(NOTIFICATION_QUEUE),
        Queue(MAINTENANCE_QUEUE),
    ),
    task_routes={
        "infrastructure.tasks.tasks.notifications.*": {"queue": NOTIFICATION_QUEUE},
        "auth.cleanup_*": {"queue": MAINTENANCE_QUEUE},
    },
    beat_schedule=CELERY_BEAT_SCHEDULE,
)

celery_app.conf.imports = CELERY_IMPORTS

if (settings.ENVIRONMENT or "").lower() in {"development", "dev", "test", "testing"}:
    celery_app.conf.task_always_eager = True

celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


logger = get_logger(__name__)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    # broker URL 可能带密码，只记录是否已配置
    logger.info("celery_configured", broker_configured=bool(sender.conf.broker_url))
