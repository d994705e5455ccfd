"""Celery beat schedule: periodic cleanup of expired credentials."""
from __future__ import annotations

from celery.schedules import crontab

CELERY_BEAT_SCHEDULE = {
    # 刷新令牌有效期以天计，每日清理一次即可
    "cleanup-expired-refresh-tokens": {
        "task": "auth.cleanup_expired_refresh_tokens",
        "schedule": crontab(minute=0, hour=3),
    },
    "cleanup-expired-reset-tokens": {
        "task": "auth.cleanup_expired_reset_tokens",
        "schedule": crontab(minute=0),
    },
}
