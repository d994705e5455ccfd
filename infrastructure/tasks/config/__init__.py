"""Celery app and beat schedule."""
from .celery import celery_app, MAINTENANCE_QUEUE, NOTIFICATION_QUEUE
from .beat import CELERY_BEAT_SCHEDULE

__all__ = ["celery_app", "CELERY_BEAT_SCHEDULE", "MAINTENANCE_QUEUE", "NOTIFICATION_QUEUE"]
