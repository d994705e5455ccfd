"""Celery task infrastructure package.

Exposes the configured Celery app and the dispatcher used by the notifier
adapter to enqueue account notifications.
"""
from .config.celery import celery_app
from .utils.dispatcher import TaskDispatcher

__all__ = ["celery_app", "TaskDispatcher"]
