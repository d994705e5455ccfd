"""Notification delivery and periodic token cleanup.

Importing this package registers the tasks with Celery.
"""
from . import maintenance, notifications  # noqa: F401 to register tasks

__all__ = ["maintenance", "notifications"]
