"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict

from ..config.celery import celery_app


SEND_NOTIFICATION_TASK = "infrastructure.tasks.tasks.notifications.send_notification"


class TaskDispatcher:
    """Internal facade used by application layer to schedule tasks."""

    def send_notification(self, kind: str, recipient: str, data: Dict[str, Any]) -> None:
        """Fire-and-forget helper for account notifications (welcome, reset, lockout)."""
        celery_app.send_task(
            SEND_NOTIFICATION_TASK,
            kwargs={"kind": kind, "recipient": recipient, "data": data},
        )

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Generic escape hatch for scheduling arbitrary tasks by name."""
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
