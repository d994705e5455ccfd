"""Common base task for Celery jobs"""
from __future__ import annotations

from typing import Any, Dict

from celery import Task
from core.logging_config import SENSITIVE_KEYS, get_logger

logger = get_logger(__name__)


def redact_payload(value: Any) -> Any:
    """Mask token-bearing fields at any depth; notification payloads nest them under ``data``."""
    if isinstance(value, dict):
        return {
            key: "***" if key in SENSITIVE_KEYS and item is not None else redact_payload(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_payload(item) for item in value]
    return value


class BaseTask(Task):
    """Structured lifecycle logging for auth jobs, with task payloads redacted."""

    def _context(self, task_id: str, args: Any, kwargs: Dict[str, Any] | None) -> Dict[str, Any]:
        return {
            "task_id": task_id,
            "task_name": self.name,
            "args": redact_payload(list(args or ())),
            "kwargs": redact_payload(dict(kwargs or {})),
        }

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error("celery_task_failure", exc=str(exc), **self._context(task_id, args, kwargs))
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning("celery_task_retry", exc=str(exc), **self._context(task_id, args, kwargs))
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info("celery_task_success", task_id=task_id, task_name=self.name)
        super().on_success(retval, task_id, args, kwargs)
