"""Account notification delivery tasks."""
from __future__ import annotations

from typing import Any, Dict

from celery import shared_task

from ..utils.base_task import BaseTask
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


# Subject and body per notification kind; values come from the task payload.
TEMPLATES: Dict[str, tuple[str, str]] = {
    "welcome": (
        "Welcome to {project}",
        "Hi {name}, your account has been created.",
    ),
    "password_reset": (
        "Reset your {project} password",
        "Hi {name}, use the link below within {expires_in_minutes} minutes to reset "
        "your password: {reset_url}",
    ),
    "password_changed": (
        "Your {project} password was changed",
        "Hi {name}, your password was just changed. If this was not you, contact support.",
    ),
    "account_locked": (
        "Your {project} account is temporarily locked",
        "Hi {name}, too many failed sign-in attempts. Try again in {lockout_minutes} minutes.",
    ),
}


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_notification(kind: str, data: Dict[str, Any]) -> tuple[str, str]:
    """Render subject/body for ``kind``; unknown kinds raise ``ValueError``."""
    try:
        subject, body = TEMPLATES[kind]
    except KeyError:
        raise ValueError(f"unknown notification kind: {kind}") from None
    values = _Defaults(project=settings.PROJECT_NAME, **(data or {}))
    return subject.format_map(values), body.format_map(values)


@shared_task(
    bind=True,
    base=BaseTask,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)
def send_notification(self, kind: str, recipient: str, data: Dict[str, Any] | None = None) -> Dict[str, str]:
    """Deliver an account notification.

    Replace the log line with real email integration (SMTP/ESP).
    """
    subject, body = render_notification(kind, data or {})
    logger.info("notification_delivered", kind=kind, recipient=recipient, subject=subject)
    return {"kind": kind, "recipient": recipient, "subject": subject}
