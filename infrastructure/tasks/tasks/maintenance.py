"""Periodic cleanup of expired refresh and password reset tokens."""
from __future__ import annotations

import asyncio

from celery import shared_task

from ..utils.base_task import BaseTask
from core.logging_config import get_logger

logger = get_logger(__name__)


def _build_services():
    # Imported lazily so the worker only touches the database when the task runs.
    from application.services.password_reset_service import PasswordResetService
    from application.services.refresh_token_service import RefreshTokenService
    from application.services.notification_dispatcher import NotificationDispatcher
    from infrastructure.notifications import LoggingNotifier
    from domain.user.service import PasswordService
    from infrastructure.unit_of_work import sqlalchemy_uow_factory

    uow_factory = sqlalchemy_uow_factory()
    dispatcher = NotificationDispatcher(LoggingNotifier())
    return (
        RefreshTokenService(uow_factory),
        PasswordResetService(uow_factory, encoder=PasswordService(), dispatcher=dispatcher),
    )


@shared_task(name="auth.cleanup_expired_refresh_tokens", bind=True, base=BaseTask, max_retries=3, default_retry_delay=60)
def cleanup_expired_refresh_tokens(self) -> int:
    refresh_tokens, _ = _build_services()
    try:
        return asyncio.run(refresh_tokens.cleanup_expired_tokens())
    except Exception as exc:  # pragma: no cover
        logger.error("refresh_token_cleanup_failed", error=str(exc))
        raise self.retry(exc=exc)


@shared_task(name="auth.cleanup_expired_reset_tokens", bind=True, base=BaseTask, max_retries=3, default_retry_delay=60)
def cleanup_expired_reset_tokens(self) -> int:
    _, password_reset = _build_services()
    try:
        return asyncio.run(password_reset.cleanup_expired_tokens())
    except Exception as exc:  # pragma: no cover
        logger.error("reset_token_cleanup_failed", error=str(exc))
        raise self.retry(exc=exc)
