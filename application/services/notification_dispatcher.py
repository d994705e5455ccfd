"""
Fire-and-forget notification and audit dispatch.

Primary operations never await delivery: each notification runs as its
own task, failures are logged and dropped. ``drain`` lets shutdown hooks
and tests wait for everything still in flight.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from application.ports.audit import AuditLog
from application.ports.notifier import NotificationKind, Notifier
from core.logging_config import get_logger


logger = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, audit: Optional[AuditLog] = None):
        self._notifier = notifier
        self._audit = audit
        self._pending: set[asyncio.Task] = set()

    def notify(self, kind: NotificationKind, recipient: str, data: Optional[dict[str, Any]] = None) -> None:
        self._spawn(self._send(kind, recipient, data or {}))

    def audit(self, event: Any) -> None:
        if self._audit is not None:
            self._spawn(self._record(event))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, kind: NotificationKind, recipient: str, data: dict[str, Any]) -> bool:
        try:
            delivered = await self._notifier.send(kind, recipient, data)
        except Exception as e:
            logger.warning("notification_failed", kind=kind.value, recipient=recipient, error=str(e))
            return False
        if not delivered:
            logger.warning("notification_not_delivered", kind=kind.value, recipient=recipient)
        return bool(delivered)

    async def _record(self, event: Any) -> None:
        try:
            await self._audit.record(event)
        except Exception as e:
            logger.warning("audit_record_failed", event=type(event).__name__, error=str(e))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        while self._pending:
            batch = list(self._pending)
            await asyncio.gather(*batch, return_exceptions=True)
            self._pending.difference_update(batch)
