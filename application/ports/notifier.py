"""Outbound notification port (email delivery lives behind it)."""
from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class NotificationKind(str, Enum):
    WELCOME = "welcome"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGED = "password_changed"
    ACCOUNT_LOCKED = "account_locked"


@runtime_checkable
class Notifier(Protocol):
    async def send(self, kind: NotificationKind, recipient: str, data: dict[str, Any]) -> bool:
        """Hand a notification to the delivery channel.

        Returns False when the channel refused it. Callers never depend on
        the outcome for correctness.
        """
        ...
