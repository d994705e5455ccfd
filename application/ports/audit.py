"""Audit trail port for security relevant domain events."""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class AuditLog(Protocol):
    async def record(self, event: Any) -> None: ...
