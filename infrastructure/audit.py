"""安全审计日志：把领域事件写成结构化日志"""
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from core.logging_config import get_logger


logger = get_logger("audit")


class StructlogAuditLog:
    async def record(self, event: Any) -> None:
        payload = asdict(event) if is_dataclass(event) else {"event": repr(event)}
        occurred_at = payload.pop("occurred_at", None)
        logger.info(
            "security_audit",
            event_type=type(event).__name__,
            occurred_at=occurred_at.isoformat() if occurred_at is not None else None,
            **payload,
        )
