"""Unique numeric id generation port."""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IdGenerator(Protocol):
    def next_id(self) -> int:
        """Return a globally unique, roughly time-ordered integer."""
        ...
