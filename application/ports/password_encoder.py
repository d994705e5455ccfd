"""Credential encoder port: one-way hash plus constant-time verification.

Implementations are CPU bound; application services call them through
``asyncio.to_thread`` so the event loop keeps serving other requests.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class PasswordEncoder(Protocol):
    def hash(self, password: str) -> str: ...

    def matches(self, password: str, hashed_password: str) -> bool: ...
