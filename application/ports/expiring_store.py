"""Application-owned port for volatile key/value state with per-key expiry.

The attempt tracker and the access-token revocation list only need this
small capability set, so the application layer does not depend on Redis.
All durations are milliseconds.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


class StoreUnavailableError(RuntimeError):
    """The backing store could not be reached or returned an error.

    Callers decide whether to fail open or fail closed.
    """


@runtime_checkable
class ExpiringStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_ms: int) -> None: ...

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Store only when the key does not exist; True when this call stored it."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def delete(self, *keys: str) -> int: ...

    async def incr(self, key: str, ttl_ms: int) -> int:
        """Atomically increment a counter.

        A missing key starts at 0 and receives ``ttl_ms`` as its expiry; an
        existing key keeps its current expiry.
        """
        ...

    async def expire(self, key: str, ttl_ms: int) -> bool:
        """Replace the expiry of an existing key; False when the key is missing."""
        ...

    async def ttl_ms(self, key: str) -> Optional[int]:
        """Remaining lifetime, or None when the key is missing."""
        ...
