"""进程内过期键存储（ExpiringStore 端口）

单节点部署、Redis 不可用时的本地回退以及测试使用。所有方法内部
没有 await，在同一事件循环内天然是原子的。
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from application.ports.clock import Clock, SystemClock, to_millis


class InMemoryExpiringStore:
    """基于字典的过期键存储，过期判断使用注入的时钟"""

    def __init__(self, clock: Optional[Clock] = None, *, max_entries: int = 100_000) -> None:
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._data: dict[str, tuple[str, datetime]] = {}

    def _live(self, key: str) -> Optional[tuple[str, datetime]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock.now():
            del self._data[key]
            return None
        return entry

    def _put(self, key: str, value: str, ttl_ms: int) -> None:
        if len(self._data) >= self._max_entries and key not in self._data:
            self._evict_expired()
        expires_at = self._clock.now() + timedelta(milliseconds=max(1, int(ttl_ms)))
        self._data[key] = (value, expires_at)

    def _evict_expired(self) -> None:
        now = self._clock.now()
        for key in [k for k, (_, exp) in self._data.items() if exp <= now]:
            del self._data[key]

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_ms: int) -> None:
        self._put(key, value, ttl_ms)

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        if self._live(key) is not None:
            return False
        self._put(key, value, ttl_ms)
        return True

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def incr(self, key: str, ttl_ms: int) -> int:
        entry = self._live(key)
        if entry is None:
            self._put(key, "1", ttl_ms)
            return 1
        value = int(entry[0]) + 1
        self._data[key] = (str(value), entry[1])
        return value

    async def expire(self, key: str, ttl_ms: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._put(key, entry[0], ttl_ms)
        return True

    async def ttl_ms(self, key: str) -> Optional[int]:
        entry = self._live(key)
        if entry is None:
            return None
        return max(0, to_millis(entry[1]) - to_millis(self._clock.now()))
