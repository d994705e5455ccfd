"""
Snowflake 风格的 ID 生成器

41 位毫秒时间戳 + 10 位节点号 + 12 位序列号，单进程内线程安全。
"""
from __future__ import annotations

import threading
import time

from core.logging_config import get_logger


logger = get_logger(__name__)

# 2024-01-01T00:00:00Z
EPOCH_MS = 1704067200000

NODE_BITS = 10
SEQUENCE_BITS = 12
MAX_NODE_ID = (1 << NODE_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class SnowflakeIdGenerator:
    def __init__(self, node_id: int = 0):
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node_id must be between 0 and {MAX_NODE_ID}")
        self._node_id = node_id
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000

    def next_id(self) -> int:
        with self._lock:
            now = self._now_ms()
            if now < self._last_ms:
                # 时钟回拨时沿用上一次的时间戳，保证单调
                logger.warning("clock_moved_backwards", drift_ms=self._last_ms - now)
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now
            return ((now - EPOCH_MS) << (NODE_BITS + SEQUENCE_BITS)) | (
                self._node_id << SEQUENCE_BITS
            ) | self._sequence
