"""
登录失败计数与渐进式锁定

键按提交的邮箱（规范化后）划分，与账号是否存在无关，因此不存在的
账号同样会被锁定。计数使用存储端的原子自增，锁定键以 set-if-absent
写入：一次锁定只会由一次失败建立，锁定期内不会被延长或缩短。
建立锁定时计数的过期时间延长到“锁定时长 + 窗口”，因此解锁后
窗口内的再次失败会按更高倍数锁定。

共享存储不可用时退回进程内存储，任何方法都不会抛出异常。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar

from application.ports.expiring_store import ExpiringStore, StoreUnavailableError
from core.config import settings
from core.logging_config import get_logger
from domain.user.entity import normalize_email


logger = get_logger(__name__)

T = TypeVar("T")

ATTEMPT_KEY_PREFIX = "login_attempt:"
LOCKOUT_KEY_PREFIX = "lockout:"


@dataclass(frozen=True)
class AttemptOutcome:
    """一次失败登录的记录结果"""

    failure_count: int
    remaining_attempts: int
    locked: bool = False
    lockout_ms: int = 0


def _ms(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


class LoginAttemptService:
    """登录尝试跟踪器"""

    def __init__(
        self,
        store: ExpiringStore,
        *,
        fallback: Optional[ExpiringStore] = None,
        max_attempts: Optional[int] = None,
        attempt_window: Optional[timedelta] = None,
        lockout_duration: Optional[timedelta] = None,
        max_lockout_multiplier: Optional[int] = None,
    ):
        security = settings.security
        self._store = store
        self._fallback = fallback
        self._max_attempts = max_attempts or security.max_login_attempts
        self._window_ms = _ms(attempt_window or timedelta(minutes=security.attempt_window_minutes))
        self._lockout_ms = _ms(lockout_duration or timedelta(minutes=security.lockout_duration_minutes))
        self._max_multiplier = max_lockout_multiplier or security.max_lockout_multiplier

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def _run(self, action: Callable[[ExpiringStore], Awaitable[T]], default: T) -> T:
        try:
            return await action(self._store)
        except StoreUnavailableError as e:
            if self._fallback is None:
                logger.error("login_attempt_store_unavailable", error=str(e))
                return default
            logger.warning("login_attempt_store_fallback", error=str(e))
        try:
            return await action(self._fallback)
        except StoreUnavailableError as e:
            logger.error("login_attempt_fallback_unavailable", error=str(e))
            return default

    async def is_blocked(self, identifier: str) -> bool:
        """当前是否处于锁定期"""
        key = LOCKOUT_KEY_PREFIX + normalize_email(identifier)
        return await self._run(lambda store: store.exists(key), False)

    async def record_failed_attempt(
        self, identifier: str, source: Optional[str] = None
    ) -> AttemptOutcome:
        """
        原子地“自增并判定”

        计数达到阈值时建立锁定，时长为 基础时长 × min(计数 - 阈值 + 1, 上限倍数)。
        """
        email = normalize_email(identifier)

        async def _record(store: ExpiringStore) -> AttemptOutcome:
            count = await store.incr(ATTEMPT_KEY_PREFIX + email, self._window_ms)
            remaining = max(0, self._max_attempts - count)
            if count < self._max_attempts:
                return AttemptOutcome(failure_count=count, remaining_attempts=remaining)
            multiplier = min(count - self._max_attempts + 1, self._max_multiplier)
            lockout_ms = self._lockout_ms * multiplier
            locked = await store.set_if_absent(LOCKOUT_KEY_PREFIX + email, str(count), lockout_ms)
            if locked:
                # 计数至少保留到锁定结束后再一个窗口，解锁后的下一次失败才会升级
                await store.expire(ATTEMPT_KEY_PREFIX + email, lockout_ms + self._window_ms)
            return AttemptOutcome(
                failure_count=count,
                remaining_attempts=remaining,
                locked=locked,
                lockout_ms=lockout_ms if locked else 0,
            )

        outcome = await self._run(
            _record, AttemptOutcome(failure_count=0, remaining_attempts=self._max_attempts)
        )
        if outcome.locked:
            logger.warning(
                "account_locked_out",
                email=email,
                failure_count=outcome.failure_count,
                lockout_ms=outcome.lockout_ms,
                source=source,
            )
        else:
            logger.info(
                "login_attempt_failed",
                email=email,
                failure_count=outcome.failure_count,
                remaining_attempts=outcome.remaining_attempts,
                source=source,
            )
        return outcome

    async def clear_failed_attempts(self, identifier: str) -> None:
        """登录成功后清除计数与锁定"""
        email = normalize_email(identifier)
        keys = (ATTEMPT_KEY_PREFIX + email, LOCKOUT_KEY_PREFIX + email)
        await self._run(lambda store: store.delete(*keys), 0)

    async def get_failed_attempts(self, identifier: str) -> int:
        key = ATTEMPT_KEY_PREFIX + normalize_email(identifier)
        value = await self._run(lambda store: store.get(key), None)
        return int(value) if value else 0

    async def get_remaining_attempts(self, identifier: str) -> int:
        return max(0, self._max_attempts - await self.get_failed_attempts(identifier))

    async def get_remaining_lockout_time(self, identifier: str) -> int:
        """剩余锁定时间（毫秒），未锁定时返回 0"""
        key = LOCKOUT_KEY_PREFIX + normalize_email(identifier)
        remaining = await self._run(lambda store: store.ttl_ms(key), None)
        return remaining or 0
