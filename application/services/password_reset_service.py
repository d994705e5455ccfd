"""
密码重置服务 - 一次性、限时、按账号限流的重置令牌

对外行为刻意保持一致：账号不存在、超过限流都与正常请求没有可观察的区别。
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Callable, Optional
import secrets

from application.ports.clock import Clock, SystemClock
from application.ports.notifier import NotificationKind
from application.ports.password_encoder import PasswordEncoder
from application.services.notification_dispatcher import NotificationDispatcher
from application.services.refresh_token_service import hash_token
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import InvalidResetTokenException, UserNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import PasswordResetToken, normalize_email
from domain.user.events import PasswordResetCompleted
from domain.user.service import PasswordPolicy


logger = get_logger(__name__)

TOKEN_BYTES = 32


class PasswordResetService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        encoder: PasswordEncoder,
        dispatcher: NotificationDispatcher,
        clock: Optional[Clock] = None,
        policy: Optional[PasswordPolicy] = None,
        token_validity: Optional[timedelta] = None,
        max_tokens_per_hour: Optional[int] = None,
        retention: Optional[timedelta] = None,
        app_url: Optional[str] = None,
    ):
        security = settings.security
        self._uow_factory = uow_factory
        self._encoder = encoder
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._policy = policy or PasswordPolicy(
            min_length=security.password_min_length,
            max_length=security.password_max_length,
        )
        self._validity = token_validity or timedelta(minutes=security.reset_token_validity_minutes)
        self._max_per_hour = max_tokens_per_hour or security.reset_max_tokens_per_hour
        self._retention = retention or timedelta(days=security.reset_token_retention_days)
        self._app_url = (app_url or settings.APP_URL).rstrip("/")

    async def request_password_reset(self, email: str) -> None:
        """
        申请重置密码

        账号不存在或一小时内已签发达到上限时静默返回，不签发、不通知。
        """
        email = normalize_email(email)
        now = self._clock.now()

        async with self._uow_factory() as uow:
            user = await uow.user_repository.get_by_email(email)
            if user is None:
                logger.info("password_reset_unknown_email")
                return

            recent = await uow.password_reset_repository.count_created_since(
                user.id, now - timedelta(hours=1)
            )
            if recent >= self._max_per_hour:
                logger.warning("password_reset_rate_limited", user_id=user.id, recent=recent)
                return

            token = secrets.token_urlsafe(TOKEN_BYTES)
            await uow.password_reset_repository.create(
                PasswordResetToken(
                    id=None,
                    user_id=user.id,
                    token_hash=hash_token(token),
                    expires_at=now + self._validity,
                    created_at=now,
                )
            )

        logger.info("password_reset_token_issued", user_id=user.id)
        self._dispatcher.notify(
            NotificationKind.PASSWORD_RESET,
            user.email,
            {
                "name": user.display_name,
                "reset_token": token,
                "reset_url": f"{self._app_url}/reset-password?token={token}",
                "expires_in_minutes": int(self._validity.total_seconds() // 60),
            },
        )

    async def validate_token(self, token: Optional[str]) -> bool:
        """仅当令牌存在、未使用且未过期时返回 True"""
        if not token:
            return False
        async with self._uow_factory(readonly=True) as uow:
            record = await uow.password_reset_repository.get_unused_by_token_hash(hash_token(token))
        return record is not None and record.is_valid(self._clock.now())

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        使用重置令牌设置新密码

        1. 先校验密码策略，不访问存储
        2. 校验令牌（不存在 / 已使用 / 已过期 均为同一异常）
        3. 线程池中计算哈希
        4. 条件标记令牌已使用并更新密码，同时撤销该用户的刷新令牌
        5. 审计与通知尽力而为
        """
        self._policy.validate(new_password)

        token_hash = hash_token(token or "")
        async with self._uow_factory(readonly=True) as uow:
            record = await uow.password_reset_repository.get_unused_by_token_hash(token_hash)
            if record is None:
                logger.warning("password_reset_token_invalid", reason="not_found_or_used")
                raise InvalidResetTokenException("not_found_or_used")
            if record.is_expired(self._clock.now()):
                logger.warning("password_reset_token_invalid", reason="expired", user_id=record.user_id)
                raise InvalidResetTokenException("expired")
            user = await uow.user_repository.get_by_id(record.user_id)
            if user is None:
                logger.error("password_reset_user_missing", user_id=record.user_id)
                raise UserNotFoundException(str(record.user_id))

        hashed = await asyncio.to_thread(self._encoder.hash, new_password)

        now = self._clock.now()
        async with self._uow_factory() as uow:
            if not await uow.password_reset_repository.mark_used_if_unused(record.id, now):
                logger.warning("password_reset_token_invalid", reason="consumed_concurrently", user_id=user.id)
                raise InvalidResetTokenException("consumed_concurrently")
            user.change_password(hashed, at=now)
            await uow.user_repository.update(user)
            revoked = await uow.refresh_token_repository.revoke_all_for_user(user.id, now)

        logger.info("password_reset_completed", user_id=user.id, revoked_refresh_tokens=revoked)
        self._dispatcher.audit(PasswordResetCompleted(user_id=user.id, email=user.email))
        self._dispatcher.notify(
            NotificationKind.PASSWORD_CHANGED,
            user.email,
            {"name": user.display_name},
        )

    async def cleanup_expired_tokens(self) -> int:
        """删除过期或已使用超过保留期的令牌"""
        async with self._uow_factory() as uow:
            count = await uow.password_reset_repository.cleanup_expired(
                self._clock.now() - self._retention
            )
        logger.info("expired_reset_tokens_cleaned", count=count)
        return count
