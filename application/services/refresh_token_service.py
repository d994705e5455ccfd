"""
刷新令牌服务 - 不透明刷新令牌的签发、轮转与撤销

安全特性：
1. 令牌为 64 字节随机数（base64url），数据库只保存 SHA-256 摘要
2. 每次使用即轮转：旧令牌以条件更新撤销，并在同一事务内签发新令牌
3. 并发出示同一令牌时只有一个请求成功
4. 已撤销的令牌再次出示视为重用，撤销该用户的全部刷新令牌
5. 不存在 / 已过期 / 已撤销对调用方不可区分
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
import hashlib
import secrets

from application.ports.clock import Clock, SystemClock
from application.services.notification_dispatcher import NotificationDispatcher
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import InvalidRefreshTokenException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import RefreshToken
from domain.user.events import RefreshTokenReuseDetected


logger = get_logger(__name__)

TOKEN_BYTES = 64


def hash_token(token: str) -> str:
    """计算令牌的SHA-256摘要"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    user_id: int
    expires_at: datetime


class RefreshTokenService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        clock: Optional[Clock] = None,
        lifetime: Optional[timedelta] = None,
        single_session: Optional[bool] = None,
        reuse_revokes_all: Optional[bool] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        security = settings.security
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
        self._lifetime = lifetime or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self._single_session = (
            security.refresh_token_single_session if single_session is None else single_session
        )
        self._reuse_revokes_all = (
            security.refresh_token_reuse_revokes_all if reuse_revokes_all is None else reuse_revokes_all
        )
        self._dispatcher = dispatcher

    async def _issue(self, uow: AbstractUnitOfWork, user_id: int) -> IssuedRefreshToken:
        now = self._clock.now()
        token = secrets.token_urlsafe(TOKEN_BYTES)
        record = await uow.refresh_token_repository.create(
            RefreshToken(
                id=None,
                user_id=user_id,
                token_hash=hash_token(token),
                issued_at=now,
                expires_at=now + self._lifetime,
            )
        )
        logger.info("refresh_token_created", user_id=user_id, token_id=record.id)
        return IssuedRefreshToken(token=token, user_id=user_id, expires_at=record.expires_at)

    async def create_refresh_token(
        self, user_id: int, *, uow: Optional[AbstractUnitOfWork] = None
    ) -> IssuedRefreshToken:
        """
        为用户签发新的刷新令牌

        单会话模式下会先撤销该用户之前的所有刷新令牌。
        传入 uow 时在调用方的事务内完成（例如注册时与创建用户同一事务）。
        """
        if uow is None:
            async with self._uow_factory() as uow_local:
                return await self.create_refresh_token(user_id, uow=uow_local)

        if self._single_session:
            revoked = await uow.refresh_token_repository.revoke_all_for_user(user_id, self._clock.now())
            if revoked:
                logger.info("refresh_tokens_superseded", user_id=user_id, count=revoked)
        return await self._issue(uow, user_id)

    async def verify_and_rotate(self, presented: str) -> IssuedRefreshToken:
        """
        刷新令牌轮转 - 核心安全逻辑

        流程：
        1. 按摘要查找记录，不存在则失败
        2. 已撤销：视为重用，撤销用户全部令牌并提交后失败
        3. 已过期：失败
        4. 条件撤销旧令牌（compare-and-set），失败说明被并发请求抢先
        5. 同一事务内签发新令牌
        """
        if not presented:
            raise InvalidRefreshTokenException()

        async with self._uow_factory() as uow:
            repo = uow.refresh_token_repository
            record = await repo.get_by_token_hash(hash_token(presented))
            now = self._clock.now()

            if record is None:
                logger.warning("refresh_token_not_found")
                raise InvalidRefreshTokenException()

            if record.revoked:
                revoked_count = 0
                if self._reuse_revokes_all:
                    revoked_count = await repo.revoke_all_for_user(record.user_id, now)
                    # 撤销结果必须持久化，随后抛出的异常只会回滚空事务
                    await uow.commit()
                logger.error(
                    "refresh_token_reuse_detected",
                    user_id=record.user_id,
                    token_id=record.id,
                    revoked_count=revoked_count,
                )
                if self._dispatcher is not None:
                    self._dispatcher.audit(
                        RefreshTokenReuseDetected(
                            user_id=record.user_id, token_id=record.id, revoked_count=revoked_count
                        )
                    )
                raise InvalidRefreshTokenException()

            if record.is_expired(now):
                logger.info("refresh_token_expired", user_id=record.user_id, token_id=record.id)
                raise InvalidRefreshTokenException()

            if not await repo.revoke_if_active(record.id, now):
                logger.warning("refresh_token_rotation_lost_race", user_id=record.user_id, token_id=record.id)
                raise InvalidRefreshTokenException()

            issued = await self._issue(uow, record.user_id)
            logger.info("refresh_token_rotated", user_id=record.user_id, old_token_id=record.id)
            return issued

    async def revoke_token(self, token: Optional[str]) -> bool:
        """撤销单个刷新令牌；令牌不存在不是错误"""
        if not token:
            return False
        async with self._uow_factory() as uow:
            revoked = await uow.refresh_token_repository.revoke_by_token_hash(
                hash_token(token), self._clock.now()
            )
        if revoked:
            logger.info("refresh_token_revoked")
        return revoked

    async def revoke_all_user_tokens(
        self, user_id: int, *, uow: Optional[AbstractUnitOfWork] = None
    ) -> int:
        """撤销用户所有刷新令牌（登出所有设备 / 重置密码后）"""
        if uow is None:
            async with self._uow_factory() as uow_local:
                return await self.revoke_all_user_tokens(user_id, uow=uow_local)
        count = await uow.refresh_token_repository.revoke_all_for_user(user_id, self._clock.now())
        logger.info("user_refresh_tokens_revoked", user_id=user_id, count=count)
        return count

    async def cleanup_expired_tokens(self) -> int:
        """删除已过期的刷新令牌"""
        async with self._uow_factory() as uow:
            count = await uow.refresh_token_repository.cleanup_expired(self._clock.now())
        logger.info("expired_refresh_tokens_cleaned", count=count)
        return count
