"""
认证应用服务 - 编排登录、刷新、登出、注册与密码重置

组合：LoginAttemptService（锁定）、PasswordEncoder（校验）、TokenService（访问令牌）、
RefreshTokenService（刷新令牌）、TokenBlacklistService（吊销）、PasswordResetService（重置）。
通知与审计通过 NotificationDispatcher 异步发出，失败不影响主流程。
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from application.dto import AuthResponseDTO, LoginDTO, RegisterDTO
from application.ports.clock import Clock, SystemClock
from application.ports.id_generator import IdGenerator
from application.ports.notifier import NotificationKind
from application.ports.password_encoder import PasswordEncoder
from application.services.login_attempt_service import LoginAttemptService
from application.services.notification_dispatcher import NotificationDispatcher
from application.services.password_reset_service import PasswordResetService
from application.services.refresh_token_service import RefreshTokenService
from application.services.token_blacklist_service import TokenBlacklistService
from application.services.token_service import TokenService
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import (
    AccountLockedException,
    InvalidCredentialsException,
    UserAlreadyExistsException,
    UserInactiveException,
    UserNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import DEFAULT_ROLE, User, normalize_email
from domain.user.events import AccountLockedOut, UserRegistered
from domain.user.service import PasswordPolicy


logger = get_logger(__name__)

# 账号不存在时仍做一次哈希校验，使响应耗时与密码错误一致
_TIMING_PLACEHOLDER_PASSWORD = "timing-equalization-placeholder"


class AuthService:
    """认证应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        token_service: TokenService,
        attempt_service: LoginAttemptService,
        blacklist_service: TokenBlacklistService,
        refresh_token_service: RefreshTokenService,
        password_reset_service: PasswordResetService,
        encoder: PasswordEncoder,
        dispatcher: NotificationDispatcher,
        id_generator: IdGenerator,
        clock: Optional[Clock] = None,
        policy: Optional[PasswordPolicy] = None,
    ):
        self._uow_factory = uow_factory
        self._tokens = token_service
        self._attempts = attempt_service
        self._blacklist = blacklist_service
        self._refresh_tokens = refresh_token_service
        self._password_reset = password_reset_service
        self._encoder = encoder
        self._dispatcher = dispatcher
        self._ids = id_generator
        self._clock = clock or SystemClock()
        self._policy = policy or PasswordPolicy(
            min_length=settings.security.password_min_length,
            max_length=settings.security.password_max_length,
        )
        self._placeholder_hash: Optional[str] = None

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------ login

    async def login(self, login_data: LoginDTO, client_ip: Optional[str] = None) -> AuthResponseDTO:
        """
        用户登录

        1. 已锁定 -> AccountLockedException（携带剩余锁定时间）
        2. 账号不存在 / 密码错误 -> 记录失败 -> InvalidCredentialsException
           （触发锁定的那一次失败同样只返回 InvalidCredentials）
        3. 成功 -> 清除失败记录，签发访问令牌；remember_me 时签发刷新令牌
        """
        email = normalize_email(login_data.email)

        if await self._attempts.is_blocked(email):
            remaining = await self._attempts.get_remaining_lockout_time(email)
            logger.warning("login_blocked", email=email, remaining_ms=remaining, source=client_ip)
            raise AccountLockedException(remaining)

        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_email(email)

        if user is None:
            await self._matches(login_data.password, await self._timing_placeholder())
            await self._record_failure(email, client_ip, None)
            raise InvalidCredentialsException()

        if not await self._matches(login_data.password, user.hashed_password):
            await self._record_failure(email, client_ip, user)
            raise InvalidCredentialsException()

        await self._attempts.clear_failed_attempts(email)

        if not user.is_active:
            logger.warning("login_inactive_user", user_id=user.id)
            raise UserInactiveException()

        async with self._uow_factory() as uow:
            user.record_login(at=self._clock.now())
            user = await uow.user_repository.update(user)
            response = await self._issue(user, with_refresh_token=login_data.remember_me, uow=uow)
        logger.info("user_logged_in", user_id=user.id, refresh=login_data.remember_me, source=client_ip)
        return response

    async def login_with_refresh_token(
        self, login_data: LoginDTO, client_ip: Optional[str] = None
    ) -> AuthResponseDTO:
        """登录并始终签发刷新令牌"""
        return await self.login(login_data.model_copy(update={"remember_me": True}), client_ip)

    async def _matches(self, password: str, hashed_password: str) -> bool:
        return await asyncio.to_thread(self._encoder.matches, password, hashed_password)

    async def _timing_placeholder(self) -> str:
        if self._placeholder_hash is None:
            self._placeholder_hash = await asyncio.to_thread(
                self._encoder.hash, _TIMING_PLACEHOLDER_PASSWORD
            )
        return self._placeholder_hash

    async def _record_failure(self, email: str, client_ip: Optional[str], user: Optional[User]) -> None:
        outcome = await self._attempts.record_failed_attempt(email, client_ip)
        if outcome.locked and user is not None:
            self._dispatcher.notify(
                NotificationKind.ACCOUNT_LOCKED,
                user.email,
                {
                    "name": user.display_name,
                    "lockout_minutes": max(1, outcome.lockout_ms // 60_000),
                    "source": client_ip,
                },
            )
        if outcome.locked:
            self._dispatcher.audit(
                AccountLockedOut(
                    email=email,
                    failure_count=outcome.failure_count,
                    lockout_ms=outcome.lockout_ms,
                    source=client_ip,
                )
            )

    async def _issue(
        self,
        user: User,
        *,
        with_refresh_token: bool,
        uow: Optional[AbstractUnitOfWork] = None,
    ) -> AuthResponseDTO:
        access_token = self._tokens.create_access_token(user.email, user.role)
        refresh_token = None
        if with_refresh_token:
            issued = await self._refresh_tokens.create_refresh_token(user.id, uow=uow)
            refresh_token = issued.token
        return AuthResponseDTO(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=self._tokens.access_token_ttl_seconds,
            email=user.email,
            name=user.display_name,
            role=user.role,
        )

    # ---------------------------------------------------------------- refresh

    async def refresh_access_token(self, refresh_token: str) -> AuthResponseDTO:
        """轮转刷新令牌并签发新的访问令牌"""
        issued = await self._refresh_tokens.verify_and_rotate(refresh_token)

        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(issued.user_id)
        if user is None:
            logger.error("refresh_user_missing", user_id=issued.user_id)
            raise UserNotFoundException(str(issued.user_id))
        if not user.is_active:
            await self._refresh_tokens.revoke_token(issued.token)
            raise UserInactiveException()

        return AuthResponseDTO(
            access_token=self._tokens.create_access_token(user.email, user.role),
            refresh_token=issued.token,
            token_type="Bearer",
            expires_in=self._tokens.access_token_ttl_seconds,
            email=user.email,
            name=user.display_name,
            role=user.role,
        )

    # ----------------------------------------------------------------- logout

    async def logout(
        self, refresh_token: Optional[str] = None, access_token: Optional[str] = None
    ) -> None:
        """
        登出：吊销访问令牌的 jti，并撤销刷新令牌

        任何一个令牌缺省都只跳过对应的一半，登出本身总是成功。
        """
        if access_token:
            result = self._tokens.validate_and_parse(access_token)
            if result.valid:
                jti = result.claims.get("jti")
                remaining = self._tokens.remaining_lifetime_ms(result.claims)
                if not await self._blacklist.blacklist(jti, remaining):
                    logger.warning("logout_blacklist_skipped", jti=jti)
            else:
                logger.info("logout_access_token_ignored", reason=result.error)

        if refresh_token:
            await self._refresh_tokens.revoke_token(refresh_token)

        logger.info(
            "user_logged_out",
            had_access_token=bool(access_token),
            had_refresh_token=bool(refresh_token),
        )

    async def logout_all(self, access_token: str) -> int:
        """登出所有设备：撤销该账号全部刷新令牌，并吊销当前访问令牌"""
        result = self._tokens.validate_and_parse(access_token)
        if not result.valid or await self._blacklist.is_blacklisted(result.claims.get("jti")):
            raise InvalidCredentialsException()

        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_email(result.claims["sub"])
        if user is None:
            raise UserNotFoundException()

        revoked = await self._refresh_tokens.revoke_all_user_tokens(user.id)
        await self._blacklist.blacklist(
            result.claims.get("jti"), self._tokens.remaining_lifetime_ms(result.claims)
        )
        logger.info("user_logged_out_everywhere", user_id=user.id, revoked_refresh_tokens=revoked)
        return revoked

    # ------------------------------------------------------------- validation

    async def validate_token(self, token: Optional[str]) -> bool:
        """签名、声明与过期校验通过，且 jti 未被吊销"""
        result = self._tokens.validate_and_parse(token)
        if not result.valid:
            return False
        return not await self._blacklist.is_blacklisted(result.claims.get("jti"))

    def get_email_from_token(self, token: Optional[str]) -> Optional[str]:
        return self._tokens.get_email(token)

    # --------------------------------------------------------------- register

    async def register(self, register_data: RegisterDTO) -> AuthResponseDTO:
        """注册新账号并直接登录（同时签发访问令牌与刷新令牌）"""
        self._policy.validate(register_data.password)
        email = normalize_email(register_data.email)

        async with self._uow_factory(readonly=True) as uow:
            if await uow.user_repository.exists_by_email(email):
                logger.info("register_duplicate_email", email=email)
                raise UserAlreadyExistsException(email)

        hashed = await asyncio.to_thread(self._encoder.hash, register_data.password)
        now = self._clock.now()
        user = User(
            id=self._ids.next_id(),
            email=email,
            display_name=register_data.name.strip(),
            hashed_password=hashed,
            role=DEFAULT_ROLE,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        async with self._uow_factory() as uow:
            user = await uow.user_repository.create(user)
            response = await self._issue(user, with_refresh_token=True, uow=uow)

        logger.info("user_registered", user_id=user.id, email=user.email)
        self._dispatcher.audit(UserRegistered(user_id=user.id, email=user.email))
        self._dispatcher.notify(NotificationKind.WELCOME, user.email, {"name": user.display_name})
        return response

    # --------------------------------------------------------- password reset

    async def request_password_reset(self, email: str) -> None:
        await self._password_reset.request_password_reset(email)

    async def validate_reset_token(self, token: Optional[str]) -> bool:
        return await self._password_reset.validate_token(token)

    async def reset_password(self, token: str, new_password: str) -> None:
        await self._password_reset.reset_password(token, new_password)
