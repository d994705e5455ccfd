"""
API依赖项 - 服务装配与Bearer令牌认证

装配规则：
- 配置了 REDIS__URL 且 lifespan 已初始化 Redis 时，登录尝试与黑名单使用 Redis，
  登录尝试另外带一个进程内的兜底存储；否则全部使用进程内存储
- 配置了 REDIS__URL 时通知经 Celery 投递，否则只写日志
"""
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.ports.clock import Clock, SystemClock
from application.ports.expiring_store import ExpiringStore
from application.ports.id_generator import IdGenerator
from application.ports.notifier import Notifier
from application.ports.password_encoder import PasswordEncoder
from application.services.auth_service import AuthService
from application.services.login_attempt_service import LoginAttemptService
from application.services.notification_dispatcher import NotificationDispatcher
from application.services.password_reset_service import PasswordResetService
from application.services.refresh_token_service import RefreshTokenService
from application.services.token_blacklist_service import TokenBlacklistService
from application.services.token_service import TokenService
from core.config import settings
from core.exceptions import UnauthorizedException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.service import PasswordService
from infrastructure.audit import StructlogAuditLog
from infrastructure.cache import InMemoryExpiringStore, get_redis_store
from infrastructure.id_generator import SnowflakeIdGenerator
from infrastructure.notifications import CeleryNotifier, LoggingNotifier


http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


def build_auth_service(
    uow_factory: Callable[..., AbstractUnitOfWork],
    *,
    store: ExpiringStore,
    notifier: Notifier,
    fallback_store: Optional[ExpiringStore] = None,
    clock: Optional[Clock] = None,
    encoder: Optional[PasswordEncoder] = None,
    id_generator: Optional[IdGenerator] = None,
) -> AuthService:
    """按配置组装认证服务及其协作者"""
    clock = clock or SystemClock()
    encoder = encoder or PasswordService()
    dispatcher = NotificationDispatcher(notifier, StructlogAuditLog())
    refresh_tokens = RefreshTokenService(uow_factory, clock=clock, dispatcher=dispatcher)
    return AuthService(
        uow_factory,
        token_service=TokenService(clock=clock),
        attempt_service=LoginAttemptService(store, fallback=fallback_store),
        blacklist_service=TokenBlacklistService(store),
        refresh_token_service=refresh_tokens,
        password_reset_service=PasswordResetService(
            uow_factory, encoder=encoder, dispatcher=dispatcher, clock=clock
        ),
        encoder=encoder,
        dispatcher=dispatcher,
        id_generator=id_generator or SnowflakeIdGenerator(),
        clock=clock,
    )


_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """进程内单例；首次调用时按当前的 Redis 初始化状态装配"""
    global _auth_service
    if _auth_service is None:
        from infrastructure.unit_of_work import sqlalchemy_uow_factory

        redis_store = get_redis_store()
        local_store = InMemoryExpiringStore()
        _auth_service = build_auth_service(
            sqlalchemy_uow_factory(),
            store=redis_store or local_store,
            fallback_store=local_store if redis_store is not None else None,
            notifier=CeleryNotifier() if settings.redis.url else LoggingNotifier(),
        )
    return _auth_service


async def shutdown_auth_service() -> None:
    """等待仍在发送中的通知，然后丢弃单例"""
    global _auth_service
    if _auth_service is not None:
        await _auth_service.dispatcher.drain()
        _auth_service = None


async def get_optional_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def get_token(token: Optional[str] = Depends(get_optional_token)) -> str:
    if not token:
        raise UnauthorizedException("未提供认证凭据")
    return token


async def get_current_email(
    token: str = Depends(get_token),
    service: AuthService = Depends(get_auth_service),
) -> str:
    """校验访问令牌（含黑名单）并返回令牌主体邮箱"""
    if not await service.validate_token(token):
        raise UnauthorizedException("无效的认证凭据")
    email = service.get_email_from_token(token)
    if email is None:
        raise UnauthorizedException("无效的认证凭据")
    return email
