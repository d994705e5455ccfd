"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation (HS512 needs 64 bytes)
os.environ.setdefault("SECRET_KEY", "test-secret-key-" + "x" * 64)
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("REDIS__URL", None)

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio

from application.ports.expiring_store import StoreUnavailableError
from application.ports.notifier import NotificationKind
from application.services.auth_service import AuthService
from application.services.login_attempt_service import LoginAttemptService
from application.services.notification_dispatcher import NotificationDispatcher
from application.services.password_reset_service import PasswordResetService
from application.services.refresh_token_service import RefreshTokenService
from application.services.token_blacklist_service import TokenBlacklistService
from application.services.token_service import TokenService
from domain.user.entity import User
from domain.user.service import PasswordService
from infrastructure.cache import InMemoryExpiringStore
from infrastructure.memory import InMemoryUnitOfWorkFactory


STRONG_PASSWORD = "Str0ng!Passw0rd"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)


class FakeNotifier:
    def __init__(self, *, fail: bool = False):
        self.sent: list[tuple[NotificationKind, str, dict[str, Any]]] = []
        self.fail = fail

    async def send(self, kind: NotificationKind, recipient: str, data: dict[str, Any]) -> bool:
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append((kind, recipient, dict(data)))
        return True

    def of_kind(self, kind: NotificationKind) -> list[tuple[NotificationKind, str, dict[str, Any]]]:
        return [n for n in self.sent if n[0] == kind]


class RecordingAudit:
    def __init__(self):
        self.events: list[Any] = []

    async def record(self, event: Any) -> None:
        self.events.append(event)


class SequentialIds:
    def __init__(self, start: int = 1000):
        self._next = start

    def next_id(self) -> int:
        self._next += 1
        return self._next


class UnavailableStore:
    """Every call fails the way a disconnected Redis would."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise StoreUnavailableError("connection refused")

    get = set = set_if_absent = exists = delete = incr = expire = ttl_ms = _fail


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryExpiringStore:
    return InMemoryExpiringStore(clock)


@pytest.fixture
def uow_factory() -> InMemoryUnitOfWorkFactory:
    return InMemoryUnitOfWorkFactory()


@pytest.fixture
def encoder() -> PasswordService:
    # 测试中降低迭代次数
    return PasswordService(iterations=1_000)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()


@pytest.fixture
def dispatcher(notifier, audit) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, audit)


@pytest.fixture
def token_service(clock) -> TokenService:
    return TokenService(clock=clock)


@pytest.fixture
def attempt_service(store) -> LoginAttemptService:
    return LoginAttemptService(
        store,
        max_attempts=5,
        attempt_window=timedelta(minutes=15),
        lockout_duration=timedelta(minutes=15),
        max_lockout_multiplier=6,
    )


@pytest.fixture
def blacklist_service(store) -> TokenBlacklistService:
    return TokenBlacklistService(store)


@pytest.fixture
def refresh_token_service(uow_factory, clock, dispatcher) -> RefreshTokenService:
    return RefreshTokenService(
        uow_factory,
        clock=clock,
        lifetime=timedelta(days=30),
        single_session=True,
        reuse_revokes_all=True,
        dispatcher=dispatcher,
    )


@pytest.fixture
def password_reset_service(uow_factory, encoder, dispatcher, clock) -> PasswordResetService:
    return PasswordResetService(
        uow_factory,
        encoder=encoder,
        dispatcher=dispatcher,
        clock=clock,
        token_validity=timedelta(minutes=60),
        max_tokens_per_hour=3,
        retention=timedelta(days=1),
        app_url="https://app.example.com",
    )


@pytest.fixture
def auth_service(
    uow_factory,
    token_service,
    attempt_service,
    blacklist_service,
    refresh_token_service,
    password_reset_service,
    encoder,
    dispatcher,
    clock,
) -> AuthService:
    return AuthService(
        uow_factory,
        token_service=token_service,
        attempt_service=attempt_service,
        blacklist_service=blacklist_service,
        refresh_token_service=refresh_token_service,
        password_reset_service=password_reset_service,
        encoder=encoder,
        dispatcher=dispatcher,
        id_generator=SequentialIds(),
        clock=clock,
    )


@pytest_asyncio.fixture
async def user(uow_factory, encoder, clock) -> User:
    async with uow_factory() as uow:
        return await uow.user_repository.create(
            User(
                id=1,
                email="alice@example.com",
                display_name="Alice",
                hashed_password=encoder.hash(STRONG_PASSWORD),
                role="EDITOR",
                created_at=clock.now(),
                updated_at=clock.now(),
            )
        )
