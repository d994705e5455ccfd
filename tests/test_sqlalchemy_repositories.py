"""SQLAlchemy repositories and unit of work against an in-memory SQLite database."""
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.dto import LoginDTO, RegisterDTO
from application.services.refresh_token_service import RefreshTokenService, hash_token
from domain.common.exceptions import InvalidRefreshTokenException, UserAlreadyExistsException
from domain.user.entity import PasswordResetToken, RefreshToken, User
from infrastructure.models import Base
from infrastructure.unit_of_work import sqlalchemy_uow_factory

from .conftest import STRONG_PASSWORD


@pytest_asyncio.fixture
async def sql_uow_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield sqlalchemy_uow_factory(async_sessionmaker(bind=engine, expire_on_commit=False))
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_user(sql_uow_factory, clock):
    async with sql_uow_factory() as uow:
        return await uow.user_repository.create(
            User(
                id=42,
                email="dave@example.com",
                display_name="Dave",
                hashed_password="salt$hash",
                created_at=clock.now(),
                updated_at=clock.now(),
            )
        )


@pytest.mark.asyncio
async def test_user_round_trip(sql_uow_factory, sql_user, clock):
    async with sql_uow_factory(readonly=True) as uow:
        loaded = await uow.user_repository.get_by_email("dave@example.com")
        assert await uow.user_repository.exists_by_email("dave@example.com")
        assert not await uow.user_repository.exists_by_email("eve@example.com")
        assert await uow.user_repository.get_by_id(999) is None

    assert loaded.id == 42
    assert loaded.role == "VIEWER"
    assert loaded.created_at == clock.now()

    loaded.change_password("salt$new", at=clock.now() + timedelta(minutes=1))
    loaded.record_login(at=clock.now() + timedelta(minutes=1))
    async with sql_uow_factory() as uow:
        await uow.user_repository.update(loaded)

    async with sql_uow_factory(readonly=True) as uow:
        reloaded = await uow.user_repository.get_by_id(42)
    assert reloaded.hashed_password == "salt$new"
    assert reloaded.last_login == clock.now() + timedelta(minutes=1)


@pytest.mark.asyncio
async def test_duplicate_email_is_a_business_error(sql_uow_factory, sql_user):
    with pytest.raises(UserAlreadyExistsException):
        async with sql_uow_factory() as uow:
            await uow.user_repository.create(
                User(id=43, email="dave@example.com", display_name="Other", hashed_password="x")
            )


@pytest.mark.asyncio
async def test_refresh_token_conditional_revocation(sql_uow_factory, sql_user, clock):
    now = clock.now()
    async with sql_uow_factory() as uow:
        repo = uow.refresh_token_repository
        first = await repo.create(
            RefreshToken(id=None, user_id=42, token_hash="a" * 64, issued_at=now, expires_at=now + timedelta(days=1))
        )
        await repo.create(
            RefreshToken(id=None, user_id=42, token_hash="b" * 64, issued_at=now, expires_at=now + timedelta(days=1))
        )

    async with sql_uow_factory() as uow:
        repo = uow.refresh_token_repository
        assert await repo.revoke_if_active(first.id, now)
        assert not await repo.revoke_if_active(first.id, now)
        assert await repo.revoke_all_for_user(42, now) == 1
        assert not await repo.revoke_by_token_hash("b" * 64, now)

    async with sql_uow_factory(readonly=True) as uow:
        stored = await uow.refresh_token_repository.get_by_token_hash("a" * 64)
    assert stored.revoked
    assert stored.revoked_at == now
    assert stored.expires_at == now + timedelta(days=1)


@pytest.mark.asyncio
async def test_refresh_token_cleanup(sql_uow_factory, sql_user, clock):
    now = clock.now()
    async with sql_uow_factory() as uow:
        repo = uow.refresh_token_repository
        await repo.create(RefreshToken(id=None, user_id=42, token_hash="c" * 64, issued_at=now, expires_at=now))
        await repo.create(
            RefreshToken(id=None, user_id=42, token_hash="d" * 64, issued_at=now, expires_at=now + timedelta(days=1))
        )

    async with sql_uow_factory() as uow:
        assert await uow.refresh_token_repository.cleanup_expired(now + timedelta(seconds=1)) == 1


@pytest.mark.asyncio
async def test_reset_token_repository(sql_uow_factory, sql_user, clock):
    now = clock.now()
    async with sql_uow_factory() as uow:
        repo = uow.password_reset_repository
        token = await repo.create(
            PasswordResetToken(id=None, user_id=42, token_hash="e" * 64, expires_at=now + timedelta(hours=1), created_at=now)
        )
        assert await repo.count_created_since(42, now - timedelta(hours=1)) == 1
        assert await repo.count_created_since(42, now + timedelta(seconds=1)) == 0

    async with sql_uow_factory() as uow:
        repo = uow.password_reset_repository
        assert await repo.mark_used_if_unused(token.id, now)
        assert not await repo.mark_used_if_unused(token.id, now)
        assert await repo.get_unused_by_token_hash("e" * 64) is None

    async with sql_uow_factory() as uow:
        assert await uow.password_reset_repository.cleanup_expired(now + timedelta(days=1)) == 1


@pytest.mark.asyncio
async def test_reuse_revocation_survives_the_failed_request(sql_uow_factory, sql_user, clock):
    service = RefreshTokenService(sql_uow_factory, clock=clock, single_session=False, reuse_revokes_all=True)
    first = await service.create_refresh_token(42)
    second = await service.verify_and_rotate(first.token)

    with pytest.raises(InvalidRefreshTokenException):
        await service.verify_and_rotate(first.token)

    async with sql_uow_factory(readonly=True) as uow:
        latest = await uow.refresh_token_repository.get_by_token_hash(hash_token(second.token))
    assert latest.revoked


@pytest.mark.asyncio
async def test_auth_flow_on_sql_storage(
    sql_uow_factory,
    token_service,
    attempt_service,
    blacklist_service,
    encoder,
    dispatcher,
    clock,
):
    from application.services.auth_service import AuthService
    from application.services.password_reset_service import PasswordResetService

    from .conftest import SequentialIds

    service = AuthService(
        sql_uow_factory,
        token_service=token_service,
        attempt_service=attempt_service,
        blacklist_service=blacklist_service,
        refresh_token_service=RefreshTokenService(
            sql_uow_factory, clock=clock, single_session=True, reuse_revokes_all=True, dispatcher=dispatcher
        ),
        password_reset_service=PasswordResetService(
            sql_uow_factory, encoder=encoder, dispatcher=dispatcher, clock=clock
        ),
        encoder=encoder,
        dispatcher=dispatcher,
        id_generator=SequentialIds(),
        clock=clock,
    )

    registered = await service.register(RegisterDTO(email="frank@example.com", password=STRONG_PASSWORD, name="Frank"))
    refreshed = await service.refresh_access_token(registered.refresh_token)
    session = await service.login(LoginDTO(email="frank@example.com", password=STRONG_PASSWORD, remember_me=True))

    # 登录使刷新得到的令牌失效；再次出示它按重用处理，撤销全部会话
    with pytest.raises(InvalidRefreshTokenException):
        await service.refresh_access_token(refreshed.refresh_token)
    with pytest.raises(InvalidRefreshTokenException):
        await service.refresh_access_token(session.refresh_token)
    await dispatcher.drain()
