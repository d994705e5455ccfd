import pytest

from application.ports.notifier import NotificationKind
from application.services.refresh_token_service import hash_token
from domain.common.exceptions import InvalidResetTokenException, PasswordPolicyViolationException
from domain.user.events import PasswordResetCompleted

from .conftest import STRONG_PASSWORD

NEW_PASSWORD = "An0ther!Secret#"


async def _request_and_capture(service, dispatcher, notifier, email="alice@example.com"):
    await service.request_password_reset(email)
    await dispatcher.drain()
    return notifier.of_kind(NotificationKind.PASSWORD_RESET)[-1][2]["reset_token"]


@pytest.mark.asyncio
async def test_request_issues_token_and_notifies(password_reset_service, uow_factory, dispatcher, notifier, user):
    token = await _request_and_capture(password_reset_service, dispatcher, notifier)

    stored = list(uow_factory.db.reset_tokens.values())
    assert len(stored) == 1
    assert stored[0].token_hash == hash_token(token)
    assert stored[0].user_id == user.id

    kind, recipient, data = notifier.sent[0]
    assert recipient == "alice@example.com"
    assert data["reset_url"] == f"https://app.example.com/reset-password?token={token}"
    assert data["expires_in_minutes"] == 60
    assert await password_reset_service.validate_token(token)


@pytest.mark.asyncio
async def test_unknown_email_is_silent(password_reset_service, uow_factory, dispatcher, notifier):
    assert await password_reset_service.request_password_reset("nobody@example.com") is None
    await dispatcher.drain()
    assert uow_factory.db.reset_tokens == {}
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_fourth_request_within_an_hour_is_silently_dropped(
    password_reset_service, uow_factory, dispatcher, notifier, user, clock
):
    outcomes = []
    for _ in range(4):
        outcomes.append(await password_reset_service.request_password_reset("alice@example.com"))
        clock.advance(minutes=5)
    await dispatcher.drain()

    assert outcomes == [None, None, None, None]
    assert len(uow_factory.db.reset_tokens) == 3
    assert len(notifier.of_kind(NotificationKind.PASSWORD_RESET)) == 3


@pytest.mark.asyncio
async def test_hourly_limit_rolls_over(password_reset_service, uow_factory, user, clock):
    for _ in range(3):
        await password_reset_service.request_password_reset("alice@example.com")
    clock.advance(hours=1, seconds=1)
    await password_reset_service.request_password_reset("alice@example.com")
    assert len(uow_factory.db.reset_tokens) == 4


@pytest.mark.asyncio
async def test_reset_changes_password_once_and_revokes_sessions(
    password_reset_service, refresh_token_service, uow_factory, dispatcher, notifier, audit, encoder, user, clock
):
    await refresh_token_service.create_refresh_token(user.id)
    token = await _request_and_capture(password_reset_service, dispatcher, notifier)

    await password_reset_service.reset_password(token, NEW_PASSWORD)
    await dispatcher.drain()

    stored_user = uow_factory.db.users[user.id]
    assert encoder.matches(NEW_PASSWORD, stored_user.hashed_password)
    assert not encoder.matches(STRONG_PASSWORD, stored_user.hashed_password)
    assert all(t.revoked for t in uow_factory.db.refresh_tokens.values())
    assert not await password_reset_service.validate_token(token)
    assert notifier.of_kind(NotificationKind.PASSWORD_CHANGED)
    assert any(isinstance(e, PasswordResetCompleted) for e in audit.events)

    with pytest.raises(InvalidResetTokenException):
        await password_reset_service.reset_password(token, NEW_PASSWORD)


@pytest.mark.asyncio
async def test_expired_token_cannot_be_used(password_reset_service, dispatcher, notifier, user, clock):
    token = await _request_and_capture(password_reset_service, dispatcher, notifier)
    clock.advance(minutes=60)

    assert not await password_reset_service.validate_token(token)
    with pytest.raises(InvalidResetTokenException) as exc:
        await password_reset_service.reset_password(token, NEW_PASSWORD)
    assert exc.value.reason == "expired"


@pytest.mark.asyncio
async def test_weak_password_is_rejected_before_token_lookup(password_reset_service, uow_factory):
    with pytest.raises(PasswordPolicyViolationException) as exc:
        await password_reset_service.reset_password("whatever", "short")
    assert exc.value.details["reason"] == "password_too_short"


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "never-issued"])
async def test_validate_unknown_tokens(password_reset_service, token):
    assert not await password_reset_service.validate_token(token)


@pytest.mark.asyncio
async def test_cleanup_respects_retention(password_reset_service, dispatcher, notifier, uow_factory, user, clock):
    used = await _request_and_capture(password_reset_service, dispatcher, notifier)
    await password_reset_service.reset_password(used, NEW_PASSWORD)
    await password_reset_service.request_password_reset("alice@example.com")

    clock.advance(hours=2)
    assert await password_reset_service.cleanup_expired_tokens() == 0

    clock.advance(days=1)
    assert await password_reset_service.cleanup_expired_tokens() == 2
    assert uow_factory.db.reset_tokens == {}
    await dispatcher.drain()
