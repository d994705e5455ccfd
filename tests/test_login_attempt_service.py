from datetime import timedelta

import pytest

from application.services.login_attempt_service import LoginAttemptService
from infrastructure.cache import InMemoryExpiringStore

from .conftest import UnavailableStore

EMAIL = "bob@example.com"


@pytest.mark.asyncio
async def test_failures_count_down_remaining_attempts(attempt_service):
    for expected in range(1, 5):
        outcome = await attempt_service.record_failed_attempt(EMAIL)
        assert outcome.failure_count == expected
        assert outcome.remaining_attempts == 5 - expected
        assert not outcome.locked
    assert await attempt_service.get_failed_attempts(EMAIL) == 4
    assert await attempt_service.get_remaining_attempts(EMAIL) == 1
    assert not await attempt_service.is_blocked(EMAIL)


@pytest.mark.asyncio
async def test_threshold_failure_establishes_lockout(attempt_service):
    for _ in range(4):
        await attempt_service.record_failed_attempt(EMAIL)

    outcome = await attempt_service.record_failed_attempt(EMAIL, "10.0.0.1")
    assert outcome.locked
    assert outcome.lockout_ms == 15 * 60 * 1000
    assert await attempt_service.is_blocked(EMAIL)
    assert await attempt_service.get_remaining_lockout_time(EMAIL) == 15 * 60 * 1000


@pytest.mark.asyncio
async def test_identifier_is_case_insensitive(attempt_service):
    await attempt_service.record_failed_attempt("Bob@Example.com ")
    assert await attempt_service.get_failed_attempts(EMAIL) == 1


@pytest.mark.asyncio
async def test_active_lockout_is_not_extended(attempt_service, clock):
    for _ in range(5):
        await attempt_service.record_failed_attempt(EMAIL)
    clock.advance(minutes=5)

    outcome = await attempt_service.record_failed_attempt(EMAIL)
    assert not outcome.locked
    assert await attempt_service.get_remaining_lockout_time(EMAIL) == 10 * 60 * 1000


@pytest.mark.asyncio
async def test_lockout_escalates_after_expiry_within_window(store, clock):
    service = LoginAttemptService(
        store,
        max_attempts=3,
        attempt_window=timedelta(hours=1),
        lockout_duration=timedelta(minutes=1),
        max_lockout_multiplier=6,
    )
    for _ in range(3):
        await service.record_failed_attempt(EMAIL)
    clock.advance(minutes=2)
    assert not await service.is_blocked(EMAIL)

    outcome = await service.record_failed_attempt(EMAIL)
    assert outcome.locked
    assert outcome.failure_count == 4
    assert outcome.lockout_ms == 2 * 60 * 1000


@pytest.mark.asyncio
async def test_escalation_is_capped(store, clock):
    service = LoginAttemptService(
        store,
        max_attempts=1,
        attempt_window=timedelta(days=1),
        lockout_duration=timedelta(minutes=1),
        max_lockout_multiplier=6,
    )
    outcome = None
    for _ in range(10):
        outcome = await service.record_failed_attempt(EMAIL)
        clock.advance(minutes=7)
    assert outcome.lockout_ms == 6 * 60 * 1000


@pytest.mark.asyncio
async def test_window_expiry_resets_counter(attempt_service, clock):
    for _ in range(3):
        await attempt_service.record_failed_attempt(EMAIL)
    clock.advance(minutes=15)
    assert await attempt_service.get_failed_attempts(EMAIL) == 0
    outcome = await attempt_service.record_failed_attempt(EMAIL)
    assert outcome.failure_count == 1


@pytest.mark.asyncio
async def test_clear_removes_counter_and_lockout(attempt_service):
    for _ in range(5):
        await attempt_service.record_failed_attempt(EMAIL)
    await attempt_service.clear_failed_attempts(EMAIL)
    assert not await attempt_service.is_blocked(EMAIL)
    assert await attempt_service.get_failed_attempts(EMAIL) == 0
    assert await attempt_service.get_remaining_lockout_time(EMAIL) == 0


@pytest.mark.asyncio
async def test_unavailable_store_uses_local_fallback(clock):
    broken = UnavailableStore()
    service = LoginAttemptService(
        broken,
        fallback=InMemoryExpiringStore(clock),
        max_attempts=2,
        attempt_window=timedelta(minutes=15),
        lockout_duration=timedelta(minutes=15),
    )
    await service.record_failed_attempt(EMAIL)
    outcome = await service.record_failed_attempt(EMAIL)
    assert outcome.locked
    assert await service.is_blocked(EMAIL)
    assert broken.calls > 0


@pytest.mark.asyncio
async def test_unavailable_store_without_fallback_degrades_quietly():
    service = LoginAttemptService(UnavailableStore(), max_attempts=5)
    outcome = await service.record_failed_attempt(EMAIL)
    assert outcome.failure_count == 0
    assert not outcome.locked
    assert not await service.is_blocked(EMAIL)
    assert await service.get_remaining_lockout_time(EMAIL) == 0


@pytest.mark.asyncio
async def test_default_settings_escalate_after_lockout_expires(store, clock):
    service = LoginAttemptService(store)
    for _ in range(5):
        await service.record_failed_attempt(EMAIL)
        clock.advance(minutes=1)

    assert await service.is_blocked(EMAIL)
    assert await service.get_remaining_attempts(EMAIL) == 0

    # 基础锁定 15 分钟，从第 5 次失败（1 分钟前）起算
    clock.advance(minutes=14)
    assert not await service.is_blocked(EMAIL)

    outcome = await service.record_failed_attempt(EMAIL)
    assert outcome.failure_count == 6
    assert outcome.locked
    assert outcome.lockout_ms == 30 * 60 * 1000
    assert await service.get_remaining_lockout_time(EMAIL) == 30 * 60 * 1000


@pytest.mark.asyncio
async def test_counter_outlives_lockout_by_one_window(attempt_service, clock):
    for _ in range(5):
        await attempt_service.record_failed_attempt(EMAIL)

    clock.advance(minutes=29)
    assert await attempt_service.get_failed_attempts(EMAIL) == 5
    clock.advance(minutes=1)
    assert await attempt_service.get_failed_attempts(EMAIL) == 0
