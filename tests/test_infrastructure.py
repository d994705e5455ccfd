from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from kombu.exceptions import OperationalError

from application.ports.notifier import NotificationKind
from domain.user.events import AccountLockedOut
from infrastructure import audit as audit_module
from infrastructure.id_generator import MAX_NODE_ID, SEQUENCE_BITS, SnowflakeIdGenerator
from infrastructure.notifications import CeleryNotifier
from infrastructure.tasks.tasks.notifications import render_notification, send_notification
from infrastructure.tasks.utils.base_task import redact_payload


def test_ids_are_unique_and_increasing():
    generator = SnowflakeIdGenerator(node_id=7)
    ids = [generator.next_id() for _ in range(5000)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    assert all((i >> SEQUENCE_BITS) & MAX_NODE_ID == 7 for i in ids)


def test_clock_moving_backwards_keeps_ids_increasing(monkeypatch):
    generator = SnowflakeIdGenerator()
    readings = iter([1_800_000_000_000, 1_799_999_999_000])
    monkeypatch.setattr(generator, "_now_ms", lambda: next(readings))

    first = generator.next_id()
    second = generator.next_id()
    assert second > first


@pytest.mark.parametrize("node_id", [-1, MAX_NODE_ID + 1])
def test_node_id_bounds(node_id):
    with pytest.raises(ValueError):
        SnowflakeIdGenerator(node_id=node_id)


def test_render_password_reset_template():
    subject, body = render_notification(
        "password_reset",
        {"name": "Alice", "reset_url": "https://app.example.com/reset-password?token=t", "expires_in_minutes": 60},
    )
    assert "Reset your" in subject
    assert "https://app.example.com/reset-password?token=t" in body
    assert "60 minutes" in body


def test_render_tolerates_missing_fields():
    _, body = render_notification("account_locked", {})
    assert body.startswith("Hi , too many failed")


def test_render_rejects_unknown_kind():
    with pytest.raises(ValueError):
        render_notification("sms", {})


def test_send_notification_task_runs_inline():
    result = send_notification("welcome", "bob@example.com", {"name": "Bob"})
    assert result["recipient"] == "bob@example.com"
    assert result["kind"] == "welcome"


def test_task_payloads_are_redacted():
    redacted = redact_payload(
        {"kind": "password_reset", "data": {"name": "Alice", "reset_url": "https://x/?token=t", "reset_token": "t"}}
    )
    assert redacted == {"kind": "password_reset", "data": {"name": "Alice", "reset_url": "***", "reset_token": "***"}}


@pytest.mark.asyncio
async def test_celery_notifier_enqueues_by_kind_value():
    dispatcher = MagicMock()
    notifier = CeleryNotifier(dispatcher)

    assert await notifier.send(NotificationKind.WELCOME, "bob@example.com", {"name": "Bob"})
    dispatcher.send_notification.assert_called_once_with("welcome", "bob@example.com", {"name": "Bob"})


@pytest.mark.asyncio
async def test_celery_notifier_reports_broker_outage():
    dispatcher = MagicMock()
    dispatcher.send_notification.side_effect = OperationalError("broker down")

    assert not await CeleryNotifier(dispatcher).send(NotificationKind.WELCOME, "bob@example.com", {})


@pytest.mark.asyncio
async def test_audit_log_records_event_fields(monkeypatch):
    fake_logger = MagicMock()
    monkeypatch.setattr(audit_module, "logger", fake_logger)
    occurred_at = datetime(2026, 1, 1, tzinfo=timezone.utc)

    await audit_module.StructlogAuditLog().record(
        AccountLockedOut(
            email="alice@example.com", failure_count=5, lockout_ms=900_000, source="10.0.0.1", occurred_at=occurred_at
        )
    )

    fake_logger.info.assert_called_once()
    args, kwargs = fake_logger.info.call_args
    assert args == ("security_audit",)
    assert kwargs["event_type"] == "AccountLockedOut"
    assert kwargs["occurred_at"] == occurred_at.isoformat()
    assert kwargs["failure_count"] == 5
