from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Query

pytestmark = pytest.mark.integration

from splitledger.core.events.event_bus import event_bus
from splitledger.domains.groups.events import GROUPS_SPLIT_CREATED
from splitledger.extensions import db
from splitledger.platform.outbox import EventBusAdapter, enqueue
from splitledger.platform.outbox.models import OutboxMessage
from splitledger.platform.worker import dispatcher
from splitledger.platform.worker.config import DispatchConfig


def _config(**overrides) -> DispatchConfig:
    defaults = {
        "batch_size": 5,
        "poll_interval": 0,
        "max_attempts": 2,
        "backoff_seconds": 3,
        "backoff_multiplier": 2,
    }
    defaults.update(overrides)
    return DispatchConfig(**defaults)


def _enqueue(event_type: str = GROUPS_SPLIT_CREATED, available_at: datetime | None = None) -> OutboxMessage:
    msg = enqueue(
        event_type,
        {"transaction_id": 1, "member_id": 2, "amount": "60.00"},
        user_id=None,
        available_at=available_at or datetime.utcnow() - timedelta(seconds=1),
    )
    db.session.commit()
    return msg


@pytest.fixture()
def received():
    events = []

    def _handler(event):
        events.append(event)

    event_bus.subscribe(GROUPS_SPLIT_CREATED, _handler)
    yield events
    event_bus.unsubscribe(GROUPS_SPLIT_CREATED, _handler)


def test_successful_dispatch_marks_sent(app):
    msg = _enqueue()
    sent_ids: list[int] = []

    processed = dispatcher.process_ready_batch(lambda m: sent_ids.append(m.id), _config())

    db.session.refresh(msg)
    assert processed == 1
    assert sent_ids == [msg.id]
    assert msg.status == "sent"
    assert msg.attempts == 1
    assert msg.last_error is None


def test_claim_requests_skip_locked_and_reserves_once(app, monkeypatch):
    first = _enqueue()
    second = _enqueue()
    skip_locked_flags: list[bool | None] = []
    original_with_for_update = Query.with_for_update

    def _wrapped_with_for_update(self, *args, **kwargs):
        skip_locked_flags.append(kwargs.get("skip_locked"))
        return original_with_for_update(self, *args, **kwargs)

    monkeypatch.setattr(Query, "with_for_update", _wrapped_with_for_update)

    claimed = dispatcher.claim_ready_messages(db.session, batch_size=1)
    db.session.commit()
    assert [m.id for m in claimed] == [first.id]
    assert claimed[0].status == "sending"

    claimed_second = dispatcher.claim_ready_messages(db.session, batch_size=2)
    db.session.commit()
    assert [m.id for m in claimed_second] == [second.id]
    assert True in skip_locked_flags


def test_future_messages_wait(app):
    _enqueue(available_at=datetime.utcnow() + timedelta(hours=1))

    assert dispatcher.process_ready_batch(lambda m: None, _config()) == 0


def test_failed_dispatch_backs_off_then_fails(app):
    msg = _enqueue()
    cfg = _config(max_attempts=2, backoff_seconds=4, backoff_multiplier=2)

    def _send_fail(_):
        raise RuntimeError("broker down")

    start = datetime.utcnow()
    dispatcher.process_ready_batch(_send_fail, cfg)
    db.session.refresh(msg)
    assert msg.attempts == 1
    assert msg.status == "retry"
    assert msg.available_at >= start + timedelta(seconds=cfg.backoff_seconds)
    assert msg.last_error == "broker down"
    first_available = msg.available_at

    msg.available_at = datetime.utcnow() - timedelta(seconds=1)
    db.session.commit()

    dispatcher.process_ready_batch(_send_fail, cfg)
    db.session.refresh(msg)
    assert msg.attempts == 2
    assert msg.status == "failed"
    assert msg.available_at >= first_available - timedelta(seconds=cfg.backoff_seconds)


def test_sent_message_is_not_dispatched_twice(app):
    msg = _enqueue()
    sent_ids: list[int] = []
    dispatcher.process_ready_batch(lambda m: sent_ids.append(m.id), _config())

    def _should_not_run(_):
        raise AssertionError("duplicate dispatch attempted")

    dispatcher.process_ready_batch(_should_not_run, _config())
    db.session.refresh(msg)
    assert sent_ids == [msg.id]
    assert msg.status == "sent"


def test_run_dispatcher_publishes_to_event_bus(app, received):
    msg = _enqueue()

    total = dispatcher.run_dispatcher(_config(), max_batches=1)

    assert total == 1
    assert [event.event_type for event in received] == [GROUPS_SPLIT_CREATED]
    assert received[0].payload["event_id"] == msg.id
    assert received[0].payload["amount"] == "60.00"


def test_adapter_holds_no_per_message_state(app, received):
    adapter = EventBusAdapter()
    first, second = _enqueue(), _enqueue()

    adapter.dispatch(first)
    adapter.dispatch(second)

    assert [event.id for event in received] == [first.id, second.id]
    assert vars(adapter) == {"bus": event_bus}


def test_repeated_batches_deliver_each_message_once(app, received):
    msg = _enqueue()

    total = dispatcher.run_dispatcher(_config(), max_batches=3)

    db.session.refresh(msg)
    assert total == 1
    assert len(received) == 1
    assert msg.status == "sent"


def test_cli_command_drains_one_batch(app, received):
    _enqueue()
    _enqueue()

    result = app.test_cli_runner().invoke(args=["dispatch-outbox", "--once"])

    assert result.exit_code == 0, result.output
    assert "Processed 2 outbox message(s)" in result.output
    assert len(received) == 2
