"""Outbox staging and the in-process bus adapter."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from splitledger.core.events.event_bus import EventBus, event_bus
from splitledger.core.events.event_models import EventRecord
from splitledger.extensions import db
from splitledger.platform.outbox.models import OutboxMessage

STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"
STATUS_RETRY = "retry"
STATUS_FAILED = "failed"


class EventBusAdapter:
    """
    Publish outbox messages to the in-process bus; a broker client can replace it.
    Stateless: the claim status in the dispatcher keeps sent rows from repeating.
    """

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self.bus = bus or event_bus

    def dispatch(self, message: OutboxMessage) -> None:
        payload = dict(message.payload or {})
        payload.setdefault("event_id", message.id)
        event = EventRecord(
            event_type=message.event_type,
            payload=payload,
            user_id=message.user_id,
            id=message.id,
            created_at=message.created_at or datetime.utcnow(),
        )
        self.bus.publish(event)


def enqueue(
    event_name: str,
    payload: dict,
    user_id: Optional[int],
    available_at: Optional[datetime] = None,
) -> OutboxMessage:
    """
    Stage an event in the outbox. Caller commits alongside the domain change.
    """
    message = OutboxMessage(
        event_type=event_name,
        payload=payload or {},
        user_id=user_id,
        available_at=available_at or datetime.utcnow(),
        status=STATUS_PENDING,
        attempts=0,
    )
    db.session.add(message)
    return message
