"""Transactional outbox for ledger notifications."""

from splitledger.platform.outbox.models import OutboxMessage
from splitledger.platform.outbox.services import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_RETRY,
    STATUS_SENDING,
    STATUS_SENT,
    EventBusAdapter,
    enqueue,
)

__all__ = [
    "OutboxMessage",
    "enqueue",
    "EventBusAdapter",
    "STATUS_PENDING",
    "STATUS_SENDING",
    "STATUS_SENT",
    "STATUS_RETRY",
    "STATUS_FAILED",
]
