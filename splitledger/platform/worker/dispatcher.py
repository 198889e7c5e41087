"""Outbox dispatcher: claim ready rows, deliver them, record the outcome."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from splitledger.extensions import db
from splitledger.platform.outbox.models import OutboxMessage
from splitledger.platform.outbox.services import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_RETRY,
    STATUS_SENDING,
    STATUS_SENT,
    EventBusAdapter,
)
from splitledger.platform.worker.config import DispatchConfig

logger = logging.getLogger(__name__)

SendFn = Callable[[OutboxMessage], None]


def _backoff_seconds(attempts: int, config: DispatchConfig) -> float:
    """Exponential backoff; attempts is 1-indexed."""
    return config.backoff_seconds * (config.backoff_multiplier ** max(attempts - 1, 0))


def claim_ready_messages(session, batch_size: int, now: Optional[datetime] = None) -> List[OutboxMessage]:
    """
    Lock ready rows with SKIP LOCKED so parallel workers never share a message.
    Claimed rows move to 'sending' with attempts incremented.
    """
    now = now or datetime.utcnow()
    messages = (
        session.query(OutboxMessage)
        .filter(
            OutboxMessage.available_at <= now,
            OutboxMessage.status.in_((STATUS_PENDING, STATUS_RETRY)),
        )
        .order_by(OutboxMessage.available_at, OutboxMessage.id)
        .with_for_update(skip_locked=True)
        .limit(batch_size)
        .all()
    )
    for message in messages:
        message.status = STATUS_SENDING
        message.attempts = (message.attempts or 0) + 1
    return messages


def _record_failure(message: OutboxMessage, exc: Exception, config: DispatchConfig) -> None:
    attempts = message.attempts or 1
    next_available = datetime.utcnow() + timedelta(seconds=_backoff_seconds(attempts, config))
    message.last_error = str(exc)
    message.available_at = max(message.available_at or next_available, next_available)
    message.status = STATUS_FAILED if attempts >= config.max_attempts else STATUS_RETRY
    logger.warning(
        "Outbox message %s (%s) failed on attempt %s: %s",
        message.id,
        message.event_type,
        attempts,
        exc,
    )


def process_ready_batch(send_fn: SendFn, config: DispatchConfig, session=None) -> int:
    """
    Claim one batch, hand each message to send_fn and persist its new status.
    Returns the number of messages processed (sent or failed).
    """
    session = session or db.session
    try:
        messages = claim_ready_messages(session, batch_size=config.batch_size)
        processed = 0
        for message in messages:
            try:
                send_fn(message)
                message.status = STATUS_SENT
                message.last_error = None
            except Exception as exc:
                _record_failure(message, exc, config)
            processed += 1
        session.commit()
        return processed
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Database error while processing outbox batch")
        return 0


def run_dispatcher(
    config: Optional[DispatchConfig] = None,
    send_fn: Optional[SendFn] = None,
    max_batches: Optional[int] = None,
) -> int:
    """
    Drain the outbox in a polling loop; publishes to the in-process bus by default.
    Stops after max_batches iterations when given. Returns messages processed.
    """
    cfg = config or DispatchConfig()
    dispatch = send_fn or EventBusAdapter().dispatch

    logger.info(
        "Starting outbox dispatcher (batch_size=%s, poll_interval=%ss, max_attempts=%s)",
        cfg.batch_size,
        cfg.poll_interval,
        cfg.max_attempts,
    )
    total = 0
    batches = 0
    try:
        while max_batches is None or batches < max_batches:
            processed = process_ready_batch(dispatch, cfg)
            total += processed
            batches += 1
            if max_batches is not None and batches >= max_batches:
                break
            time.sleep(cfg.poll_interval if processed == 0 else min(0.1, cfg.poll_interval))
    except KeyboardInterrupt:
        logger.info("Dispatcher stopped by user")
    return total
