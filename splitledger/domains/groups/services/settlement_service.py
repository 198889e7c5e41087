"""Settlement lifecycle: record debt payments between group members.

Settlements move ``pending -> paid`` or ``pending -> cancelled`` and never
leave a terminal status. Transitions are conditional updates on the current
status, so of two concurrent attempts only one can win.

Settlements do not touch split ``is_paid`` flags; the two are tracked
independently.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

from splitledger.core.utils.pagination import paginate
from splitledger.domains.groups.errors import (
    InvalidStateTransitionError,
    LedgerValidationError,
    NotFoundError,
    UnauthorizedError,
)
from splitledger.domains.groups.events import (
    GROUPS_SETTLEMENT_CANCELLED,
    GROUPS_SETTLEMENT_CREATED,
    GROUPS_SETTLEMENT_PAID,
)
from splitledger.domains.groups.models.ledger_models import (
    SETTLEMENT_CANCELLED,
    SETTLEMENT_PAID,
    SETTLEMENT_PENDING,
    SETTLEMENT_STATUSES,
    Settlement,
)
from splitledger.domains.groups.money import format_amount, to_amount
from splitledger.domains.groups.services.access import is_manager, require_member
from splitledger.domains.groups.services.group_repository import GroupLedgerRepository
from splitledger.extensions import db
from splitledger.platform.outbox import enqueue as enqueue_outbox

logger = logging.getLogger(__name__)

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
MAX_NOTES_LENGTH = 1000


def _settlement_payload(settlement: Settlement) -> dict:
    return {
        "settlement_id": settlement.id,
        "group_id": settlement.group_id,
        "from_user_id": settlement.from_user_id,
        "to_user_id": settlement.to_user_id,
        "amount": format_amount(settlement.amount),
        "currency": settlement.currency,
    }


def create_settlement(
    group_id: int,
    from_user_id: int,
    to_user_id: int,
    amount: Any,
    currency: Optional[str] = None,
    notes: Optional[str] = None,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> Settlement:
    """Record a pending payment from ``from_user_id`` to ``to_user_id``.

    The amount is not checked against computed balances, so partial and
    ad hoc settlements are allowed. ``currency`` defaults to the group's.
    """
    repo = repository or GroupLedgerRepository()
    group = repo.require_group(group_id)
    if actor_id is not None:
        membership = require_member(repo, group_id, actor_id, write=True)
        if actor_id not in (from_user_id, to_user_id) and not is_manager(membership):
            raise UnauthorizedError(
                "Only a party to the settlement or a group admin can record it",
                reason="not_settlement_party",
            )

    if from_user_id == to_user_id:
        raise LedgerValidationError("A member cannot settle with themselves", reason="same_member")
    value = to_amount(amount)
    if value <= 0:
        raise LedgerValidationError("Settlement amount must be positive", reason="non_positive_amount")
    code = (currency or group.currency or "").upper()
    if not CURRENCY_RE.match(code):
        raise LedgerValidationError("Currency must be a 3-letter code", reason="invalid_currency")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise LedgerValidationError("Notes are too long", reason="notes_too_long")

    current = repo.current_member_ids(group_id)
    outsiders = [user_id for user_id in (from_user_id, to_user_id) if user_id not in current]
    if outsiders:
        raise LedgerValidationError(
            f"Members {outsiders} are not in this group",
            reason="not_a_member",
            details={"member_ids": outsiders},
        )

    settlement = Settlement(
        group_id=group_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        amount=value,
        currency=code,
        status=SETTLEMENT_PENDING,
        notes=(notes or "").strip() or None,
    )
    db.session.add(settlement)
    db.session.flush()
    payload = _settlement_payload(settlement)
    payload["notes"] = settlement.notes
    enqueue_outbox(GROUPS_SETTLEMENT_CREATED, payload, user_id=to_user_id)
    db.session.commit()
    logger.info(
        "Settlement %s created in group %s: %s -> %s %s %s",
        settlement.id,
        group_id,
        from_user_id,
        to_user_id,
        format_amount(value),
        code,
    )
    return settlement


def get_settlement(settlement_id: int) -> Settlement:
    settlement = db.session.get(Settlement, settlement_id)
    if settlement is None:
        raise NotFoundError(f"Settlement {settlement_id} not found", reason="settlement_not_found")
    return settlement


def _authorize_transition(repo: GroupLedgerRepository, settlement: Settlement, actor_id: Optional[int]) -> None:
    if actor_id is None:
        return
    membership = require_member(repo, settlement.group_id, actor_id, write=True)
    if actor_id not in (settlement.from_user_id, settlement.to_user_id) and not is_manager(membership):
        raise UnauthorizedError(
            "Only a party to the settlement or a group admin can change it",
            reason="not_settlement_party",
        )


def _transition(
    settlement_id: int,
    target: str,
    values: dict,
    actor_id: Optional[int],
    repository: Optional[GroupLedgerRepository],
) -> Settlement:
    repo = repository or GroupLedgerRepository()
    settlement = get_settlement(settlement_id)
    _authorize_transition(repo, settlement, actor_id)

    updated = Settlement.query.filter(
        Settlement.id == settlement_id,
        Settlement.status == SETTLEMENT_PENDING,
    ).update({"status": target, "updated_at": datetime.utcnow(), **values}, synchronize_session=False)
    if not updated:
        current = db.session.get(Settlement, settlement_id, populate_existing=True)
        status = current.status if current is not None else "missing"
        db.session.rollback()
        raise InvalidStateTransitionError(
            f"Settlement {settlement_id} cannot move from {status} to {target}",
            reason=f"{status}_to_{target}",
            details={"status": status, "target": target},
        )

    return db.session.get(Settlement, settlement_id, populate_existing=True)


def mark_settlement_paid(
    settlement_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> Settlement:
    """``pending -> paid``; stamps ``paid_at``."""
    settlement = _transition(
        settlement_id,
        SETTLEMENT_PAID,
        {"paid_at": datetime.utcnow()},
        actor_id,
        repository,
    )
    payload = _settlement_payload(settlement)
    payload["paid_at"] = settlement.paid_at.isoformat() if settlement.paid_at else None
    enqueue_outbox(GROUPS_SETTLEMENT_PAID, payload, user_id=settlement.from_user_id)
    db.session.commit()
    logger.info("Settlement %s marked paid", settlement_id)
    return settlement


def cancel_settlement(
    settlement_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> Settlement:
    """``pending -> cancelled``."""
    settlement = _transition(settlement_id, SETTLEMENT_CANCELLED, {}, actor_id, repository)
    enqueue_outbox(
        GROUPS_SETTLEMENT_CANCELLED,
        {
            "settlement_id": settlement.id,
            "group_id": settlement.group_id,
            "from_user_id": settlement.from_user_id,
            "to_user_id": settlement.to_user_id,
        },
        user_id=settlement.to_user_id,
    )
    db.session.commit()
    logger.info("Settlement %s cancelled", settlement_id)
    return settlement


def settlements_query(group_id: int, status: Optional[str] = None):
    """Newest-first query of a group's settlements, optionally by status."""
    if status is not None and status not in SETTLEMENT_STATUSES:
        raise LedgerValidationError(
            f"Unknown settlement status {status!r}",
            reason="invalid_status",
            details={"allowed": list(SETTLEMENT_STATUSES)},
        )
    query = Settlement.query.filter(Settlement.group_id == group_id)
    if status is not None:
        query = query.filter(Settlement.status == status)
    return query.order_by(Settlement.created_at.desc(), Settlement.id.desc())


def _visible_settlements(
    group_id: int,
    status: Optional[str],
    actor_id: Optional[int],
    repository: Optional[GroupLedgerRepository],
):
    repo = repository or GroupLedgerRepository()
    repo.require_group(group_id)
    if actor_id is not None:
        require_member(repo, group_id, actor_id)
    return settlements_query(group_id, status)


def list_settlements(
    group_id: int,
    status: Optional[str] = None,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> list[Settlement]:
    return _visible_settlements(group_id, status, actor_id, repository).all()


def page_settlements(
    group_id: int,
    status: Optional[str] = None,
    *,
    page: int = 1,
    per_page: int = 50,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> dict:
    """One page of ``list_settlements``, with ``page``, ``pages`` and ``total``."""
    return paginate(_visible_settlements(group_id, status, actor_id, repository), page=page, per_page=per_page)
