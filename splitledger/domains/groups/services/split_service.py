"""Split validation and replacement for group transactions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError

from splitledger.domains.groups.errors import (
    ConflictError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
    UnauthorizedError,
)
from splitledger.domains.groups.events import GROUPS_SPLIT_CREATED
from splitledger.domains.groups.models.ledger_models import LedgerTransaction, TransactionSplit
from splitledger.domains.groups.money import ZERO, format_amount, to_amount, within_tolerance
from splitledger.domains.groups.services.access import is_manager, require_member
from splitledger.domains.groups.services.group_repository import GroupLedgerRepository
from splitledger.extensions import db
from splitledger.platform.outbox import OutboxMessage
from splitledger.platform.outbox import enqueue as enqueue_outbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitLine:
    member_id: int
    amount: Decimal


@dataclass
class SplitResult:
    transaction: LedgerTransaction
    splits: List[TransactionSplit] = field(default_factory=list)
    events: List[OutboxMessage] = field(default_factory=list)


def _read_line(raw: Any) -> tuple[Any, Any]:
    if isinstance(raw, Mapping):
        return raw.get("member_id"), raw.get("amount")
    return getattr(raw, "member_id", None), getattr(raw, "amount", None)


def normalize_split_lines(splits: Iterable[Any]) -> List[SplitLine]:
    """Parse proposed split lines; rejects bad ids, negative amounts and duplicates."""
    lines: List[SplitLine] = []
    seen: set[int] = set()
    for raw in splits:
        member_id, amount = _read_line(raw)
        if isinstance(member_id, bool) or not isinstance(member_id, int):
            raise LedgerValidationError("member_id must be an integer", reason="invalid_member")
        value = to_amount(amount)
        if value < 0:
            raise LedgerValidationError(
                f"Split amount for member {member_id} is negative",
                reason="negative_amount",
                details={"member_id": member_id},
            )
        if member_id in seen:
            raise LedgerValidationError(
                f"Member {member_id} appears more than once",
                reason="duplicate_member",
                details={"member_id": member_id},
            )
        seen.add(member_id)
        lines.append(SplitLine(member_id=member_id, amount=value))
    return lines


def _validate_members(repo: GroupLedgerRepository, group_id: int, lines: List[SplitLine]) -> None:
    current = repo.current_member_ids(group_id)
    outsiders = [line.member_id for line in lines if line.member_id not in current]
    if outsiders:
        raise LedgerValidationError(
            f"Members {outsiders} are not in this group",
            reason="not_a_member",
            details={"member_ids": outsiders},
        )


def _validate_total(lines: List[SplitLine], expected: Decimal) -> None:
    total = sum((line.amount for line in lines), ZERO)
    if not within_tolerance(total, expected):
        raise LedgerValidationError(
            "Split amounts must equal transaction amount",
            reason="split_sum_mismatch",
            details={"expected": format_amount(expected), "actual": format_amount(total)},
        )


def _split_event_payload(tx: LedgerTransaction, split: TransactionSplit) -> dict:
    return {
        "transaction_id": tx.id,
        "group_id": tx.group_id,
        "split_id": split.id,
        "member_id": split.user_id,
        "payer_id": tx.payer_id,
        "amount": format_amount(split.amount),
        "currency": tx.currency,
    }


def _check_split_target(
    repo: GroupLedgerRepository,
    transaction_id: int,
    tx: Optional[LedgerTransaction],
    actor_id: Optional[int],
) -> None:
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found", reason="transaction_not_found")
    if tx.group_id is None:
        raise LedgerValidationError(
            "Transaction must be part of a group to split",
            reason="transaction_not_grouped",
        )
    if actor_id is not None:
        membership = require_member(repo, tx.group_id, actor_id, write=True)
        if actor_id != tx.payer_id and not is_manager(membership):
            raise UnauthorizedError(
                "Only the payer or a group admin can split this transaction",
                reason="not_transaction_owner",
            )


def apply_split(
    transaction_id: int,
    splits: Iterable[Any],
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> SplitResult:
    """
    Replace the split set of a group transaction.

    The old rows are deleted and the new ones inserted in one database
    transaction while the transaction row is locked. The payer's share is
    stored as paid; every other share emits a ``groups.split.created`` event.
    """
    lines = normalize_split_lines(splits)
    repo = repository or GroupLedgerRepository()
    tx = repo.get_transaction(transaction_id, lock=True)
    try:
        _check_split_target(repo, transaction_id, tx, actor_id)
        _validate_members(repo, tx.group_id, lines)
        _validate_total(lines, Decimal(tx.amount))
    except LedgerError:
        # Release the row lock before reporting.
        db.session.rollback()
        raise

    now = datetime.utcnow()
    try:
        tx.splits.clear()
        # Old rows must be gone before inserting, or the per-member unique key trips.
        db.session.flush()
        new_splits = [
            TransactionSplit(
                user_id=line.member_id,
                amount=line.amount,
                currency=tx.currency,
                is_paid=line.member_id == tx.payer_id,
                paid_at=now if line.member_id == tx.payer_id else None,
            )
            for line in lines
        ]
        tx.splits.extend(new_splits)
        db.session.flush()
        events = [
            enqueue_outbox(GROUPS_SPLIT_CREATED, _split_event_payload(tx, split), user_id=split.user_id)
            for split in new_splits
            if split.user_id != tx.payer_id
        ]
        db.session.commit()
    except (IntegrityError, OperationalError) as exc:
        db.session.rollback()
        logger.warning("Split replacement for transaction %s lost a race: %s", transaction_id, exc)
        raise ConflictError(
            f"Splits of transaction {transaction_id} changed concurrently; retry",
            reason="split_conflict",
        ) from exc

    logger.info(
        "Transaction %s split across %s members (%s notifications staged)",
        transaction_id,
        len(new_splits),
        len(events),
    )
    return SplitResult(transaction=tx, splits=new_splits, events=events)


def list_splits(
    transaction_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> List[TransactionSplit]:
    repo = repository or GroupLedgerRepository()
    tx = repo.get_transaction(transaction_id)
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found", reason="transaction_not_found")
    if actor_id is not None:
        if tx.group_id is None:
            if actor_id != tx.payer_id:
                raise UnauthorizedError("Not your transaction", reason="not_transaction_owner")
        else:
            require_member(repo, tx.group_id, actor_id)
    return list(tx.splits)


def mark_split_paid(
    transaction_id: int,
    member_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> TransactionSplit:
    """Flag one member's share as paid. Repeating the call is a no-op."""
    repo = repository or GroupLedgerRepository()
    split = repo.get_split(transaction_id, member_id)
    if split is None:
        raise NotFoundError(
            f"No split for member {member_id} on transaction {transaction_id}",
            reason="split_not_found",
        )
    tx = split.transaction
    if actor_id is not None and tx.group_id is not None:
        membership = require_member(repo, tx.group_id, actor_id, write=True)
        if actor_id not in (tx.payer_id, member_id) and not is_manager(membership):
            raise UnauthorizedError(
                "Only the payer, the member or a group admin can settle this share",
                reason="not_split_party",
            )
    if split.is_paid:
        return split

    TransactionSplit.query.filter(
        TransactionSplit.id == split.id,
        TransactionSplit.is_paid.is_(False),
    ).update({"is_paid": True, "paid_at": datetime.utcnow()}, synchronize_session=False)
    db.session.commit()
    logger.info("Split %s of transaction %s marked paid", split.id, transaction_id)
    return db.session.get(TransactionSplit, split.id, populate_existing=True)
