"""Group balance aggregation: who owes whom, derived from unpaid splits."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from splitledger.domains.groups.errors import DataIntegrityError
from splitledger.domains.groups.money import ZERO, format_amount, within_tolerance
from splitledger.domains.groups.services.access import require_member
from splitledger.domains.groups.services.balance_views import (
    Debt,
    GroupBalances,
    MemberBalance,
    flat_view,
)
from splitledger.domains.groups.services.group_repository import (
    GroupLedgerRepository,
    LedgerSnapshot,
    TransactionRow,
)

logger = logging.getLogger(__name__)


def _outstanding(tx: TransactionRow):
    """Splits that still move money: unpaid and not the payer's own share."""
    return [split for split in tx.splits if not split.is_paid and split.member_id != tx.payer_id]


def verify_split_integrity(group_id: int, transactions: List[TransactionRow]) -> None:
    """Fail the read when a stored split set breaks the sum or sign invariant."""
    for tx in transactions:
        if not tx.splits:
            continue
        negative = [split.member_id for split in tx.splits if split.amount < 0]
        if negative:
            logger.error(
                "Transaction %s in group %s has negative split amounts for members %s",
                tx.transaction_id,
                group_id,
                negative,
            )
            raise DataIntegrityError(
                f"Transaction {tx.transaction_id} has negative split amounts",
                reason="negative_amount",
                details={"transaction_id": tx.transaction_id, "member_ids": negative},
            )
        total = sum((split.amount for split in tx.splits), ZERO)
        if not within_tolerance(total, tx.amount):
            logger.error(
                "Transaction %s in group %s: splits sum to %s, transaction total is %s",
                tx.transaction_id,
                group_id,
                total,
                tx.amount,
            )
            raise DataIntegrityError(
                f"Splits of transaction {tx.transaction_id} do not add up to its amount",
                reason="split_sum_mismatch",
                details={
                    "transaction_id": tx.transaction_id,
                    "expected": format_amount(tx.amount),
                    "actual": format_amount(total),
                },
            )


def aggregate_balances(snapshot: LedgerSnapshot) -> GroupBalances:
    """Compute pairwise and net balances for one group snapshot."""
    verify_split_integrity(snapshot.group_id, snapshot.transactions)

    balances: Dict[int, MemberBalance] = {
        member.member_id: MemberBalance(member_id=member.member_id, display_name=member.display_name)
        for member in snapshot.members
        if member.is_current
    }

    # Former members (and users without any membership row) that still take
    # part in an outstanding split get a row of their own.
    former_names = {member.member_id: member.display_name for member in snapshot.members if not member.is_current}
    for tx in snapshot.transactions:
        outstanding = _outstanding(tx)
        if not outstanding:
            continue
        for member_id in [tx.payer_id] + [split.member_id for split in outstanding]:
            if member_id not in balances:
                name = former_names.get(member_id, snapshot.directory.get(member_id))
                balances[member_id] = MemberBalance(
                    member_id=member_id,
                    display_name=name,
                    is_current_member=False,
                )

    for tx in snapshot.transactions:
        outstanding = _outstanding(tx)
        if not outstanding:
            continue
        payer = balances[tx.payer_id]
        for split in outstanding:
            debtor = balances[split.member_id]
            debtor.owes[tx.payer_id] = debtor.owes.get(tx.payer_id, ZERO) + split.amount
            debtor.net_balance -= split.amount
            payer.is_owed[split.member_id] = payer.is_owed.get(split.member_id, ZERO) + split.amount
            payer.net_balance += split.amount

    return GroupBalances(group_id=snapshot.group_id, currency=snapshot.currency, members=balances)


def compute_balances(
    group_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> GroupBalances:
    """Balances for every member of ``group_id``; read-only and idempotent."""
    repo = repository or GroupLedgerRepository()
    group = repo.require_group(group_id)
    if actor_id is not None:
        require_member(repo, group_id, actor_id)
    balances = aggregate_balances(repo.load_snapshot(group))
    logger.debug("Computed balances for group %s across %s members", group_id, len(balances.members))
    return balances


def list_debts(
    group_id: int,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> List[Debt]:
    """Flat ``debtor -> creditor`` view of the same balances."""
    return flat_view(compute_balances(group_id, actor_id=actor_id, repository=repository))
