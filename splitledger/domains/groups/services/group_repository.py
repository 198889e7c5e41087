"""Read access to the group, membership and transaction collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

import sqlalchemy as sa

from splitledger.core.users.models import User
from splitledger.domains.groups.errors import NotFoundError
from splitledger.domains.groups.models.group_models import GroupMember, SpendingGroup
from splitledger.domains.groups.models.ledger_models import LedgerTransaction, TransactionSplit
from splitledger.extensions import db


@dataclass(frozen=True)
class MemberRef:
    member_id: int
    display_name: Optional[str]
    role: str
    is_current: bool = True


@dataclass(frozen=True)
class SplitRow:
    member_id: int
    amount: Decimal
    is_paid: bool


@dataclass
class TransactionRow:
    transaction_id: int
    payer_id: int
    amount: Decimal
    currency: str
    type: str
    splits: List[SplitRow] = field(default_factory=list)


@dataclass
class LedgerSnapshot:
    """Everything the balance aggregator needs for one group."""

    group_id: int
    currency: str
    members: List[MemberRef]
    transactions: List[TransactionRow]
    # Display names for referenced users that have no membership row at all.
    directory: Dict[int, Optional[str]] = field(default_factory=dict)


class GroupLedgerRepository:
    """Queries backing the ledger engine. Never commits."""

    def __init__(self, session=None):
        self._session = session or db.session

    def get_group(self, group_id: int) -> Optional[SpendingGroup]:
        return self._session.get(SpendingGroup, group_id)

    def require_group(self, group_id: int) -> SpendingGroup:
        group = self.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found", reason="group_not_found")
        return group

    def get_membership(self, group_id: int, user_id: int) -> Optional[GroupMember]:
        return (
            self._session.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .one_or_none()
        )

    def get_group_members(self, group_id: int, include_former: bool = False) -> List[MemberRef]:
        query = self._session.query(GroupMember).filter(GroupMember.group_id == group_id)
        if not include_former:
            query = query.filter(GroupMember.left_at.is_(None))
        return [
            MemberRef(
                member_id=membership.user_id,
                display_name=membership.user.display_name if membership.user else None,
                role=membership.role,
                is_current=membership.is_current,
            )
            for membership in query.order_by(GroupMember.joined_at, GroupMember.id).all()
        ]

    def current_member_ids(self, group_id: int) -> Set[int]:
        rows = self._session.execute(
            sa.select(GroupMember.user_id).where(
                GroupMember.group_id == group_id,
                GroupMember.left_at.is_(None),
            )
        )
        return {row[0] for row in rows}

    def get_group_transactions_with_splits(self, group_id: int) -> List[TransactionRow]:
        """
        Load every transaction of the group with its splits in one statement,
        so the result is a single consistent snapshot of the split table.
        """
        stmt = (
            sa.select(
                LedgerTransaction.id.label("transaction_id"),
                LedgerTransaction.payer_id,
                LedgerTransaction.amount.label("transaction_amount"),
                LedgerTransaction.currency,
                LedgerTransaction.type,
                TransactionSplit.user_id.label("split_user_id"),
                TransactionSplit.amount.label("split_amount"),
                TransactionSplit.is_paid,
            )
            .outerjoin(TransactionSplit, TransactionSplit.transaction_id == LedgerTransaction.id)
            .where(LedgerTransaction.group_id == group_id)
            .order_by(LedgerTransaction.id, TransactionSplit.id)
        )
        transactions: Dict[int, TransactionRow] = {}
        for row in self._session.execute(stmt):
            tx = transactions.get(row.transaction_id)
            if tx is None:
                tx = TransactionRow(
                    transaction_id=row.transaction_id,
                    payer_id=row.payer_id,
                    amount=Decimal(row.transaction_amount),
                    currency=row.currency,
                    type=row.type,
                )
                transactions[row.transaction_id] = tx
            if row.split_user_id is not None:
                tx.splits.append(
                    SplitRow(
                        member_id=row.split_user_id,
                        amount=Decimal(row.split_amount),
                        is_paid=bool(row.is_paid),
                    )
                )
        return list(transactions.values())

    def display_names(self, user_ids: Iterable[int]) -> Dict[int, Optional[str]]:
        ids = set(user_ids)
        if not ids:
            return {}
        users = self._session.query(User).filter(User.id.in_(ids)).all()
        return {user.id: user.display_name for user in users}

    def load_snapshot(self, group: SpendingGroup) -> LedgerSnapshot:
        members = self.get_group_members(group.id, include_former=True)
        transactions = self.get_group_transactions_with_splits(group.id)
        known = {member.member_id for member in members}
        referenced: Set[int] = set()
        for tx in transactions:
            referenced.add(tx.payer_id)
            referenced.update(split.member_id for split in tx.splits)
        return LedgerSnapshot(
            group_id=group.id,
            currency=group.currency,
            members=members,
            transactions=transactions,
            directory=self.display_names(referenced - known),
        )

    def get_transaction(self, transaction_id: int, lock: bool = False) -> Optional[LedgerTransaction]:
        query = self._session.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id)
        if lock:
            query = query.with_for_update()
        return query.one_or_none()

    def get_split(self, transaction_id: int, member_id: int) -> Optional[TransactionSplit]:
        return (
            self._session.query(TransactionSplit)
            .filter(
                TransactionSplit.transaction_id == transaction_id,
                TransactionSplit.user_id == member_id,
            )
            .one_or_none()
        )


__all__ = [
    "GroupLedgerRepository",
    "LedgerSnapshot",
    "MemberRef",
    "SplitRow",
    "TransactionRow",
]
