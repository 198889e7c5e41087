"""Balance result types and conversions between the per-member, matrix and flat views.

The matrix is sparse: a mapping ``(debtor_id, creditor_id) -> amount`` holding
only non-zero cells. The flat view is the same information as a list of
``Debt`` rows ordered by debtor then creditor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from splitledger.domains.groups.money import ZERO

DebtMatrix = Dict[Tuple[int, int], Decimal]


@dataclass
class MemberBalance:
    member_id: int
    display_name: Optional[str] = None
    is_current_member: bool = True
    owes: Dict[int, Decimal] = field(default_factory=dict)
    is_owed: Dict[int, Decimal] = field(default_factory=dict)
    net_balance: Decimal = ZERO

    @property
    def total_owes(self) -> Decimal:
        return sum(self.owes.values(), ZERO)

    @property
    def total_owed(self) -> Decimal:
        return sum(self.is_owed.values(), ZERO)


@dataclass
class GroupBalances:
    group_id: int
    currency: str
    members: Dict[int, MemberBalance] = field(default_factory=dict)

    def __getitem__(self, member_id: int) -> MemberBalance:
        return self.members[member_id]

    def __contains__(self, member_id: int) -> bool:
        return member_id in self.members

    def total_net(self) -> Decimal:
        return sum((entry.net_balance for entry in self.members.values()), ZERO)


@dataclass(frozen=True)
class Debt:
    debtor_id: int
    creditor_id: int
    amount: Decimal


def to_matrix(balances: GroupBalances) -> DebtMatrix:
    """Read the debtor side of every member into a sparse matrix."""
    matrix: DebtMatrix = {}
    for debtor_id, entry in balances.members.items():
        for creditor_id, amount in entry.owes.items():
            if amount:
                matrix[(debtor_id, creditor_id)] = amount
    return matrix


def debts_from_matrix(matrix: DebtMatrix) -> List[Debt]:
    return [
        Debt(debtor_id=debtor_id, creditor_id=creditor_id, amount=amount)
        for (debtor_id, creditor_id), amount in sorted(matrix.items())
        if amount
    ]


def matrix_from_debts(debts: Iterable[Debt]) -> DebtMatrix:
    """Fold a flat list into a matrix; repeated pairs are summed."""
    matrix: DebtMatrix = {}
    for debt in debts:
        if debt.debtor_id == debt.creditor_id:
            continue
        key = (debt.debtor_id, debt.creditor_id)
        matrix[key] = matrix.get(key, ZERO) + debt.amount
    return {key: amount for key, amount in matrix.items() if amount}


def balances_from_matrix(
    matrix: DebtMatrix,
    *,
    group_id: int,
    currency: str,
    members: Sequence[MemberBalance] = (),
) -> GroupBalances:
    """
    Rebuild the per-member view from a matrix. ``members`` seeds the result
    (names, current flags, zero rows); ids only found in the matrix are added
    as former members.
    """
    result: Dict[int, MemberBalance] = {
        seed.member_id: MemberBalance(
            member_id=seed.member_id,
            display_name=seed.display_name,
            is_current_member=seed.is_current_member,
        )
        for seed in members
    }
    for debtor_id, creditor_id in matrix:
        for member_id in (debtor_id, creditor_id):
            if member_id not in result:
                result[member_id] = MemberBalance(member_id=member_id, is_current_member=False)

    for (debtor_id, creditor_id), amount in sorted(matrix.items()):
        debtor = result[debtor_id]
        creditor = result[creditor_id]
        debtor.owes[creditor_id] = debtor.owes.get(creditor_id, ZERO) + amount
        debtor.net_balance -= amount
        creditor.is_owed[debtor_id] = creditor.is_owed.get(debtor_id, ZERO) + amount
        creditor.net_balance += amount
    return GroupBalances(group_id=group_id, currency=currency, members=result)


def flat_view(balances: GroupBalances) -> List[Debt]:
    return debts_from_matrix(to_matrix(balances))


__all__ = [
    "Debt",
    "DebtMatrix",
    "GroupBalances",
    "MemberBalance",
    "balances_from_matrix",
    "debts_from_matrix",
    "flat_view",
    "matrix_from_debts",
    "to_matrix",
]
