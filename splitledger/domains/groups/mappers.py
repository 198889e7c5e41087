"""Model/result -> JSON mappers for the groups ledger. Amounts are decimal strings."""

from __future__ import annotations

from typing import List

from splitledger.domains.groups.models.ledger_models import Settlement, TransactionSplit
from splitledger.domains.groups.money import format_amount
from splitledger.domains.groups.services.balance_views import Debt, GroupBalances, MemberBalance
from splitledger.platform.outbox import OutboxMessage


def _iso(value):
    return value.isoformat() if value else None


def _counterparties(entries: dict, balances: GroupBalances) -> List[dict]:
    rows = []
    for member_id in sorted(entries):
        other = balances.members.get(member_id)
        rows.append(
            {
                "member_id": member_id,
                "name": other.display_name if other else None,
                "amount": format_amount(entries[member_id]),
            }
        )
    return rows


def map_member_balance(entry: MemberBalance, balances: GroupBalances) -> dict:
    return {
        "member": {
            "id": entry.member_id,
            "name": entry.display_name,
            "is_current_member": entry.is_current_member,
        },
        "owes": _counterparties(entry.owes, balances),
        "is_owed": _counterparties(entry.is_owed, balances),
        "net_balance": format_amount(entry.net_balance),
    }


def map_group_balances(balances: GroupBalances) -> dict:
    return {
        "group_id": balances.group_id,
        "currency": balances.currency,
        "balances": [map_member_balance(balances.members[key], balances) for key in sorted(balances.members)],
    }


def map_debt(debt: Debt) -> dict:
    return {
        "from_member_id": debt.debtor_id,
        "to_member_id": debt.creditor_id,
        "amount": format_amount(debt.amount),
    }


def map_split(split: TransactionSplit) -> dict:
    return {
        "id": split.id,
        "transaction_id": split.transaction_id,
        "member_id": split.user_id,
        "amount": format_amount(split.amount),
        "currency": split.currency,
        "is_paid": split.is_paid,
        "paid_at": _iso(split.paid_at),
    }


def map_split_event(message: OutboxMessage) -> dict:
    return {"event_type": message.event_type, "user_id": message.user_id, "payload": dict(message.payload or {})}


def map_settlement(settlement: Settlement) -> dict:
    return {
        "id": settlement.id,
        "group_id": settlement.group_id,
        "from_user_id": settlement.from_user_id,
        "to_user_id": settlement.to_user_id,
        "amount": format_amount(settlement.amount),
        "currency": settlement.currency,
        "status": settlement.status,
        "paid_at": _iso(settlement.paid_at),
        "notes": settlement.notes,
        "created_at": _iso(settlement.created_at),
    }
