"""Groups domain event catalog."""

from __future__ import annotations

GROUPS_SPLIT_CREATED = "groups.split.created"
GROUPS_SETTLEMENT_CREATED = "groups.settlement.created"
GROUPS_SETTLEMENT_PAID = "groups.settlement.paid"
GROUPS_SETTLEMENT_CANCELLED = "groups.settlement.cancelled"

EVENT_CATALOG = {
    GROUPS_SPLIT_CREATED: {
        "version": "v1",
        "payload": {
            "transaction_id": "int",
            "group_id": "int",
            "split_id": "int",
            "member_id": "int",
            "payer_id": "int",
            "amount": "decimal",
            "currency": "str",
        },
    },
    GROUPS_SETTLEMENT_CREATED: {
        "version": "v1",
        "payload": {
            "settlement_id": "int",
            "group_id": "int",
            "from_user_id": "int",
            "to_user_id": "int",
            "amount": "decimal",
            "currency": "str",
            "notes": "str?",
        },
    },
    GROUPS_SETTLEMENT_PAID: {
        "version": "v1",
        "payload": {
            "settlement_id": "int",
            "group_id": "int",
            "from_user_id": "int",
            "to_user_id": "int",
            "amount": "decimal",
            "currency": "str",
            "paid_at": "datetime",
        },
    },
    GROUPS_SETTLEMENT_CANCELLED: {
        "version": "v1",
        "payload": {
            "settlement_id": "int",
            "group_id": "int",
            "from_user_id": "int",
            "to_user_id": "int",
        },
    },
}

__all__ = [
    "EVENT_CATALOG",
    "GROUPS_SPLIT_CREATED",
    "GROUPS_SETTLEMENT_CREATED",
    "GROUPS_SETTLEMENT_PAID",
    "GROUPS_SETTLEMENT_CANCELLED",
]
