from splitledger.domains.groups.services.balance_service import (
    aggregate_balances,
    compute_balances,
    list_debts,
)
from splitledger.domains.groups.services.settlement_service import (
    cancel_settlement,
    create_settlement,
    list_settlements,
    mark_settlement_paid,
    page_settlements,
)
from splitledger.domains.groups.services.split_service import (
    apply_split,
    list_splits,
    mark_split_paid,
)

__all__ = [
    "aggregate_balances",
    "compute_balances",
    "list_debts",
    "apply_split",
    "list_splits",
    "mark_split_paid",
    "create_settlement",
    "mark_settlement_paid",
    "cancel_settlement",
    "list_settlements",
    "page_settlements",
]
