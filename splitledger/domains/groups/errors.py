"""Ledger domain failures.

Each error carries a stable ``code`` for API payloads; the mapping to HTTP
status codes belongs to the web layer.
"""

from __future__ import annotations

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for settlement ledger operations."""

    code = "ledger_error"

    def __init__(self, message: str, *, reason: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.reason = reason
        self.details = details


class NotFoundError(LedgerError):
    """Raised when a group, transaction, split or settlement does not exist."""

    code = "not_found"


class LedgerValidationError(LedgerError):
    """Raised when input breaks a ledger rule; ``reason`` names the rule."""

    code = "validation_error"


class DataIntegrityError(LedgerValidationError):
    """Raised when stored splits break the ledger invariants at read time."""

    code = "data_integrity_error"


class UnauthorizedError(LedgerError):
    """Raised when the acting user may not touch the group."""

    code = "unauthorized"


class InvalidStateTransitionError(LedgerError):
    """Raised when a settlement transition starts from the wrong status."""

    code = "invalid_state_transition"


class ConflictError(LedgerError):
    """Raised when a concurrent write won the race; callers may retry."""

    code = "conflict"
