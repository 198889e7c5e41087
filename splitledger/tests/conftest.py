import sys
from decimal import Decimal
from itertools import count
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from splitledger import create_app
from splitledger.config import TestingConfig
from splitledger.extensions import db
from splitledger.core.users.models import User
from splitledger.domains.groups.models.ledger_models import LedgerTransaction, TransactionSplit
from splitledger.domains.groups.services import group_service
from splitledger.platform.outbox import models as outbox_models  # noqa: F401


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, API)")
    config.addinivalue_line("markers", "slow: Slow running tests")


@pytest.fixture()
def app(tmp_path, monkeypatch):
    """
    Per-test app on a throwaway SQLite file; the schema is created from the
    models and dropped afterwards.
    """
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'ledger.db'}")
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    seq = count(1)

    def _make(name: str | None = None) -> User:
        n = next(seq)
        user = User(email=f"member{n}@example.com", full_name=name)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_group(app):
    """Create a group owned by the first user; the rest join as members."""

    def _make(owner: User, *members: User, currency: str = "USD"):
        group = group_service.create_group(owner.id, "Flatmates", currency=currency)
        for member in members:
            group_service.add_member(group.id, member.id)
        return group

    return _make


@pytest.fixture()
def make_transaction(app):
    """
    Insert a transaction with raw split rows. ``splits`` maps member id to
    ``amount`` or ``(amount, is_paid)``; rows are written as given, unchecked.
    """

    def _make(group, payer: User, amount, splits=None, *, tx_type: str = "expense", currency: str | None = None):
        tx = LedgerTransaction(
            payer_id=payer.id,
            group_id=group.id if group is not None else None,
            type=tx_type,
            amount=Decimal(str(amount)),
            currency=currency or (group.currency if group is not None else "USD"),
            description="Groceries",
        )
        for member_id, value in (splits or {}).items():
            split_amount, is_paid = value if isinstance(value, tuple) else (value, member_id == payer.id)
            tx.splits.append(
                TransactionSplit(
                    user_id=member_id,
                    amount=Decimal(str(split_amount)),
                    currency=tx.currency,
                    is_paid=is_paid,
                )
            )
        db.session.add(tx)
        db.session.commit()
        return tx

    return _make
