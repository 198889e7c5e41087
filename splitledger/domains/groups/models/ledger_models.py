"""Shared transaction, split and settlement models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitledger.core.users.models import TimestampMixin
from splitledger.extensions import db

TRANSACTION_TYPES = ("expense", "income", "transfer")

SETTLEMENT_PENDING = "pending"
SETTLEMENT_PAID = "paid"
SETTLEMENT_CANCELLED = "cancelled"
SETTLEMENT_STATUSES = (SETTLEMENT_PENDING, SETTLEMENT_PAID, SETTLEMENT_CANCELLED)


class LedgerTransaction(db.Model, TimestampMixin):
    """A recorded transaction; ``payer_id`` is the user who paid it."""

    __tablename__ = "ledger_transaction"

    id: Mapped[int] = mapped_column(primary_key=True)
    payer_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    group_id: Mapped[int | None] = mapped_column(db.ForeignKey("spending_group.id"), index=True)
    type: Mapped[str] = mapped_column(db.String(16), nullable=False, default="expense")
    amount: Mapped[Decimal] = mapped_column(db.Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False)
    description: Mapped[str | None] = mapped_column(db.String(500))

    splits: Mapped[list["TransactionSplit"]] = relationship(
        "TransactionSplit",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionSplit.id",
    )


class TransactionSplit(db.Model):
    __tablename__ = "transaction_split"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "user_id", name="uq_transaction_split_transaction_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        db.ForeignKey("ledger_transaction.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(db.Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False)
    is_paid: Mapped[bool] = mapped_column(default=False, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    transaction: Mapped[LedgerTransaction] = relationship("LedgerTransaction", back_populates="splits")


class Settlement(db.Model, TimestampMixin):
    __tablename__ = "settlement"
    __table_args__ = (db.Index("ix_settlement_group_status_created", "group_id", "status", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(db.ForeignKey("spending_group.id"), index=True, nullable=False)
    from_user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), nullable=False)
    to_user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(db.Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=SETTLEMENT_PENDING)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text)
