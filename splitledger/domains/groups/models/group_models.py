"""Spending group and membership models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitledger.core.users.models import TimestampMixin, User
from splitledger.extensions import db

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
ROLE_VIEWER = "viewer"
MEMBER_ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER, ROLE_VIEWER)
MANAGER_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN})
WRITE_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER})


class SpendingGroup(db.Model, TimestampMixin):
    __tablename__ = "spending_group"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="USD")
    created_by: Mapped[int] = mapped_column(db.ForeignKey("user.id"), nullable=False)

    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember", back_populates="group", cascade="all, delete-orphan"
    )


class GroupMember(db.Model):
    __tablename__ = "group_member"
    __table_args__ = (db.UniqueConstraint("group_id", "user_id", name="uq_group_member_group_user"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(db.ForeignKey("spending_group.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(db.String(16), nullable=False, default=ROLE_MEMBER)
    joined_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    # Set when the member leaves; the row stays so history still resolves.
    left_at: Mapped[datetime | None] = mapped_column(nullable=True)

    group: Mapped[SpendingGroup] = relationship("SpendingGroup", back_populates="members")
    user: Mapped[User] = relationship("User", lazy="joined")

    @property
    def is_current(self) -> bool:
        return self.left_at is None
