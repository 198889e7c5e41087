"""Group membership helpers used by the ledger and its tests."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from splitledger.domains.groups.errors import LedgerValidationError, NotFoundError, UnauthorizedError
from splitledger.domains.groups.models.group_models import (
    MEMBER_ROLES,
    ROLE_MEMBER,
    ROLE_OWNER,
    GroupMember,
    SpendingGroup,
)
from splitledger.domains.groups.services.access import is_manager, require_member
from splitledger.domains.groups.services.group_repository import GroupLedgerRepository, MemberRef
from splitledger.extensions import db


def create_group(owner_id: int, name: str, currency: str = "USD", description: Optional[str] = None) -> SpendingGroup:
    """Create a group; the creator joins as owner."""
    name = (name or "").strip()
    if not name:
        raise LedgerValidationError("Group name is required", reason="missing_name")
    group = SpendingGroup(
        name=name,
        description=(description or "").strip() or None,
        currency=currency.upper(),
        created_by=owner_id,
    )
    group.members.append(GroupMember(user_id=owner_id, role=ROLE_OWNER))
    db.session.add(group)
    db.session.commit()
    return group


def add_member(
    group_id: int,
    user_id: int,
    role: str = ROLE_MEMBER,
    *,
    actor_id: Optional[int] = None,
    repository: Optional[GroupLedgerRepository] = None,
) -> GroupMember:
    """Add a user to the group, or bring a former member back."""
    repo = repository or GroupLedgerRepository()
    repo.require_group(group_id)
    if role not in MEMBER_ROLES or role == ROLE_OWNER:
        raise LedgerValidationError(f"Cannot assign role {role!r}", reason="invalid_role")
    if actor_id is not None and not is_manager(require_member(repo, group_id, actor_id, write=True)):
        raise UnauthorizedError("Only group admins can add members", reason="not_group_admin")

    membership = repo.get_membership(group_id, user_id)
    if membership is None:
        membership = GroupMember(group_id=group_id, user_id=user_id, role=role)
        db.session.add(membership)
    else:
        membership.role = role
        membership.left_at = None
    db.session.commit()
    return membership


def leave_group(group_id: int, user_id: int, *, repository: Optional[GroupLedgerRepository] = None) -> GroupMember:
    """End a membership; the row is kept so past splits still resolve."""
    repo = repository or GroupLedgerRepository()
    membership = repo.get_membership(group_id, user_id)
    if membership is None or not membership.is_current:
        raise NotFoundError(f"User {user_id} is not in group {group_id}", reason="member_not_found")
    membership.left_at = datetime.utcnow()
    db.session.commit()
    return membership


def list_members(
    group_id: int,
    include_former: bool = False,
    *,
    repository: Optional[GroupLedgerRepository] = None,
) -> List[MemberRef]:
    repo = repository or GroupLedgerRepository()
    repo.require_group(group_id)
    return repo.get_group_members(group_id, include_former=include_former)
