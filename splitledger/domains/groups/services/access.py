"""Membership checks for acting users."""

from __future__ import annotations

from splitledger.domains.groups.errors import UnauthorizedError
from splitledger.domains.groups.models.group_models import MANAGER_ROLES, WRITE_ROLES, GroupMember


def require_member(repository, group_id: int, user_id: int, *, write: bool = False) -> GroupMember:
    """Return the caller's current membership or raise ``UnauthorizedError``."""
    membership = repository.get_membership(group_id, user_id)
    if membership is None or not membership.is_current:
        raise UnauthorizedError("Not a member of this group", reason="not_a_member")
    if write and membership.role not in WRITE_ROLES:
        raise UnauthorizedError("Viewers cannot change the group ledger", reason="read_only_member")
    return membership


def is_manager(membership: GroupMember) -> bool:
    return membership.role in MANAGER_ROLES
