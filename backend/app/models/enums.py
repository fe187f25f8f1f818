from __future__ import annotations

from enum import Enum


class WorkspaceRole(str, Enum):
    """Roles that a user can have inside a workspace."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class FriendshipStatus(str, Enum):
    """Lifecycle states for friend relationships."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"
