"""Database models package."""

from .base import Base
from .chat import (
    Channel,
    DirectMessage,
    Friendship,
    Message,
    User,
    Workspace,
    WorkspaceMember,
    channel_allowed_users,
    merge_member_ids,
)
from .enums import FriendshipStatus, WorkspaceRole

__all__ = [
    "Base",
    "User",
    "Workspace",
    "WorkspaceMember",
    "Channel",
    "channel_allowed_users",
    "merge_member_ids",
    "Message",
    "DirectMessage",
    "Friendship",
    "FriendshipStatus",
    "WorkspaceRole",
]
