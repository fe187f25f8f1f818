"""Pydantic schemas for API payloads."""

from .channels import ChannelCreate, ChannelMemberAdd, ChannelRead, UserChannels, WorkspaceJoinResult
from .direct import (
    ConversationRead,
    DirectMessageCreate,
    DirectMessageRead,
    ReadReceipt,
    UnreadCount,
)
from .friends import FriendRequestRead, FriendshipRead
from .messages import (
    MessageCreate,
    MessageHistoryPage,
    MessageRead,
    MessageUpdate,
    ReactionEntry,
    ReactionRequest,
    ReactionState,
)
from .users import PublicUser, UserSummary

__all__ = [
    "FriendRequestRead",
    "FriendshipRead",
    "ChannelCreate",
    "ChannelMemberAdd",
    "ChannelRead",
    "UserChannels",
    "WorkspaceJoinResult",
    "ConversationRead",
    "DirectMessageCreate",
    "DirectMessageRead",
    "ReadReceipt",
    "UnreadCount",
    "MessageCreate",
    "MessageHistoryPage",
    "MessageRead",
    "MessageUpdate",
    "ReactionEntry",
    "ReactionRequest",
    "ReactionState",
    "PublicUser",
    "UserSummary",
]
