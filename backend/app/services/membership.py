"""Channel access rules shared by HTTP guards and realtime handlers.

A channel's access set is its owner (``created_by``) plus the allow-list.
Public channels are readable and writable by everyone; private channels only
by the access set. The owner is always a member, even when missing from the
allow-list, and can never be removed from it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from sqlalchemy.orm import Session

from app.models import Channel, merge_member_ids
from app.services.errors import AccessDeniedError, ConflictError, NotFoundError
from app.services.stores import ChannelStore, UserStore

logger = logging.getLogger(__name__)

ACCESS_DENIED_PRIVATE = "Access denied to private channel"


class ChannelLike(Protocol):
    is_private: bool
    created_by: int

    @property
    def allowed_user_ids(self) -> Iterable[int]: ...


def effective_members(channel: ChannelLike) -> list[int]:
    """Owner first, then every allow-listed user exactly once."""

    return merge_member_ids(channel.created_by, channel.allowed_user_ids)


def can_access(channel: ChannelLike, user_id: int) -> bool:
    if not channel.is_private:
        return True
    if user_id == channel.created_by:
        return True
    return user_id in set(channel.allowed_user_ids)


def ensure_access(channel: ChannelLike, user_id: int, detail: str = ACCESS_DENIED_PRIVATE) -> None:
    if not can_access(channel, user_id):
        logger.info("User %s denied access to private channel %s", user_id, getattr(channel, "id", None))
        raise AccessDeniedError(detail)


def load_accessible_channel(db: Session, channel_id: int, user_id: int) -> Channel:
    """Fetch a channel and apply the access rule, raising the matching domain error."""

    channel = ChannelStore(db).get(channel_id)
    if channel is None:
        raise NotFoundError("Channel not found")
    ensure_access(channel, user_id)
    return channel


def add_member(db: Session, channel: Channel, *, actor_id: int, user_id: int) -> Channel:
    """Allow ``user_id`` into a private channel on behalf of its owner."""

    if actor_id != channel.created_by:
        raise AccessDeniedError("Only the channel owner can add members")
    if user_id == channel.created_by or user_id in channel.allowed_user_ids:
        raise ConflictError("User is already a member of this channel")
    if UserStore(db).get(user_id) is None:
        raise NotFoundError("User not found")
    if not ChannelStore(db).add_allowed_user(channel, user_id):
        raise ConflictError("User is already a member of this channel")
    logger.info("User %s added to channel %s by %s", user_id, channel.id, actor_id)
    return channel


def remove_member(db: Session, channel: Channel, *, actor_id: int, user_id: int) -> Channel:
    if actor_id != channel.created_by:
        raise AccessDeniedError("Only the channel owner can remove members")
    if user_id == channel.created_by:
        raise AccessDeniedError("The channel owner cannot be removed")
    if not ChannelStore(db).remove_allowed_user(channel, user_id):
        raise NotFoundError("User is not a member of this channel")
    logger.info("User %s removed from channel %s by %s", user_id, channel.id, actor_id)
    return channel
