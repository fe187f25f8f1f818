"""Friend requests, friendships and blocks.

Rows are directed ``(user_id, friend_id)`` but the relation is symmetric, so
every lookup checks both orderings. Each change is committed before the
counterpart is notified on the friends namespace.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from huddle.realtime import RealtimeNamespace, get_friends_namespace

from app.models import Friendship, FriendshipStatus, User
from app.schemas import FriendRequestRead, PublicUser, UserSummary
from app.services.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from app.services.presence import relay
from app.services.stores import FriendshipStore, UserStore

logger = logging.getLogger(__name__)


def _identity(user: User) -> dict[str, Any]:
    return UserSummary(user_id=user.id, username=user.username, avatar=user.avatar).model_dump()


class FriendshipService:
    def __init__(self, db: Session, realtime: RealtimeNamespace | None = None) -> None:
        self.db = db
        self.realtime = realtime or get_friends_namespace()
        self.friendships = FriendshipStore(db)
        self.users = UserStore(db)

    def _require_other(self, user_id: int, other_id: int) -> User:
        if user_id == other_id:
            raise ValidationError("You cannot do this with yourself")
        other = self.users.get(other_id)
        if other is None:
            raise NotFoundError("User not found")
        return other

    def friends(self, user_id: int) -> list[PublicUser]:
        return [
            PublicUser.model_validate(user)
            for user in self.users.find_many(self.friendships.friend_ids(user_id))
        ]

    def requests(self, user_id: int) -> list[FriendRequestRead]:
        return [
            FriendRequestRead(
                id=link.id,
                sender=PublicUser.model_validate(link.user),
                created_at=link.created_at,
            )
            for link in self.friendships.incoming(user_id)
        ]

    async def request(self, actor: User, target_id: int) -> Friendship:
        self._require_other(actor.id, target_id)
        if self.friendships.is_blocked(actor.id, target_id):
            raise AccessDeniedError("Cannot send friend request")
        if self.friendships.are_friends(actor.id, target_id):
            raise ConflictError("Users are already friends")
        if self.friendships.between(actor.id, target_id, FriendshipStatus.PENDING) is not None:
            raise ConflictError("Friend request already sent")

        link = self.friendships.create(actor.id, target_id, FriendshipStatus.PENDING)
        logger.info("Friend request %s -> %s", actor.id, target_id)
        await relay(self.realtime, target_id, "newFriendRequest", sender=_identity(actor))
        return link

    async def accept(self, actor: User, sender_id: int) -> Friendship:
        link = self.friendships.pending_from(sender_id, actor.id)
        if link is None:
            raise NotFoundError("Friend request not found")
        link = self.friendships.set_status(link, FriendshipStatus.ACCEPTED)
        await relay(self.realtime, sender_id, "friendRequestAccepted", receiver=_identity(actor))
        return link

    async def reject(self, actor: User, sender_id: int) -> None:
        link = self.friendships.pending_from(sender_id, actor.id)
        if link is None:
            raise NotFoundError("Friend request not found")
        self.friendships.delete(link)
        await relay(
            self.realtime,
            sender_id,
            "friendRequestRejected",
            receiver={"user_id": actor.id, "username": actor.username},
        )

    async def remove(self, actor: User, friend_id: int) -> None:
        link = self.friendships.between(actor.id, friend_id, FriendshipStatus.ACCEPTED)
        if link is None:
            raise NotFoundError("Friend relationship not found")
        self.friendships.delete(link)
        await relay(
            self.realtime, friend_id, "friendRemoved", user_id=actor.id, username=actor.username
        )

    async def block(self, actor: User, target_id: int) -> Friendship:
        self._require_other(actor.id, target_id)
        if self.friendships.blocked_by(actor.id, target_id) is not None:
            raise ConflictError("User is already blocked")
        link = self.friendships.block(actor.id, target_id)
        logger.info("User %s blocked %s", actor.id, target_id)
        await relay(self.realtime, target_id, "userBlockedYou", user_id=actor.id, username=actor.username)
        return link

    def unblock(self, actor: User, target_id: int) -> None:
        link = self.friendships.blocked_by(actor.id, target_id)
        if link is None:
            raise NotFoundError("Blocked user not found")
        self.friendships.delete(link)
