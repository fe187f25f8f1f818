"""Persistence access for users, channels, messages and friendships."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.models import (
    Channel,
    DirectMessage,
    Friendship,
    FriendshipStatus,
    Message,
    User,
    Workspace,
    WorkspaceMember,
    channel_allowed_users,
)
from app.services.errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


def _commit(db: Session, failure: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Store commit failed: %s", failure, exc_info=True)
        raise PersistenceError(failure) from exc


class UserStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def find_many(self, user_ids: Iterable[int]) -> list[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        stmt = select(User).where(User.id.in_(ids)).order_by(User.id)
        return list(self.db.execute(stmt).scalars())


class WorkspaceStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, workspace_id: int) -> Workspace | None:
        return self.db.get(Workspace, workspace_id)

    def is_member(self, workspace_id: int, user_id: int) -> bool:
        stmt = select(WorkspaceMember.id).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none() is not None

    def workspace_ids_for(self, user_id: int) -> list[int]:
        stmt = (
            select(WorkspaceMember.workspace_id)
            .where(WorkspaceMember.user_id == user_id)
            .order_by(WorkspaceMember.workspace_id)
        )
        return list(self.db.execute(stmt).scalars())


class ChannelStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, channel_id: int) -> Channel | None:
        return self.db.get(Channel, channel_id)

    def for_workspace(self, workspace_id: int) -> list[Channel]:
        stmt = (
            select(Channel)
            .where(Channel.workspace_id == workspace_id)
            .order_by(Channel.created_at, Channel.id)
        )
        return list(self.db.execute(stmt).scalars())

    def create(
        self,
        *,
        workspace_id: int,
        channel_name: str,
        created_by: int,
        is_private: bool,
        allowed_user_ids: Sequence[int] = (),
    ) -> Channel:
        channel = Channel(
            workspace_id=workspace_id,
            channel_name=channel_name,
            created_by=created_by,
            is_private=is_private,
        )
        if allowed_user_ids:
            users = UserStore(self.db).find_many(allowed_user_ids)
            channel.allowed_users = [user for user in users if user.id != created_by]
        self.db.add(channel)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("A channel with this name already exists in this workspace") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Failed to create channel %r", channel_name, exc_info=True)
            raise PersistenceError("Failed to create channel") from exc
        self.db.refresh(channel)
        return channel

    def add_allowed_user(self, channel: Channel, user_id: int) -> bool:
        """Insert the allow-list row if it is absent; returns False when it already existed."""

        stmt = select(channel_allowed_users.c.user_id).where(
            channel_allowed_users.c.channel_id == channel.id,
            channel_allowed_users.c.user_id == user_id,
        )
        if self.db.execute(stmt).first() is not None:
            return False
        try:
            self.db.execute(
                insert(channel_allowed_users).values(channel_id=channel.id, user_id=user_id)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to update channel members") from exc
        self.db.expire(channel, ["allowed_users"])
        return True

    def remove_allowed_user(self, channel: Channel, user_id: int) -> bool:
        table = channel_allowed_users
        result = self.db.execute(
            table.delete().where(table.c.channel_id == channel.id, table.c.user_id == user_id)
        )
        _commit(self.db, "Failed to update channel members")
        self.db.expire(channel, ["allowed_users"])
        return bool(result.rowcount)

    def delete(self, channel: Channel) -> None:
        self.db.delete(channel)
        _commit(self.db, "Failed to delete channel")


class MessageStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, message_id: int) -> Message | None:
        stmt = select(Message).where(Message.id == message_id).options(selectinload(Message.author))
        return self.db.execute(stmt).scalar_one_or_none()

    def history(self, channel_id: int, *, limit: int, before_id: int | None = None) -> list[Message]:
        """Newest ``limit`` messages of the channel, returned oldest first."""

        stmt = select(Message).where(Message.channel_id == channel_id)
        if before_id is not None:
            stmt = stmt.where(Message.id < before_id)
        stmt = (
            stmt.order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .options(selectinload(Message.author))
        )
        messages = list(self.db.execute(stmt).scalars())
        messages.reverse()
        return messages

    def count(self, channel_id: int) -> int:
        stmt = select(func.count(Message.id)).where(Message.channel_id == channel_id)
        return int(self.db.execute(stmt).scalar_one())

    def create(self, message: Message) -> Message:
        self.db.add(message)
        _commit(self.db, "Failed to store message")
        self.db.refresh(message)
        return message

    def save(self, message: Message) -> Message:
        self.db.add(message)
        _commit(self.db, "Failed to update message")
        self.db.refresh(message)
        return message

    def delete(self, message: Message) -> None:
        self.db.delete(message)
        _commit(self.db, "Failed to delete message")


def _like_pattern(query: str) -> str:
    """Substring pattern with LIKE wildcards in ``query`` matched literally."""

    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _pair_clause(left, right, user_a: int, user_b: int):
    return or_(
        and_(left == user_a, right == user_b),
        and_(left == user_b, right == user_a),
    )


class DirectMessageStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, message_id: int) -> DirectMessage | None:
        return self.db.get(DirectMessage, message_id)

    def conversation(
        self, user_a: int, user_b: int, *, limit: int, before_id: int | None = None
    ) -> list[DirectMessage]:
        """Non-deleted messages exchanged by the pair, oldest first."""

        stmt = select(DirectMessage).where(
            _pair_clause(DirectMessage.sender_id, DirectMessage.receiver_id, user_a, user_b),
            DirectMessage.is_deleted.is_(False),
        )
        if before_id is not None:
            stmt = stmt.where(DirectMessage.id < before_id)
        stmt = stmt.order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc()).limit(limit)
        messages = list(self.db.execute(stmt).scalars())
        messages.reverse()
        return messages

    def count_conversation(self, user_a: int, user_b: int) -> int:
        stmt = select(func.count(DirectMessage.id)).where(
            _pair_clause(DirectMessage.sender_id, DirectMessage.receiver_id, user_a, user_b),
            DirectMessage.is_deleted.is_(False),
        )
        return int(self.db.execute(stmt).scalar_one())

    def search(self, user_a: int, user_b: int, query: str, *, limit: int) -> list[DirectMessage]:
        """Case-insensitive substring match over the pair's non-deleted messages, newest first."""

        stmt = (
            select(DirectMessage)
            .where(
                _pair_clause(DirectMessage.sender_id, DirectMessage.receiver_id, user_a, user_b),
                DirectMessage.is_deleted.is_(False),
                DirectMessage.content.ilike(_like_pattern(query), escape="\\"),
            )
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def create(self, message: DirectMessage) -> DirectMessage:
        self.db.add(message)
        _commit(self.db, "Failed to store direct message")
        self.db.refresh(message)
        return message

    def soft_delete(self, message: DirectMessage) -> DirectMessage:
        message.is_deleted = True
        self.db.add(message)
        _commit(self.db, "Failed to delete direct message")
        return message

    def mark_read(self, receiver_id: int, sender_id: int, *, now: datetime | None = None) -> int:
        """Stamp every unread message from ``sender_id`` to ``receiver_id``; returns the row count."""

        stamp = now or datetime.now(timezone.utc)
        result = self.db.execute(
            update(DirectMessage)
            .where(
                DirectMessage.receiver_id == receiver_id,
                DirectMessage.sender_id == sender_id,
                DirectMessage.read_at.is_(None),
            )
            .values(read_at=stamp)
            .execution_options(synchronize_session=False)
        )
        _commit(self.db, "Failed to mark messages as read")
        return int(result.rowcount or 0)

    def unread_counts(self, user_id: int) -> list[tuple[int, int]]:
        stmt = (
            select(DirectMessage.sender_id, func.count(DirectMessage.id))
            .where(
                DirectMessage.receiver_id == user_id,
                DirectMessage.read_at.is_(None),
                DirectMessage.is_deleted.is_(False),
            )
            .group_by(DirectMessage.sender_id)
            .order_by(DirectMessage.sender_id)
        )
        return [(sender_id, int(count)) for sender_id, count in self.db.execute(stmt).all()]


class FriendshipStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def between(self, user_a: int, user_b: int, status: FriendshipStatus | None = None) -> Friendship | None:
        stmt = select(Friendship).where(
            _pair_clause(Friendship.user_id, Friendship.friend_id, user_a, user_b)
        )
        if status is not None:
            stmt = stmt.where(Friendship.status == status)
        return self.db.execute(stmt.limit(1)).scalars().first()

    def are_friends(self, user_a: int, user_b: int) -> bool:
        return self.between(user_a, user_b, FriendshipStatus.ACCEPTED) is not None

    def is_blocked(self, user_a: int, user_b: int) -> bool:
        return self.between(user_a, user_b, FriendshipStatus.BLOCKED) is not None

    def friend_ids(self, user_id: int) -> list[int]:
        stmt = select(Friendship).where(
            Friendship.status == FriendshipStatus.ACCEPTED,
            or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
        )
        friends: list[int] = []
        for link in self.db.execute(stmt).scalars():
            other = link.friend_id if link.user_id == user_id else link.user_id
            if other not in friends:
                friends.append(other)
        return friends

    def incoming(self, user_id: int) -> list[Friendship]:
        """Pending requests addressed to ``user_id``, oldest first."""

        stmt = (
            select(Friendship)
            .where(Friendship.friend_id == user_id, Friendship.status == FriendshipStatus.PENDING)
            .order_by(Friendship.created_at, Friendship.id)
            .options(selectinload(Friendship.user))
        )
        return list(self.db.execute(stmt).scalars())

    def pending_from(self, sender_id: int, receiver_id: int) -> Friendship | None:
        stmt = select(Friendship).where(
            Friendship.user_id == sender_id,
            Friendship.friend_id == receiver_id,
            Friendship.status == FriendshipStatus.PENDING,
        )
        return self.db.execute(stmt).scalars().first()

    def create(self, user_id: int, friend_id: int, status: FriendshipStatus) -> Friendship:
        link = Friendship(user_id=user_id, friend_id=friend_id, status=status)
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("A relationship between these users already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Failed to store friendship %s -> %s", user_id, friend_id, exc_info=True)
            raise PersistenceError("Failed to store friendship") from exc
        self.db.refresh(link)
        return link

    def set_status(self, link: Friendship, status: FriendshipStatus) -> Friendship:
        link.status = status
        self.db.add(link)
        _commit(self.db, "Failed to update friendship")
        self.db.refresh(link)
        return link

    def delete(self, link: Friendship) -> None:
        self.db.delete(link)
        _commit(self.db, "Failed to delete friendship")

    def block(self, user_id: int, blocked_id: int) -> Friendship:
        """Replace every row of the pair with a single ``user_id`` -> ``blocked_id`` block."""

        self.db.execute(
            delete(Friendship).where(
                _pair_clause(Friendship.user_id, Friendship.friend_id, user_id, blocked_id)
            )
        )
        link = Friendship(user_id=user_id, friend_id=blocked_id, status=FriendshipStatus.BLOCKED)
        self.db.add(link)
        _commit(self.db, "Failed to block user")
        self.db.refresh(link)
        return link

    def blocked_by(self, user_id: int, blocked_id: int) -> Friendship | None:
        stmt = select(Friendship).where(
            Friendship.user_id == user_id,
            Friendship.friend_id == blocked_id,
            Friendship.status == FriendshipStatus.BLOCKED,
        )
        return self.db.execute(stmt).scalars().first()
