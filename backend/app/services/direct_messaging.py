"""Direct message operations shared by the HTTP routers and the DM namespace."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from huddle.realtime import Connection, RealtimeNamespace, get_direct_namespace

from app.config import get_settings
from app.models import DirectMessage
from app.schemas import ConversationRead, DirectMessageRead, ReadReceipt, UnreadCount
from app.services.channel_messaging import attach_image
from app.services.errors import AccessDeniedError, NotFoundError, ValidationError
from app.services.stores import DirectMessageStore, FriendshipStore, UserStore

logger = logging.getLogger(__name__)

settings = get_settings()


def serialize_direct_message(message: DirectMessage) -> dict[str, Any]:
    return DirectMessageRead.model_validate(message).model_dump(mode="json")


class DirectMessagingService:
    def __init__(self, db: Session, realtime: RealtimeNamespace | None = None) -> None:
        self.db = db
        self.realtime = realtime or get_direct_namespace()
        self.dispatcher = self.realtime.dispatcher
        self.messages = DirectMessageStore(db)
        self.friendships = FriendshipStore(db)

    def _require_user(self, user_id: int, detail: str) -> None:
        if UserStore(self.db).get(user_id) is None:
            raise NotFoundError(detail)

    def _require_friend(self, user_id: int, other_id: int, detail: str) -> None:
        if not self.friendships.are_friends(user_id, other_id):
            raise AccessDeniedError(detail)

    async def send(
        self,
        sender_id: int,
        receiver_id: int,
        content: str | None,
        *,
        image: str | None = None,
        is_code: bool = False,
        language: str | None = None,
        sender: Connection | None = None,
    ) -> dict[str, Any]:
        content = content or ""
        if not content.strip() and not image:
            raise ValidationError("Cannot send empty message")
        if len(content) > settings.chat_message_max_length:
            raise ValidationError(
                f"Message exceeds maximum length of {settings.chat_message_max_length} characters"
            )
        if sender_id == receiver_id:
            raise ValidationError("Cannot send a direct message to yourself")
        self._require_user(receiver_id, "Receiver not found")
        self._require_friend(sender_id, receiver_id, "You can only send messages to friends")
        if self.friendships.is_blocked(sender_id, receiver_id):
            raise AccessDeniedError("Cannot send message due to blocking")

        message = self.messages.create(
            DirectMessage(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                image=attach_image(image, scope=f"direct/{sender_id}"),
                is_code=is_code,
                language=language if is_code else None,
            )
        )
        data = serialize_direct_message(message)

        outbound: dict[str, Any] = {"type": "receiveDirectMessage", **data}
        if sender is not None:
            outbound["sender"] = sender.identity
        await self.dispatcher.to_user(receiver_id, outbound)
        if sender is not None:
            await self.dispatcher.to_connection(sender, {"type": "messageSent", **data})
        return data

    async def conversation(
        self, user_id: int, friend_id: int, *, limit: int | None = None, before_id: int | None = None
    ) -> ConversationRead:
        """Load the conversation and mark the friend's messages as read."""

        self._require_user(friend_id, "Friend not found")
        self._require_friend(user_id, friend_id, "You can only view conversations with friends")
        limit = min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit)
        messages = self.messages.conversation(user_id, friend_id, limit=limit, before_id=before_id)
        receipt = await self.mark_read(user_id, friend_id)
        return ConversationRead(
            friend_id=friend_id,
            messages=[DirectMessageRead.model_validate(message) for message in messages],
            total=self.messages.count_conversation(user_id, friend_id),
            marked_read=receipt.updated,
        )

    async def mark_read(
        self, reader_id: int, sender_id: int, *, reader: Connection | None = None
    ) -> ReadReceipt:
        """Stamp the sender's messages as read by ``reader_id`` and notify the sender."""

        read_at = datetime.now(timezone.utc)
        updated = self.messages.mark_read(reader_id, sender_id, now=read_at)
        await self.realtime.signals.read_receipt(
            sender_id=sender_id, receiver_id=reader_id, read_at=read_at
        )
        if reader is not None:
            await self.dispatcher.to_connection(
                reader, {"type": "markedAsRead", "sender_id": sender_id, "updated": updated}
            )
        return ReadReceipt(sender_id=sender_id, receiver_id=reader_id, updated=updated, read_at=read_at)

    async def delete(
        self, message_id: int, user_id: int, *, sender: Connection | None = None
    ) -> dict[str, Any]:
        message = self.messages.get(message_id)
        if message is None or message.is_deleted:
            raise NotFoundError("Message not found")
        if message.sender_id != user_id:
            raise AccessDeniedError("You can only delete your own messages")

        self.messages.soft_delete(message)
        notice = {
            "type": "directMessageDeleted",
            "message_id": message.id,
            "sender_id": message.sender_id,
            "receiver_id": message.receiver_id,
        }
        await self.dispatcher.to_user(message.receiver_id, notice)
        if sender is not None:
            await self.dispatcher.to_connection(sender, notice)
        else:
            await self.dispatcher.to_user(message.sender_id, notice)
        return {key: value for key, value in notice.items() if key != "type"}

    def unread(self, user_id: int) -> list[UnreadCount]:
        return [
            UnreadCount(sender_id=sender_id, count=count)
            for sender_id, count in self.messages.unread_counts(user_id)
        ]

    def search(self, user_id: int, friend_id: int, query: str, *, limit: int = 20) -> list[DirectMessageRead]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        self._require_friend(user_id, friend_id, "You can only search messages with friends")
        limit = min(limit, settings.chat_history_max_limit)
        return [
            DirectMessageRead.model_validate(message)
            for message in self.messages.search(user_id, friend_id, query, limit=limit)
        ]
