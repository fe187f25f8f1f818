"""Channel message operations shared by the HTTP routers and the channels namespace.

Every mutation is committed before anything is dispatched, so a failed write
never leaves a partial broadcast behind.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from huddle.realtime import Connection, RealtimeNamespace, get_channels_namespace, toggle_reaction

from app.config import get_settings
from app.core.storage import ImageStorageError, store_image
from app.models import Channel, Message
from app.schemas import MessageHistoryPage, MessageRead, ReactionEntry, UserSummary
from app.services.errors import AccessDeniedError, NotFoundError, ValidationError
from app.services.membership import ensure_access, load_accessible_channel
from app.services.stores import ChannelStore, MessageStore

logger = logging.getLogger(__name__)

settings = get_settings()


def message_read(message: Message) -> MessageRead:
    author = message.author
    return MessageRead(
        id=message.id,
        channel_id=message.channel_id,
        workspace_id=message.workspace_id,
        content=message.content,
        image=message.image,
        reactions=[ReactionEntry(**entry) for entry in message.reactions or []],
        sender=UserSummary(user_id=author.id, username=author.username, avatar=author.avatar),
        created_at=message.created_at,
        edited_at=message.edited_at,
    )


def serialize_message(message: Message) -> dict[str, Any]:
    return message_read(message).model_dump(mode="json")


def attach_image(data: str | None, *, scope: str) -> str | None:
    """Store an optional image; failures degrade to a message without it."""

    if not data:
        return None
    try:
        return store_image(scope, data).url
    except ImageStorageError:
        logger.warning("Image upload failed for %s; continuing without attachment", scope, exc_info=True)
        return None


class ChannelMessagingService:
    def __init__(self, db: Session, realtime: RealtimeNamespace | None = None) -> None:
        self.db = db
        self.realtime = realtime or get_channels_namespace()
        self.dispatcher = self.realtime.dispatcher
        self.messages = MessageStore(db)

    def _load_message(self, message_id: int) -> Message:
        message = self.messages.get(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def _load_channel(self, channel_id: int) -> Channel:
        channel = ChannelStore(self.db).get(channel_id)
        if channel is None:
            raise NotFoundError("Channel not found")
        return channel

    def history(
        self, channel_id: int, user_id: int, *, limit: int | None = None, before_id: int | None = None
    ) -> MessageHistoryPage:
        load_accessible_channel(self.db, channel_id, user_id)
        limit = min(limit or settings.chat_history_default_limit, settings.chat_history_max_limit)
        items = self.messages.history(channel_id, limit=limit + 1, before_id=before_id)
        has_more = len(items) > limit
        if has_more:
            items = items[1:]
        return MessageHistoryPage(
            items=[message_read(item) for item in items],
            total=self.messages.count(channel_id),
            has_more=has_more,
        )

    async def send(
        self,
        channel_id: int,
        user_id: int,
        content: str | None,
        *,
        image: str | None = None,
        sender: Connection | None = None,
    ) -> dict[str, Any]:
        content = content or ""
        if not content.strip() and not image:
            raise ValidationError("Cannot send empty message")
        if len(content) > settings.chat_message_max_length:
            raise ValidationError(
                f"Message exceeds maximum length of {settings.chat_message_max_length} characters"
            )

        channel = load_accessible_channel(self.db, channel_id, user_id)
        image_url = attach_image(image, scope=f"channels/{channel.id}")
        message = self.messages.create(
            Message(
                channel_id=channel.id,
                workspace_id=channel.workspace_id,
                user_id=user_id,
                content=content,
                image=image_url,
                reactions=[],
            )
        )
        data = serialize_message(message)

        await self.dispatcher.to_channel(channel, {"type": "receiveMessage", **data}, sender=sender)
        if sender is not None:
            await self.dispatcher.to_connection(
                sender,
                {
                    "type": "messageSent",
                    "channel_id": channel.id,
                    "message_id": message.id,
                    "created_at": data["created_at"],
                },
            )
        return data

    async def edit(
        self, message_id: int, user_id: int, content: str, *, sender: Connection | None = None
    ) -> dict[str, Any]:
        if not content or not content.strip():
            raise ValidationError("Message content is required")
        if len(content) > settings.chat_message_max_length:
            raise ValidationError(
                f"Message exceeds maximum length of {settings.chat_message_max_length} characters"
            )
        message = self._load_message(message_id)
        if message.user_id != user_id:
            raise AccessDeniedError("You can only edit your own messages")
        channel = self._load_channel(message.channel_id)
        ensure_access(channel, user_id)

        message.content = content
        message.edited_at = datetime.now(timezone.utc)
        message = self.messages.save(message)
        data = serialize_message(message)

        await self.dispatcher.to_channel(
            channel,
            {
                "type": "messageEdited",
                "channel_id": channel.id,
                "message_id": message.id,
                "content": message.content,
                "edited_at": data["edited_at"],
            },
            sender=sender,
        )
        return data

    async def react(
        self, message_id: int, user_id: int, emoji: str, *, sender: Connection | None = None
    ) -> dict[str, Any]:
        emoji = (emoji or "").strip()
        if not emoji:
            raise ValidationError("Emoji is required")
        message = self._load_message(message_id)
        channel = self._load_channel(message.channel_id)
        ensure_access(channel, user_id)
        if message.user_id == user_id:
            raise AccessDeniedError("You cannot react to your own message")

        reactions, added = toggle_reaction(message.reactions, emoji, user_id)
        message.reactions = reactions
        message = self.messages.save(message)

        state = {
            "channel_id": channel.id,
            "message_id": message.id,
            "reactions": [dict(entry) for entry in message.reactions],
        }
        await self.dispatcher.to_channel(
            channel,
            {"type": "messageReaction", **state, "user_id": user_id, "emoji": emoji, "added": added},
            sender=sender,
        )
        return state

    async def delete(
        self, message_id: int, user_id: int, *, sender: Connection | None = None
    ) -> dict[str, Any]:
        message = self._load_message(message_id)
        if message.user_id != user_id:
            raise AccessDeniedError("You can only delete your own messages")
        channel = self._load_channel(message.channel_id)
        payload = {"channel_id": channel.id, "message_id": message.id}

        self.messages.delete(message)
        await self.dispatcher.to_channel(channel, {"type": "messageDeleted", **payload}, sender=sender)
        return payload
