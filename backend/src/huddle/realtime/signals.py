"""Transient typing, read receipt and presence signals.

None of these are persisted. Typing has no timeout: clients send an explicit
``is_typing: false``. Presence is push only; no online roster is kept.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .connections import Connection
from .dispatcher import DispatchChannel, FanoutDispatcher


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SignalTracker:
    """Emit ancillary signals through a namespace dispatcher."""

    def __init__(self, dispatcher: FanoutDispatcher) -> None:
        self.dispatcher = dispatcher

    async def direct_typing(self, sender: Connection, receiver_id: int, is_typing: bool) -> bool:
        payload = {
            "type": "typingIndicator",
            "sender_id": sender.user_id,
            "is_typing": bool(is_typing),
            "sender": {"username": sender.username, "avatar": sender.avatar},
        }
        return await self.dispatcher.to_user(receiver_id, payload)

    async def channel_typing(
        self, channel: DispatchChannel, sender: Connection, is_typing: bool
    ) -> int:
        payload = {
            "type": "userTyping",
            "channel_id": channel.id,
            "user_id": sender.user_id,
            "username": sender.username,
            "is_typing": bool(is_typing),
        }
        return await self.dispatcher.to_channel(
            channel, payload, sender=sender, include_sender=False
        )

    async def read_receipt(
        self, *, sender_id: int, receiver_id: int, read_at: datetime
    ) -> bool:
        """Tell ``sender_id`` that ``receiver_id`` has read their messages."""

        payload = {
            "type": "messagesRead",
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "read_at": read_at.isoformat(),
        }
        return await self.dispatcher.to_user(sender_id, payload)

    async def presence(self, connection: Connection, event_type: str, **fields: Any) -> int:
        payload: dict[str, Any] = {
            "type": event_type,
            "user_id": connection.user_id,
            **fields,
            "timestamp": utcnow_iso(),
        }
        return await self.dispatcher.broadcast(payload, exclude_user=connection.user_id)
