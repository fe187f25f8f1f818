"""Event handlers of the direct message namespace."""

from __future__ import annotations

from typing import Any

from huddle.realtime import Connection, RealtimeNamespace

from app import database
from app.services.direct_messaging import DirectMessagingService
from app.services.payloads import optional_str, require_bool, require_int


async def send_message(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    receiver_id = require_int(payload, "receiver_id")
    content = optional_str(payload, "content")
    if content is None:
        content = optional_str(payload, "message")
    is_code = payload.get("is_code", False)
    with database.get_db_session() as db:
        await DirectMessagingService(db, realtime).send(
            connection.user_id,
            receiver_id,
            content,
            image=optional_str(payload, "image"),
            is_code=bool(is_code),
            language=optional_str(payload, "language"),
            sender=connection,
        )


async def typing(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    receiver_id = require_int(payload, "receiver_id")
    is_typing = require_bool(payload, "is_typing")
    await realtime.signals.direct_typing(connection, receiver_id, is_typing)


async def mark_as_read(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    sender_id = require_int(payload, "sender_id")
    with database.get_db_session() as db:
        await DirectMessagingService(db, realtime).mark_read(
            connection.user_id, sender_id, reader=connection
        )


async def delete_message(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    message_id = require_int(payload, "message_id")
    with database.get_db_session() as db:
        await DirectMessagingService(db, realtime).delete(
            message_id, connection.user_id, sender=connection
        )


async def on_disconnect(realtime: RealtimeNamespace, connection: Connection) -> None:
    realtime.state.disconnect(connection)


DIRECT_EVENTS = {
    "sendMessage": send_message,
    "typing": typing,
    "markAsRead": mark_as_read,
    "deleteMessage": delete_message,
}
