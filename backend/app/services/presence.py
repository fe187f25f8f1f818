"""Event handlers of the friends namespace: online status and friend request relays."""

from __future__ import annotations

from typing import Any

from huddle.realtime import Connection, RealtimeNamespace
from huddle.realtime.signals import utcnow_iso

from app.services.payloads import require_bool, require_int


async def relay(realtime: RealtimeNamespace, target_id: int, event_type: str, **fields: Any) -> None:
    await realtime.dispatcher.to_user(
        target_id, {"type": event_type, **fields, "timestamp": utcnow_iso()}
    )


async def online_status(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    is_online = require_bool(payload, "is_online")
    await realtime.signals.presence(
        connection, "friendStatusChanged", username=connection.username, is_online=is_online
    )


async def friend_request(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    receiver_id = require_int(payload, "receiver_id")
    await relay(realtime, receiver_id, "newFriendRequest", sender=connection.identity)


async def accept_friend_request(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    sender_id = require_int(payload, "sender_id")
    await relay(realtime, sender_id, "friendRequestAccepted", receiver=connection.identity)


async def reject_friend_request(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    sender_id = require_int(payload, "sender_id")
    await relay(
        realtime,
        sender_id,
        "friendRequestRejected",
        receiver={"user_id": connection.user_id, "username": connection.username},
    )


async def remove_friend(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    friend_id = require_int(payload, "friend_id")
    await relay(
        realtime,
        friend_id,
        "friendRemoved",
        user_id=connection.user_id,
        username=connection.username,
    )


async def on_disconnect(realtime: RealtimeNamespace, connection: Connection) -> None:
    if not realtime.registry.unregister(connection.user_id, connection):
        return
    await realtime.signals.presence(
        connection, "friendStatusChanged", username=connection.username, is_online=False
    )


FRIEND_EVENTS = {
    "onlineStatus": online_status,
    "friendRequest": friend_request,
    "acceptFriendRequest": accept_friend_request,
    "rejectFriendRequest": reject_friend_request,
    "removeFriend": remove_friend,
}
