"""Event handlers of the channels namespace."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from huddle.realtime import Connection, RealtimeNamespace

from app import database
from app.schemas import PublicUser
from app.services.channel_messaging import ChannelMessagingService
from app.services.errors import ValidationError
from app.services.membership import load_accessible_channel
from app.services.payloads import optional_str, require_bool, require_int
from app.services.stores import ChannelStore, UserStore
from app.services.workspace_events import (
    auto_join_public_channels,
    join_workspace_channels,
    subscribe,
)

logger = logging.getLogger(__name__)

Handler = Callable[[RealtimeNamespace, Connection, dict[str, Any]], Awaitable[None]]


async def on_connect(realtime: RealtimeNamespace, connection: Connection) -> None:
    await realtime.dispatcher.to_connection(
        connection,
        {
            "type": "welcome",
            "message": f"Welcome {connection.username}!",
            "user_id": connection.user_id,
        },
    )
    with database.get_db_session() as db:
        summaries = auto_join_public_channels(realtime, connection, db)
    for summary in summaries:
        await realtime.dispatcher.to_connection(
            connection, {"type": "userChannels", **summary.model_dump(mode="json")}
        )


async def on_disconnect(realtime: RealtimeNamespace, connection: Connection) -> None:
    for channel_id in realtime.state.disconnect(connection):
        await realtime.dispatcher.to_tracked(
            channel_id,
            {"type": "userLeftChannel", "channel_id": channel_id, "user_id": connection.user_id},
            exclude_user=connection.user_id,
        )


async def join_channel(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    channel_id = require_int(payload, "channel_id")
    with database.get_db_session() as db:
        channel = load_accessible_channel(db, channel_id, connection.user_id)
        subscribe(realtime, connection, channel)
        await realtime.dispatcher.to_channel(
            channel,
            {"type": "userJoinedChannel", "channel_id": channel.id, "user": connection.identity},
            sender=connection,
            include_sender=False,
        )
        users = UserStore(db).find_many(realtime.state.tracked_users(channel.id))
        listing = [PublicUser.model_validate(user).model_dump(mode="json") for user in users]

    await realtime.dispatcher.to_connection(
        connection, {"type": "channelUsers", "channel_id": channel_id, "users": listing}
    )


async def join_workspace(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    workspace_id = require_int(payload, "workspace_id")
    with database.get_db_session() as db:
        result = join_workspace_channels(realtime, connection, db, workspace_id)

    body = result.model_dump(mode="json")
    if result.status == "empty":
        body["message"] = "No channels found in this workspace"
    await realtime.dispatcher.to_connection(connection, {"type": "workspaceJoined", **body})


async def leave_channel(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    channel_id = require_int(payload, "channel_id")
    realtime.state.leave_room(channel_id, connection)
    realtime.state.untrack(channel_id, connection.user_id)
    notice = {"type": "userLeftChannel", "channel_id": channel_id, "user_id": connection.user_id}

    with database.get_db_session() as db:
        channel = ChannelStore(db).get(channel_id)
        if channel is not None:
            await realtime.dispatcher.to_channel(
                channel, notice, sender=connection, include_sender=False
            )
            return
    await realtime.dispatcher.to_tracked(channel_id, notice, exclude_user=connection.user_id)


async def send_message(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    channel_id = require_int(payload, "channel_id")
    content = optional_str(payload, "message")
    if content is None:
        content = optional_str(payload, "content")
    with database.get_db_session() as db:
        await ChannelMessagingService(db, realtime).send(
            channel_id,
            connection.user_id,
            content,
            image=optional_str(payload, "image"),
            sender=connection,
        )


async def edit_message(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    message_id = require_int(payload, "message_id")
    content = optional_str(payload, "content") or ""
    with database.get_db_session() as db:
        await ChannelMessagingService(db, realtime).edit(
            message_id, connection.user_id, content, sender=connection
        )


async def add_reaction(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    message_id = require_int(payload, "message_id")
    emoji = optional_str(payload, "emoji")
    if not emoji:
        raise ValidationError("Emoji is required")
    with database.get_db_session() as db:
        await ChannelMessagingService(db, realtime).react(
            message_id, connection.user_id, emoji, sender=connection
        )


async def delete_message(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    message_id = require_int(payload, "message_id")
    with database.get_db_session() as db:
        await ChannelMessagingService(db, realtime).delete(
            message_id, connection.user_id, sender=connection
        )


async def typing(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    channel_id = require_int(payload, "channel_id")
    is_typing = require_bool(payload, "is_typing")
    with database.get_db_session() as db:
        channel = load_accessible_channel(db, channel_id, connection.user_id)
        await realtime.signals.channel_typing(channel, connection, is_typing)


async def user_presence(realtime: RealtimeNamespace, connection: Connection, payload: dict[str, Any]) -> None:
    status = optional_str(payload, "status")
    if not status:
        raise ValidationError("'status' is required")
    await realtime.signals.presence(connection, "userPresenceChanged", status=status)


CHANNEL_EVENTS: dict[str, Handler] = {
    "joinChannel": join_channel,
    "joinWorkspace": join_workspace,
    "leaveChannel": leave_channel,
    "sendMessage": send_message,
    "editMessage": edit_message,
    "addReaction": add_reaction,
    "deleteMessage": delete_message,
    "typing": typing,
    "userPresence": user_presence,
}
