from __future__ import annotations

import asyncio

import pytest

from app.api import ws as ws_module
from app.core import storage
from app.models import Message
from app.services import channel_events
from app.services.errors import AccessDeniedError, NotFoundError, PersistenceError
from app.services.membership import ACCESS_DENIED_PRIVATE
from app.services.stores import MessageStore
from factories import make_channel, make_connection, make_user, make_workspace


@pytest.fixture()
def team(db_session):
    owner = make_user(db_session, "owner")
    member = make_user(db_session, "member")
    outsider = make_user(db_session, "outsider")
    workspace = make_workspace(db_session, owner, member, outsider)
    general = make_channel(db_session, workspace, owner, "general")
    secret = make_channel(db_session, workspace, owner, "secret", is_private=True, allowed=(member,))
    return {
        "owner": owner,
        "member": member,
        "outsider": outsider,
        "workspace": workspace,
        "general": general,
        "secret": secret,
    }


def _connect(realtime, *users):
    connections = [make_connection(user) for user in users]
    for connection in connections:
        realtime.state.connect(connection)
    return connections


@pytest.mark.anyio("asyncio")
async def test_private_message_never_reaches_outsider(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    owner, member, outsider = _connect(realtime, team["owner"], team["member"], team["outsider"])
    secret_id = team["secret"].id
    # Room membership of an outsider must not matter for private delivery.
    realtime.state.join_room(secret_id, outsider)

    await channel_events.send_message(
        realtime, member, {"channel_id": secret_id, "message": "hi"}
    )

    assert [frame["content"] for frame in owner.websocket.of_type("receiveMessage")] == ["hi"]
    assert member.websocket.types() == ["receiveMessage", "messageSent"]
    assert outsider.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_outsider_join_is_rejected_with_error_event(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    (outsider,) = _connect(realtime, team["outsider"])
    secret_id = team["secret"].id

    with pytest.raises(AccessDeniedError) as excinfo:
        await channel_events.join_channel(realtime, outsider, {"channel_id": secret_id})
    assert excinfo.value.message == ACCESS_DENIED_PRIVATE

    await ws_module._dispatch_event(
        realtime,
        outsider,
        channel_events.CHANNEL_EVENTS,
        {"type": "joinChannel", "channel_id": secret_id},
    )

    assert outsider.websocket.sent == [
        {"type": "error", "message": ACCESS_DENIED_PRIVATE, "event": "joinChannel"}
    ]
    assert realtime.state.tracked_users(secret_id) == []
    assert realtime.state.room(secret_id) == []


@pytest.mark.anyio("asyncio")
async def test_concurrent_joins_track_user_once(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    (member,) = _connect(realtime, team["member"])
    channel_id = team["general"].id

    await asyncio.gather(
        channel_events.join_channel(realtime, member, {"channel_id": channel_id}),
        channel_events.join_channel(realtime, member, {"channel_id": channel_id}),
    )

    assert realtime.state.tracked_users(channel_id) == [team["member"].id]
    listings = member.websocket.of_type("channelUsers")
    assert len(listings) == 2
    assert [user["id"] for user in listings[-1]["users"]] == [team["member"].id]


@pytest.mark.anyio("asyncio")
async def test_join_notifies_others_and_lists_users(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    secret_id = team["secret"].id

    await channel_events.join_channel(realtime, owner, {"channel_id": secret_id})
    await channel_events.join_channel(realtime, member, {"channel_id": secret_id})

    joined = owner.websocket.of_type("userJoinedChannel")
    assert [frame["user"]["user_id"] for frame in joined] == [team["member"].id]
    # Online members of a private channel hear about joins before joining themselves.
    assert [frame["user"]["user_id"] for frame in member.websocket.of_type("userJoinedChannel")] == [
        team["owner"].id
    ]
    users = member.websocket.of_type("channelUsers")[-1]["users"]
    assert {user["username"] for user in users} == {"owner", "member"}
    # Private channels are tracked but never roomed.
    assert realtime.state.room(secret_id) == []


@pytest.mark.anyio("asyncio")
async def test_join_unknown_channel(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    (member,) = _connect(realtime, team["member"])

    with pytest.raises(NotFoundError):
        await channel_events.join_channel(realtime, member, {"channel_id": 9999})


@pytest.mark.anyio("asyncio")
async def test_reaction_reaches_all_members_including_actor(realtime_hub, team, db_session) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    message = Message(
        channel_id=team["secret"].id,
        workspace_id=team["workspace"].id,
        user_id=team["owner"].id,
        content="ship it",
        reactions=[],
    )
    db_session.add(message)
    db_session.commit()

    await channel_events.add_reaction(realtime, member, {"message_id": message.id, "emoji": "👍"})

    expected = [{"emoji": "👍", "users": [team["member"].id]}]
    for connection in (owner, member):
        (frame,) = connection.websocket.of_type("messageReaction")
        assert frame["reactions"] == expected
        assert frame["added"] is True

    db_session.expire_all()
    assert db_session.get(Message, message.id).reactions == expected

    with pytest.raises(AccessDeniedError):
        await channel_events.add_reaction(realtime, owner, {"message_id": message.id, "emoji": "🎉"})


@pytest.mark.anyio("asyncio")
async def test_only_author_may_delete(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    for connection in (owner, member):
        await channel_events.join_channel(realtime, connection, {"channel_id": team["general"].id})
    await channel_events.send_message(
        realtime, owner, {"channel_id": team["general"].id, "content": "oops"}
    )
    (sent,) = owner.websocket.of_type("messageSent")

    with pytest.raises(AccessDeniedError):
        await channel_events.delete_message(realtime, member, {"message_id": sent["message_id"]})

    await channel_events.delete_message(realtime, owner, {"message_id": sent["message_id"]})
    (deleted,) = member.websocket.of_type("messageDeleted")
    assert deleted == {
        "type": "messageDeleted",
        "channel_id": team["general"].id,
        "message_id": sent["message_id"],
    }


@pytest.mark.anyio("asyncio")
async def test_typing_excludes_sender(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])

    await channel_events.typing(
        realtime, member, {"channel_id": team["secret"].id, "is_typing": True}
    )

    assert owner.websocket.of_type("userTyping")[0]["is_typing"] is True
    assert member.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_join_workspace_subscribes_accessible_channels(realtime_hub, team, db_session) -> None:
    realtime = realtime_hub.channels
    member, outsider = _connect(realtime, team["member"], team["outsider"])
    workspace_id = team["workspace"].id

    await channel_events.join_workspace(realtime, member, {"workspace_id": workspace_id})
    await channel_events.join_workspace(realtime, outsider, {"workspace_id": workspace_id})

    (joined,) = member.websocket.of_type("workspaceJoined")
    assert joined["status"] == "joined"
    assert sorted(joined["channels"]) == sorted([team["general"].id, team["secret"].id])
    (limited,) = outsider.websocket.of_type("workspaceJoined")
    assert limited["channels"] == [team["general"].id]
    assert team["outsider"].id not in realtime.state.tracked_users(team["secret"].id)

    empty = make_workspace(db_session, team["owner"], team["member"], name="Quiet")
    await channel_events.join_workspace(realtime, member, {"workspace_id": empty.id})
    frame = member.websocket.of_type("workspaceJoined")[-1]
    assert frame["status"] == "empty"
    assert frame["channels"] == []
    assert frame["message"] == "No channels found in this workspace"


@pytest.mark.anyio("asyncio")
async def test_on_connect_auto_joins_public_channels(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    (outsider,) = _connect(realtime, team["outsider"])

    await channel_events.on_connect(realtime, outsider)

    assert outsider.websocket.types()[0] == "welcome"
    (summary,) = outsider.websocket.of_type("userChannels")
    assert summary["public_channels"] == [team["general"].id]
    assert summary["private_channels"] == []
    assert outsider in realtime.state.room(team["general"].id)


@pytest.mark.anyio("asyncio")
async def test_disconnect_announces_departure(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    for connection in (owner, member):
        await channel_events.join_channel(realtime, connection, {"channel_id": team["secret"].id})

    await channel_events.on_disconnect(realtime, member)

    (frame,) = owner.websocket.of_type("userLeftChannel")
    assert frame["user_id"] == team["member"].id
    assert realtime.state.tracked_users(team["secret"].id) == [team["owner"].id]
    assert team["member"].id not in realtime.registry


@pytest.mark.anyio("asyncio")
async def test_invalid_payload_becomes_error_frame(realtime_hub, team) -> None:
    realtime = realtime_hub.channels
    (member,) = _connect(realtime, team["member"])

    await ws_module._dispatch_event(
        realtime, member, channel_events.CHANNEL_EVENTS, {"type": "joinChannel", "channel_id": "abc"}
    )
    await ws_module._dispatch_event(realtime, member, channel_events.CHANNEL_EVENTS, {"type": "nope"})

    assert member.websocket.sent == [
        {"type": "error", "message": "'channel_id' must be an integer", "event": "joinChannel"},
        {"type": "error", "message": "Unsupported payload type"},
    ]


def _fail_write(message: str):
    def _raise(self, *args, **kwargs):
        raise PersistenceError(message)

    return _raise


@pytest.mark.anyio("asyncio")
async def test_failed_message_write_broadcasts_nothing(realtime_hub, team, db_session, monkeypatch) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    monkeypatch.setattr(MessageStore, "create", _fail_write("Failed to store message"))

    await ws_module._dispatch_event(
        realtime,
        member,
        channel_events.CHANNEL_EVENTS,
        {"type": "sendMessage", "channel_id": team["secret"].id, "message": "lost"},
    )

    assert owner.websocket.sent == []
    assert member.websocket.sent == [
        {"type": "error", "message": "Failed to store message", "event": "sendMessage"}
    ]
    assert db_session.query(Message).count() == 0


@pytest.mark.anyio("asyncio")
async def test_failed_reaction_write_broadcasts_nothing(realtime_hub, team, db_session, monkeypatch) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    message = Message(
        channel_id=team["secret"].id,
        workspace_id=team["workspace"].id,
        user_id=team["owner"].id,
        content="vote here",
        reactions=[],
    )
    db_session.add(message)
    db_session.commit()
    monkeypatch.setattr(MessageStore, "save", _fail_write("Failed to update message"))

    await ws_module._dispatch_event(
        realtime,
        member,
        channel_events.CHANNEL_EVENTS,
        {"type": "addReaction", "message_id": message.id, "emoji": "👍"},
    )

    assert owner.websocket.sent == []
    assert member.websocket.sent == [
        {"type": "error", "message": "Failed to update message", "event": "addReaction"}
    ]


@pytest.mark.anyio("asyncio")
async def test_unwritable_media_root_saves_message_without_image(
    realtime_hub, team, db_session, tmp_path, monkeypatch
) -> None:
    realtime = realtime_hub.channels
    owner, member = _connect(realtime, team["owner"], team["member"])
    blocker = tmp_path / "media"
    blocker.write_text("not a directory")
    monkeypatch.setattr(storage.settings, "media_root", blocker)

    await channel_events.send_message(
        realtime,
        member,
        {
            "channel_id": team["secret"].id,
            "message": "hi",
            "image": "data:image/png;base64,iVBORw0KGgo=",
        },
    )

    (delivered,) = owner.websocket.of_type("receiveMessage")
    assert delivered["content"] == "hi"
    assert delivered["image"] is None
    assert member.websocket.types() == ["receiveMessage", "messageSent"]
    assert db_session.query(Message).count() == 1


def test_store_image_wraps_filesystem_errors(tmp_path, monkeypatch) -> None:
    blocker = tmp_path / "media"
    blocker.write_text("not a directory")
    monkeypatch.setattr(storage.settings, "media_root", blocker)

    with pytest.raises(storage.ImageStorageError):
        storage.store_image("channels/1", "data:image/png;base64,iVBORw0KGgo=")
