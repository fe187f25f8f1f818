from __future__ import annotations

import pytest

from app.api import ws as ws_module
from app.models import DirectMessage, Friendship, FriendshipStatus
from app.monitoring.metrics import realtime_dropped_deliveries_total
from app.services import direct_events
from app.services.direct_messaging import DirectMessagingService
from app.services.errors import AccessDeniedError, NotFoundError, PersistenceError, ValidationError
from app.services.stores import DirectMessageStore
from factories import befriend, make_connection, make_user


@pytest.fixture()
def pair(db_session):
    alice = make_user(db_session, "alice")
    bob = make_user(db_session, "bob")
    befriend(db_session, alice, bob)
    return alice, bob


@pytest.mark.anyio("asyncio")
async def test_direct_message_reaches_receiver_and_acks_sender(realtime_hub, pair) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    sender, receiver = make_connection(alice), make_connection(bob)
    realtime.state.connect(sender)
    realtime.state.connect(receiver)

    await direct_events.send_message(realtime, sender, {"receiver_id": bob.id, "content": "hey"})

    (frame,) = receiver.websocket.of_type("receiveDirectMessage")
    assert frame["content"] == "hey"
    assert frame["sender_id"] == alice.id
    assert frame["sender"] == {"user_id": alice.id, "username": "alice", "avatar": None}
    (ack,) = sender.websocket.of_type("messageSent")
    assert ack["id"] == frame["id"]


@pytest.mark.anyio("asyncio")
async def test_offline_receiver_still_persists(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    sender = make_connection(alice)
    realtime.state.connect(sender)
    before = realtime_dropped_deliveries_total.value("dm")

    await direct_events.send_message(realtime, sender, {"receiver_id": bob.id, "message": "later"})

    assert realtime_dropped_deliveries_total.value("dm") == before + 1
    assert sender.websocket.types() == ["messageSent"]
    assert DirectMessageStore(db_session).count_conversation(alice.id, bob.id) == 1


@pytest.mark.anyio("asyncio")
async def test_send_requires_friendship(realtime_hub, db_session) -> None:
    alice = make_user(db_session, "alice")
    carol = make_user(db_session, "carol")
    service = DirectMessagingService(db_session, realtime_hub.direct)

    with pytest.raises(AccessDeniedError, match="only send messages to friends"):
        await service.send(alice.id, carol.id, "hello")
    with pytest.raises(NotFoundError, match="Receiver not found"):
        await service.send(alice.id, 9999, "hello")
    with pytest.raises(ValidationError):
        await service.send(alice.id, alice.id, "hello")
    with pytest.raises(ValidationError, match="Cannot send empty message"):
        await service.send(alice.id, carol.id, "   ")


@pytest.mark.anyio("asyncio")
async def test_blocked_pair_cannot_message(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    db_session.add(Friendship(user_id=bob.id, friend_id=alice.id, status=FriendshipStatus.BLOCKED))
    db_session.commit()

    with pytest.raises(AccessDeniedError, match="blocking"):
        await DirectMessagingService(db_session, realtime_hub.direct).send(alice.id, bob.id, "hi")


@pytest.mark.anyio("asyncio")
async def test_typing_to_offline_user_is_dropped_without_error(realtime_hub, pair) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    sender = make_connection(alice)
    realtime.state.connect(sender)

    await direct_events.typing(realtime, sender, {"receiver_id": bob.id, "is_typing": True})
    assert sender.websocket.sent == []

    receiver = make_connection(bob)
    realtime.state.connect(receiver)
    await direct_events.typing(realtime, sender, {"receiver_id": bob.id, "is_typing": False})
    assert receiver.websocket.sent == [
        {
            "type": "typingIndicator",
            "sender_id": alice.id,
            "is_typing": False,
            "sender": {"username": "alice", "avatar": None},
        }
    ]


@pytest.mark.anyio("asyncio")
async def test_mark_as_read_notifies_original_sender(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    writer, reader = make_connection(alice), make_connection(bob)
    realtime.state.connect(writer)
    realtime.state.connect(reader)
    for content in ("one", "two"):
        db_session.add(DirectMessage(sender_id=alice.id, receiver_id=bob.id, content=content))
    db_session.commit()

    await direct_events.mark_as_read(realtime, reader, {"sender_id": alice.id})

    (receipt,) = writer.websocket.of_type("messagesRead")
    assert receipt["sender_id"] == alice.id
    assert receipt["receiver_id"] == bob.id
    assert reader.websocket.of_type("markedAsRead") == [
        {"type": "markedAsRead", "sender_id": alice.id, "updated": 2}
    ]
    db_session.expire_all()
    assert DirectMessageStore(db_session).unread_counts(bob.id) == []


@pytest.mark.anyio("asyncio")
async def test_delete_is_soft_and_author_only(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    writer, reader = make_connection(alice), make_connection(bob)
    realtime.state.connect(writer)
    realtime.state.connect(reader)
    message = DirectMessage(sender_id=alice.id, receiver_id=bob.id, content="typo")
    db_session.add(message)
    db_session.commit()

    with pytest.raises(AccessDeniedError):
        await direct_events.delete_message(realtime, reader, {"message_id": message.id})

    await direct_events.delete_message(realtime, writer, {"message_id": message.id})

    assert reader.websocket.of_type("directMessageDeleted")[0]["message_id"] == message.id
    assert writer.websocket.of_type("directMessageDeleted")[0]["message_id"] == message.id
    db_session.expire_all()
    assert db_session.get(DirectMessage, message.id).is_deleted is True
    store = DirectMessageStore(db_session)
    assert store.conversation(alice.id, bob.id, limit=10) == []
    with pytest.raises(NotFoundError):
        await direct_events.delete_message(realtime, writer, {"message_id": message.id})


@pytest.mark.anyio("asyncio")
async def test_search_matches_case_insensitively(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    for content in ("Lunch at noon?", "lunch moved", "unrelated"):
        db_session.add(DirectMessage(sender_id=alice.id, receiver_id=bob.id, content=content))
    db_session.commit()

    results = DirectMessagingService(db_session, realtime_hub.direct).search(bob.id, alice.id, "LUNCH")

    assert sorted(message.content for message in results) == ["Lunch at noon?", "lunch moved"]


@pytest.mark.anyio("asyncio")
async def test_search_treats_wildcards_literally(realtime_hub, pair, db_session) -> None:
    alice, bob = pair
    for content in ("50% off", "half price", "snake_case name", "snakecase"):
        db_session.add(DirectMessage(sender_id=alice.id, receiver_id=bob.id, content=content))
    db_session.commit()
    service = DirectMessagingService(db_session, realtime_hub.direct)

    assert [message.content for message in service.search(bob.id, alice.id, "%")] == ["50% off"]
    assert [message.content for message in service.search(bob.id, alice.id, "_")] == ["snake_case name"]


@pytest.mark.anyio("asyncio")
async def test_failed_direct_message_write_delivers_nothing(realtime_hub, pair, db_session, monkeypatch) -> None:
    alice, bob = pair
    realtime = realtime_hub.direct
    sender, receiver = make_connection(alice), make_connection(bob)
    realtime.state.connect(sender)
    realtime.state.connect(receiver)

    def _fail(self, message):
        raise PersistenceError("Failed to store direct message")

    monkeypatch.setattr(DirectMessageStore, "create", _fail)

    await ws_module._dispatch_event(
        realtime,
        sender,
        direct_events.DIRECT_EVENTS,
        {"type": "sendMessage", "receiver_id": bob.id, "content": "lost"},
    )

    assert receiver.websocket.sent == []
    assert sender.websocket.sent == [
        {"type": "error", "message": "Failed to store direct message", "event": "sendMessage"}
    ]
    assert db_session.query(DirectMessage).count() == 0
