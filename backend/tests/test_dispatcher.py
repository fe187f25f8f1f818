from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.websockets import WebSocketState

from huddle.realtime import Connection, ConnectionRegistry, FanoutDispatcher, Namespace

from app.monitoring.metrics import realtime_connections, realtime_dropped_deliveries_total
from factories import DummyWebSocket


def _conn(user_id: int) -> Connection:
    return Connection(user_id=user_id, websocket=DummyWebSocket(), username=f"user{user_id}")


def _private(channel_id: int, owner: int, allowed: list[int]) -> SimpleNamespace:
    return SimpleNamespace(
        id=channel_id,
        is_private=True,
        effective_member_ids=[owner, *[uid for uid in allowed if uid != owner]],
    )


def _public(channel_id: int) -> SimpleNamespace:
    return SimpleNamespace(id=channel_id, is_private=False, effective_member_ids=[])


def test_registry_last_connection_wins() -> None:
    registry = ConnectionRegistry("test")
    first, second = _conn(1), _conn(1)

    assert registry.register(first) is None
    assert registry.register(second) is first
    assert registry.lookup(1) is second
    assert len(registry) == 1
    assert realtime_connections.value("test") == 1


def test_stale_unregister_keeps_newer_connection() -> None:
    registry = ConnectionRegistry("test")
    stale, fresh = _conn(1), _conn(1)
    registry.register(stale)
    registry.register(fresh)

    assert registry.unregister(1, stale) is False
    assert registry.lookup(1) is fresh

    assert registry.unregister(1, fresh) is True
    assert 1 not in registry
    assert registry.unregister(1) is False


@pytest.mark.anyio("asyncio")
async def test_private_channel_reaches_only_online_members() -> None:
    namespace = Namespace("test")
    dispatcher = FanoutDispatcher(namespace)
    owner, member, outsider = _conn(1), _conn(2), _conn(3)
    for connection in (owner, member, outsider):
        namespace.connect(connection)
    # A stray room subscription must not leak private traffic.
    namespace.join_room(10, outsider)

    delivered = await dispatcher.to_channel(_private(10, 1, [2]), {"type": "receiveMessage"})

    assert delivered == 2
    assert owner.websocket.types() == ["receiveMessage"]
    assert member.websocket.types() == ["receiveMessage"]
    assert outsider.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_private_channel_can_exclude_sender() -> None:
    namespace = Namespace("test")
    dispatcher = FanoutDispatcher(namespace)
    owner, member = _conn(1), _conn(2)
    namespace.connect(owner)
    namespace.connect(member)

    await dispatcher.to_channel(
        _private(10, 1, [2]), {"type": "userTyping"}, sender=member, include_sender=False
    )

    assert owner.websocket.types() == ["userTyping"]
    assert member.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_public_channel_uses_room() -> None:
    namespace = Namespace("test")
    dispatcher = FanoutDispatcher(namespace)
    inside, outside = _conn(1), _conn(2)
    namespace.connect(inside)
    namespace.connect(outside)
    namespace.join_room(5, inside)

    await dispatcher.to_channel(_public(5), {"type": "receiveMessage"})

    assert inside.websocket.types() == ["receiveMessage"]
    assert outside.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_offline_recipient_is_dropped_silently() -> None:
    namespace = Namespace("offline-test")
    dispatcher = FanoutDispatcher(namespace)
    before = realtime_dropped_deliveries_total.value("offline-test")

    assert await dispatcher.to_user(42, {"type": "typingIndicator"}) is False
    assert realtime_dropped_deliveries_total.value("offline-test") == before + 1


@pytest.mark.anyio("asyncio")
async def test_closed_socket_is_skipped() -> None:
    namespace = Namespace("test")
    dispatcher = FanoutDispatcher(namespace)
    closed = _conn(1)
    closed.websocket.application_state = WebSocketState.DISCONNECTED
    namespace.connect(closed)

    assert await dispatcher.to_user(1, {"type": "receiveDirectMessage"}) is False
    assert closed.websocket.sent == []


@pytest.mark.anyio("asyncio")
async def test_disconnect_untracks_and_notifies_tracked_users() -> None:
    namespace = Namespace("test")
    dispatcher = FanoutDispatcher(namespace)
    leaving, staying = _conn(1), _conn(2)
    namespace.connect(leaving)
    namespace.connect(staying)
    for connection in (leaving, staying):
        namespace.track(3, connection.user_id)
    namespace.track(4, leaving.user_id)

    channel_ids = namespace.disconnect(leaving)
    for channel_id in channel_ids:
        await dispatcher.to_tracked(channel_id, {"type": "userLeftChannel", "channel_id": channel_id})

    assert sorted(channel_ids) == [3, 4]
    assert namespace.tracked_users(3) == [2]
    assert namespace.tracked_users(4) == []
    assert staying.websocket.of_type("userLeftChannel") == [{"type": "userLeftChannel", "channel_id": 3}]


def test_replaced_connection_disconnect_keeps_tracking() -> None:
    namespace = Namespace("test")
    stale, fresh = _conn(1), _conn(1)
    namespace.connect(stale)
    namespace.track(3, 1)
    namespace.connect(fresh)

    assert namespace.disconnect(stale) == []
    assert namespace.tracked_users(3) == [1]
    assert namespace.registry.lookup(1) is fresh


def test_track_is_add_if_absent() -> None:
    namespace = Namespace("test")

    assert namespace.track(3, 1) is True
    assert namespace.track(3, 1) is False
    assert namespace.tracked_users(3) == [1]
    assert namespace.untrack(3, 1) is True
    assert namespace.tracked_channels() == []
