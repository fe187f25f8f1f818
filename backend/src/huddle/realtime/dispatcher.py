"""Fan-out of realtime events to the live connections that may receive them."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from app.monitoring.metrics import realtime_dropped_deliveries_total, realtime_events_total

from .connections import Connection
from .namespaces import Namespace

logger = logging.getLogger(__name__)


class DispatchChannel(Protocol):
    id: int
    is_private: bool

    @property
    def effective_member_ids(self) -> list[int]: ...


class FanoutDispatcher:
    """Deliver events within one namespace.

    Public channels go to the connections in the channel room. Private
    channels are resolved member by member through the registry, so a
    change of the allow-list takes effect without any room churn.
    One-to-one events are best effort: offline recipients are skipped.
    """

    def __init__(self, namespace: Namespace) -> None:
        self.namespace = namespace

    @property
    def registry(self):
        return self.namespace.registry

    def _count(self, payload: dict[str, Any]) -> None:
        realtime_events_total.labels(self.namespace.name, "out", payload.get("type", "unknown")).inc()

    async def to_connection(self, connection: Connection, payload: dict[str, Any]) -> bool:
        delivered = await connection.send(payload)
        if delivered:
            self._count(payload)
        return delivered

    async def to_user(self, user_id: int, payload: dict[str, Any]) -> bool:
        connection = self.registry.lookup(user_id)
        if connection is None:
            realtime_dropped_deliveries_total.labels(self.namespace.name).inc()
            logger.debug(
                "Dropping %s for offline user %s in %s",
                payload.get("type"),
                user_id,
                self.namespace.name,
            )
            return False
        return await self.to_connection(connection, payload)

    async def to_users(
        self,
        user_ids: Iterable[int],
        payload: dict[str, Any],
        *,
        exclude_user: int | None = None,
    ) -> int:
        delivered = 0
        seen: set[int] = set()
        for user_id in user_ids:
            if user_id in seen or user_id == exclude_user:
                continue
            seen.add(user_id)
            connection = self.registry.lookup(user_id)
            if connection is None:
                continue
            if await self.to_connection(connection, payload):
                delivered += 1
        return delivered

    async def to_room(
        self,
        channel_id: int,
        payload: dict[str, Any],
        *,
        exclude: Connection | None = None,
    ) -> int:
        delivered = 0
        for connection in self.namespace.room(channel_id):
            if connection is exclude:
                continue
            if await self.to_connection(connection, payload):
                delivered += 1
        return delivered

    async def to_channel(
        self,
        channel: DispatchChannel,
        payload: dict[str, Any],
        *,
        sender: Connection | None = None,
        include_sender: bool = True,
    ) -> int:
        """Deliver ``payload`` to the channel using the strategy its visibility requires."""

        if channel.is_private:
            exclude_user = None if include_sender or sender is None else sender.user_id
            return await self.to_users(
                channel.effective_member_ids, payload, exclude_user=exclude_user
            )
        exclude = None if include_sender else sender
        return await self.to_room(channel.id, payload, exclude=exclude)

    async def to_tracked(
        self,
        channel_id: int,
        payload: dict[str, Any],
        *,
        exclude_user: int | None = None,
    ) -> int:
        """Deliver to the channel room and every user tracked in the channel.

        Needs no channel lookup, which keeps disconnect cleanup off the store.
        Tracked users passed the access check when they joined.
        """

        delivered = 0
        reached: set[int] = set()
        for connection in self.namespace.room(channel_id):
            if connection.user_id == exclude_user:
                continue
            reached.add(connection.user_id)
            if await self.to_connection(connection, payload):
                delivered += 1
        remaining = [
            user_id
            for user_id in self.namespace.tracked_users(channel_id)
            if user_id not in reached
        ]
        delivered += await self.to_users(remaining, payload, exclude_user=exclude_user)
        return delivered

    async def broadcast(
        self, payload: dict[str, Any], *, exclude_user: int | None = None
    ) -> int:
        """Push to every live connection of the namespace."""

        delivered = 0
        for connection in self.registry:
            if connection.user_id == exclude_user:
                continue
            if await self.to_connection(connection, payload):
                delivered += 1
        return delivered
