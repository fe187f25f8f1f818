"""Per-namespace state: registry, channel rooms and channel membership tracking."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable

from .connections import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class Namespace:
    """In-memory state of one logical realtime surface.

    ``rooms`` hold the connections subscribed to a public channel broadcast;
    ``channel_users`` is the ordered list of user ids tracked per channel.
    Mutations never await, so each one is atomic on the event loop and the
    add-if-absent checks hold under concurrent handlers.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.registry = ConnectionRegistry(name)
        self._rooms: Dict[int, set[Connection]] = defaultdict(set)
        self._channel_users: Dict[int, list[int]] = {}

    def connect(self, connection: Connection) -> Connection | None:
        return self.registry.register(connection)

    def disconnect(self, connection: Connection) -> list[int]:
        """Remove a connection; returns the channels its user stopped being tracked in."""

        for channel_id in list(connection.joined_channels):
            self.leave_room(channel_id, connection)
        if not self.registry.unregister(connection.user_id, connection):
            return []
        return self.untrack_everywhere(connection.user_id)

    def join_room(self, channel_id: int, connection: Connection) -> None:
        self._rooms[channel_id].add(connection)
        connection.joined_channels.add(channel_id)

    def leave_room(self, channel_id: int, connection: Connection) -> None:
        connection.joined_channels.discard(channel_id)
        room = self._rooms.get(channel_id)
        if room is None:
            return
        room.discard(connection)
        if not room:
            self._rooms.pop(channel_id, None)

    def room(self, channel_id: int) -> list[Connection]:
        return list(self._rooms.get(channel_id, ()))

    def track(self, channel_id: int, user_id: int) -> bool:
        members = self._channel_users.setdefault(channel_id, [])
        if user_id in members:
            return False
        members.append(user_id)
        return True

    def untrack(self, channel_id: int, user_id: int) -> bool:
        members = self._channel_users.get(channel_id)
        if not members or user_id not in members:
            return False
        members.remove(user_id)
        if not members:
            self._channel_users.pop(channel_id, None)
        return True

    def untrack_everywhere(self, user_id: int) -> list[int]:
        affected = [
            channel_id
            for channel_id, members in list(self._channel_users.items())
            if user_id in members
        ]
        for channel_id in affected:
            self.untrack(channel_id, user_id)
        return affected

    def tracked_users(self, channel_id: int) -> list[int]:
        return list(self._channel_users.get(channel_id, ()))

    def tracked_channels(self) -> Iterable[int]:
        return list(self._channel_users)

    def reset(self) -> None:
        self._rooms.clear()
        self._channel_users.clear()
        self.registry.clear()
