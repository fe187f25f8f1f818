"""Live connection handles and the per-namespace user registry."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Protocol

from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections

logger = logging.getLogger(__name__)


class SupportsSendJson(Protocol):
    application_state: WebSocketState

    async def send_json(self, data: Any) -> None: ...


async def safe_send_json(websocket: SupportsSendJson, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


@dataclass(eq=False)
class Connection:
    """One authenticated transport session inside a namespace."""

    user_id: int
    websocket: SupportsSendJson
    username: str = ""
    avatar: str | None = None
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    joined_channels: set[int] = field(default_factory=set)

    @property
    def identity(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username, "avatar": self.avatar}

    async def send(self, payload: dict[str, Any]) -> bool:
        return await safe_send_json(self.websocket, payload)


class ConnectionRegistry:
    """Map of user id to the user's live connection for one namespace.

    A user holds at most one mapping: registering again replaces the previous
    connection without closing it.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._connections: Dict[int, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def register(self, connection: Connection) -> Connection | None:
        previous = self._connections.get(connection.user_id)
        self._connections[connection.user_id] = connection
        if previous is not None and previous is not connection:
            logger.debug(
                "User %s reconnected to %s; replacing connection %s",
                connection.user_id,
                self.namespace,
                previous.connection_id,
            )
        self._update_gauge()
        return previous

    def unregister(self, user_id: int, connection: Connection | None = None) -> bool:
        """Drop the mapping for ``user_id``.

        With ``connection`` given, the mapping is removed only while it still
        points at that connection, so a stale session cannot evict a newer one.
        """

        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False
        del self._connections[user_id]
        self._update_gauge()
        return True

    def lookup(self, user_id: int) -> Connection | None:
        return self._connections.get(user_id)

    def user_ids(self) -> list[int]:
        return list(self._connections)

    def clear(self) -> None:
        self._connections.clear()
        self._update_gauge()

    def _update_gauge(self) -> None:
        realtime_connections.labels(self.namespace).set(len(self._connections))
