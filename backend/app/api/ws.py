"""WebSocket endpoints for the channels, direct message and friends namespaces."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from huddle.realtime import (
    Connection,
    RealtimeNamespace,
    get_channels_namespace,
    get_direct_namespace,
    get_friends_namespace,
    safe_send_json,
)

from app import database
from app.api.deps import get_user_from_token
from app.config import get_settings
from app.core.security import extract_token
from app.monitoring.metrics import realtime_errors_total, realtime_events_total
from app.services import channel_events, direct_events, presence
from app.services.errors import ServiceError

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventHandler = Callable[[RealtimeNamespace, Connection, dict[str, Any]], Awaitable[None]]
LifecycleHook = Callable[[RealtimeNamespace, Connection], Awaitable[None]]


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or {"type": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = False
            if interval <= 0:
                should_ping = True
            elif now - last_activity >= interval and (
                last_ping_sent is None or now - last_ping_sent >= interval
            ):
                should_ping = True

            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _resolve_connection(websocket: WebSocket) -> Connection | None:
    """Authenticate the handshake; the socket is closed with 1008 on failure."""

    token = extract_token(websocket.query_params, websocket.headers, websocket.cookies)
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
        return None

    try:
        with database.get_db_session() as db:
            user = get_user_from_token(token, db)
            return Connection(
                user_id=user.id,
                websocket=websocket,
                username=user.username,
                avatar=user.avatar,
            )
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return None


async def _send_error(
    realtime: RealtimeNamespace,
    connection: Connection,
    message: str,
    *,
    category: str = "invalid",
    event: str | None = None,
) -> None:
    realtime_errors_total.labels(realtime.name, category).inc()
    payload: dict[str, Any] = {"type": "error", "message": message}
    if event is not None:
        payload["event"] = event
    await safe_send_json(connection.websocket, payload)


async def _dispatch_event(
    realtime: RealtimeNamespace,
    connection: Connection,
    handlers: Mapping[str, EventHandler],
    payload: dict[str, Any],
) -> None:
    event_type = payload.get("type")
    handler = handlers.get(event_type) if isinstance(event_type, str) else None
    if handler is None:
        await _send_error(realtime, connection, "Unsupported payload type")
        return

    realtime_events_total.labels(realtime.name, "in", event_type).inc()
    try:
        await handler(realtime, connection, payload)
    except ServiceError as exc:
        if exc.category == "access_denied":
            logger.info("User %s denied %s: %s", connection.user_id, event_type, exc.message)
        await _send_error(
            realtime, connection, exc.message, category=exc.category, event=event_type
        )
    except Exception:
        logger.exception("Failed to handle %s for user %s", event_type, connection.user_id)
        await _send_error(
            realtime,
            connection,
            f"Failed to process {event_type}",
            category="internal",
            event=event_type,
        )


async def _serve_namespace(
    websocket: WebSocket,
    realtime: RealtimeNamespace,
    handlers: Mapping[str, EventHandler],
    *,
    on_connect: LifecycleHook | None = None,
    on_disconnect: LifecycleHook,
) -> None:
    connection = await _resolve_connection(websocket)
    if connection is None:
        return

    await websocket.accept()
    realtime.state.connect(connection)
    logger.info("User %s connected to %s namespace", connection.user_id, realtime.name)

    try:
        if on_connect is not None:
            try:
                await on_connect(realtime, connection)
            except ServiceError as exc:
                await _send_error(realtime, connection, exc.message, category=exc.category)
            except Exception:
                logger.exception("Failed to initialize %s for user %s", realtime.name, connection.user_id)
                await _send_error(
                    realtime, connection, "Failed to initialize workspace channels", category="internal"
                )

        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if raw_message.strip().lower() == "ping":
                await safe_send_json(websocket, {"type": "pong"})
                continue
            try:
                payload = json.loads(raw_message)
            except json.JSONDecodeError:
                await _send_error(realtime, connection, "Invalid message format")
                continue

            if not isinstance(payload, dict):
                await _send_error(realtime, connection, "Message payload must be a JSON object")
                continue
            if payload.get("type") == "ping":
                await safe_send_json(websocket, {"type": "pong"})
                continue
            if payload.get("type") == "pong":
                continue

            await _dispatch_event(realtime, connection, handlers, payload)
    except WebSocketDisconnect:
        pass
    finally:
        await on_disconnect(realtime, connection)
        logger.info("User %s disconnected from %s namespace", connection.user_id, realtime.name)


@router.websocket("/channels")
async def websocket_channels(websocket: WebSocket) -> None:
    """Workspace channels: joins, messages, reactions, typing and presence."""

    await _serve_namespace(
        websocket,
        get_channels_namespace(),
        channel_events.CHANNEL_EVENTS,
        on_connect=channel_events.on_connect,
        on_disconnect=channel_events.on_disconnect,
    )


@router.websocket("/dm")
async def websocket_direct(websocket: WebSocket) -> None:
    """One-to-one messages, typing indicators and read receipts."""

    await _serve_namespace(
        websocket,
        get_direct_namespace(),
        direct_events.DIRECT_EVENTS,
        on_disconnect=direct_events.on_disconnect,
    )


@router.websocket("/friends")
async def websocket_friends(websocket: WebSocket) -> None:
    """Online status broadcasts and friend request relays."""

    await _serve_namespace(
        websocket,
        get_friends_namespace(),
        presence.FRIEND_EVENTS,
        on_disconnect=presence.on_disconnect,
    )
