"""Realtime helpers for namespace-scoped websocket fan-out."""

from .connections import Connection, ConnectionRegistry, safe_send_json  # noqa: F401
from .dispatcher import FanoutDispatcher  # noqa: F401
from .managers import (  # noqa: F401
    RealtimeHub,
    RealtimeNamespace,
    get_channels_namespace,
    get_direct_namespace,
    get_friends_namespace,
    get_realtime_hub,
    shutdown_realtime,
    startup_realtime,
)
from .namespaces import Namespace  # noqa: F401
from .reactions import toggle_reaction  # noqa: F401
from .signals import SignalTracker  # noqa: F401

__all__ = [
    "startup_realtime",
    "shutdown_realtime",
    "get_realtime_hub",
    "get_channels_namespace",
    "get_direct_namespace",
    "get_friends_namespace",
    "Connection",
    "ConnectionRegistry",
    "FanoutDispatcher",
    "Namespace",
    "RealtimeHub",
    "RealtimeNamespace",
    "SignalTracker",
    "safe_send_json",
    "toggle_reaction",
]
