"""Process-wide realtime state for the channels, direct message and friends namespaces."""

from __future__ import annotations

import logging

from .dispatcher import FanoutDispatcher
from .namespaces import Namespace
from .signals import SignalTracker

logger = logging.getLogger(__name__)

CHANNELS = "channels"
DIRECT = "dm"
FRIENDS = "friends"


class RealtimeNamespace:
    """Namespace state bundled with its dispatcher and signal tracker."""

    def __init__(self, name: str) -> None:
        self.state = Namespace(name)
        self.dispatcher = FanoutDispatcher(self.state)
        self.signals = SignalTracker(self.dispatcher)

    @property
    def name(self) -> str:
        return self.state.name

    @property
    def registry(self):
        return self.state.registry


class RealtimeHub:
    """Owns one :class:`RealtimeNamespace` per logical surface."""

    def __init__(self) -> None:
        self.channels = RealtimeNamespace(CHANNELS)
        self.direct = RealtimeNamespace(DIRECT)
        self.friends = RealtimeNamespace(FRIENDS)

    def namespaces(self) -> tuple[RealtimeNamespace, ...]:
        return (self.channels, self.direct, self.friends)

    def reset(self) -> None:
        for namespace in self.namespaces():
            namespace.state.reset()


realtime_hub = RealtimeHub()


async def startup_realtime() -> None:
    logger.info(
        "Realtime namespaces ready: %s",
        ", ".join(namespace.name for namespace in realtime_hub.namespaces()),
    )


async def shutdown_realtime() -> None:
    realtime_hub.reset()


# Convenience accessors exposed to the FastAPI layer ----------------------


def get_realtime_hub() -> RealtimeHub:
    return realtime_hub


def get_channels_namespace() -> RealtimeNamespace:
    return realtime_hub.channels


def get_direct_namespace() -> RealtimeNamespace:
    return realtime_hub.direct


def get_friends_namespace() -> RealtimeNamespace:
    return realtime_hub.friends


__all__ = [
    "CHANNELS",
    "DIRECT",
    "FRIENDS",
    "RealtimeHub",
    "RealtimeNamespace",
    "startup_realtime",
    "shutdown_realtime",
    "get_realtime_hub",
    "get_channels_namespace",
    "get_direct_namespace",
    "get_friends_namespace",
]
