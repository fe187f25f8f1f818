"""Application service helpers."""

from .channel_messaging import ChannelMessagingService
from .direct_messaging import DirectMessagingService
from .errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from .membership import can_access, effective_members, ensure_access

__all__ = [
    "ChannelMessagingService",
    "DirectMessagingService",
    "AccessDeniedError",
    "ConflictError",
    "NotFoundError",
    "PersistenceError",
    "ServiceError",
    "ValidationError",
    "can_access",
    "effective_members",
    "ensure_access",
]
