"""Field extraction for inbound realtime frames."""

from __future__ import annotations

from typing import Any, Mapping

from app.services.errors import ValidationError


def require_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"'{key}' must be an integer")
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    if not isinstance(value, int):
        raise ValidationError(f"'{key}' must be an integer")
    return value


def require_bool(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"'{key}' must be a boolean")
    return value


def optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value
