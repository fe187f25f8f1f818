"""Utilities for storing images attached to messages."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from uuid import uuid4

from app.config import get_settings

settings = get_settings()

_DATA_URL_RE: Final = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)
_EXTENSIONS: Final[dict[str, str]] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class ImageStorageError(Exception):
    """Raised when an image payload cannot be decoded or stored."""


@dataclass(slots=True)
class StoredFile:
    """Represents a file persisted by the storage backend."""

    content_type: str
    file_size: int
    absolute_path: Path
    relative_path: str

    @property
    def url(self) -> str:
        return f"{settings.media_base_url.rstrip('/')}/{self.relative_path}"


def _media_root() -> Path:
    root = settings.media_root
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ImageStorageError("Media root is not writable") from exc
    return root


def _decode(data: str) -> tuple[str, bytes]:
    match = _DATA_URL_RE.match(data.strip())
    if match:
        content_type, encoded = match.group("mime"), match.group("data")
    else:
        content_type, encoded = "image/png", data.strip()
    if content_type not in _EXTENSIONS:
        raise ImageStorageError(f"Unsupported image type: {content_type}")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageStorageError("Image payload is not valid base64") from exc
    if not raw:
        raise ImageStorageError("Image payload is empty")
    return content_type, raw


def store_image(scope: str, data: str) -> StoredFile:
    """Persist a base64 or data-URL encoded image under ``scope`` and return its metadata."""

    content_type, raw = _decode(data)
    if len(raw) > settings.max_upload_size:
        raise ImageStorageError("Image exceeds allowed size")

    target_dir = _media_root() / scope
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ImageStorageError("Failed to prepare image directory") from exc
    file_name = f"{uuid4().hex}{_EXTENSIONS[content_type]}"
    absolute_path = target_dir / file_name
    try:
        absolute_path.write_bytes(raw)
    except OSError as exc:
        raise ImageStorageError("Failed to write image") from exc

    return StoredFile(
        content_type=content_type,
        file_size=len(raw),
        absolute_path=absolute_path,
        relative_path=f"{scope}/{file_name}",
    )
