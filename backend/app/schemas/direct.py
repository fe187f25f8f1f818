"""Schemas for one-to-one conversations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DirectMessageRead(BaseModel):
    """Serialized direct message."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    content: str
    image: str | None = None
    is_code: bool = False
    language: str | None = None
    read_at: datetime | None = None
    is_deleted: bool = False
    created_at: datetime


class DirectMessageCreate(BaseModel):
    """Payload for sending a direct message."""

    content: str = Field(default="", max_length=5000)
    image: str | None = None
    is_code: bool = False
    language: str | None = Field(default=None, max_length=32)


class ConversationRead(BaseModel):
    friend_id: int
    messages: list[DirectMessageRead] = Field(default_factory=list)
    total: int = 0
    marked_read: int = 0


class ReadReceipt(BaseModel):
    sender_id: int
    receiver_id: int
    updated: int
    read_at: datetime


class UnreadCount(BaseModel):
    sender_id: int
    count: int
