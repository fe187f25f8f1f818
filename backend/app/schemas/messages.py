"""Schemas related to channel messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.users import UserSummary


class ReactionEntry(BaseModel):
    """Users that reacted to a message with one emoji."""

    emoji: str
    users: list[int] = Field(default_factory=list)


class MessageRead(BaseModel):
    """Serialized representation of a channel message."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    channel_id: int
    workspace_id: int | None = None
    content: str
    image: str | None = None
    reactions: list[ReactionEntry] = Field(default_factory=list)
    sender: UserSummary
    created_at: datetime
    edited_at: datetime | None = None


class MessageHistoryPage(BaseModel):
    """Page of messages ordered from oldest to newest."""

    items: list[MessageRead]
    total: int = 0
    has_more: bool = False


class MessageCreate(BaseModel):
    """Payload for posting a message to a channel."""

    message: str = Field(default="", max_length=5000)
    image: str | None = Field(
        default=None,
        description="Optional base64 or data URL image attached to the message.",
    )


class MessageUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class ReactionRequest(BaseModel):
    """Payload for toggling a reaction."""

    emoji: str = Field(..., min_length=1, max_length=32)


class ReactionState(BaseModel):
    channel_id: int
    message_id: int
    reactions: list[ReactionEntry] = Field(default_factory=list)
