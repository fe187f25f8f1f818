"""Schemas for workspace channels and their allow-lists."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChannelCreate(BaseModel):
    """Payload for creating a channel inside a workspace."""

    channel_name: str = Field(..., min_length=1, max_length=50)
    is_private: bool = False
    allowed_users: list[int] = Field(default_factory=list)

    @field_validator("channel_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Channel name must not be blank")
        return stripped


class ChannelRead(BaseModel):
    """Serialized channel including its effective member list."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    workspace_id: int
    channel_name: str
    created_by: int
    is_private: bool
    allowed_user_ids: list[int] = Field(default_factory=list)
    effective_member_ids: list[int] = Field(default_factory=list)
    created_at: datetime


class ChannelMemberAdd(BaseModel):
    """Payload for allowing a user into a private channel."""

    user_id: int = Field(..., gt=0)


class WorkspaceJoinResult(BaseModel):
    """Outcome of joining every reachable channel of a workspace."""

    workspace_id: int
    channels: list[int] = Field(default_factory=list)
    status: Literal["joined", "empty"]


class UserChannels(BaseModel):
    workspace_id: int
    public_channels: list[int] = Field(default_factory=list)
    private_channels: list[int] = Field(default_factory=list)
