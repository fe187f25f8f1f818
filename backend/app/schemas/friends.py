"""Schemas for friend requests and relationships."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models import FriendshipStatus
from app.schemas.users import PublicUser


class FriendshipRead(BaseModel):
    """Directed friendship row as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    friend_id: int
    status: FriendshipStatus
    created_at: datetime


class FriendRequestRead(BaseModel):
    id: int
    sender: PublicUser
    created_at: datetime
