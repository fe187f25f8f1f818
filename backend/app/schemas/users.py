"""Schemas related to user projections."""

from pydantic import BaseModel, ConfigDict


class PublicUser(BaseModel):
    """Minimal public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    avatar: str | None = None


class UserSummary(BaseModel):
    """Identity block embedded in realtime payloads."""

    user_id: int
    username: str
    avatar: str | None = None
