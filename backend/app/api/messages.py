"""Channel message endpoints backed by the shared messaging service."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.database import get_db
from app.models import User
from app.schemas import (
    MessageCreate,
    MessageHistoryPage,
    MessageRead,
    MessageUpdate,
    ReactionRequest,
    ReactionState,
)
from app.services.channel_messaging import ChannelMessagingService
from app.services.errors import ServiceError

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/{channel_id}", response_model=MessageHistoryPage)
def get_channel_messages(
    channel_id: int,
    limit: int | None = Query(default=None, ge=1),
    before: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageHistoryPage:
    """Return the latest messages of a channel, oldest first."""

    try:
        return ChannelMessagingService(db).history(
            channel_id, current_user.id, limit=limit, before_id=before
        )
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/{channel_id}", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def send_message(
    channel_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return await ChannelMessagingService(db).send(
            channel_id, current_user.id, payload.message, image=payload.image
        )
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.patch("/item/{message_id}", response_model=MessageRead)
async def edit_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return await ChannelMessagingService(db).edit(message_id, current_user.id, payload.content)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.delete("/item/{message_id}")
async def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return await ChannelMessagingService(db).delete(message_id, current_user.id)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/item/{message_id}/reactions", response_model=ReactionState)
async def react_to_message(
    message_id: int,
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """Toggle the caller's reaction; a user holds at most one reaction per message."""

    try:
        return await ChannelMessagingService(db).react(message_id, current_user.id, payload.emoji)
    except ServiceError as exc:
        raise exc.to_http() from exc
