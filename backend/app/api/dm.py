"""Direct message endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.database import get_db
from app.models import User
from app.schemas import (
    ConversationRead,
    DirectMessageCreate,
    DirectMessageRead,
    ReadReceipt,
    UnreadCount,
)
from app.services.direct_messaging import DirectMessagingService
from app.services.errors import ServiceError

router = APIRouter(prefix="/dm", tags=["direct-messages"])


@router.get("/unread", response_model=list[UnreadCount])
def get_unread_counts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[UnreadCount]:
    return DirectMessagingService(db).unread(current_user.id)


@router.get("/{friend_id}/search", response_model=list[DirectMessageRead])
def search_conversation(
    friend_id: int,
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(default=20, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[DirectMessageRead]:
    try:
        return DirectMessagingService(db).search(current_user.id, friend_id, q, limit=limit)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.get("/{friend_id}", response_model=ConversationRead)
async def get_conversation(
    friend_id: int,
    limit: int | None = Query(default=None, ge=1),
    before: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConversationRead:
    """Return the conversation with a friend and mark their messages as read."""

    try:
        return await DirectMessagingService(db).conversation(
            current_user.id, friend_id, limit=limit, before_id=before
        )
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/{receiver_id}", response_model=DirectMessageRead, status_code=status.HTTP_201_CREATED)
async def send_direct_message(
    receiver_id: int,
    payload: DirectMessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return await DirectMessagingService(db).send(
            current_user.id,
            receiver_id,
            payload.content,
            image=payload.image,
            is_code=payload.is_code,
            language=payload.language,
        )
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/{sender_id}/read", response_model=ReadReceipt)
async def mark_messages_as_read(
    sender_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReadReceipt:
    return await DirectMessagingService(db).mark_read(current_user.id, sender_id)


@router.delete("/message/{message_id}")
async def delete_direct_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    try:
        return await DirectMessagingService(db).delete(message_id, current_user.id)
    except ServiceError as exc:
        raise exc.to_http() from exc
