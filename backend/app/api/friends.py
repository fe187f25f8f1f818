"""Friend request, friendship and block endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.database import get_db
from app.models import User
from app.schemas import FriendRequestRead, FriendshipRead, PublicUser
from app.services.errors import ServiceError
from app.services.friendships import FriendshipService

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("/", response_model=list[PublicUser])
def list_friends(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PublicUser]:
    return FriendshipService(db).friends(current_user.id)


@router.get("/requests", response_model=list[FriendRequestRead])
def list_friend_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[FriendRequestRead]:
    """Pending requests other users sent to the caller."""

    return FriendshipService(db).requests(current_user.id)


@router.post("/{user_id}", response_model=FriendshipRead, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FriendshipRead:
    try:
        link = await FriendshipService(db).request(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc
    return FriendshipRead.model_validate(link)


@router.post("/{user_id}/accept", response_model=FriendshipRead)
async def accept_friend_request(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FriendshipRead:
    try:
        link = await FriendshipService(db).accept(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc
    return FriendshipRead.model_validate(link)


@router.post("/{user_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_friend_request(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    try:
        await FriendshipService(db).reject(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    try:
        await FriendshipService(db).remove(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/{user_id}/block", response_model=FriendshipRead)
async def block_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FriendshipRead:
    """Block a user; any friendship or pending request between the two is dropped."""

    try:
        link = await FriendshipService(db).block(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc
    return FriendshipRead.model_validate(link)


@router.delete("/{user_id}/block", status_code=status.HTTP_204_NO_CONTENT)
def unblock_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    try:
        FriendshipService(db).unblock(current_user, user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc
