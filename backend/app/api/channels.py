"""Channel-specific API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from huddle.realtime import get_channels_namespace

from app.api.deps import get_current_user, require_channel_access
from app.database import get_db
from app.models import Channel, User
from app.schemas import ChannelCreate, ChannelMemberAdd, ChannelRead
from app.services import membership
from app.services.errors import AccessDeniedError, ServiceError
from app.services.membership import can_access
from app.services.stores import ChannelStore, WorkspaceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


def _get_channel(channel_id: int, db: Session) -> Channel:
    channel = ChannelStore(db).get(channel_id)
    if channel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return channel


def _ensure_workspace_member(workspace_id: int, user_id: int, db: Session) -> None:
    workspaces = WorkspaceStore(db)
    if workspaces.get(workspace_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found")
    if not workspaces.is_member(workspace_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this workspace"
        )


@router.post("/{workspace_id}", response_model=ChannelRead, status_code=status.HTTP_201_CREATED)
def create_channel(
    workspace_id: int,
    payload: ChannelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChannelRead:
    """Create a channel; private channels start with the given allow-list."""

    _ensure_workspace_member(workspace_id, current_user.id, db)
    try:
        channel = ChannelStore(db).create(
            workspace_id=workspace_id,
            channel_name=payload.channel_name,
            created_by=current_user.id,
            is_private=payload.is_private,
            allowed_user_ids=payload.allowed_users if payload.is_private else (),
        )
    except ServiceError as exc:
        raise exc.to_http() from exc
    logger.info("Channel %s created in workspace %s by %s", channel.id, workspace_id, current_user.id)
    return ChannelRead.model_validate(channel)


@router.get("/workspace/{workspace_id}", response_model=list[ChannelRead])
def list_workspace_channels(
    workspace_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ChannelRead]:
    _ensure_workspace_member(workspace_id, current_user.id, db)
    return [
        ChannelRead.model_validate(channel)
        for channel in ChannelStore(db).for_workspace(workspace_id)
        if can_access(channel, current_user.id)
    ]


@router.get("/{channel_id}", response_model=ChannelRead)
def get_channel(channel: Channel = Depends(require_channel_access)) -> ChannelRead:
    return ChannelRead.model_validate(channel)


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_channel(
    channel_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    channel = _get_channel(channel_id, db)
    if channel.created_by != current_user.id:
        raise AccessDeniedError("Only the channel owner can delete the channel").to_http()
    try:
        ChannelStore(db).delete(channel)
    except ServiceError as exc:
        raise exc.to_http() from exc


@router.post("/{channel_id}/members", response_model=ChannelRead)
async def add_channel_member(
    channel_id: int,
    payload: ChannelMemberAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChannelRead:
    """Allow a user into a private channel (owner only)."""

    channel = _get_channel(channel_id, db)
    try:
        channel = membership.add_member(db, channel, actor_id=current_user.id, user_id=payload.user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc
    await get_channels_namespace().dispatcher.to_user(
        payload.user_id,
        {"type": "addedToChannel", "channel_id": channel.id, "workspace_id": channel.workspace_id},
    )
    return ChannelRead.model_validate(channel)


@router.delete("/{channel_id}/members/{user_id}", response_model=ChannelRead)
async def remove_channel_member(
    channel_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChannelRead:
    channel = _get_channel(channel_id, db)
    try:
        channel = membership.remove_member(db, channel, actor_id=current_user.id, user_id=user_id)
    except ServiceError as exc:
        raise exc.to_http() from exc

    realtime = get_channels_namespace()
    realtime.state.untrack(channel.id, user_id)
    connection = realtime.registry.lookup(user_id)
    if connection is not None:
        realtime.state.leave_room(channel.id, connection)
    await realtime.dispatcher.to_user(
        user_id, {"type": "removedFromChannel", "channel_id": channel.id}
    )
    return ChannelRead.model_validate(channel)
