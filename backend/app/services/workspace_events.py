"""Bulk subscription of a channels-namespace connection to a workspace."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from huddle.realtime import Connection, RealtimeNamespace

from app.models import Channel
from app.schemas import UserChannels, WorkspaceJoinResult
from app.services.errors import NotFoundError
from app.services.membership import can_access
from app.services.stores import ChannelStore, WorkspaceStore

logger = logging.getLogger(__name__)


def partition_workspace_channels(
    db: Session, workspace_id: int, user_id: int
) -> tuple[list[Channel], list[Channel]]:
    """Split the workspace channels into public ones and private ones the user may access."""

    public: list[Channel] = []
    private: list[Channel] = []
    for channel in ChannelStore(db).for_workspace(workspace_id):
        if not channel.is_private:
            public.append(channel)
        elif can_access(channel, user_id):
            private.append(channel)
    return public, private


def subscribe(realtime: RealtimeNamespace, connection: Connection, channel: Channel) -> bool:
    """Track the user in ``channel``; public channels also join the broadcast room."""

    if not channel.is_private:
        realtime.state.join_room(channel.id, connection)
    return realtime.state.track(channel.id, connection.user_id)


def join_workspace_channels(
    realtime: RealtimeNamespace, connection: Connection, db: Session, workspace_id: int
) -> WorkspaceJoinResult:
    if WorkspaceStore(db).get(workspace_id) is None:
        raise NotFoundError("Workspace not found")

    public, private = partition_workspace_channels(db, workspace_id, connection.user_id)
    joined = public + private
    if not joined:
        logger.debug("Workspace %s has no channels for user %s", workspace_id, connection.user_id)
        return WorkspaceJoinResult(workspace_id=workspace_id, channels=[], status="empty")

    for channel in joined:
        subscribe(realtime, connection, channel)
    return WorkspaceJoinResult(
        workspace_id=workspace_id,
        channels=[channel.id for channel in joined],
        status="joined",
    )


def auto_join_public_channels(
    realtime: RealtimeNamespace, connection: Connection, db: Session
) -> list[UserChannels]:
    """Join every public channel of the user's workspaces and list the reachable ones."""

    summaries: list[UserChannels] = []
    for workspace_id in WorkspaceStore(db).workspace_ids_for(connection.user_id):
        public, private = partition_workspace_channels(db, workspace_id, connection.user_id)
        for channel in public:
            subscribe(realtime, connection, channel)
        summaries.append(
            UserChannels(
                workspace_id=workspace_id,
                public_channels=[channel.id for channel in public],
                private_channels=[channel.id for channel in private],
            )
        )
    return summaries
