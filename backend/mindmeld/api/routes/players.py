"""Player Routes: leave, kick and presence updates for one player seat."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from mindmeld.api.dependencies import get_registry
from mindmeld.schemas.room import KickRequest, LeaveResponse, RoomSnapshot
from mindmeld.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/players", tags=["players"])


@router.post("/{player_id}/leave", response_model=LeaveResponse)
async def leave_room(
    player_id: UUID, registry: RoomRegistry = Depends(get_registry),
):
    snapshot = await registry.leave_room(player_id)
    return LeaveResponse(room_deleted=snapshot is None, snapshot=snapshot)


@router.post("/{player_id}/kick", response_model=RoomSnapshot)
async def kick_player(
    player_id: UUID,
    body: KickRequest,
    registry: RoomRegistry = Depends(get_registry),
):
    return await registry.kick_player(player_id, body.kicker_id)


@router.post("/{player_id}/heartbeat", status_code=status.HTTP_204_NO_CONTENT)
async def heartbeat(
    player_id: UUID, registry: RoomRegistry = Depends(get_registry),
):
    await registry.heartbeat(player_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{player_id}/offline", status_code=status.HTTP_204_NO_CONTENT)
async def mark_offline(
    player_id: UUID, registry: RoomRegistry = Depends(get_registry),
):
    """Sent from the browser's unload handler (sendBeacon)."""
    await registry.mark_offline(player_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
