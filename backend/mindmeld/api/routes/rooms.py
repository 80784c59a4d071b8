"""Room Routes: create, join, look up, configure and start rooms.

Invariants:
    - Request bodies validated by pydantic before reaching the registry
    - The caller's session handle comes from the body (create/join) or the
      X-Session-Id header (reads)
    - Every mutation's broadcast happens inside the registry, not here
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, status

from mindmeld.api.dependencies import get_registry
from mindmeld.schemas.room import (
    JoinResponse, PlayerAction, RoomConfigUpdate, RoomCreate, RoomJoin,
    RoomOut, RoomSnapshot,
)
from mindmeld.services.room_registry import RoomRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


@router.post(
    "", response_model=JoinResponse, status_code=status.HTTP_201_CREATED,
)
async def create_room(
    body: RoomCreate, registry: RoomRegistry = Depends(get_registry),
):
    """Create a room; the caller becomes its creator."""
    room, player = await registry.create_room(
        body.player_name, body.session_id, body.country,
    )
    return JoinResponse(room=RoomOut.model_validate(room), player_id=player.id)


@router.post("/join", response_model=JoinResponse)
async def join_room(
    body: RoomJoin, registry: RoomRegistry = Depends(get_registry),
):
    room, player = await registry.join_room(
        body.room_code, body.player_name, body.session_id, body.country,
    )
    return JoinResponse(room=RoomOut.model_validate(room), player_id=player.id)


@router.get("/by-code/{code}", response_model=RoomSnapshot)
async def get_room_by_code(
    code: str, registry: RoomRegistry = Depends(get_registry),
):
    return await registry.get_room_by_code(code)


@router.get("/{room_id}", response_model=RoomSnapshot)
async def get_room(
    room_id: UUID,
    x_session_id: str | None = Header(None),
    registry: RoomRegistry = Depends(get_registry),
):
    """Room + members; player_id is set when X-Session-Id matches a member."""
    return await registry.get_room(room_id, x_session_id)


@router.put("/{room_id}/config", response_model=RoomOut)
async def update_config(
    room_id: UUID,
    body: RoomConfigUpdate,
    registry: RoomRegistry = Depends(get_registry),
):
    room = await registry.update_config(
        room_id, body.player_id, body.total_rounds,
        body.round_time_limit, body.initial_prompt,
    )
    return RoomOut.model_validate(room)


@router.post("/{room_id}/start", response_model=RoomOut)
async def start_game(
    room_id: UUID,
    body: PlayerAction,
    registry: RoomRegistry = Depends(get_registry),
):
    room = await registry.start_game(room_id, body.player_id)
    return RoomOut.model_validate(room)
