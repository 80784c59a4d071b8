"""Event Streams: Server-Sent Events for room and round snapshots.

Invariants:
    - Subscribe BEFORE reading the initial snapshot: nothing published in
      between is lost (at worst it is delivered twice, snapshots are idempotent)
    - The first event on every stream is the current full snapshot
    - Unknown room/round -> 404 before the stream opens; the subscription is closed
    - Stream ends when the client disconnects or the room is deleted

Design Decisions:
    - StreamingResponse with an async generator yielding `data: <json>\\n\\n`
    - The request's DB session is used only for the initial snapshot; later
      snapshots are built by the mutating request and arrive via the bus
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.api.dependencies import get_game_context
from mindmeld.core.domain_types import Topic, topic_key
from mindmeld.core.errors import RoomNotFoundError, RoundNotFoundError
from mindmeld.infrastructure.database import get_db
from mindmeld.services.game_context import GameContext
from mindmeld.services.snapshots import (
    build_game_snapshot, build_room_snapshot, game_event, room_event,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["events"])

# SSE headers prevent proxy/browser buffering of streamed events.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


async def _event_generator(events: AsyncGenerator[dict, None], topic: str):
    try:
        async for event in events:
            yield sse_line(event)
    except asyncio.CancelledError:
        logger.info("Client disconnected from %s", topic)
        raise
    finally:
        await events.aclose()


@router.get("/rooms/{room_id}/events")
async def stream_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: GameContext = Depends(get_game_context),
):
    """SSE stream of room snapshots (membership, presence, config, scores)."""
    topic = topic_key(Topic.ROOM, room_id)
    sub = ctx.bus.subscribe(topic)
    try:
        snapshot = await build_room_snapshot(
            db, room_id, ctx.settings.presence_fresh_seconds,
        )
    except Exception:
        sub.close()
        raise
    if snapshot is None:
        sub.close()
        raise RoomNotFoundError(str(room_id))

    return StreamingResponse(
        _event_generator(ctx.bus.stream(sub, room_event(snapshot)), topic),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/rounds/{round_id}/events")
async def stream_round(
    round_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: GameContext = Depends(get_game_context),
):
    """SSE stream of game snapshots (phase, answers, guesses, ratings)."""
    topic = topic_key(Topic.ROUND, round_id)
    sub = ctx.bus.subscribe(topic)
    try:
        snapshot = await build_game_snapshot(db, round_id)
    except Exception:
        sub.close()
        raise
    if snapshot is None:
        sub.close()
        raise RoundNotFoundError(str(round_id))

    return StreamingResponse(
        _event_generator(ctx.bus.stream(sub, game_event(snapshot)), topic),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
