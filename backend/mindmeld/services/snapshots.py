"""Snapshots: full-state views of a room or round, and their broadcast onto the bus.

Invariants:
    - A snapshot is the complete current state, never a diff
    - Room snapshots list active members only (left_at IS NULL), ordered by join time
    - Presence colors are computed at snapshot time from last_seen; never stored
    - Every broadcast re-reads from the DB after commit: observers never see
      uncommitted state

Design Decisions:
    - One SnapshotBroadcaster shared by registry, engine and orchestrator so the
      event envelope ({"type", "data"}) is identical everywhere
    - Loaders are module functions so the SSE routes can build the initial
      snapshot with the same code path the broadcaster uses
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.core.domain_types import Topic, topic_key
from mindmeld.core.presence import classify_presence
from mindmeld.core.repository_protocols import SnapshotPublisher
from mindmeld.models import Answer, GameRound, Guess, Player, Room
from mindmeld.schemas.game import AnswerOut, GameSnapshot, GuessOut, RoundOut
from mindmeld.schemas.room import PlayerOut, RoomOut, RoomSnapshot

logger = logging.getLogger(__name__)

ROOM_UPDATE = "room_update"
ROOM_DELETED = "room_deleted"
GAME_UPDATE = "game_update"


# -- Loaders -------------------------------------------------------------------

async def active_players(db: AsyncSession, room_id: UUID) -> list[Player]:
    result = await db.execute(
        select(Player)
        .where(Player.room_id == room_id, Player.left_at.is_(None))
        .order_by(Player.joined_at, Player.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def player_out(
    player: Player, fresh_seconds: int = 20, now: datetime | None = None,
) -> PlayerOut:
    out = PlayerOut.model_validate(player)
    out.presence = classify_presence(
        player.status, player.last_seen,
        now or datetime.now(timezone.utc),
        timedelta(seconds=fresh_seconds),
    )
    return out


async def build_room_snapshot(
    db: AsyncSession, room_id: UUID, fresh_seconds: int = 20,
) -> RoomSnapshot | None:
    room = await db.get(Room, room_id, populate_existing=True)
    if room is None:
        return None
    now = datetime.now(timezone.utc)
    players = await active_players(db, room_id)
    return RoomSnapshot(
        room=RoomOut.model_validate(room),
        players=[player_out(p, fresh_seconds, now) for p in players],
    )


async def build_game_snapshot(
    db: AsyncSession, round_id: UUID,
) -> GameSnapshot | None:
    game_round = await db.get(GameRound, round_id, populate_existing=True)
    if game_round is None:
        return None
    answers = await db.execute(
        select(Answer)
        .where(Answer.round_id == round_id)
        .order_by(Answer.created_at, Answer.id)
        .execution_options(populate_existing=True)
    )
    guesses = await db.execute(
        select(Guess)
        .where(Guess.round_id == round_id)
        .order_by(Guess.created_at, Guess.id)
        .execution_options(populate_existing=True)
    )
    return GameSnapshot(
        round=RoundOut.model_validate(game_round),
        answers=[AnswerOut.model_validate(a) for a in answers.scalars().all()],
        guesses=[GuessOut.model_validate(g) for g in guesses.scalars().all()],
    )


# -- Event envelopes -----------------------------------------------------------

def room_event(snapshot: RoomSnapshot) -> dict:
    return {"type": ROOM_UPDATE, "data": snapshot.model_dump(mode="json")}


def game_event(snapshot: GameSnapshot) -> dict:
    return {"type": GAME_UPDATE, "data": snapshot.model_dump(mode="json")}


# -- Broadcaster ---------------------------------------------------------------

class SnapshotBroadcaster:
    """Reads committed state and publishes it to room/round topics."""

    def __init__(self, bus: SnapshotPublisher, fresh_seconds: int = 20):
        self.bus = bus
        self.fresh_seconds = fresh_seconds

    async def room(self, db: AsyncSession, room_id: UUID) -> RoomSnapshot | None:
        snapshot = await build_room_snapshot(db, room_id, self.fresh_seconds)
        if snapshot is not None:
            self.bus.publish(topic_key(Topic.ROOM, room_id), room_event(snapshot))
        return snapshot

    async def game(self, db: AsyncSession, round_id: UUID) -> GameSnapshot | None:
        snapshot = await build_game_snapshot(db, round_id)
        if snapshot is not None:
            self.bus.publish(topic_key(Topic.ROUND, round_id), game_event(snapshot))
        return snapshot

    def room_deleted(self, room_id: UUID, round_ids: list[UUID]) -> None:
        """Tell observers the room is gone and end their streams."""
        event = {"type": ROOM_DELETED, "data": {"room_id": str(room_id)}}
        close = getattr(self.bus, "close_topic", None)
        topics = [topic_key(Topic.ROOM, room_id)]
        topics += [topic_key(Topic.ROUND, rid) for rid in round_ids]
        for topic in topics:
            if close is not None:
                close(topic, event)
            else:
                self.bus.publish(topic, event)
        logger.info("Room deleted, observers closed", extra={"room_id": room_id})
