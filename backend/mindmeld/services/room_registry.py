"""Room Registry: room lifecycle, membership, configuration and presence updates.

Invariants:
    - Room codes are unique: the DB unique index is the final arbiter, a collision
      on commit counts as a failed attempt
    - At most one player per (room, session); joining again is a rejoin
    - Validation/authorization/phase errors are raised BEFORE any mutation
    - Exactly one active creator per room; on creator departure the earliest
      joined remaining member inherits (ties broken by id)
    - A room with no active members is deleted, children first
    - Every successful mutation commits, then broadcasts a fresh room snapshot

Design Decisions:
    - Leaving hard-deletes players who never touched a round and soft-retires
      (status offline + left_at) everyone else, so past answers/guesses keep
      their authors
    - Kick removes unconditionally, including the kicked player's entries
    - After a leave or kick the round engine re-checks the current round, so
      remaining members are never left waiting on someone who is gone
    - getRoom with a session touches presence but does not broadcast: it is a
      read that observers do not need to hear about
"""

import logging
import random
import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.config import Settings, get_settings
from mindmeld.core.domain_types import PlayerStatus, RoomStatus
from mindmeld.core.errors import (
    ErrorContext, ForbiddenError, InvalidPhaseError, NotEnoughPlayersError,
    PlayerNotFoundError, PlayerNotInRoomError, RoomCreationFailedError,
    RoomNotFoundError, RoomNotJoinableError,
)
from mindmeld.core.room_code import normalize_room_code, random_room_code
from mindmeld.core.round_rules import (
    pick_next_creator, validate_player_name, validate_room_config,
)
from mindmeld.models import Answer, GameRound, Guess, Player, Room
from mindmeld.schemas.room import RoomSnapshot
from mindmeld.services.round_engine import RoundEngine
from mindmeld.services.snapshots import (
    SnapshotBroadcaster, active_players, build_room_snapshot,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RoomRegistry:
    """Room and player records: create/join/leave/kick, config, heartbeats."""

    def __init__(
        self,
        db: AsyncSession,
        broadcaster: SnapshotBroadcaster,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        rounds: RoundEngine | None = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.rounds = rounds

    # -- Create / join ---------------------------------------------------------

    async def create_room(
        self, player_name: str, session_id: str, country: str | None = None,
    ) -> tuple[Room, Player]:
        """Create a lobby room with the caller as creator."""
        name = validate_player_name(player_name)
        attempts = self.settings.room_code_attempts

        for attempt in range(1, attempts + 1):
            code = random_room_code(self.rng)
            if await self._code_taken(code):
                continue

            room_id, player_id = uuid.uuid4(), uuid.uuid4()
            room = Room(
                id=room_id, code=code, creator_id=player_id,
                status=RoomStatus.LOBBY.value,
            )
            player = Player(
                id=player_id, room_id=room_id, name=name, country=country,
                session_id=session_id, is_creator=True,
            )
            try:
                self.db.add(room)
                await self.db.flush()
                self.db.add(player)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    "Room code collision on commit, retrying",
                    extra={"attempt": attempt},
                )
                continue

            logger.info("Room created", extra={"room_id": room_id, "player_id": player_id})
            await self.broadcaster.room(self.db, room_id)
            return room, player

        raise RoomCreationFailedError(attempts)

    async def join_room(
        self, code: str, player_name: str, session_id: str, country: str | None = None,
    ) -> tuple[Room, Player]:
        """Join a lobby by code; the same session rejoins its existing seat."""
        name = validate_player_name(player_name)
        room = await self._room_by_code(code)
        if room.status != RoomStatus.LOBBY.value:
            raise RoomNotJoinableError(room.status, ErrorContext(room_id=str(room.id)))
        room_id = room.id

        player = await self._player_by_session(room_id, session_id)
        if player is None:
            player = Player(
                room_id=room_id, name=name, country=country,
                session_id=session_id, is_creator=False,
            )
            self.db.add(player)
            try:
                await self.db.commit()
            except IntegrityError:
                # same browser raced itself; fall through to the rejoin path
                await self.db.rollback()
                player = await self._player_by_session(room_id, session_id)
                if player is None:
                    raise
            else:
                logger.info("Player joined", extra={"room_id": room_id, "player_id": player.id})
                await self.broadcaster.room(self.db, room_id)
                return room, player

        player.name = name
        if country is not None:
            player.country = country
        player.status = PlayerStatus.ONLINE.value
        player.last_seen = _now()
        player.left_at = None
        await self.db.commit()
        logger.info("Player rejoined", extra={"room_id": room_id, "player_id": player.id})
        await self.broadcaster.room(self.db, room_id)
        return room, player

    # -- Reads -----------------------------------------------------------------

    async def get_room(
        self, room_id: UUID, session_id: str | None = None,
    ) -> RoomSnapshot:
        """Room + members; resolves and touches the caller's seat when a session is given."""
        await self._get_room(room_id)
        me: UUID | None = None
        if session_id:
            player = await self._player_by_session(room_id, session_id)
            if player is not None and player.left_at is None:
                player.last_seen = _now()
                player.status = PlayerStatus.ONLINE.value
                me = player.id
                await self.db.commit()

        snapshot = await build_room_snapshot(
            self.db, room_id, self.settings.presence_fresh_seconds,
        )
        if snapshot is None:
            raise RoomNotFoundError(str(room_id))
        snapshot.player_id = me
        return snapshot

    async def get_room_by_code(self, code: str) -> RoomSnapshot:
        room = await self._room_by_code(code)
        snapshot = await build_room_snapshot(
            self.db, room.id, self.settings.presence_fresh_seconds,
        )
        if snapshot is None:
            raise RoomNotFoundError(code)
        return snapshot

    # -- Creator-only ----------------------------------------------------------

    async def update_config(
        self,
        room_id: UUID,
        player_id: UUID,
        total_rounds: int,
        round_time_limit: int,
        initial_prompt: str,
    ) -> Room:
        room = await self._get_room(room_id)
        ctx = ErrorContext(room_id=str(room_id), player_id=str(player_id))
        if room.creator_id != player_id:
            raise ForbiddenError("Only the room creator can update configuration", ctx)
        if room.status != RoomStatus.LOBBY.value:
            raise InvalidPhaseError(
                "update configuration", RoomStatus.LOBBY.value, room.status, ctx,
            )
        prompt = validate_room_config(total_rounds, round_time_limit, initial_prompt)

        room.total_rounds = total_rounds
        room.round_time_limit = round_time_limit
        room.initial_prompt = prompt
        room.updated_at = _now()
        await self.db.commit()
        await self.broadcaster.room(self.db, room_id)
        return room

    async def start_game(self, room_id: UUID, player_id: UUID) -> Room:
        """lobby -> playing with current_round = 1. Needs the minimum player count."""
        room = await self._get_room(room_id)
        ctx = ErrorContext(room_id=str(room_id), player_id=str(player_id))
        if room.creator_id != player_id:
            raise ForbiddenError("Only the room creator can start the game", ctx)
        if room.status != RoomStatus.LOBBY.value:
            raise InvalidPhaseError("start game", RoomStatus.LOBBY.value, room.status, ctx)
        members = await active_players(self.db, room_id)
        if len(members) < self.settings.min_players:
            raise NotEnoughPlayersError(len(members), self.settings.min_players, ctx)

        result = await self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.status == RoomStatus.LOBBY.value)
            .values(
                status=RoomStatus.PLAYING.value, current_round=1, updated_at=_now(),
            )
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise InvalidPhaseError("start game", RoomStatus.LOBBY.value, "playing", ctx)
        await self.db.execute(
            update(Player)
            .where(Player.room_id == room_id)
            .values(is_ready_for_next_round=False)
        )
        await self.db.commit()
        logger.info("Game started", extra={"room_id": room_id, "round_number": 1})
        await self.broadcaster.room(self.db, room_id)
        return await self._get_room(room_id)

    async def kick_player(self, target_id: UUID, kicker_id: UUID) -> RoomSnapshot:
        target = await self._get_player(target_id)
        kicker = await self._get_player(kicker_id)
        room = await self._get_room(target.room_id)
        ctx = ErrorContext(room_id=str(room.id), player_id=str(kicker_id))
        if kicker_id == target_id:
            raise ForbiddenError("You cannot kick yourself", ctx)
        if kicker.room_id != room.id or room.creator_id != kicker_id:
            raise ForbiddenError("Only the room creator can kick players", ctx)

        room_id = room.id
        await self._delete_player_entries(target_id)
        await self.db.execute(delete(Player).where(Player.id == target_id))
        await self.db.commit()
        logger.info("Player kicked", extra={"room_id": room_id, "player_id": target_id})
        await self._reconcile_rounds(room_id)
        return await self.broadcaster.room(self.db, room_id)

    # -- Leave -----------------------------------------------------------------

    async def leave_room(self, player_id: UUID) -> RoomSnapshot | None:
        """Returns the resulting snapshot, or None if the room was deleted."""
        player = await self._get_player(player_id)
        if player.left_at is not None:
            return await build_room_snapshot(self.db, player.room_id)
        room_id, was_creator = player.room_id, player.is_creator

        if await self._has_participated(player_id):
            player.status = PlayerStatus.OFFLINE.value
            player.left_at = _now()
            player.is_creator = False
            player.is_ready_for_next_round = False
        else:
            await self.db.delete(player)
        await self.db.flush()

        remaining = await active_players(self.db, room_id)
        if not remaining:
            round_ids = await self._delete_room(room_id)
            await self.db.commit()
            self.broadcaster.room_deleted(room_id, round_ids)
            return None

        if was_creator:
            heir_id = pick_next_creator((p.id, p.joined_at) for p in remaining)
            for p in remaining:
                p.is_creator = p.id == heir_id
            await self.db.execute(
                update(Room).where(Room.id == room_id)
                .values(creator_id=heir_id, updated_at=_now())
            )
            logger.info(
                "Creator transferred", extra={"room_id": room_id, "player_id": heir_id},
            )

        await self.db.commit()
        await self._reconcile_rounds(room_id)
        return await self.broadcaster.room(self.db, room_id)

    # -- Presence --------------------------------------------------------------

    async def heartbeat(self, player_id: UUID) -> None:
        player = await self._get_player(player_id)
        if player.left_at is not None:
            raise PlayerNotInRoomError(str(player_id))
        room_id = player.room_id
        player.last_seen = _now()
        player.status = PlayerStatus.ONLINE.value
        await self.db.commit()
        await self.broadcaster.room(self.db, room_id)

    async def mark_offline(self, player_id: UUID) -> None:
        player = await self._get_player(player_id)
        room_id = player.room_id
        player.status = PlayerStatus.OFFLINE.value
        await self.db.commit()
        await self.broadcaster.room(self.db, room_id)

    # -- Helpers ---------------------------------------------------------------

    async def _reconcile_rounds(self, room_id: UUID) -> None:
        if self.rounds is not None:
            await self.rounds.reconcile_membership(room_id)

    async def _get_room(self, room_id: UUID) -> Room:
        room = await self.db.get(Room, room_id, populate_existing=True)
        if room is None:
            raise RoomNotFoundError(str(room_id))
        return room

    async def _get_player(self, player_id: UUID) -> Player:
        player = await self.db.get(Player, player_id, populate_existing=True)
        if player is None:
            raise PlayerNotFoundError(str(player_id))
        return player

    async def _room_by_code(self, code: str) -> Room:
        normalized = normalize_room_code(code)
        if normalized is None:
            raise RoomNotFoundError(code)
        result = await self.db.execute(select(Room).where(Room.code == normalized))
        room = result.scalar_one_or_none()
        if room is None:
            raise RoomNotFoundError(normalized)
        return room

    async def _code_taken(self, code: str) -> bool:
        result = await self.db.execute(select(Room.id).where(Room.code == code))
        return result.first() is not None

    async def _player_by_session(self, room_id: UUID, session_id: str) -> Player | None:
        result = await self.db.execute(
            select(Player)
            .where(Player.room_id == room_id, Player.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _has_participated(self, player_id: UUID) -> bool:
        answers = await self.db.scalar(
            select(func.count(Answer.id)).where(Answer.player_id == player_id)
        )
        guesses = await self.db.scalar(
            select(func.count(Guess.id)).where(
                or_(Guess.guesser_id == player_id, Guess.target_id == player_id),
            )
        )
        return bool(answers or guesses)

    async def _delete_player_entries(self, player_id: UUID) -> None:
        await self.db.execute(delete(Answer).where(Answer.player_id == player_id))
        await self.db.execute(
            delete(Guess).where(
                or_(Guess.guesser_id == player_id, Guess.target_id == player_id),
            )
        )

    async def _delete_room(self, room_id: UUID) -> list[UUID]:
        """Children first so SQLite (no FK enforcement) and PostgreSQL agree."""
        result = await self.db.execute(
            select(GameRound.id).where(GameRound.room_id == room_id)
        )
        round_ids = list(result.scalars().all())
        if round_ids:
            await self.db.execute(delete(Answer).where(Answer.round_id.in_(round_ids)))
            await self.db.execute(delete(Guess).where(Guess.round_id.in_(round_ids)))
            await self.db.execute(delete(GameRound).where(GameRound.id.in_(round_ids)))
        await self.db.execute(delete(Player).where(Player.room_id == room_id))
        await self.db.execute(delete(Room).where(Room.id == room_id))
        logger.info("Room emptied and deleted", extra={"room_id": room_id})
        return round_ids
