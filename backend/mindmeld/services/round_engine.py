"""Round Engine: per-round lifecycle: question, answers, guesses, progress, readiness.

Invariants:
    - At most one round per (room, round_number): the unique index arbitrates,
      the loser of a concurrent create rolls back and adopts the winner's row
    - Answers/guesses are accepted only in `answering`; a submitted entry is
      immutable (an identical re-submit is a no-op)
    - answering -> rating happens exactly once: conditional UPDATE checked by rowcount
    - Room.current_round advances exactly once per completed round, and only when
      every active member is ready and rounds remain
    - A ready flag is only written while its round is the room's current round,
      so a late ready never leaks into the next round
    - Losing a member re-runs the progress and advance checks for the current round
    - Every successful mutation commits, then broadcasts

Design Decisions:
    - Question generation runs under asyncio.wait_for; the oracle itself has no
      deadline of its own (see services/ai_oracle.py)
    - check_progress runs the rating orchestrator inline: the request that
      completes the round returns once the round is completed
    - Guess targets are derived (core/guess_target.py), never stored
"""

import asyncio
import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.config import Settings, get_settings
from mindmeld.core.domain_types import RoomStatus, RoundPhase
from mindmeld.core.errors import (
    AlreadySubmittedError, ErrorContext, ExternalServiceError, InvalidInputError,
    PlayerNotInRoomError, QuestionGenerationError, RoomNotFoundError,
    RoundNotFoundError,
)
from mindmeld.core.guess_target import assign_guess_target
from mindmeld.core.repository_protocols import QuestionGenerator
from mindmeld.core.round_rules import (
    ReadinessTally, ensure_phase, progress_reached, should_advance_round,
    tally_readiness, validate_entry_text,
)
from mindmeld.models import Answer, GameRound, Guess, Player, Room
from mindmeld.schemas.game import (
    GameResult, GameSnapshot, ProgressResponse, ReadyStatus,
)
from mindmeld.services.rating_orchestrator import RatingOrchestrator
from mindmeld.services.snapshots import (
    SnapshotBroadcaster, active_players, build_game_snapshot, player_out,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RoundEngine:
    def __init__(
        self,
        db: AsyncSession,
        broadcaster: SnapshotBroadcaster,
        question_generator: QuestionGenerator,
        orchestrator: RatingOrchestrator,
        settings: Settings | None = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.question_generator = question_generator
        self.orchestrator = orchestrator
        self.settings = settings or get_settings()

    # -- Round creation --------------------------------------------------------

    async def get_or_create_current_round(self, room_id: UUID) -> GameSnapshot | None:
        """Current round of a playing room, creating it (and its question) on first ask.

        Returns None when the room is not playing.
        """
        room = await self.db.get(Room, room_id, populate_existing=True)
        if room is None:
            raise RoomNotFoundError(str(room_id))
        if room.status != RoomStatus.PLAYING.value or room.current_round < 1:
            return None

        game_round = await self._round_by_number(room_id, room.current_round)
        if game_round is None:
            game_round = await self._create_round(
                room_id, room.current_round, room.initial_prompt,
            )
        return await build_game_snapshot(self.db, game_round.id)

    async def _create_round(
        self, room_id: UUID, round_number: int, theme: str,
    ) -> GameRound:
        result = await self.db.execute(
            select(GameRound.question)
            .where(GameRound.room_id == room_id)
            .order_by(GameRound.round_number)
        )
        history = list(result.scalars().all())
        ctx = ErrorContext(room_id=str(room_id))
        question = await self._generate_question(theme, history, ctx)

        game_round = GameRound(
            room_id=room_id, round_number=round_number,
            question=question, phase=RoundPhase.ANSWERING.value,
        )
        self.db.add(game_round)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            winner = await self._round_by_number(room_id, round_number)
            if winner is None:
                raise
            logger.info(
                "Lost round-creation race, adopting existing round",
                extra={"room_id": room_id, "round_number": round_number},
            )
            return winner

        logger.info(
            "Round created",
            extra={"room_id": room_id, "round_id": game_round.id, "round_number": round_number},
        )
        await self.broadcaster.game(self.db, game_round.id)
        return game_round

    async def _generate_question(
        self, theme: str, history: list[str], ctx: ErrorContext,
    ) -> str:
        async def collect() -> str:
            parts = []
            async for fragment in self.question_generator.generate(theme, history):
                parts.append(fragment)
            return "".join(parts).strip()

        try:
            question = await asyncio.wait_for(
                collect(), timeout=self.settings.question_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise QuestionGenerationError("timed out", ctx)
        except ExternalServiceError as e:
            raise QuestionGenerationError(e.message, ctx) from e
        except Exception as e:
            logger.error("Question generator crashed", exc_info=True)
            raise QuestionGenerationError(str(e) or type(e).__name__, ctx) from e

        if not question:
            raise QuestionGenerationError("empty question", ctx)
        return question

    # -- Entries ---------------------------------------------------------------

    async def save_answer(
        self, round_id: UUID, player_id: UUID, content: str, submit: bool,
    ) -> Answer:
        game_round = await self._get_round(round_id)
        ctx = ErrorContext(round_id=str(round_id), player_id=str(player_id))
        ensure_phase(game_round.phase, RoundPhase.ANSWERING, "save answer", ctx)
        await self._require_member(game_round.room_id, player_id)
        text = validate_entry_text(content, submit)

        answer = await self._upsert_entry(
            Answer, {"round_id": round_id, "player_id": player_id},
            text, submit, "answer",
        )
        await self.broadcaster.game(self.db, round_id)
        return answer

    async def save_guess(
        self,
        round_id: UUID,
        guesser_id: UUID,
        target_id: UUID,
        content: str,
        submit: bool,
    ) -> Guess:
        game_round = await self._get_round(round_id)
        ctx = ErrorContext(round_id=str(round_id), player_id=str(guesser_id))
        ensure_phase(game_round.phase, RoundPhase.ANSWERING, "save guess", ctx)
        if guesser_id == target_id:
            raise InvalidInputError("You cannot guess your own answer", "target_id", ctx)
        await self._require_member(game_round.room_id, guesser_id)
        await self._require_member(game_round.room_id, target_id)
        text = validate_entry_text(content, submit)

        guess = await self._upsert_entry(
            Guess,
            {"round_id": round_id, "guesser_id": guesser_id, "target_id": target_id},
            text, submit, "guess",
        )
        await self.broadcaster.game(self.db, round_id)
        return guess

    async def _upsert_entry(self, model, keys: dict, text: str, submit: bool, kind: str):
        """Insert or update the single draft/submission row identified by `keys`."""
        entry = await self._find_entry(model, keys)
        if entry is None:
            now = _now()
            entry = model(
                **keys, content=text, is_submitted=submit,
                submitted_at=now if submit else None,
            )
            self.db.add(entry)
            try:
                await self.db.commit()
                return entry
            except IntegrityError:
                await self.db.rollback()
                entry = await self._find_entry(model, keys)
                if entry is None:
                    raise

        if entry.is_submitted:
            if submit and entry.content == text:
                return entry
            raise AlreadySubmittedError(
                kind, ErrorContext(round_id=str(keys["round_id"])),
            )
        entry.content = text
        if submit:
            entry.is_submitted = True
            entry.submitted_at = _now()
        await self.db.commit()
        return entry

    async def _find_entry(self, model, keys: dict):
        result = await self.db.execute(
            select(model).filter_by(**keys).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # -- Targets and progress --------------------------------------------------

    async def get_guess_target(self, round_id: UUID, player_id: UUID) -> Player | None:
        game_round = await self._get_round(round_id)
        members = await active_players(self.db, game_round.room_id)
        target_id = assign_guess_target(
            [p.id for p in members], game_round.round_number, player_id,
        )
        if target_id is None:
            return None
        return next(p for p in members if p.id == target_id)

    async def check_progress(self, round_id: UUID) -> ProgressResponse:
        """Move answering -> rating once everyone has answered and guessed, then rate."""
        game_round = await self._get_round(round_id)
        if game_round.phase != RoundPhase.ANSWERING.value:
            return ProgressResponse(transitioned=False, phase=game_round.phase)

        members = await active_players(self.db, game_round.room_id)
        member_ids = [p.id for p in members]
        answers = await self.db.scalar(
            select(func.count(Answer.id)).where(
                Answer.round_id == round_id,
                Answer.is_submitted.is_(True),
                Answer.player_id.in_(member_ids),
            )
        )
        guessers = await self.db.scalar(
            select(func.count(distinct(Guess.guesser_id))).where(
                Guess.round_id == round_id,
                Guess.is_submitted.is_(True),
                Guess.guesser_id.in_(member_ids),
            )
        )
        if not progress_reached(
            len(member_ids), answers or 0, guessers or 0, self.settings.min_players,
        ):
            return ProgressResponse(transitioned=False, phase=RoundPhase.ANSWERING.value)

        result = await self.db.execute(
            update(GameRound)
            .where(
                GameRound.id == round_id,
                GameRound.phase == RoundPhase.ANSWERING.value,
            )
            .values(phase=RoundPhase.RATING.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            current = await self._get_round(round_id)
            return ProgressResponse(transitioned=False, phase=current.phase)
        await self.db.commit()

        logger.info(
            "All entries in, rating round",
            extra={"round_id": round_id, "phase": RoundPhase.RATING.value},
        )
        await self.broadcaster.game(self.db, round_id)
        await self.orchestrator.rate_round(round_id)
        current = await self._get_round(round_id)
        return ProgressResponse(transitioned=True, phase=current.phase)

    # -- Readiness -------------------------------------------------------------

    async def mark_ready_for_next_round(
        self, round_id: UUID, player_id: UUID,
    ) -> ReadyStatus:
        game_round = await self._get_round(round_id)
        ctx = ErrorContext(round_id=str(round_id), player_id=str(player_id))
        ensure_phase(game_round.phase, RoundPhase.COMPLETED, "mark ready", ctx)
        room_id, round_number = game_round.room_id, game_round.round_number
        await self._require_member(room_id, player_id)

        # Readiness only counts while this round is still the room's current one
        still_current = (
            select(Room.id)
            .where(Room.id == room_id, Room.current_round == round_number)
            .exists()
        )
        result = await self.db.execute(
            update(Player)
            .where(Player.id == player_id, still_current)
            .values(is_ready_for_next_round=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount != 1:
            logger.info(
                "Ready for a round the room already left, ignored",
                extra={"round_id": round_id, "player_id": player_id},
            )
            tally = await self._tally(room_id)
            advanced = False
        else:
            tally, advanced = await self._advance_if_ready(room_id, round_number)
            await self.broadcaster.room(self.db, room_id)
        return ReadyStatus(
            ready_count=tally.ready_count,
            total_count=tally.total_count,
            not_ready_names=tally.not_ready_names,
            advanced=advanced,
        )

    async def reconcile_membership(self, room_id: UUID) -> None:
        """Re-run the progress and advance checks after a member left or was kicked.

        The remaining members may already satisfy a condition that the
        departed one was holding up.
        """
        room = await self.db.get(Room, room_id, populate_existing=True)
        if room is None or room.status != RoomStatus.PLAYING.value:
            return
        game_round = await self._round_by_number(room_id, room.current_round)
        if game_round is None:
            return
        round_id, round_number = game_round.id, game_round.round_number

        if game_round.phase == RoundPhase.ANSWERING.value:
            await self.check_progress(round_id)
        elif game_round.phase == RoundPhase.COMPLETED.value:
            _, advanced = await self._advance_if_ready(room_id, round_number)
            if advanced:
                await self.broadcaster.room(self.db, room_id)

    async def _advance_if_ready(
        self, room_id: UUID, round_number: int,
    ) -> tuple[ReadinessTally, bool]:
        tally = await self._tally(room_id)
        room = await self.db.get(Room, room_id, populate_existing=True)
        if room is None:
            raise RoomNotFoundError(str(room_id))
        if room.current_round != round_number or not should_advance_round(
            tally, room.current_round, room.total_rounds,
        ):
            return tally, False
        return tally, await self._advance_room(room_id, round_number)

    async def _advance_room(self, room_id: UUID, round_number: int) -> bool:
        result = await self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.current_round == round_number)
            .values(current_round=round_number + 1, updated_at=_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            return False
        await self.db.execute(
            update(Player)
            .where(Player.room_id == room_id)
            .values(is_ready_for_next_round=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(
            "Everyone ready, advancing",
            extra={"room_id": room_id, "round_number": round_number + 1},
        )
        return True

    async def get_round_ready_status(self, room_id: UUID) -> ReadyStatus:
        room = await self.db.get(Room, room_id)
        if room is None:
            raise RoomNotFoundError(str(room_id))
        tally = await self._tally(room_id)
        return ReadyStatus(
            ready_count=tally.ready_count,
            total_count=tally.total_count,
            not_ready_names=tally.not_ready_names,
        )

    async def _tally(self, room_id: UUID) -> ReadinessTally:
        members = await active_players(self.db, room_id)
        return tally_readiness((p.name, p.is_ready_for_next_round) for p in members)

    # -- Results ---------------------------------------------------------------

    async def get_results(self, round_id: UUID) -> list[GameResult]:
        """One row per answer: who wrote it, the guess aimed at it, and its rating."""
        game_round = await self._get_round(round_id)
        players = await self.db.execute(
            select(Player)
            .where(Player.room_id == game_round.room_id)
            .execution_options(populate_existing=True)
        )
        by_id = {p.id: p for p in players.scalars().all()}
        answers = await self.db.execute(
            select(Answer)
            .where(Answer.round_id == round_id, Answer.is_submitted.is_(True))
            .order_by(Answer.submitted_at, Answer.id)
        )
        guesses = await self.db.execute(
            select(Guess)
            .where(Guess.round_id == round_id, Guess.is_submitted.is_(True))
            .order_by(Guess.submitted_at, Guess.id)
        )
        guess_for: dict[UUID, Guess] = {}
        for guess in guesses.scalars().all():
            guess_for.setdefault(guess.target_id, guess)

        fresh = self.settings.presence_fresh_seconds
        results = []
        for answer in answers.scalars().all():
            author = by_id.get(answer.player_id)
            guess = guess_for.get(answer.player_id)
            guesser = by_id.get(guess.guesser_id) if guess else None
            results.append(GameResult(
                player=player_out(author, fresh) if author else None,
                answer=answer.content,
                guess=guess.content if guess else None,
                guesser=player_out(guesser, fresh) if guesser else None,
                rating=guess.rating if guess else None,
                is_rated=guess is not None and guess.rating is not None,
            ))
        return results

    # -- Helpers ---------------------------------------------------------------

    async def _get_round(self, round_id: UUID) -> GameRound:
        game_round = await self.db.get(GameRound, round_id, populate_existing=True)
        if game_round is None:
            raise RoundNotFoundError(str(round_id))
        return game_round

    async def _round_by_number(self, room_id: UUID, round_number: int) -> GameRound | None:
        result = await self.db.execute(
            select(GameRound)
            .where(GameRound.room_id == room_id, GameRound.round_number == round_number)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require_member(self, room_id: UUID, player_id: UUID) -> Player:
        player = await self.db.get(Player, player_id, populate_existing=True)
        if player is None or player.room_id != room_id or player.left_at is not None:
            raise PlayerNotInRoomError(
                str(player_id), ErrorContext(room_id=str(room_id)),
            )
        return player
