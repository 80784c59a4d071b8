"""Rating Orchestrator: judges every unrated guess of a round and completes it.

Invariants:
    - Judge calls run concurrently, each bounded by judge_timeout_seconds
    - Timeout, judge failure or a missing target answer => fallback rating (5)
    - Every rating is clamped to [1, 10] before it is stored
    - Only submitted guesses are rated and credited; drafts stay unrated and
      never reach the results
    - A rating, once set, is never overwritten (conditional UPDATE ... rating IS NULL)
    - A guesser is credited exactly when its guess's rating is written
    - The round always ends in `completed`, even when rating itself blows up

Design Decisions:
    - Judge I/O happens outside the transaction; the write-back is one commit
    - Score credit is an atomic `total_score = total_score + x` UPDATE so two
      rounds finishing together cannot lose an increment
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.config import Settings, get_settings
from mindmeld.core.domain_types import RoundPhase
from mindmeld.core.errors import RoundNotFoundError
from mindmeld.core.repository_protocols import GuessJudge
from mindmeld.core.round_rules import clamp_rating
from mindmeld.models import Answer, GameRound, Guess, Player
from mindmeld.services.snapshots import SnapshotBroadcaster

logger = logging.getLogger(__name__)


class RatingOrchestrator:
    """Turns a round in `rating` into a `completed` round with scores credited."""

    def __init__(
        self,
        db: AsyncSession,
        broadcaster: SnapshotBroadcaster,
        judge: GuessJudge,
        settings: Settings | None = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.judge = judge
        self.settings = settings or get_settings()

    @property
    def fallback(self) -> float:
        return float(self.settings.fallback_rating)

    async def rate_round(self, round_id: UUID) -> dict[UUID, float]:
        """Rate, credit and complete. Returns the ratings written, keyed by guess id."""
        try:
            return await self._rate_and_complete(round_id)
        except Exception:
            logger.error(
                "Rating failed, completing round with fallback ratings",
                extra={"round_id": round_id}, exc_info=True,
            )
            await self.db.rollback()
            return await self._force_complete(round_id)

    async def _rate_and_complete(self, round_id: UUID) -> dict[UUID, float]:
        game_round = await self.db.get(GameRound, round_id, populate_existing=True)
        if game_round is None:
            raise RoundNotFoundError(str(round_id))
        if game_round.phase == RoundPhase.COMPLETED.value:
            return {}
        room_id, question = game_round.room_id, game_round.question

        answers = await self.db.execute(
            select(Answer.player_id, Answer.content).where(
                Answer.round_id == round_id, Answer.is_submitted.is_(True),
            )
        )
        answer_by_player = {pid: content for pid, content in answers.all()}

        result = await self.db.execute(
            select(Guess.id, Guess.target_id, Guess.content)
            .where(
                Guess.round_id == round_id,
                Guess.is_submitted.is_(True),
                Guess.rating.is_(None),
            )
        )
        pending = result.all()

        scores = await asyncio.gather(*(
            self._judge_one(guess_id, answer_by_player.get(target_id), content, question)
            for guess_id, target_id, content in pending
        ))
        ratings = {row[0]: score for row, score in zip(pending, scores)}

        written = await self._write_back(round_id, ratings)
        logger.info(
            "Round rated",
            extra={"round_id": round_id, "phase": RoundPhase.COMPLETED.value},
        )
        await self.broadcaster.game(self.db, round_id)
        await self.broadcaster.room(self.db, room_id)
        return written

    async def _judge_one(
        self, guess_id: UUID, answer: str | None, guess: str, question: str,
    ) -> float:
        if not answer or not answer.strip():
            logger.info("No answer to compare against, using fallback rating")
            return self.fallback
        try:
            raw = await asyncio.wait_for(
                self.judge.rate(answer, guess, question),
                timeout=self.settings.judge_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Judge timed out for guess {guess_id}, using fallback rating")
            return self.fallback
        except Exception as e:
            logger.warning(f"Judge failed for guess {guess_id}: {e}, using fallback rating")
            return self.fallback
        return clamp_rating(raw, self.fallback)

    async def _write_back(
        self, round_id: UUID, ratings: dict[UUID, float],
    ) -> dict[UUID, float]:
        """Store ratings, credit guessers and complete the round in one commit.

        Submitted guesses not in `ratings` that are still unrated get the fallback.
        """
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(Guess.id, Guess.guesser_id)
            .where(
                Guess.round_id == round_id,
                Guess.is_submitted.is_(True),
                Guess.rating.is_(None),
            )
        )
        credits: dict[UUID, float] = defaultdict(float)
        written: dict[UUID, float] = {}
        for guess_id, guesser_id in result.all():
            value = clamp_rating(ratings.get(guess_id), self.fallback)
            res = await self.db.execute(
                update(Guess)
                .where(Guess.id == guess_id, Guess.rating.is_(None))
                .values(rating=value, rated_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 1:
                credits[guesser_id] += value
                written[guess_id] = value

        for player_id, amount in credits.items():
            await self.db.execute(
                update(Player)
                .where(Player.id == player_id)
                .values(total_score=Player.total_score + amount)
                .execution_options(synchronize_session=False)
            )

        await self.db.execute(
            update(GameRound)
            .where(
                GameRound.id == round_id,
                GameRound.phase != RoundPhase.COMPLETED.value,
            )
            .values(phase=RoundPhase.COMPLETED.value, ended_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return written

    async def _force_complete(self, round_id: UUID) -> dict[UUID, float]:
        """Last resort: fallback-rate what is left, or at least close the round."""
        written: dict[UUID, float] = {}
        try:
            written = await self._write_back(round_id, {})
        except Exception:
            logger.error(
                "Fallback write-back failed, forcing phase only",
                extra={"round_id": round_id}, exc_info=True,
            )
            await self.db.rollback()
            try:
                await self.db.execute(
                    update(GameRound)
                    .where(GameRound.id == round_id)
                    .values(
                        phase=RoundPhase.COMPLETED.value,
                        ended_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                logger.error(
                    "Could not mark round completed", extra={"round_id": round_id},
                    exc_info=True,
                )
                return written

        snapshot = await self.broadcaster.game(self.db, round_id)
        if snapshot is not None:
            await self.broadcaster.room(self.db, snapshot.round.room_id)
        return written
