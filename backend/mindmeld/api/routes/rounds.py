"""Round Routes: current round, answers, guesses, progress, readiness and results.

Invariants:
    - A submitting save is followed by a progress check in the same request,
      so the last submission of a round returns only after rating completes
    - Draft saves never trigger a progress check
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from mindmeld.api.dependencies import get_engine
from mindmeld.schemas.game import (
    AnswerOut, AnswerSave, GameResult, GameSnapshot, GuessOut, GuessSave,
    GuessTarget, ProgressResponse, ReadyRequest, ReadyStatus,
)
from mindmeld.services.round_engine import RoundEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["rounds"])


@router.get("/rooms/{room_id}/round", response_model=GameSnapshot | None)
async def get_current_round(
    room_id: UUID, engine: RoundEngine = Depends(get_engine),
):
    """Current round of a playing room; generates the question on first request."""
    return await engine.get_or_create_current_round(room_id)


@router.get("/rooms/{room_id}/ready-status", response_model=ReadyStatus)
async def get_ready_status(
    room_id: UUID, engine: RoundEngine = Depends(get_engine),
):
    return await engine.get_round_ready_status(room_id)


@router.put("/rounds/{round_id}/answer", response_model=AnswerOut)
async def save_answer(
    round_id: UUID,
    body: AnswerSave,
    engine: RoundEngine = Depends(get_engine),
):
    answer = await engine.save_answer(
        round_id, body.player_id, body.content, body.submit,
    )
    out = AnswerOut.model_validate(answer)
    if body.submit:
        await engine.check_progress(round_id)
    return out


@router.put("/rounds/{round_id}/guess", response_model=GuessOut)
async def save_guess(
    round_id: UUID,
    body: GuessSave,
    engine: RoundEngine = Depends(get_engine),
):
    guess = await engine.save_guess(
        round_id, body.guesser_id, body.target_id, body.content, body.submit,
    )
    out = GuessOut.model_validate(guess)
    if body.submit:
        await engine.check_progress(round_id)
    return out


@router.get("/rounds/{round_id}/guess-target", response_model=GuessTarget | None)
async def get_guess_target(
    round_id: UUID,
    player_id: UUID = Query(...),
    engine: RoundEngine = Depends(get_engine),
):
    """Whose answer `player_id` must guess this round (null below two players)."""
    target = await engine.get_guess_target(round_id, player_id)
    if target is None:
        return None
    return GuessTarget(id=target.id, name=target.name)


@router.post("/rounds/{round_id}/progress", response_model=ProgressResponse)
async def check_progress(
    round_id: UUID, engine: RoundEngine = Depends(get_engine),
):
    return await engine.check_progress(round_id)


@router.post("/rounds/{round_id}/ready", response_model=ReadyStatus)
async def mark_ready(
    round_id: UUID,
    body: ReadyRequest,
    engine: RoundEngine = Depends(get_engine),
):
    return await engine.mark_ready_for_next_round(round_id, body.player_id)


@router.get("/rounds/{round_id}/results", response_model=list[GameResult])
async def get_results(
    round_id: UUID, engine: RoundEngine = Depends(get_engine),
):
    return await engine.get_results(round_id)
