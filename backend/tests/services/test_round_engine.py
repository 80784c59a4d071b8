"""Round Engine: round creation, entries, progress, readiness and results.

Tests cover:
    - current round: None outside `playing`, created once, question concatenated
    - round-creation race: loser adopts the winner's row
    - question generation failure/timeout/empty -> QuestionGenerationError, no round
    - answers/guesses: drafts, submit lock, idempotent re-submit, phase and membership
    - progress: answers AND guesses from every member, exactly-once transition
    - readiness: advance only when all ready, exactly once, never past the last round
    - a late ready for a finished round never leaks into the next one
    - a departure re-checks progress and readiness for the remaining members
    - scores accumulate across rounds; concurrent progress checks rate once
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from mindmeld.core.errors import (
    AlreadySubmittedError, ExternalServiceError, InvalidInputError,
    InvalidPhaseError, PlayerNotInRoomError, QuestionGenerationError,
    RoomNotFoundError, RoundNotFoundError,
)
from mindmeld.core.guess_target import assign_guess_target
from mindmeld.models import GameRound, Guess, Player, Room


async def submit_all(engine, players, round_id, progress=True):
    """Every player answers and guesses their assigned target."""
    for p in players:
        await engine.save_answer(round_id, p.id, f"{p.name}'s answer", True)
    for p in players:
        target = await engine.get_guess_target(round_id, p.id)
        await engine.save_guess(
            round_id, p.id, target.id, f"{p.name} guesses {target.name}", True,
        )
    if progress:
        return await engine.check_progress(round_id)


# ─── Current round ───────────────────────────────────────────────

async def test_no_round_while_in_lobby(engine, make_room):
    room, _ = await make_room("Ana", "Ben")
    assert await engine.get_or_create_current_round(room.id) is None


async def test_unknown_room(engine):
    with pytest.raises(RoomNotFoundError):
        await engine.get_or_create_current_round(uuid4())


async def test_round_created_once(engine, start_round, question_generator, test_db):
    question_generator.questions = ["If you could swap lives with anyone, who?"]
    room, players, snap = await start_round("Ana", "Ben")
    assert snap.round.round_number == 1
    assert snap.round.phase == "answering"
    assert snap.round.question == "If you could swap lives with anyone, who?"

    again = await engine.get_or_create_current_round(room.id)
    assert again.round.id == snap.round.id
    assert len(question_generator.calls) == 1
    count = await test_db.scalar(select(func.count(GameRound.id)))
    assert count == 1


async def test_question_uses_room_theme(engine, registry, make_room, question_generator):
    room, players = await make_room("Ana", "Ben")
    await registry.update_config(room.id, players[0].id, 3, 120, "Space travel")
    await registry.start_game(room.id, players[0].id)
    await engine.get_or_create_current_round(room.id)
    assert question_generator.calls[0] == ("Space travel", [])


async def test_concurrent_creation_adopts_winner(
    engine, registry, make_room, question_generator, test_db,
):
    room, players = await make_room("Ana", "Ben")
    await registry.start_game(room.id, players[0].id)
    room_id = room.id

    async def competing_request_wins(theme, previous):
        test_db.add(GameRound(room_id=room_id, round_number=1, question="Winner?"))
        await test_db.commit()

    question_generator.before_yield = competing_request_wins
    snap = await engine.get_or_create_current_round(room_id)

    assert snap.round.question == "Winner?"
    count = await test_db.scalar(
        select(func.count(GameRound.id)).where(GameRound.room_id == room_id)
    )
    assert count == 1


async def test_generator_failure_creates_no_round(
    engine, registry, make_room, question_generator, test_db,
):
    room, players = await make_room("Ana", "Ben")
    await registry.start_game(room.id, players[0].id)
    question_generator.error = ExternalServiceError("overloaded", "overloaded")

    with pytest.raises(QuestionGenerationError):
        await engine.get_or_create_current_round(room.id)
    assert await test_db.scalar(select(func.count(GameRound.id))) == 0

    question_generator.error = None
    snap = await engine.get_or_create_current_round(room.id)
    assert snap.round.round_number == 1


async def test_generator_timeout(engine, registry, make_room, question_generator):
    room, players = await make_room("Ana", "Ben")
    await registry.start_game(room.id, players[0].id)
    question_generator.delay = 5
    with pytest.raises(QuestionGenerationError):
        await engine.get_or_create_current_round(room.id)


async def test_blank_question_rejected(engine, registry, make_room, question_generator):
    room, players = await make_room("Ana", "Ben")
    await registry.start_game(room.id, players[0].id)
    question_generator.questions = ["   "]
    with pytest.raises(QuestionGenerationError):
        await engine.get_or_create_current_round(room.id)


# ─── Answers ─────────────────────────────────────────────────────

async def test_draft_then_submit(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    draft = await engine.save_answer(snap.round.id, players[0].id, "Par", False)
    assert not draft.is_submitted and draft.submitted_at is None

    final = await engine.save_answer(snap.round.id, players[0].id, "Paris", True)
    assert final.id == draft.id
    assert final.is_submitted and final.submitted_at is not None
    assert final.content == "Paris"


async def test_submitted_answer_is_locked(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    await engine.save_answer(snap.round.id, players[0].id, "Paris", True)
    with pytest.raises(AlreadySubmittedError):
        await engine.save_answer(snap.round.id, players[0].id, "Rome", True)
    with pytest.raises(AlreadySubmittedError):
        await engine.save_answer(snap.round.id, players[0].id, "Paris", False)


async def test_identical_resubmit_is_idempotent(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    first = await engine.save_answer(snap.round.id, players[0].id, "Paris", True)
    second = await engine.save_answer(snap.round.id, players[0].id, "Paris", True)
    assert second.id == first.id


async def test_empty_submit_rejected(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    with pytest.raises(InvalidInputError):
        await engine.save_answer(snap.round.id, players[0].id, "  ", True)


async def test_answer_from_stranger_rejected(engine, start_round, make_room):
    room, players, snap = await start_round("Ana", "Ben")
    _, others = await make_room("Zed")
    with pytest.raises(PlayerNotInRoomError):
        await engine.save_answer(snap.round.id, others[0].id, "hi", False)


async def test_answer_unknown_round(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    with pytest.raises(RoundNotFoundError):
        await engine.save_answer(uuid4(), players[0].id, "hi", False)


async def test_answer_broadcasts_game_snapshot(engine, start_round, bus):
    room, players, snap = await start_round("Ana", "Ben")
    sub = bus.subscribe(f"round:{snap.round.id}")
    await engine.save_answer(snap.round.id, players[0].id, "typing…", False)
    event = sub.queue.get_nowait()
    assert event["type"] == "game_update"
    assert event["data"]["answers"][0]["content"] == "typing…"


# ─── Guesses ─────────────────────────────────────────────────────

async def test_guess_targets_follow_assignment(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    ids = [p.id for p in players]
    for p in players:
        target = await engine.get_guess_target(snap.round.id, p.id)
        assert target.id == assign_guess_target(ids, 1, p.id)
        assert target.id != p.id


async def test_guess_target_none_for_stranger(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    assert await engine.get_guess_target(snap.round.id, uuid4()) is None


async def test_cannot_guess_self(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    with pytest.raises(InvalidInputError):
        await engine.save_guess(snap.round.id, players[0].id, players[0].id, "me", True)


async def test_guess_target_must_be_member(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    with pytest.raises(PlayerNotInRoomError):
        await engine.save_guess(snap.round.id, players[0].id, uuid4(), "x", True)


async def test_submitted_guess_is_locked(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    await engine.save_guess(snap.round.id, players[0].id, players[1].id, "cats", True)
    with pytest.raises(AlreadySubmittedError):
        await engine.save_guess(snap.round.id, players[0].id, players[1].id, "dogs", True)


# ─── Progress ────────────────────────────────────────────────────

async def test_progress_waits_for_guesses(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    for p in players:
        await engine.save_answer(snap.round.id, p.id, "answer", True)
    result = await engine.check_progress(snap.round.id)
    assert not result.transitioned
    assert result.phase == "answering"


async def test_progress_rates_and_completes(engine, start_round, judge, test_db):
    judge.default = 7
    room, players, snap = await start_round("Ana", "Ben")
    result = await submit_all(engine, players, snap.round.id)

    assert result.transitioned
    assert result.phase == "completed"
    for p in players:
        fresh = await test_db.get(Player, p.id, populate_existing=True)
        assert fresh.total_score == 7.0


async def test_progress_transitions_once(engine, start_round, judge):
    room, players, snap = await start_round("Ana", "Ben")
    await submit_all(engine, players, snap.round.id)
    again = await engine.check_progress(snap.round.id)
    assert not again.transitioned
    assert again.phase == "completed"
    assert len(judge.calls) == 2


async def test_entries_rejected_after_answering(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    await submit_all(engine, players, snap.round.id)
    with pytest.raises(InvalidPhaseError):
        await engine.save_answer(snap.round.id, players[0].id, "late", False)


async def test_progress_noop_with_one_active_member(engine, registry, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    await engine.save_answer(snap.round.id, players[1].id, "bye", True)
    await registry.leave_room(players[1].id)
    await engine.save_answer(snap.round.id, players[0].id, "solo", True)
    result = await engine.check_progress(snap.round.id)
    assert not result.transitioned
    assert await engine.get_guess_target(snap.round.id, players[0].id) is None


async def test_concurrent_progress_checks_transition_once(
    engine, start_round, game_context, test_session_factory, judge, test_db,
):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    round_id = snap.round.id
    await submit_all(engine, players, round_id, progress=False)

    async with test_session_factory() as first, test_session_factory() as second:
        results = await asyncio.gather(
            game_context.engine(first).check_progress(round_id),
            game_context.engine(second).check_progress(round_id),
        )

    assert sorted(r.transitioned for r in results) == [False, True]
    assert len(judge.calls) == 3
    game_round = await test_db.get(GameRound, round_id, populate_existing=True)
    assert game_round.phase == "completed"


async def test_departure_of_last_holdout_starts_rating(
    engine, registry, start_round, test_db,
):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    round_id = snap.round.id
    ana, ben, cy = players
    for p in (ana, ben):
        await engine.save_answer(round_id, p.id, f"{p.name}'s answer", True)
        target = await engine.get_guess_target(round_id, p.id)
        await engine.save_guess(round_id, p.id, target.id, "a guess", True)
    await engine.save_answer(round_id, cy.id, "still thinking", False)

    await registry.leave_room(cy.id)

    game_round = await test_db.get(GameRound, round_id, populate_existing=True)
    assert game_round.phase == "completed"


async def test_kicking_last_unready_player_advances(
    engine, registry, start_round, test_db,
):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    room_id = room.id
    ana, ben, cy = players
    await submit_all(engine, players, snap.round.id)
    await engine.mark_ready_for_next_round(snap.round.id, ana.id)
    await engine.mark_ready_for_next_round(snap.round.id, ben.id)

    await registry.kick_player(cy.id, ana.id)

    fresh_room = await test_db.get(Room, room_id, populate_existing=True)
    assert fresh_room.current_round == 2
    status = await engine.get_round_ready_status(room_id)
    assert (status.ready_count, status.total_count) == (0, 2)


# ─── Readiness ───────────────────────────────────────────────────

async def test_ready_before_completion_rejected(engine, start_round):
    room, players, snap = await start_round("Ana", "Ben")
    with pytest.raises(InvalidPhaseError):
        await engine.mark_ready_for_next_round(snap.round.id, players[0].id)


async def test_round_advances_when_everyone_ready(engine, start_round, test_db, question_generator):
    question_generator.questions = ["First?", "Second?"]
    room, players, snap = await start_round("Ana", "Ben")
    await submit_all(engine, players, snap.round.id)

    status = await engine.mark_ready_for_next_round(snap.round.id, players[0].id)
    assert (status.ready_count, status.total_count) == (1, 2)
    assert status.not_ready_names == ["Ben"]
    assert not status.advanced

    status = await engine.mark_ready_for_next_round(snap.round.id, players[1].id)
    assert status.advanced

    fresh_room = await test_db.get(Room, room.id, populate_existing=True)
    assert fresh_room.current_round == 2
    reset = await engine.get_round_ready_status(room.id)
    assert reset.ready_count == 0

    nxt = await engine.get_or_create_current_round(room.id)
    assert nxt.round.round_number == 2
    assert nxt.round.question == "Second?"
    assert question_generator.calls[-1][1] == ["First?"]


async def test_repeat_ready_does_not_advance_twice(engine, start_round, test_db):
    room, players, snap = await start_round("Ana", "Ben")
    await submit_all(engine, players, snap.round.id)
    for p in players:
        await engine.mark_ready_for_next_round(snap.round.id, p.id)
    late = await engine.mark_ready_for_next_round(snap.round.id, players[0].id)
    assert not late.advanced
    fresh_room = await test_db.get(Room, room.id, populate_existing=True)
    assert fresh_room.current_round == 2


async def test_final_round_never_advances(engine, registry, make_room, test_db):
    room, players = await make_room("Ana", "Ben")
    await registry.update_config(room.id, players[0].id, 1, 120, "Food")
    await registry.start_game(room.id, players[0].id)
    snap = await engine.get_or_create_current_round(room.id)
    await submit_all(engine, players, snap.round.id)

    for p in players:
        status = await engine.mark_ready_for_next_round(snap.round.id, p.id)
    assert status.ready_count == 2
    assert not status.advanced
    fresh_room = await test_db.get(Room, room.id, populate_existing=True)
    assert fresh_room.current_round == 1


async def test_late_ready_for_previous_round_is_ignored(engine, start_round, test_db):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    room_id, ana_id = room.id, players[0].id
    await submit_all(engine, players, snap.round.id)
    for p in players:
        await engine.mark_ready_for_next_round(snap.round.id, p.id)

    late = await engine.mark_ready_for_next_round(snap.round.id, ana_id)

    assert not late.advanced
    assert late.ready_count == 0
    ana = await test_db.get(Player, ana_id, populate_existing=True)
    assert ana.is_ready_for_next_round is False
    fresh_room = await test_db.get(Room, room_id, populate_existing=True)
    assert fresh_room.current_round == 2


async def test_scores_accumulate_across_rounds(engine, start_round, judge, test_db):
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    room_id = room.id
    ids = [p.id for p in players]

    judge.default = 4
    await submit_all(engine, players, snap.round.id)
    for pid in ids:
        await engine.mark_ready_for_next_round(snap.round.id, pid)

    judge.default = 9
    second = await engine.get_or_create_current_round(room_id)
    assert second.round.round_number == 2
    await submit_all(engine, players, second.round.id)

    for pid in ids:
        fresh = await test_db.get(Player, pid, populate_existing=True)
        ratings = await test_db.execute(
            select(Guess.rating).where(Guess.guesser_id == pid)
        )
        earned = list(ratings.scalars().all())
        assert len(earned) == 2
        assert fresh.total_score == sum(earned) == 13.0


# ─── Results ─────────────────────────────────────────────────────

async def test_results_pair_answers_with_guesses(engine, start_round, judge):
    judge.default = 9
    room, players, snap = await start_round("Ana", "Ben", "Cy")
    await submit_all(engine, players, snap.round.id)

    results = await engine.get_results(snap.round.id)
    assert len(results) == 3
    ids = [p.id for p in players]
    for row in results:
        assert row.is_rated and row.rating == 9.0
        assert row.guesser.id != row.player.id
        assert assign_guess_target(ids, 1, row.guesser.id) == row.player.id
        assert row.answer == f"{row.player.name}'s answer"
