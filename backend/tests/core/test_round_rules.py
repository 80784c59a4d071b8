"""Round Rules: tests for pure validation and decision functions.

Tests cover:
    - Input bounds (names, room config, entry text)
    - Phase guard and forward-only ordering
    - Progress predicate (answers AND guesses from every member)
    - Rating parsing and clamping
    - Readiness tally and the advance decision
    - Creator succession
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from mindmeld.core.domain_types import RoundPhase
from mindmeld.core.errors import InvalidInputError, InvalidPhaseError
from mindmeld.core.round_rules import (
    FALLBACK_RATING, MAX_ENTRY_LENGTH,
    clamp_rating, ensure_phase, parse_rating, pick_next_creator,
    progress_reached, should_advance_round, tally_readiness,
    validate_entry_text, validate_player_name, validate_room_config,
)


# ─── Input validation ────────────────────────────────────────────

def test_player_name_is_stripped():
    assert validate_player_name("  Ana ") == "Ana"


@pytest.mark.parametrize("name", ["", "   ", "x" * 51])
def test_player_name_out_of_bounds(name):
    with pytest.raises(InvalidInputError) as exc:
        validate_player_name(name)
    assert exc.value.field == "player_name"


def test_room_config_accepts_bounds():
    assert validate_room_config(1, 30, " Space ") == "Space"
    assert validate_room_config(10, 600, "x" * 200) == "x" * 200


@pytest.mark.parametrize(
    "rounds, limit, prompt, field",
    [
        (0, 120, "ok", "total_rounds"),
        (11, 120, "ok", "total_rounds"),
        (3, 29, "ok", "round_time_limit"),
        (3, 601, "ok", "round_time_limit"),
        (3, 120, "   ", "initial_prompt"),
        (3, 120, "x" * 201, "initial_prompt"),
    ],
)
def test_room_config_rejects(rounds, limit, prompt, field):
    with pytest.raises(InvalidInputError) as exc:
        validate_room_config(rounds, limit, prompt)
    assert exc.value.field == field
    assert exc.value.http_status == 400


def test_draft_may_be_empty():
    assert validate_entry_text("", submit=False) == ""


def test_submit_must_not_be_empty():
    with pytest.raises(InvalidInputError):
        validate_entry_text("   ", submit=True)


def test_entry_length_capped():
    assert validate_entry_text("a" * MAX_ENTRY_LENGTH, submit=True)
    with pytest.raises(InvalidInputError):
        validate_entry_text("a" * (MAX_ENTRY_LENGTH + 1), submit=False)


# ─── Phases ──────────────────────────────────────────────────────

def test_ensure_phase_passes_on_match():
    ensure_phase("answering", RoundPhase.ANSWERING, "save answer")


def test_ensure_phase_raises_with_both_phases():
    with pytest.raises(InvalidPhaseError) as exc:
        ensure_phase("rating", RoundPhase.ANSWERING, "save answer")
    assert exc.value.expected == "answering"
    assert exc.value.actual == "rating"
    assert exc.value.http_status == 409


def test_progress_needs_answers_and_guesses_from_everyone():
    assert progress_reached(3, 3, 3)
    assert not progress_reached(3, 3, 2)
    assert not progress_reached(3, 2, 3)


def test_progress_never_reached_below_two_players():
    assert not progress_reached(1, 1, 1)
    assert not progress_reached(0, 0, 0)


# ─── Ratings ─────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "text, expected",
    [
        ("7", 7.0),
        ("8/10", 8.0),
        ("Rating: 6.5", 6.5),
        ("  10\n", 10.0),
        ("15", 10.0),
        ("0", 1.0),
        ("-3", 1.0),
        ("great guess!", FALLBACK_RATING),
        ("", FALLBACK_RATING),
        (None, FALLBACK_RATING),
    ],
)
def test_parse_rating(text, expected):
    assert parse_rating(text) == expected


def test_clamp_rating_handles_garbage():
    assert clamp_rating(None) == FALLBACK_RATING
    assert clamp_rating("nope") == FALLBACK_RATING
    assert clamp_rating(float("nan")) == FALLBACK_RATING
    assert clamp_rating(42) == 10.0
    assert clamp_rating(3) == 3.0


# ─── Readiness ───────────────────────────────────────────────────

def test_tally_counts_and_names_stragglers():
    tally = tally_readiness([("Ana", True), ("Ben", False), ("Cy", False)])
    assert tally.ready_count == 1
    assert tally.total_count == 3
    assert tally.not_ready_names == ["Ben", "Cy"]
    assert not tally.everyone_ready


def test_empty_tally_is_not_everyone_ready():
    assert not tally_readiness([]).everyone_ready


def test_advance_only_when_all_ready_and_rounds_remain():
    all_ready = tally_readiness([("Ana", True), ("Ben", True)])
    one_missing = tally_readiness([("Ana", True), ("Ben", False)])
    assert should_advance_round(all_ready, 1, 3)
    assert not should_advance_round(one_missing, 1, 3)
    assert not should_advance_round(all_ready, 3, 3)


# ─── Creator succession ──────────────────────────────────────────

def test_earliest_joiner_inherits():
    t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    first = UUID("00000000-0000-0000-0000-0000000000ff")
    later = UUID("00000000-0000-0000-0000-000000000001")
    assert pick_next_creator([(later, t0 + timedelta(seconds=5)), (first, t0)]) == first


def test_join_time_tie_broken_by_id():
    t0 = datetime(2026, 1, 1)
    low = UUID("00000000-0000-0000-0000-000000000001")
    high = UUID("00000000-0000-0000-0000-000000000002")
    assert pick_next_creator([(high, t0), (low, t0)]) == low


def test_no_candidates():
    assert pick_next_creator([]) is None
