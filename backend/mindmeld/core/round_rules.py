"""Round Rules: pure validation and decision functions for the round state machine.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Validators raise typed errors (core/errors.py) BEFORE any mutation happens
    - Phase order is answering -> rating -> completed, never backwards
    - parse_rating/clamp_rating always return a value in [1, 10]

Design Decisions:
    - Decisions (start rating? advance round?) are plain predicates so the shell
      can guard them with conditional UPDATEs and still test the rule without a DB
"""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from mindmeld.core.domain_types import RoundPhase
from mindmeld.core.errors import ErrorContext, InvalidInputError, InvalidPhaseError


# ─── Bounds ──────────────────────────────────────────────────────

MIN_ROUNDS, MAX_ROUNDS = 1, 10
MIN_TIME_LIMIT, MAX_TIME_LIMIT = 30, 600
MAX_PROMPT_LENGTH = 200
MAX_NAME_LENGTH = 50
MAX_ENTRY_LENGTH = 500

MIN_RATING, MAX_RATING = 1.0, 10.0
FALLBACK_RATING = 5.0

DEFAULT_TOTAL_ROUNDS = 3
DEFAULT_TIME_LIMIT = 120
DEFAULT_PROMPT = "Intriguing Hypothetical Scenarios"


# ─── Input validation ────────────────────────────────────────────

def validate_player_name(name: str) -> str:
    name = (name or "").strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        raise InvalidInputError(
            f"Player name must be 1-{MAX_NAME_LENGTH} characters", "player_name",
        )
    return name


def validate_room_config(
    total_rounds: int, round_time_limit: int, initial_prompt: str,
) -> str:
    """Validate all three fields together; returns the stripped prompt."""
    if not MIN_ROUNDS <= total_rounds <= MAX_ROUNDS:
        raise InvalidInputError(
            f"Total rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}",
            "total_rounds",
        )
    if not MIN_TIME_LIMIT <= round_time_limit <= MAX_TIME_LIMIT:
        raise InvalidInputError(
            f"Round time limit must be between {MIN_TIME_LIMIT} and {MAX_TIME_LIMIT} seconds",
            "round_time_limit",
        )
    prompt = (initial_prompt or "").strip()
    if not 1 <= len(prompt) <= MAX_PROMPT_LENGTH:
        raise InvalidInputError(
            f"Theme prompt must be 1-{MAX_PROMPT_LENGTH} characters",
            "initial_prompt",
        )
    return prompt


def validate_entry_text(text: str, submit: bool, field: str = "content") -> str:
    """Drafts may be empty; a submitted answer/guess may not."""
    text = (text or "").strip()
    if len(text) > MAX_ENTRY_LENGTH:
        raise InvalidInputError(
            f"Text must be at most {MAX_ENTRY_LENGTH} characters", field,
        )
    if submit and not text:
        raise InvalidInputError("Cannot submit an empty entry", field)
    return text


# ─── Phase rules ─────────────────────────────────────────────────

def ensure_phase(
    actual: RoundPhase | str,
    expected: RoundPhase,
    operation: str,
    context: ErrorContext | None = None,
) -> None:
    actual = RoundPhase(actual)
    if actual != expected:
        raise InvalidPhaseError(operation, expected.value, actual.value, context)


def progress_reached(
    player_count: int,
    submitted_answers: int,
    submitted_guesses: int,
    min_players: int = 2,
) -> bool:
    """True once every active member has submitted both an answer and a guess."""
    if player_count < min_players:
        return False
    return submitted_answers >= player_count and submitted_guesses >= player_count


# ─── Ratings ─────────────────────────────────────────────────────

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def clamp_rating(value: float | int | None, fallback: float = FALLBACK_RATING) -> float:
    if value is None:
        return fallback
    try:
        value = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(value):
        return fallback
    return min(MAX_RATING, max(MIN_RATING, value))


def parse_rating(text: str | None, fallback: float = FALLBACK_RATING) -> float:
    """First number in the judge's reply, clamped to 1–10. Non-numeric -> fallback."""
    match = _NUMBER.search(text or "")
    if not match:
        return fallback
    return clamp_rating(float(match.group()), fallback)


# ─── Readiness ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ReadinessTally:
    ready_count: int
    total_count: int
    not_ready_names: list[str]

    @property
    def everyone_ready(self) -> bool:
        return self.total_count > 0 and self.ready_count >= self.total_count


def tally_readiness(players: Iterable[tuple[str, bool]]) -> ReadinessTally:
    """players: (display name, ready flag) for every active member."""
    names, ready = [], 0
    total = 0
    for name, is_ready in players:
        total += 1
        if is_ready:
            ready += 1
        else:
            names.append(name)
    return ReadinessTally(ready, total, names)


def should_advance_round(
    tally: ReadinessTally, current_round: int, total_rounds: int,
) -> bool:
    """Advance only when everyone is ready and rounds remain."""
    return tally.everyone_ready and current_round < total_rounds


# ─── Creator transfer ────────────────────────────────────────────

def pick_next_creator(
    candidates: Iterable[tuple[UUID, datetime]],
) -> UUID | None:
    """Earliest join time wins; ties broken by id. candidates: (id, joined_at)."""
    ordered = sorted(candidates, key=lambda c: (c[1].replace(tzinfo=None), str(c[0])))
    return ordered[0][0] if ordered else None
