"""Game Schemas: round, answer and guess payloads plus derived result views.

Invariants:
    - EntrySave.content is capped at 500 chars; emptiness is checked only on submit
    - GameResult is derived on read (answer + matching guess + both players)
    - ReadyStatus is a pure read model

Design Decisions:
    - Drafts are allowed to be empty so the "what is X typing" view can clear
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mindmeld.core.round_rules import MAX_ENTRY_LENGTH
from mindmeld.schemas.room import PlayerOut


class AnswerSave(BaseModel):
    player_id: UUID
    content: str = Field("", max_length=MAX_ENTRY_LENGTH)
    submit: bool = False


class GuessSave(BaseModel):
    guesser_id: UUID
    target_id: UUID
    content: str = Field("", max_length=MAX_ENTRY_LENGTH)
    submit: bool = False


class ReadyRequest(BaseModel):
    player_id: UUID


# --- Responses -----------------------------------------------------------------

class RoundOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    round_number: int
    question: str
    phase: str
    started_at: datetime
    ended_at: datetime | None = None


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    round_id: UUID
    player_id: UUID
    content: str
    is_submitted: bool
    submitted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GuessOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    round_id: UUID
    guesser_id: UUID
    target_id: UUID
    content: str
    is_submitted: bool
    rating: float | None = None
    submitted_at: datetime | None = None
    rated_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class GameSnapshot(BaseModel):
    """Full round state pushed to every round observer (not a diff)."""
    round: RoundOut
    answers: list[AnswerOut]
    guesses: list[GuessOut]


class GuessTarget(BaseModel):
    id: UUID
    name: str


class ProgressResponse(BaseModel):
    transitioned: bool
    phase: str


class ReadyStatus(BaseModel):
    ready_count: int
    total_count: int
    not_ready_names: list[str]
    advanced: bool = False


class GameResult(BaseModel):
    """One reveal row: an answer, the guess aimed at it, and its rating."""
    player: PlayerOut | None = None
    answer: str
    guess: str | None = None
    guesser: PlayerOut | None = None
    rating: float | None = None
    is_rated: bool
