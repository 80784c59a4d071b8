"""Room Schemas: Pydantic models with field-level validation for room endpoints.

Invariants:
    - RoomCreate/RoomJoin.player_name: 1-50 chars, stripped, non-empty
    - RoomJoin.room_code: exactly 5 letters (uppercased)
    - RoomConfigUpdate bounds mirror core/round_rules.py

Design Decisions:
    - from_attributes on response models: snapshots are built straight from ORM rows
    - PlayerOut.presence is computed at serialization time, never stored
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mindmeld.core.domain_types import PresenceColor
from mindmeld.core.round_rules import (
    MAX_NAME_LENGTH, MAX_PROMPT_LENGTH,
    MAX_ROUNDS, MAX_TIME_LIMIT, MIN_ROUNDS, MIN_TIME_LIMIT,
)


def _strip_non_empty(v: str, field: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} cannot be empty or whitespace")
    return v


class RoomCreate(BaseModel):
    """Room creation: the caller becomes the creator."""
    player_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    session_id: str = Field(min_length=1, max_length=128)
    country: str | None = Field(None, max_length=64)

    @field_validator("player_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_non_empty(v, "player_name")


class RoomJoin(RoomCreate):
    """Join by code: rejoining with the same session reuses the seat."""
    room_code: str = Field(min_length=5, max_length=5, pattern=r"^[A-Za-z]{5}$")

    @field_validator("room_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()


class RoomConfigUpdate(BaseModel):
    player_id: UUID
    total_rounds: int = Field(ge=MIN_ROUNDS, le=MAX_ROUNDS)
    round_time_limit: int = Field(ge=MIN_TIME_LIMIT, le=MAX_TIME_LIMIT)
    initial_prompt: str = Field(min_length=1, max_length=MAX_PROMPT_LENGTH)

    @field_validator("initial_prompt")
    @classmethod
    def strip_prompt(cls, v: str) -> str:
        return _strip_non_empty(v, "initial_prompt")


class PlayerAction(BaseModel):
    """Body for creator-only actions that name the acting player."""
    player_id: UUID


class KickRequest(BaseModel):
    kicker_id: UUID


# --- Responses -----------------------------------------------------------------

class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    status: str
    creator_id: UUID
    current_round: int
    total_rounds: int
    round_time_limit: int
    initial_prompt: str
    created_at: datetime
    updated_at: datetime


class PlayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    name: str
    country: str | None = None
    is_creator: bool
    status: str
    last_seen: datetime
    total_score: float
    is_ready_for_next_round: bool
    joined_at: datetime
    presence: PresenceColor | None = None


class RoomSnapshot(BaseModel):
    """Full room state pushed to every room observer."""
    room: RoomOut
    players: list[PlayerOut]
    player_id: UUID | None = None


class JoinResponse(BaseModel):
    room: RoomOut
    player_id: UUID


class LeaveResponse(BaseModel):
    """snapshot is None when the last member left and the room was deleted."""
    room_deleted: bool
    snapshot: RoomSnapshot | None = None
