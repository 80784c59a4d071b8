"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - RoomId, PlayerId, RoundId wrap UUIDs: never use bare UUID in domain logic
    - Rating is bounded 1–10
    - All valid states encoded as Enums: no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (snapshots are JSON)
    - RoundPhase has no GUESSING member: answers and guesses are collected
      concurrently while the round is ANSWERING
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

RoomId = NewType("RoomId", UUID)
PlayerId = NewType("PlayerId", UUID)
RoundId = NewType("RoundId", UUID)

RoomCode = NewType("RoomCode", str)      # 5 uppercase letters
SessionHandle = NewType("SessionHandle", str)  # opaque, compared by equality only


# ─── Value Types ─────────────────────────────────────────────────

Rating = NewType("Rating", float)   # 1.0–10.0


# ─── Enums ───────────────────────────────────────────────────────

class RoomStatus(str, Enum):
    """Room lifecycle states: maps to DB `rooms.status` column."""
    LOBBY = "lobby"
    CONFIGURING = "configuring"
    PLAYING = "playing"
    FINISHED = "finished"


class PlayerStatus(str, Enum):
    """Connection status as last reported by the player's browser."""
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class RoundPhase(str, Enum):
    """Round state machine: answering -> rating -> completed. Forward only."""
    ANSWERING = "answering"
    RATING = "rating"
    COMPLETED = "completed"


class PresenceColor(str, Enum):
    """Derived presence classification rendered next to each player."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class Topic(str, Enum):
    """Fan-out topic families."""
    ROOM = "room"
    ROUND = "round"


def topic_key(kind: Topic, entity_id: UUID) -> str:
    return f"{kind.value}:{entity_id}"
