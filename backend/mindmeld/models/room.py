"""Room ORM: aggregate root for one party: membership, config and round counter.

Invariants:
    - code is 5 uppercase letters, unique across live rooms
    - current_round <= total_rounds; 0 means not started
    - current_round only advances through the readiness protocol (round_engine)
    - creator_id mirrors the single Player row with is_creator=True

Design Decisions:
    - creator_id is a plain UUID, not a FK: players reference rooms, and a
      cyclic FK would complicate inserts for no integrity gain
    - Room deletion removes children explicitly (RoomRegistry._delete_room)
      so SQLite test runs behave like PostgreSQL without FK pragmas
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from mindmeld.core.domain_types import RoomStatus
from mindmeld.core.round_rules import (
    DEFAULT_PROMPT, DEFAULT_TIME_LIMIT, DEFAULT_TOTAL_ROUNDS,
)
from mindmeld.db.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Room(Base):
    """Room entity: lobby, configuration and round progression."""
    __tablename__ = "rooms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(
        String(5), nullable=False, unique=True, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RoomStatus.LOBBY.value,
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False,
    )
    current_round: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    total_rounds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_TOTAL_ROUNDS,
    )
    round_time_limit: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_TIME_LIMIT,
    )
    initial_prompt: Mapped[str] = mapped_column(
        String(200), nullable=False, default=DEFAULT_PROMPT,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now,
    )
