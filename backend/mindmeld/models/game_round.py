"""GameRound ORM: one question asked in one room, plus its phase.

Invariants:
    - Unique per (room_id, round_number): concurrent creators converge on one row
    - phase only moves forward: answering -> rating -> completed
    - ended_at is set exactly when phase becomes completed

Design Decisions:
    - Named GameRound (table "rounds") to keep `round` free for the builtin
    - round_number copied from Room.current_round at creation time
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Text, Integer, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from mindmeld.core.domain_types import RoundPhase
from mindmeld.db.base import Base


class GameRound(Base):
    """Round entity: question text and phase."""
    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_rounds_room_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RoundPhase.ANSWERING.value,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
