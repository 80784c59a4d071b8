"""Player ORM: one browser's seat in a room.

Invariants:
    - At most one row per (room_id, session_id): rejoin reuses the row
    - Exactly one active player per room has is_creator=True
    - total_score only grows (sum of the player's ratings across rounds)
    - left_at set => soft-retired: kept for past answers/guesses, not a member

Design Decisions:
    - session_id is opaque: compared for equality, never parsed
    - status is the browser-reported state; the colored presence badge is
      derived on read by core/presence.py and never stored
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Boolean, Float, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from mindmeld.core.domain_types import PlayerStatus
from mindmeld.db.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Player(Base):
    """Player entity: identity, presence, score and readiness."""
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("room_id", "session_id", name="uq_players_room_session"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False)
    is_creator: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PlayerStatus.ONLINE.value,
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now,
    )
    total_score: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
    )
    is_ready_for_next_round: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now,
    )
    left_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
