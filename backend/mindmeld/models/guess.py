"""Guess ORM: a player's guess at another player's answer.

Invariants:
    - At most one Guess per (round_id, guesser_id, target_id)
    - is_submitted is monotonic; once True the content is locked
    - rating is NULL until judged, then 1–10 and never overwritten
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Text, Boolean, Float, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from mindmeld.db.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Guess(Base):
    __tablename__ = "guesses"
    __table_args__ = (
        UniqueConstraint(
            "round_id", "guesser_id", "target_id",
            name="uq_guesses_round_guesser_target",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    round_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rounds.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    guesser_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_submitted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    rated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now,
    )
