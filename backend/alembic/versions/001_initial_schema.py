"""Initial schema: rooms, players, rounds, answers, guesses.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "rooms",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(5), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="lobby"),
        sa.Column("creator_id", UUID(as_uuid=True), nullable=False),
        sa.Column("current_round", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_rounds", sa.Integer, nullable=False, server_default="3"),
        sa.Column("round_time_limit", sa.Integer, nullable=False, server_default="120"),
        sa.Column(
            "initial_prompt", sa.String(200), nullable=False,
            server_default="Intriguing Hypothetical Scenarios",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_rooms_code", "rooms", ["code"], unique=True)

    op.create_table(
        "players",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "room_id", UUID(as_uuid=True),
            sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("country", sa.String(64), nullable=True),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("is_creator", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("status", sa.String(10), nullable=False, server_default="online"),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("total_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_ready_for_next_round", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("room_id", "session_id", name="uq_players_room_session"),
    )
    op.create_index("ix_players_room_id", "players", ["room_id"])

    op.create_table(
        "rounds",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "room_id", UUID(as_uuid=True),
            sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("round_number", sa.Integer, nullable=False),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("phase", sa.String(20), nullable=False, server_default="answering"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("room_id", "round_number", name="uq_rounds_room_number"),
    )
    op.create_index("ix_rounds_room_id", "rounds", ["room_id"])

    op.create_table(
        "answers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "round_id", UUID(as_uuid=True),
            sa.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "player_id", UUID(as_uuid=True),
            sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("is_submitted", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("round_id", "player_id", name="uq_answers_round_player"),
    )
    op.create_index("ix_answers_round_id", "answers", ["round_id"])

    op.create_table(
        "guesses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "round_id", UUID(as_uuid=True),
            sa.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "guesser_id", UUID(as_uuid=True),
            sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "target_id", UUID(as_uuid=True),
            sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("is_submitted", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("rating", sa.Float, nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "round_id", "guesser_id", "target_id",
            name="uq_guesses_round_guesser_target",
        ),
    )
    op.create_index("ix_guesses_round_id", "guesses", ["round_id"])


def downgrade() -> None:
    op.drop_table("guesses")
    op.drop_table("answers")
    op.drop_table("rounds")
    op.drop_table("players")
    op.drop_table("rooms")
