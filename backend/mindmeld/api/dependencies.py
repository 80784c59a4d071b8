"""Request dependencies: per-request services built around the request's DB session."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mindmeld.infrastructure.database import get_db
from mindmeld.services.game_context import GameContext
from mindmeld.services.room_registry import RoomRegistry
from mindmeld.services.round_engine import RoundEngine


def get_game_context(request: Request) -> GameContext:
    """GameContext created by the lifespan (tests override this dependency)."""
    return request.app.state.game_context


def get_registry(
    db: AsyncSession = Depends(get_db),
    ctx: GameContext = Depends(get_game_context),
) -> RoomRegistry:
    return ctx.registry(db)


def get_engine(
    db: AsyncSession = Depends(get_db),
    ctx: GameContext = Depends(get_game_context),
) -> RoundEngine:
    return ctx.engine(db)
