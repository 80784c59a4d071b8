"""MindMeld API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map MindMeldError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and GameContext initialized on startup via the lifespan context

Design Decisions:
    - Lifespan over @app.on_event: cleaner startup/shutdown pairing
    - GameContext on app.state: one event bus per process, shared by every request
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mindmeld.api.error_handlers import register_error_handlers
from mindmeld.api.routes import events, health, players, rooms, rounds
from mindmeld.config import get_settings
from mindmeld.infrastructure.database import init_db
from mindmeld.infrastructure.observability import setup_logging
from mindmeld.services.game_context import build_game_context

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.game_context = build_game_context(settings)
    logger.info("MindMeld API started")
    yield
    logger.info("MindMeld API shutting down")
    await manager.dispose()


app = FastAPI(title="MindMeld API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(rounds.router)
app.include_router(events.router)

register_error_handlers(app)
