"""Service test fixtures: async DB, fake oracles, GameContext and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db and get_game_context dependencies overridden for route tests
    - Services under test share ONE session (test_db) unless a test opens more

Design Decisions:
    - SQLite in-memory with StaticPool: one connection, so every session sees
      the same database
    - Short oracle timeouts so timeout paths run in milliseconds
"""

import random

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import StaticPool

from mindmeld.api.dependencies import get_game_context
from mindmeld.config import Settings
from mindmeld.db.base import Base
from mindmeld.infrastructure.database import get_db
from mindmeld.infrastructure.event_bus import EventBus
from mindmeld.main import app
from mindmeld.services.game_context import GameContext
from tests.services.fakes import FakeJudge, FakeQuestionGenerator


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        question_timeout_seconds=0.5,
        judge_timeout_seconds=0.2,
    )


@pytest.fixture
def question_generator():
    return FakeQuestionGenerator()


@pytest.fixture
def judge():
    return FakeJudge()


@pytest.fixture
def bus():
    return EventBus(queue_size=64)


@pytest.fixture
def game_context(settings, bus, question_generator, judge):
    return GameContext(
        settings=settings, bus=bus,
        question_generator=question_generator, judge=judge,
        rng=random.Random(1234),
    )


@pytest.fixture
def registry(game_context, test_db):
    return game_context.registry(test_db)


@pytest.fixture
def engine(game_context, test_db):
    return game_context.engine(test_db)


@pytest.fixture
async def client(test_session_factory, game_context):
    """FastAPI test client with DB and GameContext dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_game_context] = lambda: game_context

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_room(registry):
    """Create a lobby room with `names` (first is creator). Returns (room, players)."""
    async def _make(*names: str):
        room, creator = await registry.create_room(names[0], f"sess-{names[0]}")
        players = [creator]
        for name in names[1:]:
            _, player = await registry.join_room(room.code, name, f"sess-{name}")
            players.append(player)
        return room, players
    return _make


@pytest.fixture
def start_round(registry, engine, make_room):
    """Create a room, start the game and open round 1. Returns (room, players, snapshot)."""
    async def _start(*names: str):
        room, players = await make_room(*names)
        await registry.start_game(room.id, players[0].id)
        snapshot = await engine.get_or_create_current_round(room.id)
        return room, players, snapshot
    return _start
