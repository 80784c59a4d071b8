"""Database Session Manager: async engine, per-request sessions and the readiness check.

Invariants:
    - Every session rolls back on exception; nothing half-written is committed
    - SQLAlchemy exceptions escaping a session become DatabaseError (core/errors.py)
    - MindMeldError raised by a service passes through untouched after rollback
    - The readiness check reads the rooms table, so it fails until migrations ran

Design Decisions:
    - Module-level db_manager set by init_db() from the FastAPI lifespan
    - expire_on_commit=False: services keep reading rows after commit in async code
    - IntegrityError from an expected race (room code, round creation, entry upsert)
      is handled inside the services and never reaches this layer
    - Pool sizing only applies to PostgreSQL; SQLite (tests, local runs) keeps
      the dialect's default pool
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from mindmeld.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIErrors
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)

_ROOM_COUNTS = text("SELECT status, COUNT(*) FROM rooms GROUP BY status")


def map_db_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            error = map_db_error(e)
            logger.error(
                f"{error.message}: {e}", extra={"error_code": error.code},
            )
            raise error from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> dict:
        """Readiness: database reachable, schema present, rooms per status."""
        try:
            async with self.session() as db:
                rows = (await db.execute(_ROOM_COUNTS)).all()
        except DatabaseError as e:
            logger.error(f"DB health check failed: {e.message}")
            return {"healthy": False, "rooms": {}}
        return {"healthy": True, "rooms": {status: count for status, count in rows}}

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
