"""Database Manager — owns the async engine and hands out request sessions.

Invariants:
    - A session that sees an exception is rolled back before it is closed
    - SQLAlchemy errors escaping a request session surface as DatabaseError
    - Server databases get pre-ping and recycling; SQLite gets neither pool option

Design Decisions:
    - One module-level db_manager, created by the FastAPI lifespan
    - expire_on_commit=False: committed ORM objects stay readable in async code
    - Repositories catch IntegrityError themselves (it is a per-action outcome);
      anything reaching this layer is an infrastructure failure
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from orbit.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first.
_ERROR_LABELS: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (OperationalError, "Database connection failed", "connect"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_recycle": 3600,
    }


class DatabaseManager:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.sessions = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_url(
        cls, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ) -> "DatabaseManager":
        engine = create_async_engine(
            database_url, **engine_options(database_url, pool_size, max_overflow),
        )
        return cls(engine)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.sessions() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                message, operation = next(
                    (msg, op) for exc_type, msg, op in _ERROR_LABELS
                    if isinstance(e, exc_type)
                )
                logger.error(
                    f"{message}: {e}", extra={"error_code": "DATABASE_ERROR"},
                )
                raise DatabaseError(message, operation) from e
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> bool:
        """True when a trivial query round-trips."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseManager:
    global db_manager
    db_manager = DatabaseManager.from_url(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if db_manager is None:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
