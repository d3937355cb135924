"""
Async engine and transaction scope for the ledger tables.

One DatabaseManager per process. Every unit of work (a document put, a batch of
prediction writes, a read) opens its own session through `session()`, which
commits when the block exits cleanly and rolls back otherwise.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.errors import UnavailableError

logger = logging.getLogger(__name__)

# Milliseconds a SQLite writer waits on another process's lock before failing.
SQLITE_BUSY_TIMEOUT_MS = 5000


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


class DatabaseManager:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self._database_url = database_url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def init(self) -> None:
        """Build the engine on first call; repeated calls keep the existing one."""
        if self.is_initialized:
            return

        logger.info("Opening ledger database")
        engine = create_async_engine(self._database_url, echo=self._echo)
        if _is_sqlite(self._database_url):
            event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async def create_schema(self) -> None:
        """Create the context_documents and predictions tables when missing."""
        from models import Base

        if self._engine is None:
            raise RuntimeError("DatabaseManager is not initialized. Call init() first.")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self._engine is None:
            return
        logger.info("Closing ledger database")
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional session: commit on clean exit, rollback on error or cancellation.

        Driver-level failures (locked or unreachable database) surface as
        UnavailableError.
        """
        if self._sessionmaker is None:
            raise RuntimeError("DatabaseManager is not initialized. Call init() first.")

        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except OperationalError as exc:
            await session.rollback()
            raise UnavailableError(f"Database unavailable: {exc.orig}") from exc
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:  # pragma: no cover
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
        except Exception:
            # :memory: databases reject WAL
            logger.debug("SQLite WAL journal_mode not applied")
    finally:
        cursor.close()


_db_manager: Optional[DatabaseManager] = None


async def init_database(database_url: str) -> DatabaseManager:
    """Create the process-wide DatabaseManager (once) and initialize it."""
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)
    await _db_manager.init()
    return _db_manager


async def dispose_database() -> None:
    global _db_manager

    if _db_manager is not None:
        await _db_manager.dispose()
        _db_manager = None


def get_database_manager() -> DatabaseManager:
    """Return the process-wide DatabaseManager; init_database must have run."""
    if _db_manager is None:
        raise RuntimeError("DatabaseManager is not initialized.")
    return _db_manager
