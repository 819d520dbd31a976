"""Engine, session factory and the unit-of-work context manager.

Every wallet or coin change runs inside ``get_db()``: repository methods only
flush, and the block commits once on exit (or rolls back on error).
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from swapvault.config import Settings, get_settings
from swapvault.ledger.models import Base

logger = logging.getLogger(__name__)

_engine = None
_session_factory = None


def _database_url(settings: Settings) -> str:
    """Force the async sqlite driver and make sure the file's directory exists."""
    raw = settings.database_url
    url = make_url(raw)
    if url.get_backend_name() != "sqlite":
        return raw

    if url.drivername == "sqlite":
        raw = "sqlite+aiosqlite" + raw[len("sqlite"):]
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return raw


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        db_url = _database_url(settings)
        _engine = create_async_engine(
            db_url,
            echo=settings.debug and not settings.is_production,
        )
        if _engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(_engine)
        logger.info(f"Database engine created: {settings._redact_url(db_url)}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back and re-raise on error."""
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the users, wallets and coins tables if missing."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def close_db() -> None:
    """Dispose the engine; the next ``get_db()`` creates a new one."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
