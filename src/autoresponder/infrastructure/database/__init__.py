"""
Database Infrastructure
=======================

Engine and session-maker lifecycle for the ticket ledger.

PostgreSQL through asyncpg in deployment; any SQLAlchemy async URL works,
so local runs and tests use `sqlite+aiosqlite`.
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from autoresponder.config import Settings


class Base(DeclarativeBase):
    """Declarative base shared by the tickets and responses models."""
    pass


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str, app_settings: Settings) -> dict:
    options = {"echo": app_settings.debug}
    # SQLite uses a single-connection pool; sizing arguments are rejected
    if not url.startswith("sqlite"):
        options.update(
            pool_size=app_settings.db_pool_size,
            max_overflow=app_settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return options


def init_database(app_settings: Settings) -> async_sessionmaker[AsyncSession]:
    """
    Create the engine and the session maker units of work draw from.

    Called once from the application lifespan.
    """
    global _engine, _session_maker

    # asyncpg spells the libpq `sslmode` parameter `ssl`
    url = app_settings.database_url.replace("sslmode=", "ssl=")

    _engine = create_async_engine(url, **_engine_options(url, app_settings))
    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _session_maker


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


async def create_tables() -> None:
    """
    Create missing tables.

    Fine for development and tests; a deployed database is migrated instead.
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    # Importing the model modules registers them on Base.metadata
    import autoresponder.tickets.infrastructure.models  # noqa: F401
    import autoresponder.responses.infrastructure.models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping() -> None:
    """Round-trip a trivial query; raises when the database is unreachable."""
    async with get_session_maker()() as session:
        await session.execute(text("SELECT 1"))


async def close_database() -> None:
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
