"""Async SQLAlchemy engine for the remote stage/card store.

Provides:
- Base: Declarative base for the stages and cards tables
- get_engine(): Lazily created engine singleton from settings.DATABASE_URL
- get_session(): AsyncSession generator used as a repository session_factory
- init_db() / close_db(): table creation and engine disposal
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.exc import ArgumentError, NoSuchModuleError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.pipeline.board.errors import ConfigurationError
from src.pipeline.config import Settings, get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Get or create the async engine singleton.

    Args:
        settings: Settings used on first creation. Defaults to get_settings().

    Raises:
        ConfigurationError: If DATABASE_URL is empty or not a usable async URL.
    """
    global _engine
    if _engine is None:
        settings = settings or get_settings()
        if not settings.remote_configured:
            raise ConfigurationError("DATABASE_URL is not set")
        try:
            _engine = create_async_engine(settings.DATABASE_URL, echo=False)
        except (ArgumentError, NoSuchModuleError, ImportError) as exc:
            raise ConfigurationError(f"Invalid DATABASE_URL: {exc}") from exc
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────


class Base(DeclarativeBase):
    """Base class for the board tables."""


# ── Session Factory ─────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create the stages and cards tables if they don't exist."""
    # Registers the models on Base.metadata
    from src.pipeline.persistence import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
