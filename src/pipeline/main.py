"""FastAPI application factory.

Creates the app with logging middleware, lifespan events that build the
board session (store, persistence adapter, snapshot cache, coordinator),
and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from src.pipeline.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.pipeline.api.v1.router import router as v1_router
from src.pipeline.board.errors import ConfigurationError
from src.pipeline.board.snapshot import SnapshotCache
from src.pipeline.board.store import BoardStore
from src.pipeline.config import Settings, get_settings
from src.pipeline.persistence import BoardPersistence, create_persistence
from src.pipeline.sync.coordinator import SyncCoordinator


def build_coordinator(
    settings: Settings,
    persistence: BoardPersistence | None = None,
) -> SyncCoordinator:
    """Assemble the board session for one process.

    Raises:
        ConfigurationError: If the remote store settings are unusable.
    """
    return SyncCoordinator(
        store=BoardStore(),
        persistence=persistence or create_persistence(settings),
        board_id=settings.BOARD_ID,
        cache=SnapshotCache(settings.SNAPSHOT_PATH) if settings.SNAPSHOT_PATH else None,
    )


def create_app(
    settings: Settings | None = None,
    persistence: BoardPersistence | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Settings override. Defaults to get_settings().
        persistence: Adapter override (tests). Defaults to create_persistence().
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the board session on startup; flush writes on shutdown."""
        log = structlog.get_logger(__name__)
        configure_structlog(settings)

        try:
            coordinator = build_coordinator(settings, persistence)
        except ConfigurationError:
            log.error("startup.remote_misconfigured", exc_info=True)
            raise

        if settings.remote_configured and persistence is None:
            from src.pipeline.core.database import init_db

            try:
                await init_db()
            except (SQLAlchemyError, OSError):
                log.warning("startup.init_db_failed", exc_info=True)

        app.state.settings = settings
        app.state.coordinator = coordinator
        app.state.remote_load_task = coordinator.start()
        log.info(
            "startup.board_ready",
            board_id=settings.BOARD_ID,
            remote_configured=settings.remote_configured,
        )

        yield

        await coordinator.drain()
        if settings.remote_configured and persistence is None:
            from src.pipeline.core.database import close_db

            await close_db()
        log.info("shutdown.complete")

    app = FastAPI(
        title="King's Pipeline",
        description="Expansion deal pipeline board with weighted revenue forecast",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(LoggingMiddleware)
    app.include_router(v1_router, prefix="/api/v1")
    return app


# Module-level app for uvicorn
app = create_app()
