"""FastAPI dependency injection for the board coordinator and settings."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.pipeline.config import Settings, get_settings
from src.pipeline.sync.coordinator import SyncCoordinator


async def get_coordinator(request: Request) -> SyncCoordinator:
    """Get the session's SyncCoordinator (created in the app lifespan).

    Raises:
        HTTPException(503): If the board has not been initialized.
    """
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Board not initialized",
        )
    return coordinator


async def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (falls back to the global settings)."""
    return getattr(request.app.state, "settings", None) or get_settings()
