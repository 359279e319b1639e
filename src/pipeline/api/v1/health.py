"""Health check endpoint.

Reports liveness plus whether the board is backed by a real remote store
or the demo fallback, and the outcome of the last remote load.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.pipeline.api.deps import get_app_settings, get_coordinator
from src.pipeline.config import Settings
from src.pipeline.sync.coordinator import SyncCoordinator

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_app_settings),
    coordinator: SyncCoordinator = Depends(get_coordinator),
):
    """Basic liveness check with remote mirror status."""
    last_error = coordinator.last_error
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "remote_configured": settings.remote_configured,
        "demo": coordinator.board.demo,
        "pending_writes": coordinator.pending_writes,
        "last_remote_error": str(last_error) if last_error else None,
    }
