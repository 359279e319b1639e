"""Board synchronization -- local store first, remote mirror in the background."""

from src.pipeline.sync.coordinator import SyncCoordinator

__all__ = ["SyncCoordinator"]
