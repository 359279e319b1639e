"""Board sync coordinator -- local-first edits with a fire-and-forget remote mirror.

On every mutation the coordinator:
1. Applies it to the BoardStore synchronously (visible to the next read)
2. Writes the local snapshot cache
3. Schedules the matching persistence write without awaiting it

Remote writes are best-effort: a failure is logged (sync.write_failed) and
dropped. There is no retry, outbox, ordering or rollback, so local and remote
may diverge until a later successful write overwrites the same row.

On startup the store is hydrated from the snapshot cache, then the remote
board is loaded in the background. Any remote board with stages, the demo
board included, replaces the local one wholesale (remote wins, no merge):
local edits made in between are lost.

Mutations need a running event loop for their remote write; without one they
raise RuntimeError before the store is touched.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterable
from typing import Any

import structlog

from src.pipeline.board.forecast import calculate_weighted_pipeline
from src.pipeline.board.schemas import (
    Board,
    Card,
    CardDraft,
    Forecast,
    ForecastMode,
    Stage,
)
from src.pipeline.board.snapshot import SnapshotCache
from src.pipeline.board.store import BoardStore
from src.pipeline.persistence.adapter import BoardPersistence

logger = structlog.get_logger(__name__)


def _require_loop() -> None:
    """Raise RuntimeError when called outside a running event loop."""
    asyncio.get_running_loop()


class SyncCoordinator:
    """Keeps the BoardStore and the remote store in step.

    Args:
        store: The session's BoardStore.
        persistence: Remote adapter (SQL or demo).
        board_id: Identifier of the single board being edited.
        cache: Optional local snapshot cache.
    """

    def __init__(
        self,
        store: BoardStore,
        persistence: BoardPersistence,
        board_id: str,
        cache: SnapshotCache | None = None,
    ) -> None:
        self._store = store
        self._persistence = persistence
        self._board_id = board_id
        self._cache = cache
        self._pending: set[asyncio.Task] = set()
        self.last_error: Exception | None = None

    @property
    def board(self) -> Board:
        return self._store.board

    @property
    def store(self) -> BoardStore:
        return self._store

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ── Startup ─────────────────────────────────────────────────────────────

    def hydrate_from_cache(self) -> bool:
        """Load the cached snapshot into the store. Returns True if one was used."""
        if self._cache is None:
            return False
        cached = self._cache.load()
        if cached is None or not cached.stages:
            return False
        self._store.replace(cached)
        return True

    def start(self) -> asyncio.Task:
        """Hydrate from the cache now, then load the remote board in the background.

        Must be called from a running event loop.
        """
        self.hydrate_from_cache()
        return asyncio.create_task(self._background_refresh(), name="board_remote_load")

    async def _background_refresh(self) -> None:
        try:
            await self.refresh()
        except Exception as exc:
            self.last_error = exc
            logger.error("sync.remote_load_failed", board_id=self._board_id, error=str(exc))

    async def refresh(self) -> Board | None:
        """Load the remote board and overwrite local state with it.

        Returns:
            The new board if local state was replaced, else None.

        Raises:
            PersistenceError: If the remote read fails.
        """
        remote = await self._persistence.load_board(self._board_id)
        self.last_error = None

        if not remote.stages:
            logger.info("sync.remote_empty", board_id=self._board_id)
            return None

        board = self._store.replace(remote)
        self._save_snapshot()
        logger.info(
            "sync.remote_applied",
            board_id=self._board_id,
            stages=len(board.stages),
            cards=board.card_count(),
            demo=board.demo,
        )
        return board

    # ── Mutations ───────────────────────────────────────────────────────────

    def add_card(self, stage_id: str, draft: CardDraft) -> Card:
        _require_loop()
        card = self._store.add_card(stage_id, draft)
        self._save_snapshot()
        self._dispatch(
            "upsert_card", self._persistence.upsert_card(self._board_id, stage_id, card)
        )
        return card

    def update_card(self, card: Card) -> Card | None:
        _require_loop()
        updated = self._store.update_card(card)
        if updated is None:
            return None
        self._save_snapshot()
        self._dispatch("update_card_row", self._persistence.update_card_row(updated))
        return updated

    def move_card(self, card_id: str, from_stage_id: str, to_stage_id: str) -> bool:
        _require_loop()
        if not self._store.move_card(card_id, from_stage_id, to_stage_id):
            return False
        self._save_snapshot()
        self._dispatch("move_card", self._persistence.move_card(card_id, to_stage_id))
        return True

    def delete_card(self, stage_id: str, card_id: str) -> bool:
        _require_loop()
        if not self._store.delete_card(stage_id, card_id):
            return False
        self._save_snapshot()
        self._dispatch("delete_card", self._persistence.delete_card(card_id))
        return True

    def reorder_stages(self, new_order: Iterable[Stage]) -> Board:
        _require_loop()
        board = self._store.reorder_stages(new_order)
        self._save_snapshot()
        self._dispatch(
            "save_stage_order", self._persistence.save_stage_order(self._board_id, board.stages)
        )
        return board

    def set_stages(self, rows: Iterable[Stage]) -> Board:
        _require_loop()
        board = self._store.set_stages(rows)
        self._save_snapshot()
        self._dispatch(
            "save_stage_order", self._persistence.save_stage_order(self._board_id, board.stages)
        )
        return board

    def import_board(self, board: Board) -> Board:
        """Replace the board with an imported one and mirror every row.

        Remote card rows that are not part of the import are left in place.
        """
        _require_loop()
        imported = self._store.replace(board.model_copy(update={"demo": False}))
        self._save_snapshot()
        self._dispatch(
            "save_stage_order",
            self._persistence.save_stage_order(self._board_id, imported.stages),
        )
        for stage_id, cards in imported.columns.items():
            for card in cards:
                self._dispatch(
                    "upsert_card",
                    self._persistence.upsert_card(self._board_id, stage_id, card),
                )
        return imported

    # ── Reads ───────────────────────────────────────────────────────────────

    def forecast(self, mode: ForecastMode | str = ForecastMode.ABSOLUTE) -> Forecast:
        board = self._store.board
        return calculate_weighted_pipeline(board.stages, board.columns, mode)

    # ── Internals ───────────────────────────────────────────────────────────

    def _save_snapshot(self) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(self._store.board)
        except OSError as exc:
            logger.warning("sync.snapshot_write_failed", error=str(exc))

    def _dispatch(self, operation: str, call: Coroutine[Any, Any, None]) -> None:
        """Run a persistence write in the background without awaiting it."""
        task = asyncio.create_task(self._guarded(operation, call), name=f"board_{operation}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guarded(self, operation: str, call: Coroutine[Any, Any, None]) -> None:
        try:
            await call
        except Exception as exc:
            logger.error(
                "sync.write_failed",
                operation=operation,
                board_id=self._board_id,
                error=str(exc),
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for all in-flight writes to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
