"""SQL persistence adapter -- the configured remote store, via BoardRepository.

Translates board operations into repository calls and every database failure
into PersistenceError. Reads are retried with tenacity exponential backoff
before the error surfaces; writes are attempted once (the coordinator logs
and drops a failed write).
"""

from __future__ import annotations

from collections.abc import Sequence

import pydantic
import structlog
from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.pipeline.board.errors import PersistenceError
from src.pipeline.board.schemas import Board, Card, Stage, normalize_board
from src.pipeline.persistence.adapter import BoardPersistence
from src.pipeline.persistence.repository import BoardRepository

logger = structlog.get_logger(__name__)

_REMOTE_ERRORS = (SQLAlchemyError, OSError)


class SQLBoardPersistence(BoardPersistence):
    """Persistence adapter backed by the stages/cards tables.

    Args:
        repository: BoardRepository instance for database operations.
        read_attempts: Total attempts for load_board before giving up.
        read_wait: tenacity wait strategy between read attempts.
    """

    def __init__(
        self,
        repository: BoardRepository,
        read_attempts: int = 3,
        read_wait: wait_base | None = None,
    ) -> None:
        self._repo = repository
        self._read_attempts = max(1, read_attempts)
        self._read_wait = read_wait or wait_exponential(multiplier=1, min=1, max=10)

    @property
    def is_configured(self) -> bool:
        return True

    async def load_board(self, board_id: str) -> Board:
        """Fetch stages ordered by sort and all cards, grouped by stage id.

        Cards whose stage_id is not among the fetched stages are dropped.

        Raises:
            PersistenceError: If the store still fails after all read attempts.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._read_attempts),
                wait=self._read_wait,
                retry=retry_if_exception_type(_REMOTE_ERRORS),
                reraise=True,
            ):
                with attempt:
                    stages = await self._repo.list_stages(board_id)
                    cards = await self._repo.list_cards(board_id)
        except _REMOTE_ERRORS as exc:
            logger.error("sql_persistence.load_failed", board_id=board_id, error=str(exc))
            raise PersistenceError("load_board", str(exc)) from exc
        except pydantic.ValidationError as exc:
            logger.error("sql_persistence.unmappable_rows", board_id=board_id, error=str(exc))
            raise PersistenceError("load_board", f"unmappable stage row: {exc}") from exc

        columns: dict[str, list[Card]] = {s.id: [] for s in stages}
        orphans = 0
        for stage_id, card in cards:
            if stage_id in columns:
                columns[stage_id].append(card)
            else:
                orphans += 1

        logger.info(
            "sql_persistence.board_loaded",
            board_id=board_id,
            stages=len(stages),
            cards=len(cards) - orphans,
            orphans_dropped=orphans,
        )
        return normalize_board(stages, columns)

    async def save_stage_order(self, board_id: str, stages: Sequence[Stage]) -> None:
        """Persist the stage list; each row's sort is its position."""
        try:
            await self._repo.replace_stages(board_id, list(stages))
        except _REMOTE_ERRORS as exc:
            raise PersistenceError("save_stage_order", str(exc)) from exc
        logger.info("sql_persistence.stage_order_saved", board_id=board_id, stages=len(stages))

    async def upsert_card(self, board_id: str, stage_id: str, card: Card) -> None:
        """Insert or overwrite one card row."""
        try:
            await self._repo.upsert_card(board_id, stage_id, card)
        except _REMOTE_ERRORS as exc:
            raise PersistenceError("upsert_card", str(exc)) from exc
        logger.info("sql_persistence.card_upserted", card_id=card.id, stage_id=stage_id)

    async def update_card_row(self, card: Card) -> None:
        """Update card fields (stage untouched)."""
        try:
            matched = await self._repo.update_card(card)
        except _REMOTE_ERRORS as exc:
            raise PersistenceError("update_card_row", str(exc)) from exc
        if not matched:
            logger.warning("sql_persistence.card_row_missing", card_id=card.id)
            return
        logger.info("sql_persistence.card_updated", card_id=card.id)

    async def move_card(self, card_id: str, to_stage_id: str) -> None:
        """Point a card at another stage."""
        try:
            matched = await self._repo.set_card_stage(card_id, to_stage_id)
        except _REMOTE_ERRORS as exc:
            raise PersistenceError("move_card", str(exc)) from exc
        if not matched:
            logger.warning("sql_persistence.card_row_missing", card_id=card_id)
            return
        logger.info("sql_persistence.card_moved", card_id=card_id, to_stage_id=to_stage_id)

    async def delete_card(self, card_id: str) -> None:
        """Delete a card row."""
        try:
            await self._repo.delete_card(card_id)
        except _REMOTE_ERRORS as exc:
            raise PersistenceError("delete_card", str(exc)) from exc
        logger.info("sql_persistence.card_deleted", card_id=card_id)
