"""Demo persistence adapter -- used when no remote store is configured.

load_board returns the fixed demo fixture flagged with demo=True; every
write is a logged no-op that never raises.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.pipeline.board.schemas import Board, Card, Stage
from src.pipeline.board.templates import demo_board
from src.pipeline.persistence.adapter import BoardPersistence

logger = structlog.get_logger(__name__)


class DemoBoardPersistence(BoardPersistence):
    """Offline stand-in for the remote store."""

    @property
    def is_configured(self) -> bool:
        return False

    async def load_board(self, board_id: str) -> Board:
        logger.warning("demo_persistence.unconfigured", board_id=board_id)
        return demo_board()

    async def save_stage_order(self, board_id: str, stages: Sequence[Stage]) -> None:
        logger.debug("demo_persistence.write_skipped", op="save_stage_order")

    async def upsert_card(self, board_id: str, stage_id: str, card: Card) -> None:
        logger.debug("demo_persistence.write_skipped", op="upsert_card", card_id=card.id)

    async def update_card_row(self, card: Card) -> None:
        logger.debug("demo_persistence.write_skipped", op="update_card_row", card_id=card.id)

    async def move_card(self, card_id: str, to_stage_id: str) -> None:
        logger.debug("demo_persistence.write_skipped", op="move_card", card_id=card_id)

    async def delete_card(self, card_id: str) -> None:
        logger.debug("demo_persistence.write_skipped", op="delete_card", card_id=card_id)
