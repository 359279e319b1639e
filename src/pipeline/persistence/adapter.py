"""Persistence adapter abstract base class -- the remote mirror's interface.

Every remote backend (the SQL store, the demo fallback) implements this ABC.
The SyncCoordinator calls load_board on startup and one write per board
mutation; each operation is independently fallible.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from src.pipeline.board.schemas import Board, Card, Stage


class BoardPersistence(ABC):
    """Abstract interface for the remote stage/card store.

    Methods:
        load_board: Fetch stages (by sort key) and cards, grouped into columns.
        save_stage_order: Persist the stage list with sort = position.
        upsert_card: Insert or overwrite one card in a stage.
        update_card_row: Update a card's fields, not its stage.
        move_card: Point a card at another stage.
        delete_card: Remove a card.
    """

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True if this adapter talks to a real remote store."""
        ...

    @abstractmethod
    async def load_board(self, board_id: str) -> Board:
        """Fetch the whole board."""
        ...

    @abstractmethod
    async def save_stage_order(self, board_id: str, stages: Sequence[Stage]) -> None:
        """Upsert every stage with its position as sort key."""
        ...

    @abstractmethod
    async def upsert_card(self, board_id: str, stage_id: str, card: Card) -> None:
        """Insert or overwrite one card row."""
        ...

    @abstractmethod
    async def update_card_row(self, card: Card) -> None:
        """Update card fields by id (stage unchanged)."""
        ...

    @abstractmethod
    async def move_card(self, card_id: str, to_stage_id: str) -> None:
        """Move a card to another stage by id."""
        ...

    @abstractmethod
    async def delete_card(self, card_id: str) -> None:
        """Delete a card by id."""
        ...
