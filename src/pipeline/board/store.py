"""In-memory board store -- the only owner of the current board state.

Every mutation is synchronous and total: it validates, builds a complete new
Board, then swaps it in. If anything fails the previous board is kept, so a
reader never sees a half-applied edit. Readers get a copy whose lists and
columns mapping are their own, so editing a snapshot never reaches the store.

The store never touches the remote mirror; see sync.coordinator for that.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

import structlog

from src.pipeline.board.errors import ValidationError
from src.pipeline.board.schemas import Board, Card, CardDraft, Stage, normalize_board
from src.pipeline.board.templates import default_board

logger = structlog.get_logger(__name__)


def _require_country(country: str) -> None:
    if not country or not country.strip():
        raise ValidationError("Card country must not be empty")


def _detached(board: Board) -> Board:
    return board.model_copy(
        update={
            "stages": list(board.stages),
            "columns": {stage_id: list(cards) for stage_id, cards in board.columns.items()},
        }
    )


class BoardStore:
    """Owns one board for the lifetime of a session.

    Args:
        board: Initial board. Defaults to the fixed template board.
    """

    def __init__(self, board: Board | None = None) -> None:
        self._board = _detached(board) if board is not None else default_board()

    @property
    def board(self) -> Board:
        """Copy of the current board; its lists are detached from the store."""
        return _detached(self._board)

    def replace(self, board: Board) -> Board:
        """Overwrite the whole board, restoring invariants first."""
        self._board = normalize_board(board.stages, board.columns, demo=board.demo)
        logger.info(
            "board.replaced",
            stages=len(self._board.stages),
            cards=self._board.card_count(),
            demo=self._board.demo,
        )
        return self.board

    def find_card(self, card_id: str) -> tuple[str, Card] | None:
        """Locate a card by id, returning (stage_id, card) or None."""
        for stage_id, cards in self._board.columns.items():
            for card in cards:
                if card.id == card_id:
                    return stage_id, card
        return None

    # ── Cards ───────────────────────────────────────────────────────────────

    def add_card(self, stage_id: str, draft: CardDraft) -> Card:
        """Create a card with a fresh id at the end of a stage's column.

        Raises:
            ValidationError: If country is blank or the stage does not exist.
        """
        _require_country(draft.country)
        if stage_id not in self._board.columns:
            raise ValidationError(f"Unknown stage: {stage_id}")

        card = Card.from_draft(str(uuid.uuid4()), draft)
        columns = dict(self._board.columns)
        columns[stage_id] = [*columns[stage_id], card]
        self._board = self._board.model_copy(update={"columns": columns})

        logger.info("board.card_added", card_id=card.id, stage_id=stage_id)
        return card

    def update_card(self, card: Card) -> Card | None:
        """Replace a card in place within its current column.

        Returns:
            The stored card, or None if no card has that id.

        Raises:
            ValidationError: If country is blank.
        """
        _require_country(card.country)
        located = self.find_card(card.id)
        if located is None:
            logger.warning("board.update_unknown_card", card_id=card.id)
            return None

        stage_id, _ = located
        columns = dict(self._board.columns)
        columns[stage_id] = [card if c.id == card.id else c for c in columns[stage_id]]
        self._board = self._board.model_copy(update={"columns": columns})

        logger.info("board.card_updated", card_id=card.id, stage_id=stage_id)
        return card

    def move_card(self, card_id: str, from_stage_id: str, to_stage_id: str) -> bool:
        """Move a card to the end of another stage's column.

        No-op (returns False) when source and destination are the same or the
        card is not in the source column.

        Raises:
            ValidationError: If the destination stage does not exist.
        """
        if from_stage_id == to_stage_id:
            return False
        source = self._board.column(from_stage_id)
        card = next((c for c in source if c.id == card_id), None)
        if card is None:
            return False
        if to_stage_id not in self._board.columns:
            raise ValidationError(f"Unknown stage: {to_stage_id}")

        columns = dict(self._board.columns)
        columns[from_stage_id] = [c for c in source if c.id != card_id]
        columns[to_stage_id] = [*columns[to_stage_id], card]
        self._board = self._board.model_copy(update={"columns": columns})

        logger.info(
            "board.card_moved",
            card_id=card_id,
            from_stage_id=from_stage_id,
            to_stage_id=to_stage_id,
        )
        return True

    def delete_card(self, stage_id: str, card_id: str) -> bool:
        """Remove a card from a stage. Returns False if it was not there."""
        cards = self._board.column(stage_id)
        kept = [c for c in cards if c.id != card_id]
        if len(kept) == len(cards):
            return False

        columns = dict(self._board.columns)
        columns[stage_id] = kept
        self._board = self._board.model_copy(update={"columns": columns})

        logger.info("board.card_deleted", card_id=card_id, stage_id=stage_id)
        return True

    # ── Stages ──────────────────────────────────────────────────────────────

    def reorder_stages(self, new_order: Iterable[Stage]) -> Board:
        """Replace the stage sequence with a permutation of the current one.

        Columns are keyed by stable stage id, so they are left untouched.

        Raises:
            KeyError: If a stage id has no column.
            ValueError: If the new order is not a permutation of the current stages.
        """
        stages = list(new_order)
        for stage in stages:
            if stage.id not in self._board.columns:
                raise KeyError(stage.id)
        ids = [s.id for s in stages]
        if len(set(ids)) != len(ids) or set(ids) != set(self._board.stage_ids()):
            raise ValueError("Stage order must contain every current stage exactly once")

        self._board = self._board.model_copy(update={"stages": stages})
        logger.info("board.stages_reordered", order=ids)
        return self.board

    def set_stages(self, rows: Iterable[Stage]) -> Board:
        """Batch replace of the stage list (add, remove, rename, retune, reorder).

        New stages get empty columns. A removed stage must be empty.

        Raises:
            ValidationError: On a blank name, a duplicate id, or removal of a
                stage that still holds cards.
        """
        stages = list(rows)
        ids: set[str] = set()
        for stage in stages:
            if not stage.name or not stage.name.strip():
                raise ValidationError(f"Stage {stage.id} needs a name")
            if stage.id in ids:
                raise ValidationError(f"Duplicate stage id: {stage.id}")
            ids.add(stage.id)

        for stage_id, cards in self._board.columns.items():
            if stage_id not in ids and cards:
                raise ValidationError(
                    f"Stage {stage_id} still holds {len(cards)} card(s); move them first"
                )

        columns = {s.id: self._board.columns.get(s.id, []) for s in stages}
        self._board = self._board.model_copy(update={"stages": stages, "columns": columns})

        logger.info("board.stages_set", stages=[s.id for s in stages])
        return self.board
