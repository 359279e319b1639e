"""Local snapshot and export/import format.

The format is a JSON object with two keys:

    {"stages": [Stage...], "columns": {"<stageId>": [Card...]}}

Card keys use the camelCase names of the export format (``nextAction``).
There is no version field. SnapshotCache keeps the last board written by
any session on local disk so a new session has something to show before
the remote load completes.
"""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any

import pydantic
import structlog

from src.pipeline.board.errors import ValidationError
from src.pipeline.board.schemas import Board, Card, Stage, normalize_board

logger = structlog.get_logger(__name__)

EXPORT_PREFIX = "kings-pipeline"


def board_to_dict(board: Board) -> dict[str, Any]:
    """Serialize a board into the export structure (demo flag excluded)."""
    return {
        "stages": [s.model_dump(mode="json") for s in board.stages],
        "columns": {
            stage_id: [c.model_dump(mode="json", by_alias=True) for c in cards]
            for stage_id, cards in board.columns.items()
        },
    }


def dump_board(board: Board) -> str:
    """Serialize a board to export JSON text."""
    return json.dumps(board_to_dict(board), indent=2)


def board_from_dict(payload: Any) -> Board:
    """Validate an export structure and build a normalized Board.

    Raises:
        ValidationError: If the payload is not an object with both
            ``stages`` and ``columns``, or any stage/card is malformed.
    """
    if not isinstance(payload, dict) or "stages" not in payload or "columns" not in payload:
        raise ValidationError("Board payload must contain 'stages' and 'columns'")

    raw_stages = payload["stages"]
    raw_columns = payload["columns"]
    if not isinstance(raw_stages, list) or not isinstance(raw_columns, dict):
        raise ValidationError("'stages' must be a list and 'columns' an object")

    try:
        stages = [Stage.model_validate(s) for s in raw_stages]
        columns = {
            str(stage_id): [Card.model_validate(c) for c in (cards or [])]
            for stage_id, cards in raw_columns.items()
        }
    except (pydantic.ValidationError, TypeError) as exc:
        raise ValidationError(f"Malformed board payload: {exc}") from exc

    return normalize_board(stages, columns)


def parse_board(text: str | bytes) -> Board:
    """Parse export JSON text into a Board.

    Raises:
        ValidationError: If the text is not JSON or fails board validation.
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Board payload is not valid JSON: {exc}") from exc
    return board_from_dict(payload)


def export_filename(today: date | None = None) -> str:
    """File name for an export, encoding the current date."""
    today = today or date.today()
    return f"{EXPORT_PREFIX}-{today.isoformat()}.json"


class SnapshotCache:
    """JSON file holding the most recent local board snapshot."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Board | None:
        """Read the cached board. Missing or unreadable snapshots yield None."""
        if not self.path.exists():
            return None
        try:
            board = parse_board(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("snapshot.unreadable", path=str(self.path), error=str(exc))
            return None
        logger.info("snapshot.loaded", path=str(self.path), cards=board.card_count())
        return board

    def save(self, board: Board) -> None:
        """Write the board, replacing the previous snapshot atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(dump_board(board), encoding="utf-8")
        os.replace(tmp_path, self.path)
