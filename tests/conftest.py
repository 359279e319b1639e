"""Shared fixtures for board tests.

Provides:
- InMemoryBoardPersistence: BoardPersistence test double that records every
  call, can be told to fail, and can hold load_board until released
- Settings pointing the snapshot cache at a temporary directory
- sample_board: a small two-stage board
- remote / make_remote: in-memory remote store holding sample_board, or a factory
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from src.pipeline.board.errors import PersistenceError
from src.pipeline.board.schemas import Board, Card, Stage
from src.pipeline.config import Settings
from src.pipeline.persistence.adapter import BoardPersistence


class InMemoryBoardPersistence(BoardPersistence):
    """In-memory remote store for testing without a database."""

    def __init__(self, board: Board | None = None, configured: bool = True) -> None:
        self.board = board or Board()
        self.configured = configured
        self.calls: list[tuple] = []
        self.fail_writes = False
        self.fail_loads = False
        self.load_gate: asyncio.Event | None = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def load_board(self, board_id: str) -> Board:
        self.calls.append(("load_board", board_id))
        if self.load_gate is not None:
            await self.load_gate.wait()
        if self.fail_loads:
            raise PersistenceError("load_board", "store unreachable")
        return self.board

    async def _write(self, *call) -> None:
        self.calls.append(call)
        if self.fail_writes:
            raise PersistenceError(call[0], "write rejected")

    async def save_stage_order(self, board_id: str, stages: Sequence[Stage]) -> None:
        await self._write("save_stage_order", board_id, [s.id for s in stages])

    async def upsert_card(self, board_id: str, stage_id: str, card: Card) -> None:
        await self._write("upsert_card", board_id, stage_id, card.id)

    async def update_card_row(self, card: Card) -> None:
        await self._write("update_card_row", card.id)

    async def move_card(self, card_id: str, to_stage_id: str) -> None:
        await self._write("move_card", card_id, to_stage_id)

    async def delete_card(self, card_id: str) -> None:
        await self._write("delete_card", card_id)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] != "load_board"]


@pytest.fixture
def sample_board() -> Board:
    """Two-stage board: A (50%) with a 100 deal, B (terminal) with a 200 deal."""
    return Board(
        stages=[Stage(id="A", name="Stage A", prob=50), Stage(id="B", name="Stage B", prob=100)],
        columns={
            "A": [Card(id="c1", country="France", value=100)],
            "B": [Card(id="c2", country="Japan", value=200)],
        },
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Unconfigured-remote settings with the snapshot in a temp directory."""
    return Settings(
        DATABASE_URL="",
        BOARD_ID="test-board",
        SNAPSHOT_PATH=str(tmp_path / "board.json"),
        FORECAST_MODE="absolute",
    )


@pytest.fixture
def remote(sample_board) -> InMemoryBoardPersistence:
    """In-memory remote store holding the two-stage board."""
    return InMemoryBoardPersistence(sample_board)


@pytest.fixture
def make_remote():
    """Factory for InMemoryBoardPersistence with a custom board."""
    return InMemoryBoardPersistence
