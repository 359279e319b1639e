"""Tests for the persistence layer: repository, SQL adapter, demo adapter, factory.

The repository is exercised against a mocked AsyncSession; the SQL adapter
against an AsyncMock repository, with tenacity waits disabled.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pydantic
import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import wait_none

from src.pipeline.board.errors import ConfigurationError, PersistenceError
from src.pipeline.board.schemas import Card, CardFlags, Priority, Stage
from src.pipeline.config import Settings
from src.pipeline.core import database
from src.pipeline.persistence import (
    DemoBoardPersistence,
    SQLBoardPersistence,
    create_persistence,
)
from src.pipeline.persistence.models import CardModel, StageModel
from src.pipeline.persistence.repository import BoardRepository, card_columns


# ── Helpers ─────────────────────────────────────────────────────────────────


def _session(rows=None, rowcount=1) -> AsyncMock:
    session = AsyncMock()
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows or []
    result.rowcount = rowcount
    session.execute = AsyncMock(return_value=result)
    session.merge = AsyncMock()
    session.commit = AsyncMock()
    return session


def _factory(session):
    async def factory():
        yield session

    return factory


def _sql(repo, attempts=3) -> SQLBoardPersistence:
    return SQLBoardPersistence(repo, read_attempts=attempts, read_wait=wait_none())


def _card_row(card_id: str, **fields) -> CardModel:
    values = {"board_id": "b1", "stage_id": "A", "country": "Peru", "flags": {}}
    values.update(fields)
    return CardModel(id=card_id, **values)


def _result(rows) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def _repo(stages=None, cards=None) -> AsyncMock:
    repo = AsyncMock(spec=BoardRepository)
    repo.list_stages.return_value = stages or []
    repo.list_cards.return_value = cards or []
    repo.update_card.return_value = 1
    repo.set_card_stage.return_value = 1
    repo.delete_card.return_value = 1
    return repo


# ── Repository ──────────────────────────────────────────────────────────────


class TestBoardRepository:
    """Row conversion and statement shape."""

    async def test_list_stages_converts_rows(self):
        session = _session(
            rows=[StageModel(id="A", board_id="b1", name="Intro", prob=20.0, wip=4, sort=0)]
        )
        stages = await BoardRepository(_factory(session)).list_stages("b1")
        assert stages == [Stage(id="A", name="Intro", prob=20, wip=4)]

    async def test_list_cards_pairs_stage_ids(self):
        row = CardModel(
            id="c1",
            board_id="b1",
            stage_id="A",
            country="Peru",
            value=None,
            priority="High",
            due=date(2026, 1, 31),
            flags={"nda": True},
        )
        cards = await BoardRepository(_factory(_session(rows=[row]))).list_cards("b1")
        stage_id, card = cards[0]
        assert stage_id == "A"
        assert card.value is None
        assert card.priority == Priority.HIGH
        assert card.due == date(2026, 1, 31)
        assert card.flags == CardFlags(nda=True)

    async def test_replace_stages_sorts_by_position(self):
        session = _session()
        stages = [Stage(id="B", name="Second"), Stage(id="A", name="First", prob=30)]
        await BoardRepository(_factory(session)).replace_stages("b1", stages)

        merged = [call.args[0] for call in session.merge.await_args_list]
        assert [(m.id, m.sort, m.board_id) for m in merged] == [("B", 0, "b1"), ("A", 1, "b1")]
        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()

    async def test_upsert_card_merges_row(self):
        session = _session()
        card = Card(id="c9", country="Chile", value=10, next_action="Call")
        await BoardRepository(_factory(session)).upsert_card("b1", "A", card)

        row = session.merge.await_args.args[0]
        assert (row.id, row.board_id, row.stage_id) == ("c9", "b1", "A")
        assert row.next_action == "Call"
        session.commit.assert_awaited_once()

    async def test_odd_card_rows_are_mapped_leniently(self):
        rows = [
            _card_row("neg", value=-5.0, priority="high"),
            _card_row("med", value=12.0, priority="Medium"),
            _card_row("odd", priority="urgent", flags=["nda"], country=None),
        ]
        cards = dict(
            (card.id, card)
            for _, card in await BoardRepository(_factory(_session(rows=rows))).list_cards("b1")
        )

        assert cards["neg"].value is None
        assert cards["neg"].priority == Priority.HIGH
        assert cards["med"].value == 12.0
        assert cards["med"].priority == Priority.MED
        assert cards["odd"].priority is None
        assert cards["odd"].flags == CardFlags()
        assert cards["odd"].country == ""

    async def test_unmappable_card_row_is_skipped(self):
        rows = [_card_row("good"), _card_row("bad", flags={"nda": "perhaps"})]
        cards = await BoardRepository(_factory(_session(rows=rows))).list_cards("b1")
        assert [card.id for _, card in cards] == ["good"]

    async def test_update_returns_rowcount(self):
        session = _session(rowcount=0)
        repo = BoardRepository(_factory(session))
        assert await repo.update_card(Card(id="x", country="Chile")) == 0
        assert await repo.set_card_stage("x", "B") == 0
        assert await repo.delete_card("x") == 0

    def test_card_columns(self):
        card = Card(id="c1", country="Oman", priority="Low", flags={"tech": True})
        columns = card_columns(card)
        assert columns["priority"] == "Low"
        assert columns["flags"] == {"nda": False, "tech": True, "jaa": False}
        assert "id" not in columns
        assert "stage_id" not in columns


# ── SQL Adapter ─────────────────────────────────────────────────────────────


class TestSQLBoardPersistence:
    """load_board grouping, retries and error translation."""

    async def test_load_groups_cards_and_drops_orphans(self):
        repo = _repo(
            stages=[Stage(id="A", name="A", prob=50), Stage(id="B", name="B")],
            cards=[
                ("A", Card(id="1", country="Peru")),
                ("B", Card(id="2", country="Chile")),
                ("A", Card(id="3", country="Oman")),
                ("gone", Card(id="4", country="Laos")),
            ],
        )
        board = await _sql(repo).load_board("b1")

        assert board.stage_ids() == ["A", "B"]
        assert [c.id for c in board.column("A")] == ["1", "3"]
        assert [c.id for c in board.column("B")] == ["2"]
        assert "gone" not in board.columns
        assert board.demo is False
        repo.list_stages.assert_awaited_once_with("b1")

    async def test_load_survives_odd_rows(self):
        session = _session()
        session.execute = AsyncMock(
            side_effect=[
                _result([StageModel(id="A", board_id="b1", name="A", prob=50.0, wip=None, sort=0)]),
                _result([_card_row("c1", value=-5.0, priority="Medium"), _card_row("c2", priority="low")]),
            ]
        )
        board = await _sql(BoardRepository(_factory(session))).load_board("b1")

        assert [c.id for c in board.column("A")] == ["c1", "c2"]
        assert board.column("A")[0].value is None
        assert board.column("A")[1].priority == Priority.LOW

    async def test_unmappable_stage_row_becomes_persistence_error(self):
        try:
            Stage.model_validate({"id": "A"})
        except pydantic.ValidationError as exc:
            error = exc
        repo = _repo()
        repo.list_stages.side_effect = error

        with pytest.raises(PersistenceError) as exc_info:
            await _sql(repo).load_board("b1")
        assert exc_info.value.operation == "load_board"
        assert repo.list_stages.await_count == 1

    async def test_load_empty_store(self):
        board = await _sql(_repo()).load_board("b1")
        assert board.stages == []
        assert board.columns == {}

    async def test_load_retries_transient_failures(self):
        repo = _repo(cards=[])
        repo.list_stages.side_effect = [
            OperationalError("SELECT", {}, Exception("reset")),
            [Stage(id="A", name="A")],
        ]
        board = await _sql(repo).load_board("b1")
        assert board.stage_ids() == ["A"]
        assert repo.list_stages.await_count == 2

    async def test_load_gives_up_after_attempts(self):
        repo = _repo()
        repo.list_stages.side_effect = SQLAlchemyError("down")
        with pytest.raises(PersistenceError) as exc_info:
            await _sql(repo, attempts=2).load_board("b1")
        assert exc_info.value.operation == "load_board"
        assert repo.list_stages.await_count == 2

    async def test_load_does_not_retry_programming_errors(self):
        repo = _repo()
        repo.list_stages.side_effect = KeyError("bug")
        with pytest.raises(KeyError):
            await _sql(repo).load_board("b1")
        assert repo.list_stages.await_count == 1

    async def test_writes_delegate_to_repository(self):
        repo = _repo()
        adapter = _sql(repo)
        card = Card(id="c1", country="Peru")
        stages = [Stage(id="A", name="A")]

        await adapter.save_stage_order("b1", stages)
        await adapter.upsert_card("b1", "A", card)
        await adapter.update_card_row(card)
        await adapter.move_card("c1", "B")
        await adapter.delete_card("c1")

        repo.replace_stages.assert_awaited_once_with("b1", stages)
        repo.upsert_card.assert_awaited_once_with("b1", "A", card)
        repo.update_card.assert_awaited_once_with(card)
        repo.set_card_stage.assert_awaited_once_with("c1", "B")
        repo.delete_card.assert_awaited_once_with("c1")

    async def test_write_failure_becomes_persistence_error(self):
        repo = _repo()
        repo.upsert_card.side_effect = SQLAlchemyError("constraint")
        with pytest.raises(PersistenceError) as exc_info:
            await _sql(repo).upsert_card("b1", "A", Card(id="c1", country="Peru"))
        assert exc_info.value.operation == "upsert_card"
        repo.upsert_card.assert_awaited_once()

    async def test_missing_row_is_not_an_error(self):
        repo = _repo()
        repo.update_card.return_value = 0
        repo.set_card_stage.return_value = 0
        adapter = _sql(repo)
        await adapter.update_card_row(Card(id="ghost", country="Peru"))
        await adapter.move_card("ghost", "A")

    def test_is_configured(self):
        assert _sql(_repo()).is_configured is True


# ── Demo Adapter ────────────────────────────────────────────────────────────


class TestDemoBoardPersistence:
    """Fallback used when no remote store is configured."""

    async def test_load_returns_demo_board(self):
        board = await DemoBoardPersistence().load_board("anything")
        assert board.demo is True
        assert board.stage_ids() == ["1", "2", "3"]
        assert [s.name for s in board.stages] == ["Todo", "Doing", "Done"]
        assert board.column("1")[0].id == "101"
        assert board.column("1")[0].owner == "Demo User"

    async def test_writes_are_noops(self):
        adapter = DemoBoardPersistence()
        card = Card(id="c1", country="Peru")
        await adapter.save_stage_order("b1", [Stage(id="A", name="A")])
        await adapter.upsert_card("b1", "A", card)
        await adapter.update_card_row(card)
        await adapter.move_card("c1", "B")
        await adapter.delete_card("c1")
        assert adapter.is_configured is False


# ── Factory ─────────────────────────────────────────────────────────────────


class TestCreatePersistence:
    """create_persistence picks an adapter from settings."""

    @pytest.fixture(autouse=True)
    def _reset_engine(self, monkeypatch):
        monkeypatch.setattr(database, "_engine", None)

    def test_unconfigured_falls_back_to_demo(self, settings):
        assert isinstance(create_persistence(settings), DemoBoardPersistence)

    def test_whitespace_url_is_unconfigured(self, tmp_path):
        settings = Settings(DATABASE_URL="   ", SNAPSHOT_PATH=str(tmp_path / "s.json"))
        assert isinstance(create_persistence(settings), DemoBoardPersistence)

    def test_configured_builds_sql_adapter(self, tmp_path):
        settings = Settings(
            DATABASE_URL="postgresql+asyncpg://user:pw@localhost:5432/pipeline",
            SNAPSHOT_PATH=str(tmp_path / "s.json"),
            REMOTE_READ_ATTEMPTS=5,
        )
        adapter = create_persistence(settings)
        assert isinstance(adapter, SQLBoardPersistence)
        assert adapter.is_configured is True

    @pytest.mark.parametrize("url", ["not a database url", "postgresql+nosuchdriver://h/db"])
    def test_invalid_url_raises_configuration_error(self, tmp_path, url):
        settings = Settings(DATABASE_URL=url, SNAPSHOT_PATH=str(tmp_path / "s.json"))
        with pytest.raises(ConfigurationError):
            create_persistence(settings)

    def test_get_engine_requires_url(self, settings):
        with pytest.raises(ConfigurationError):
            database.get_engine(settings)
