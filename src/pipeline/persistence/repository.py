"""Board repository -- async CRUD for stage and card rows.

Uses the session_factory callable pattern: each method pulls one AsyncSession
from the factory, does its work and commits. Handles conversion between the
Pydantic board schemas and the SQLAlchemy row models.

All stage/card reads are scoped by board_id. Card writes are keyed by card id.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from typing import Any

import pydantic
import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pipeline.board.schemas import Card, CardFlags, Priority, Stage, finite_or_none
from src.pipeline.persistence.models import CardModel, StageModel

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_stage(model: StageModel) -> Stage:
    """Convert StageModel to Stage schema."""
    return Stage(id=model.id, name=model.name, prob=model.prob, wip=model.wip)


_PRIORITIES = {p.value.lower(): p for p in Priority} | {"medium": Priority.MED}


def _row_priority(raw: Any) -> Priority | None:
    if not isinstance(raw, str):
        return None
    return _PRIORITIES.get(raw.strip().lower())


def _row_value(raw: Any) -> float | None:
    number = finite_or_none(raw)
    if number is None or number < 0:
        return None
    return number


def _model_to_card(model: CardModel) -> Card:
    """Convert CardModel to Card schema.

    NULL columns become None. Rows written by other clients are mapped
    leniently: a negative or non-numeric value and an unknown priority
    become None, a non-object flags column becomes the default flags.

    Raises:
        pydantic.ValidationError: If a field still cannot be mapped.
    """
    return Card(
        id=model.id,
        country=model.country or "",
        value=_row_value(model.value),
        owner=model.owner,
        org=model.org,
        priority=_row_priority(model.priority),
        next_action=model.next_action,
        due=model.due,
        links=model.links,
        notes=model.notes,
        flags=CardFlags.model_validate(model.flags if isinstance(model.flags, dict) else {}),
    )


def card_columns(card: Card) -> dict[str, Any]:
    """Column values for a card's editable fields (stage and board excluded)."""
    return {
        "country": card.country,
        "value": card.value,
        "owner": card.owner,
        "org": card.org,
        "priority": card.priority.value if card.priority else None,
        "next_action": card.next_action,
        "due": card.due,
        "links": card.links,
        "notes": card.notes,
        "flags": card.flags.model_dump(),
    }


# ── Repository ──────────────────────────────────────────────────────────────


class BoardRepository:
    """Async CRUD operations for the stages and cards tables.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Stages ──────────────────────────────────────────────────────────────

    async def list_stages(self, board_id: str) -> list[Stage]:
        """List a board's stages ordered by their sort key."""
        async for session in self._session_factory():
            stmt = (
                select(StageModel)
                .where(StageModel.board_id == board_id)
                .order_by(StageModel.sort, StageModel.id)
            )
            result = await session.execute(stmt)
            return [_model_to_stage(m) for m in result.scalars().all()]
        return []

    async def replace_stages(self, board_id: str, stages: Sequence[Stage]) -> None:
        """Upsert every stage with sort = position; delete the board's other stages.

        Runs in a single transaction.
        """
        async for session in self._session_factory():
            for position, stage in enumerate(stages):
                await session.merge(
                    StageModel(
                        id=stage.id,
                        board_id=board_id,
                        name=stage.name,
                        prob=stage.prob,
                        wip=stage.wip,
                        sort=position,
                    )
                )
            keep_ids = [s.id for s in stages]
            stmt = delete(StageModel).where(StageModel.board_id == board_id)
            if keep_ids:
                stmt = stmt.where(StageModel.id.not_in(keep_ids))
            await session.execute(stmt)
            await session.commit()

    # ── Cards ───────────────────────────────────────────────────────────────

    async def list_cards(self, board_id: str) -> list[tuple[str, Card]]:
        """List a board's cards as (stage_id, card) pairs.

        A row that cannot be mapped to a Card is skipped with a warning.
        """
        async for session in self._session_factory():
            stmt = select(CardModel).where(CardModel.board_id == board_id)
            result = await session.execute(stmt)
            cards: list[tuple[str, Card]] = []
            for model in result.scalars().all():
                try:
                    cards.append((model.stage_id, _model_to_card(model)))
                except pydantic.ValidationError as exc:
                    logger.warning(
                        "board_repository.card_row_skipped",
                        card_id=model.id,
                        error=str(exc),
                    )
            return cards
        return []

    async def upsert_card(self, board_id: str, stage_id: str, card: Card) -> None:
        """Insert or overwrite a card row."""
        async for session in self._session_factory():
            await session.merge(
                CardModel(id=card.id, board_id=board_id, stage_id=stage_id, **card_columns(card))
            )
            await session.commit()

    async def update_card(self, card: Card) -> int:
        """Update a card's fields (not its stage). Returns rows matched."""
        async for session in self._session_factory():
            stmt = update(CardModel).where(CardModel.id == card.id).values(**card_columns(card))
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount
        return 0

    async def set_card_stage(self, card_id: str, stage_id: str) -> int:
        """Point a card at another stage. Returns rows matched."""
        async for session in self._session_factory():
            stmt = update(CardModel).where(CardModel.id == card_id).values(stage_id=stage_id)
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount
        return 0

    async def delete_card(self, card_id: str) -> int:
        """Delete a card row. Returns rows deleted."""
        async for session in self._session_factory():
            result = await session.execute(delete(CardModel).where(CardModel.id == card_id))
            await session.commit()
            return result.rowcount
        return 0
