"""Pydantic schemas for the pipeline board -- stages, cards, board, forecast.

Defines all structured types for the board:
- Enums: Priority, ForecastMode
- Board state: Stage, CardFlags, CardDraft, Card, Board
- Forecast output: StageForecast, Forecast
- normalize_board(): restores board invariants on data entering from outside

Stage, Card and Board are frozen: the store replaces them, it never edits
them in place, so successive board states can share unchanged cards.
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.pipeline.board.errors import ValidationError

logger = structlog.get_logger(__name__)


# ── Coercion Helpers ────────────────────────────────────────────────────────


def finite_or_none(value: Any) -> float | None:
    """Convert a value to a finite float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ── Enums ───────────────────────────────────────────────────────────────────


class Priority(str, Enum):
    """Deal priority shown on a card."""

    HIGH = "High"
    MED = "Med"
    LOW = "Low"


class ForecastMode(str, Enum):
    """How a stage's stored probability is interpreted.

    ABSOLUTE: chance that a deal in this stage ultimately closes.
    TRANSITION: chance of advancing to the next stage; the chance of
    closing is the product of the transitions through to the last stage.
    """

    ABSOLUTE = "absolute"
    TRANSITION = "transition"


# ── Board State ─────────────────────────────────────────────────────────────


class Stage(BaseModel):
    """One step of the pipeline. Position in the board's stage list is its order."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    prob: float | None = None
    wip: int | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("prob", mode="before")
    @classmethod
    def _coerce_prob(cls, v: Any) -> float | None:
        # Kept raw (out of range allowed); clamped by the forecast.
        return finite_or_none(v)

    @field_validator("wip", mode="before")
    @classmethod
    def _coerce_wip(cls, v: Any) -> int | None:
        number = finite_or_none(v)
        if number is None or number < 0:
            return None
        return int(number)


class CardFlags(BaseModel):
    """Checklist flags tracked per deal."""

    model_config = ConfigDict(frozen=True)

    nda: bool = False
    tech: bool = False
    jaa: bool = False


class CardDraft(BaseModel):
    """Card fields supplied by a caller before the store assigns an id."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    country: str = ""
    value: float | None = None
    owner: str | None = None
    org: str | None = None
    priority: Priority | None = None
    next_action: str | None = Field(default=None, alias="nextAction")
    due: date | None = None
    links: str | None = None
    notes: str | None = None
    flags: CardFlags = Field(default_factory=CardFlags)

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> float | None:
        number = finite_or_none(v)
        if number is not None and number < 0:
            raise ValueError("value must be non-negative")
        return number

    @field_validator("priority", "due", "owner", "org", "next_action", "links", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("flags", mode="before")
    @classmethod
    def _default_flags(cls, v: Any) -> Any:
        return {} if v is None else v


class Card(CardDraft):
    """A tracked deal for one country, living in exactly one column."""

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @classmethod
    def from_draft(cls, card_id: str, draft: CardDraft) -> Card:
        return cls(id=card_id, **draft.model_dump())


class Board(BaseModel):
    """Ordered stages plus one ordered card list (column) per stage id.

    Invariants (restored by normalize_board):
    - every stage id has exactly one column
    - no card appears in more than one column
    - card ids are unique board-wide
    """

    model_config = ConfigDict(frozen=True)

    stages: list[Stage] = Field(default_factory=list)
    columns: dict[str, list[Card]] = Field(default_factory=dict)
    demo: bool = False

    def column(self, stage_id: str) -> list[Card]:
        """Return the card list for a stage (empty for unknown ids)."""
        return self.columns.get(stage_id, [])

    def stage_ids(self) -> list[str]:
        return [s.id for s in self.stages]

    def card_count(self) -> int:
        return sum(len(cards) for cards in self.columns.values())


# ── Forecast Output ─────────────────────────────────────────────────────────


class StageForecast(BaseModel):
    """Forecast figures for a single stage."""

    id: str
    name: str
    prob: float = 0.0
    count: int = 0
    total: float = 0.0
    weighted: float = 0.0
    probability_to_end: float = 0.0
    wip: int | None = None
    over_wip: bool = False


class Forecast(BaseModel):
    """Probability-weighted pipeline forecast."""

    model_config = ConfigDict(populate_by_name=True)

    mode: ForecastMode = ForecastMode.ABSOLUTE
    total: float = 0.0
    weighted: float = 0.0
    per_stage: list[StageForecast] = Field(default_factory=list, alias="perStage")


# ── Invariants ──────────────────────────────────────────────────────────────


def normalize_board(
    stages: list[Stage],
    columns: dict[str, list[Card]],
    demo: bool = False,
) -> Board:
    """Build a Board that satisfies the column and card-id invariants.

    Missing columns become empty, columns for unknown stage ids are dropped,
    and a card id seen twice keeps only its first occurrence in stage order.

    Raises:
        ValidationError: If two stages share an id.
    """
    seen_stages: set[str] = set()
    for stage in stages:
        if stage.id in seen_stages:
            raise ValidationError(f"Duplicate stage id: {stage.id}")
        seen_stages.add(stage.id)

    dropped_columns = [key for key in columns if key not in seen_stages]
    if dropped_columns:
        logger.warning("board.orphan_columns_dropped", stage_ids=dropped_columns)

    seen_cards: set[str] = set()
    normalized: dict[str, list[Card]] = {}
    for stage in stages:
        kept: list[Card] = []
        for card in columns.get(stage.id, []):
            if card.id in seen_cards:
                logger.warning("board.duplicate_card_dropped", card_id=card.id)
                continue
            seen_cards.add(card.id)
            kept.append(card)
        normalized[stage.id] = kept

    return Board(stages=list(stages), columns=normalized, demo=demo)
