"""Remote store tables -- one row per stage and one row per card.

Both tables are keyed by board_id. Stage order is persisted as an explicit
integer ``sort`` column (position in the stage list), not as a linked list.
No foreign key from cards to stages: cards pointing at a missing stage are
dropped at load time instead.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import JSON, Date, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.pipeline.core.database import Base


class StageModel(Base):
    """Pipeline stage row."""

    __tablename__ = "stages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    prob: Mapped[float | None] = mapped_column(Float, nullable=True)
    wip: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CardModel(Base):
    """Deal card row (one per country)."""

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stage_id: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    owner: Mapped[str | None] = mapped_column(String(200), nullable=True)
    org: Mapped[str | None] = mapped_column(String(200), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(10), nullable=True)
    next_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    due: Mapped[date | None] = mapped_column(Date, nullable=True)
    links: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    flags: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
