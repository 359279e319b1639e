"""Add board tables for pipeline stages and deal cards.

Revision ID: 001_board_tables
Revises:
Create Date: 2026-10-19

Creates two tables keyed by board_id:
- stages: ordered pipeline stages (explicit integer sort key)
- cards: one deal per country, pointing at its stage by stage_id

No foreign key from cards.stage_id to stages.id: cards referencing a
missing stage are dropped when the board is loaded.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_board_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── stages table ────────────────────────────────────────────────────

    op.create_table(
        "stages",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("board_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("prob", sa.Float(), nullable=True),
        sa.Column("wip", sa.Integer(), nullable=True),
        sa.Column("sort", sa.Integer(), server_default=sa.text("0"), nullable=False),
    )
    op.create_index("ix_stages_board_id", "stages", ["board_id"])

    # ── cards table ─────────────────────────────────────────────────────

    op.create_table(
        "cards",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("board_id", sa.String(64), nullable=False),
        sa.Column("stage_id", sa.String(64), nullable=False),
        sa.Column("country", sa.String(200), nullable=False),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("owner", sa.String(200), nullable=True),
        sa.Column("org", sa.String(200), nullable=True),
        sa.Column("priority", sa.String(10), nullable=True),
        sa.Column("next_action", sa.Text(), nullable=True),
        sa.Column("due", sa.Date(), nullable=True),
        sa.Column("links", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("flags", sa.JSON(), nullable=False),
    )
    op.create_index("ix_cards_board_id", "cards", ["board_id"])


def downgrade() -> None:
    op.drop_index("ix_cards_board_id", table_name="cards")
    op.drop_table("cards")
    op.drop_index("ix_stages_board_id", table_name="stages")
    op.drop_table("stages")
