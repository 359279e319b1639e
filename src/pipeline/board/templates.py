"""Fixed boards: the default template for a fresh session and the demo fixture.

The demo board is what an unconfigured remote store returns; it is flagged
with demo=True so callers can tell it apart from real data.
"""

from __future__ import annotations

from src.pipeline.board.schemas import Board, Card, Stage

# ── Default Template ────────────────────────────────────────────────────────

DEFAULT_STAGES: list[Stage] = [
    Stage(id="prospect", name="Prospect", prob=10),
    Stage(id="qualified", name="Qualified", prob=25),
    Stage(id="proposal", name="Proposal", prob=50),
    Stage(id="negotiation", name="Negotiation", prob=75),
    Stage(id="live", name="First Event Live", prob=100),
]

_SEED_CARD = Card(id="seed-1", country="Example Country", owner="Unassigned")


def default_board() -> Board:
    """Fresh board: the fixed stage set with one seeded card in the first stage."""
    columns: dict[str, list[Card]] = {s.id: [] for s in DEFAULT_STAGES}
    columns[DEFAULT_STAGES[0].id] = [_SEED_CARD]
    return Board(stages=list(DEFAULT_STAGES), columns=columns)


# ── Demo Fixture ────────────────────────────────────────────────────────────

_DEMO_STAGES: list[Stage] = [
    Stage(id="1", name="Todo"),
    Stage(id="2", name="Doing"),
    Stage(id="3", name="Done"),
]


def demo_board() -> Board:
    """Small fixed board returned when no remote store is configured."""
    return Board(
        stages=list(_DEMO_STAGES),
        columns={
            "1": [Card(id="101", country="Example Country", owner="Demo User")],
            "2": [],
            "3": [],
        },
        demo=True,
    )
