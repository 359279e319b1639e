"""REST API endpoints for the pipeline board.

Thin facade over SyncCoordinator: every mutation is applied locally and
returned immediately; the remote write happens in the background. Provides
the board view, the weighted forecast, card and stage mutations, and JSON
export/import.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from src.pipeline.api.deps import get_app_settings, get_coordinator
from src.pipeline.board.errors import ValidationError
from src.pipeline.board.schemas import Board, Card, CardDraft, Forecast, ForecastMode, Stage
from src.pipeline.board.snapshot import dump_board, export_filename, parse_board
from src.pipeline.config import Settings
from src.pipeline.sync.coordinator import SyncCoordinator

router = APIRouter(prefix="/board", tags=["board"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class MoveCardRequest(BaseModel):
    """Request body for moving a card between stages."""

    from_stage_id: str
    to_stage_id: str


class MoveCardResponse(BaseModel):
    """Whether the move changed the board."""

    moved: bool


class StageOrderRequest(BaseModel):
    """Request body for reordering stages by id."""

    stage_ids: list[str] = Field(default_factory=list)


def _unprocessable(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


# ── Board & Forecast ─────────────────────────────────────────────────────────


@router.get("", response_model=Board)
async def get_board(coordinator: SyncCoordinator = Depends(get_coordinator)) -> Board:
    """Current board: ordered stages and their card columns."""
    return coordinator.board


@router.get("/forecast", response_model=Forecast)
async def get_forecast(
    mode: ForecastMode | None = Query(default=None),
    coordinator: SyncCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> Forecast:
    """Probability-weighted forecast of the current board."""
    try:
        chosen = mode or ForecastMode(settings.FORECAST_MODE)
    except ValueError as exc:
        raise _unprocessable(exc) from exc
    return coordinator.forecast(chosen)


# ── Cards ────────────────────────────────────────────────────────────────────


@router.post(
    "/stages/{stage_id}/cards",
    response_model=Card,
    status_code=status.HTTP_201_CREATED,
)
async def add_card(
    stage_id: str,
    body: CardDraft,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Card:
    """Create a card at the end of a stage."""
    try:
        return coordinator.add_card(stage_id, body)
    except ValidationError as exc:
        raise _unprocessable(exc) from exc


@router.put("/cards/{card_id}", response_model=Card)
async def update_card(
    card_id: str,
    body: CardDraft,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Card:
    """Replace a card's fields; its stage is unchanged."""
    try:
        updated = coordinator.update_card(Card.from_draft(card_id, body))
    except ValidationError as exc:
        raise _unprocessable(exc) from exc
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Card not found")
    return updated


@router.post("/cards/{card_id}/move", response_model=MoveCardResponse)
async def move_card(
    card_id: str,
    body: MoveCardRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> MoveCardResponse:
    """Move a card to the end of another stage."""
    try:
        moved = coordinator.move_card(card_id, body.from_stage_id, body.to_stage_id)
    except ValidationError as exc:
        raise _unprocessable(exc) from exc
    return MoveCardResponse(moved=moved)


@router.delete("/stages/{stage_id}/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    stage_id: str,
    card_id: str,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Response:
    """Delete a card. Deleting an absent card is not an error."""
    coordinator.delete_card(stage_id, card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Stages ───────────────────────────────────────────────────────────────────


@router.put("/stages", response_model=Board)
async def set_stages(
    body: list[Stage],
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Board:
    """Replace the stage list (add, remove, rename, retune, reorder)."""
    try:
        return coordinator.set_stages(body)
    except ValidationError as exc:
        raise _unprocessable(exc) from exc


@router.put("/stages/order", response_model=Board)
async def reorder_stages(
    body: StageOrderRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Board:
    """Reorder the existing stages by id."""
    by_id = {s.id: s for s in coordinator.board.stages}
    unknown = [sid for sid in body.stage_ids if sid not in by_id]
    if unknown:
        raise _unprocessable(ValueError(f"Unknown stage ids: {unknown}"))
    try:
        return coordinator.reorder_stages([by_id[sid] for sid in body.stage_ids])
    except ValueError as exc:
        raise _unprocessable(exc) from exc


# ── Export / Import ──────────────────────────────────────────────────────────


@router.get("/export")
async def export_board(coordinator: SyncCoordinator = Depends(get_coordinator)) -> Response:
    """Download the board as JSON; the file name carries today's date."""
    return Response(
        content=dump_board(coordinator.board),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/import", response_model=Board)
async def import_board(
    request: Request,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> Board:
    """Replace the board with an uploaded export."""
    try:
        board = parse_board(await request.body())
    except ValidationError as exc:
        raise _unprocessable(exc) from exc
    return coordinator.import_board(board)
