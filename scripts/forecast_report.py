#!/usr/bin/env python3
"""Weighted pipeline forecast report.

Usage:
    uv run python scripts/forecast_report.py --mode transition
    uv run python scripts/forecast_report.py --file kings-pipeline-2026-10-19.json

Without --file the board is loaded from the configured remote store (or the
demo board when DATABASE_URL is unset). Reads settings from environment or .env.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

import structlog  # noqa: E402

from src.pipeline.board.errors import PipelineError  # noqa: E402
from src.pipeline.board.forecast import calculate_weighted_pipeline  # noqa: E402
from src.pipeline.board.schemas import Board, Forecast, ForecastMode  # noqa: E402
from src.pipeline.board.snapshot import parse_board  # noqa: E402
from src.pipeline.config import get_settings  # noqa: E402
from src.pipeline.persistence import create_persistence  # noqa: E402

logger = structlog.get_logger(__name__)


async def load_remote_board() -> Board:
    """Load the configured board through the persistence adapter."""
    settings = get_settings()
    persistence = create_persistence(settings)
    try:
        return await persistence.load_board(settings.BOARD_ID)
    finally:
        if persistence.is_configured:
            from src.pipeline.core.database import close_db

            await close_db()


def format_report(forecast: Forecast, demo: bool = False) -> str:
    """Render a forecast as a fixed-width text table."""
    lines = []
    if demo:
        lines.append("(demo board -- no remote store configured)")
    lines.append(f"Mode: {forecast.mode.value}")
    lines.append(
        f"{'Stage':<24} {'Prob':>6} {'To end':>7} {'Deals':>6} {'Total':>14} {'Weighted':>14}"
    )
    for row in forecast.per_stage:
        flag = " !wip" if row.over_wip else ""
        lines.append(
            f"{row.name[:24]:<24} {row.prob:>5.0f}% {row.probability_to_end:>7.2%} "
            f"{row.count:>6} {row.total:>14,.2f} {row.weighted:>14,.2f}{flag}"
        )
    lines.append(f"{'TOTAL':<24} {'':>6} {'':>7} {'':>6} {forecast.total:>14,.2f} {forecast.weighted:>14,.2f}")
    return "\n".join(lines)


def main() -> int:
    parser = argparse.ArgumentParser(description="Print the weighted pipeline forecast")
    parser.add_argument("--file", type=Path, help="Board export JSON to read instead of the remote store")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ForecastMode],
        default=None,
        help="Probability interpretation (default: FORECAST_MODE setting)",
    )
    args = parser.parse_args()

    mode = ForecastMode(args.mode or get_settings().FORECAST_MODE)
    try:
        if args.file:
            board = parse_board(args.file.read_text(encoding="utf-8"))
        else:
            board = asyncio.run(load_remote_board())
    except (PipelineError, OSError) as exc:
        logger.error("forecast_report.load_failed", error=str(exc))
        print(f"Could not load board: {exc}", file=sys.stderr)
        return 1

    forecast = calculate_weighted_pipeline(board.stages, board.columns, mode)
    print(format_report(forecast, demo=board.demo))
    return 0


if __name__ == "__main__":
    sys.exit(main())
