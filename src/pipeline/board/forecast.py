"""Probability-weighted pipeline forecast.

Pure functions: no state, no I/O. Given the ordered stages and the card
columns, computes each stage's face value, its probability of reaching the
final stage, and the weighted (expected) value.

The final stage is always treated as a certain outcome (probability 1),
whatever its own stored probability. Two interpretations of a stage's
stored probability are supported (see ForecastMode):

- absolute:   probToEnd(i) = clamp(prob_i / 100)
- transition: probToEnd(i) = clamp(prob_i / 100) * probToEnd(i + 1)

Cumulative probabilities are built as a single right-to-left fold, so cost
is linear in stages plus cards and long pipelines never recurse.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from src.pipeline.board.schemas import (
    Forecast,
    ForecastMode,
    StageForecast,
    finite_or_none,
)


def _field(item: Any, name: str) -> Any:
    """Read a field from a model or a plain mapping."""
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _clamp_probability(prob: Any) -> float:
    """Convert a 0-100 stage probability to a 0-1 fraction.

    Missing, non-numeric and out-of-range values are coerced, never rejected.
    """
    number = finite_or_none(prob)
    if number is None:
        return 0.0
    return max(0.0, min(1.0, number / 100))


def card_value(card: Any) -> float:
    """Face value of a card; missing or non-numeric values count as 0."""
    number = finite_or_none(_field(card, "value"))
    return number if number is not None else 0.0


def probabilities_to_end(
    stages: Sequence[Any],
    mode: ForecastMode | str = ForecastMode.ABSOLUTE,
) -> list[float]:
    """Probability that a deal in each stage reaches the final stage.

    Args:
        stages: Ordered stages (models or mappings with a ``prob`` field).
        mode: ForecastMode or its string value.

    Returns:
        One probability per stage; the last entry is always 1.0.

    Raises:
        ValueError: If mode is not a known ForecastMode.
    """
    mode = ForecastMode(mode)
    count = len(stages)
    result = [0.0] * count
    if count == 0:
        return result

    result[-1] = 1.0
    for idx in range(count - 2, -1, -1):
        p = _clamp_probability(_field(stages[idx], "prob"))
        if mode == ForecastMode.ABSOLUTE:
            result[idx] = p
        else:
            result[idx] = p * result[idx + 1]
    return result


def calculate_weighted_pipeline(
    stages: Sequence[Any],
    columns: Mapping[str, Sequence[Any]],
    mode: ForecastMode | str = ForecastMode.ABSOLUTE,
) -> Forecast:
    """Compute per-stage and total face and weighted values.

    Args:
        stages: Ordered stages (Stage models or mappings).
        columns: Stage id -> cards in that stage. Missing ids are empty.
        mode: ForecastMode or its string value.

    Returns:
        Forecast with the unweighted total, the weighted total and one
        StageForecast per stage, in stage order.
    """
    mode = ForecastMode(mode)
    to_end = probabilities_to_end(stages, mode)

    total = 0.0
    weighted = 0.0
    per_stage: list[StageForecast] = []

    for idx, stage in enumerate(stages):
        stage_id = str(_field(stage, "id"))
        cards = columns.get(stage_id) or []
        stage_total = sum(card_value(c) for c in cards)
        stage_weighted = stage_total * to_end[idx]
        total += stage_total
        weighted += stage_weighted

        wip = _field(stage, "wip")
        wip_cap = int(wip) if finite_or_none(wip) is not None else None
        prob = finite_or_none(_field(stage, "prob"))

        per_stage.append(
            StageForecast(
                id=stage_id,
                name=str(_field(stage, "name") or ""),
                prob=prob if prob is not None else 0.0,
                count=len(cards),
                total=stage_total,
                weighted=stage_weighted,
                probability_to_end=to_end[idx],
                wip=wip_cap,
                over_wip=wip_cap is not None and len(cards) > wip_cap,
            )
        )

    return Forecast(mode=mode, total=total, weighted=weighted, per_stage=per_stage)
