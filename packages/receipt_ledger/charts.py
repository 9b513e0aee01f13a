"""Aggregation → chart-payload conversion.

Shapes match what the mobile chart components consume: a pie series is a list
of slices carrying ``population`` as the value, and a bar series is
``{"labels": [...], "datasets": [{"data": [...]}]}``. Amounts leave here as
floats because the payload is JSON.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypedDict

from .models import BucketTotal, CategoryTotal

LEGEND_FONT_COLOR = "#7F7F7F"
NO_DATA_LABEL = "No Data"


class PieSlice(TypedDict):
    name: str
    population: float
    color: str
    legendFontColor: str
    legendFontSize: int


class BarSeries(TypedDict):
    labels: list[str]
    datasets: list[dict[str, Any]]


def pie_series(
    breakdown: Iterable[CategoryTotal],
    *,
    drop_empty: bool = False,
    legend_font_size: int = 12,
) -> list[PieSlice]:
    """One slice per category; ``drop_empty`` removes zero-amount slices."""

    slices: list[PieSlice] = []
    for ct in breakdown:
        if drop_empty and ct.amount <= 0:
            continue
        slices.append(
            {
                "name": ct.category,
                "population": float(ct.amount),
                "color": ct.color,
                "legendFontColor": LEGEND_FONT_COLOR,
                "legendFontSize": legend_font_size,
            }
        )
    return slices


def bar_series(buckets: Iterable[BucketTotal], *, placeholder: bool = False) -> BarSeries:
    """Bar payload in bucket order.

    With ``placeholder`` an empty input renders a single ``"No Data"`` bar of
    height 0 instead of an empty chart.
    """

    rows = list(buckets)
    labels = [b.label for b in rows]
    data = [float(b.amount) for b in rows]
    if placeholder and not rows:
        labels, data = [NO_DATA_LABEL], [0.0]
    return {"labels": labels, "datasets": [{"data": data}]}


__all__ = ["PieSlice", "BarSeries", "pie_series", "bar_series", "NO_DATA_LABEL"]
