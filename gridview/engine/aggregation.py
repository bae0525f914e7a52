"""Aggregation engine: per-column sum and average over the current rows."""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .frames import build_frame
from .models import AggregateOp, AggregateResult, ColumnSpec, Row


def format_sum(value: float) -> str:
    """Grouped thousands without forcing decimals (``1234.5 -> '1,234.5'``)."""

    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_average(value: float) -> str:
    return f"{value:.2f}"


def format_aggregate(op: Union[AggregateOp, str], value: float) -> str:
    if AggregateOp(op) is AggregateOp.SUM:
        return format_sum(value)
    return format_average(value)


def aggregate_frame(frame: pd.DataFrame, key: str, op: Union[AggregateOp, str]) -> AggregateResult:
    """Compute ``op`` over column ``key`` of ``frame``.

    Non-numeric cells contribute 0 to the sum; the average divides by the
    number of numeric cells only.
    """

    operation = AggregateOp(op)
    if key in frame.columns:
        numeric = pd.to_numeric(frame[key], errors="coerce")
    else:
        numeric = pd.Series(dtype=float)
    total = float(numeric.fillna(0.0).sum())
    if operation is AggregateOp.SUM:
        value = total
    else:
        count = int(numeric.count())
        value = total / count if count > 0 else 0.0
    return AggregateResult(op=operation, value=value, formatted_value=format_aggregate(operation, value))


def aggregate(rows: Sequence[Row], key: str, op: Union[AggregateOp, str]) -> AggregateResult:
    """List variant of :func:`aggregate_frame`."""

    return aggregate_frame(build_frame(rows, [key]), key, op)


def first_numeric(row: Row, keys: Iterable[str]) -> float:
    """Return the first finite numeric value among ``keys`` of ``row``, else 0."""

    for key in keys:
        value = row.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number) and number != 0:
            return number
    return 0.0


class AggregationState:
    """Aggregations keyed per column, recomputed only on request."""

    def __init__(self, columns: Sequence[ColumnSpec]) -> None:
        self._columns: Dict[str, ColumnSpec] = {spec.key: spec for spec in columns}
        self._results: Dict[str, AggregateResult] = {}

    @property
    def results(self) -> Dict[str, AggregateResult]:
        return dict(self._results)

    def is_legal(self, key: str) -> bool:
        spec = self._columns.get(key)
        return spec is not None and spec.supports_aggregation

    def compute(self, frame: pd.DataFrame, key: str, op: Union[AggregateOp, str]) -> Optional[AggregateResult]:
        """Store and return the aggregate, or ``None`` for a non-numeric column."""

        if not self.is_legal(key):
            return None
        result = aggregate_frame(frame, key, op)
        self._results[key] = result
        return result

    def refresh(self, frame: pd.DataFrame) -> Dict[str, AggregateResult]:
        """Recompute every stored aggregation with its current operation."""

        for key, result in list(self._results.items()):
            self._results[key] = aggregate_frame(frame, key, result.op)
        return self.results

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._results.clear()
        else:
            self._results.pop(key, None)

    def replace(self, results: Dict[str, AggregateResult]) -> List[str]:
        """Adopt ``results`` for legal columns; returns the keys that were dropped."""

        dropped = [key for key in results if not self.is_legal(key)]
        self._results = {key: value for key, value in results.items() if self.is_legal(key)}
        return dropped


__all__ = [
    "AggregationState",
    "aggregate",
    "aggregate_frame",
    "first_numeric",
    "format_aggregate",
    "format_average",
    "format_sum",
]
