"""Filter stage: numeric predicate filters combined with AND."""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .errors import FilterValidationError
from .frames import build_frame, rows_for
from .models import FilterOp, FilterSpec, Row


def parse_filter(op: Optional[Any], value: Optional[Any]) -> FilterSpec:
    """Validate raw user input and build a :class:`FilterSpec`.

    Raises :class:`FilterValidationError` when the operator is missing or
    unknown, or when the value is not a finite number.
    """

    if op is None or op == "":
        raise FilterValidationError("A filter operator is required.")
    try:
        filter_op = op if isinstance(op, FilterOp) else FilterOp(str(op).strip().lower())
    except ValueError as exc:
        valid = ", ".join(item.value for item in FilterOp)
        raise FilterValidationError(f"Unknown filter operator '{op}'. Expected one of: {valid}.") from exc
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise FilterValidationError("A numeric filter value is required.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise FilterValidationError(f"Filter value '{value}' is not a number.") from exc
    if not math.isfinite(number):
        raise FilterValidationError(f"Filter value '{value}' is not a finite number.")
    return FilterSpec(op=filter_op, value=number)


def filter_mask(frame: pd.DataFrame, filters: Mapping[str, FilterSpec]) -> pd.Series:
    """Boolean mask of the rows of ``frame`` passing every filter."""

    mask = pd.Series(True, index=frame.index)
    for key, spec in filters.items():
        if key not in frame.columns:
            # A filter on a field no row carries excludes everything.
            return pd.Series(False, index=frame.index)
        numeric = pd.to_numeric(frame[key], errors="coerce")
        if spec.op is FilterOp.EQUAL:
            passed = numeric == spec.value
        elif spec.op is FilterOp.LESS:
            passed = numeric < spec.value
        else:
            passed = numeric > spec.value
        # NaN compares False, so non-numeric cells never pass.
        mask &= passed.fillna(False).astype(bool)
    return mask


def filter_frame(frame: pd.DataFrame, filters: Mapping[str, FilterSpec]) -> pd.DataFrame:
    if not filters or frame.empty:
        return frame
    return frame.loc[filter_mask(frame, filters)]


def filter_rows(rows: Sequence[Row], filters: Mapping[str, FilterSpec]) -> List[Row]:
    """List-in, list-out variant of :func:`filter_frame`."""

    frame = build_frame(rows, list(filters))
    return rows_for(filter_frame(frame, filters), rows)


class FilterState:
    """Per-column filter map; each change replaces one column's predicate."""

    def __init__(self) -> None:
        self._filters: Dict[str, FilterSpec] = {}

    @property
    def filters(self) -> Dict[str, FilterSpec]:
        return dict(self._filters)

    def apply(self, key: str, op: Optional[Any], value: Optional[Any]) -> FilterSpec:
        spec = parse_filter(op, value)
        self.set(key, spec)
        return spec

    def set(self, key: str, spec: FilterSpec) -> None:
        self._filters[key] = spec

    def clear(self, key: str) -> bool:
        return self._filters.pop(key, None) is not None

    def clear_all(self) -> None:
        self._filters.clear()

    def replace(self, filters: Mapping[str, FilterSpec]) -> None:
        self._filters = dict(filters)


__all__ = ["FilterState", "filter_frame", "filter_mask", "filter_rows", "parse_filter"]
