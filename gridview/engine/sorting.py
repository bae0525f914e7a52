"""Sort stage: total, stable ordering of rows by one column."""
from __future__ import annotations

import unicodedata
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .frames import build_frame, rows_for
from .models import ColumnType, Row, SortConfig, SortDirection


def collation_key(text: str) -> str:
    """Case- and accent-insensitive key; the raw text breaks ties."""

    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return f"{base}\x00{text}"


def _sort_keys(values: pd.Series, column_type: Optional[ColumnType]) -> pd.Series:
    present = values.notna()
    if column_type is ColumnType.DATE:
        return pd.to_datetime(values.where(present), errors="coerce", format="mixed")
    present_values = values[present]
    if column_type is not ColumnType.NUMBER and len(present_values) and all(
        isinstance(value, str) for value in present_values
    ):
        return values.map(lambda value: collation_key(value) if isinstance(value, str) else np.nan)
    numeric = pd.to_numeric(values.where(present), errors="coerce")
    # Non-numeric but present values compare as 0; only true nulls go last.
    return numeric.mask(present & numeric.isna(), 0.0)


def sort_frame(
    frame: pd.DataFrame,
    key: Optional[str],
    direction: Union[SortDirection, str] = SortDirection.ASC,
    column_type: Optional[ColumnType] = None,
) -> pd.DataFrame:
    """Return ``frame`` ordered by ``key``.

    Missing values are placed last in both directions. Strings compare
    ignoring case and accents, everything else numerically. Rows with
    equal keys keep their relative order.
    """

    if not key or key not in frame.columns or frame.empty:
        return frame
    ascending = SortDirection(direction) is SortDirection.ASC
    work = pd.DataFrame(
        {"_key": _sort_keys(frame[key], column_type), "_pos": np.arange(len(frame))},
        index=frame.index,
    )
    order = work.sort_values(
        ["_key", "_pos"], ascending=[ascending, True], na_position="last", kind="mergesort"
    ).index
    return frame.loc[order]


def sort_rows(
    rows: Sequence[Row],
    key: Optional[str],
    direction: Union[SortDirection, str] = SortDirection.ASC,
    column_type: Optional[ColumnType] = None,
) -> List[Row]:
    """List-in, list-out variant of :func:`sort_frame`."""

    frame = build_frame(rows, [key] if key else None)
    return rows_for(sort_frame(frame, key, direction, column_type), rows)


class SortState:
    """Current sort configuration and the header-click toggle rule."""

    def __init__(self) -> None:
        self.config = SortConfig()

    def toggle(self, key: str) -> SortConfig:
        self.config = self.config.toggled(key)
        return self.config

    def set(self, key: Optional[str], direction: Union[SortDirection, str] = SortDirection.ASC) -> SortConfig:
        self.config = SortConfig(key=key, direction=SortDirection(direction))
        return self.config

    def clear(self) -> None:
        self.config = SortConfig()


__all__ = ["SortState", "collation_key", "sort_frame", "sort_rows"]
