"""Helpers turning row mappings into the computation frame used by the stages."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import pandas as pd

from .models import Row


def build_frame(rows: Sequence[Row], columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Build an object-dtype frame whose index is the position in ``rows``.

    Values are kept as-is (no dtype inference) so that stages decide how to
    coerce them; declared ``columns`` missing from every row are added as
    all-missing columns.
    """

    records = [dict(row) for row in rows]
    frame = pd.DataFrame(records, dtype=object) if records else pd.DataFrame(dtype=object)
    frame.index = pd.RangeIndex(len(records))
    if columns is not None:
        missing = [key for key in columns if key not in frame.columns]
        for key in missing:
            frame[key] = pd.Series([None] * len(records), index=frame.index, dtype=object)
    return frame


def rows_for(frame: pd.DataFrame, rows: Sequence[Row]) -> List[Row]:
    """Return the original row objects referenced by ``frame``'s index, in order."""

    return [rows[position] for position in frame.index]


__all__ = ["build_frame", "rows_for"]
