"""Export projection: visible columns in display order, formatted cells."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import pandas as pd

from .formatting import FormatterRegistry
from .models import ColumnSpec, Row


@dataclass(frozen=True)
class ExportColumn:
    key: str
    title: str
    type: str


@dataclass
class ExportTable:
    """Tabular projection handed to an export encoder."""

    columns: List[ExportColumn] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.columns or not self.rows

    def records(self) -> List[Dict[str, Any]]:
        """Rows as ``{title: value}`` mappings."""

        titles = [column.title for column in self.columns]
        return [dict(zip(titles, row)) for row in self.rows]

    def to_frame(self) -> pd.DataFrame:
        titles = [column.title for column in self.columns]
        return pd.DataFrame(self.rows, columns=titles)


def project_rows(
    columns: Sequence[ColumnSpec],
    rows: Sequence[Row],
    formatters: FormatterRegistry,
) -> ExportTable:
    """Project ``rows`` onto ``columns`` through ``formatters``.

    An empty column list yields an empty table regardless of the rows.
    """

    export_columns = [ExportColumn(key=spec.key, title=spec.title, type=spec.type.value) for spec in columns]
    if not export_columns:
        return ExportTable()
    projected = [[formatters.format(column.key, row) for column in export_columns] for row in rows]
    return ExportTable(columns=export_columns, rows=projected)


__all__ = ["ExportColumn", "ExportTable", "project_rows"]
