"""Formatter registry: ``column key -> (value, row) -> display value``."""
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Optional

import pandas as pd

from .models import ColumnSpec, ColumnType, Row

Formatter = Callable[[Any, Row], Any]

MISSING_PLACEHOLDER = "-"


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def format_number(value: Any, _row: Optional[Row] = None) -> str:
    if is_missing(value):
        return MISSING_PLACEHOLDER
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def format_date(value: Any, _row: Optional[Row] = None) -> str:
    if is_missing(value):
        return MISSING_PLACEHOLDER
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return str(value)
    return parsed.strftime("%Y-%m-%d")


def format_string(value: Any, _row: Optional[Row] = None) -> str:
    if is_missing(value) or value == "":
        return MISSING_PLACEHOLDER
    return str(value)


DEFAULT_FORMATTERS: Dict[ColumnType, Formatter] = {
    ColumnType.STRING: format_string,
    ColumnType.NUMBER: format_number,
    ColumnType.DATE: format_date,
}


class FormatterRegistry:
    """Per-column formatters with a default per semantic column type."""

    def __init__(self, columns: Iterable[ColumnSpec], custom: Optional[Dict[str, Formatter]] = None) -> None:
        self._types: Dict[str, ColumnType] = {spec.key: spec.type for spec in columns}
        self._custom: Dict[str, Formatter] = dict(custom or {})

    def register(self, key: str, formatter: Formatter) -> None:
        self._custom[key] = formatter

    def unregister(self, key: str) -> None:
        self._custom.pop(key, None)

    def formatter_for(self, key: str) -> Formatter:
        if key in self._custom:
            return self._custom[key]
        return DEFAULT_FORMATTERS[self._types.get(key, ColumnType.STRING)]

    def format(self, key: str, row: Row) -> Any:
        return self.formatter_for(key)(row.get(key), row)


__all__ = [
    "DEFAULT_FORMATTERS",
    "Formatter",
    "FormatterRegistry",
    "MISSING_PLACEHOLDER",
    "format_date",
    "format_number",
    "format_string",
    "is_missing",
]
