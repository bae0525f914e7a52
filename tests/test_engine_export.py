from __future__ import annotations

import datetime as dt
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pd = pytest.importorskip("pandas")

from gridview.engine.export import project_rows
from gridview.engine.formatting import (
    FormatterRegistry,
    format_date,
    format_number,
    format_string,
)
from gridview.engine.models import ColumnSpec, ColumnType

COLUMNS = [
    ColumnSpec("cashflowNumber", "Cashflow Number"),
    ColumnSpec("quantity", "Quantity", type=ColumnType.NUMBER),
    ColumnSpec("tradeDate", "Trade Date", type=ColumnType.DATE),
]

ROWS = [
    {"id": 1, "cashflowNumber": "CF-1", "quantity": 1500, "tradeDate": "2024-01-05"},
    {"id": 2, "cashflowNumber": None, "quantity": None, "tradeDate": None},
]


def test_default_formatters():
    assert format_number(1234567) == "1,234,567"
    assert format_number(2.5) == "2.5"
    assert format_number(float("nan")) == "-"
    assert format_date(dt.date(2024, 3, 9)) == "2024-03-09"
    assert format_date("2024-03-09T10:00:00") == "2024-03-09"
    assert format_string("") == "-"
    assert format_string(None) == "-"


def test_custom_formatters_receive_the_row():
    registry = FormatterRegistry(COLUMNS, {"quantity": lambda value, row: f"{row['id']}:{value}"})

    assert registry.format("quantity", ROWS[0]) == "1:1500"
    registry.unregister("quantity")
    assert registry.format("quantity", ROWS[0]) == "1,500"


def test_projection_uses_titles_and_placeholders():
    table = project_rows(COLUMNS, ROWS, FormatterRegistry(COLUMNS))

    assert [column.title for column in table.columns] == ["Cashflow Number", "Quantity", "Trade Date"]
    assert table.rows == [["CF-1", "1,500", "2024-01-05"], ["-", "-", "-"]]
    assert table.records()[0] == {"Cashflow Number": "CF-1", "Quantity": "1,500", "Trade Date": "2024-01-05"}


def test_projection_to_frame():
    frame = project_rows(COLUMNS[:2], ROWS, FormatterRegistry(COLUMNS)).to_frame()

    assert list(frame.columns) == ["Cashflow Number", "Quantity"]
    assert frame.shape == (2, 2)


def test_no_visible_columns_yields_an_empty_table():
    table = project_rows([], ROWS, FormatterRegistry(COLUMNS))

    assert table.is_empty
    assert table.rows == []
