from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pd = pytest.importorskip("pandas")

from gridview.engine.errors import FilterValidationError
from gridview.engine.filtering import FilterState, filter_rows, parse_filter
from gridview.engine.models import FilterOp, FilterSpec

ROWS = [
    {"id": 1, "buySell": "Buy", "extendedAmount": 100},
    {"id": 2, "buySell": "Sell", "extendedAmount": 50},
    {"id": 3, "buySell": "Buy", "extendedAmount": None},
]


def test_greater_filter_excludes_nulls_and_smaller_values():
    result = filter_rows(ROWS, {"extendedAmount": FilterSpec(FilterOp.GREATER, 60)})

    assert [row["id"] for row in result] == [1]


def test_filters_combine_with_and():
    rows = [
        {"id": 1, "qty": 5, "price": 10},
        {"id": 2, "qty": 5, "price": 1},
        {"id": 3, "qty": 6, "price": 10},
    ]
    filters = {
        "qty": FilterSpec(FilterOp.EQUAL, 5),
        "price": FilterSpec(FilterOp.GREATER, 2),
    }

    assert [row["id"] for row in filter_rows(rows, filters)] == [1]


def test_numeric_strings_are_compared_and_text_fails():
    rows = [{"id": 1, "v": "12.5"}, {"id": 2, "v": "abc"}, {"id": 3, "v": 3}]

    result = filter_rows(rows, {"v": FilterSpec(FilterOp.LESS, 20)})

    assert [row["id"] for row in result] == [1, 3]


def test_no_filters_keeps_everything():
    assert filter_rows(ROWS, {}) == ROWS


@pytest.mark.parametrize(
    "op, value",
    [(None, 5), ("", 5), ("between", 5), ("greater", None), ("greater", ""), ("less", "abc"), ("equal", "nan")],
)
def test_parse_filter_rejects_invalid_input(op, value):
    with pytest.raises(FilterValidationError):
        parse_filter(op, value)


def test_parse_filter_accepts_numeric_text():
    assert parse_filter("Greater", " 60 ") == FilterSpec(FilterOp.GREATER, 60.0)


def test_filter_state_leaves_existing_filters_on_rejection():
    state = FilterState()
    state.apply("extendedAmount", "greater", 60)

    with pytest.raises(FilterValidationError):
        state.apply("extendedAmount", "less", "oops")

    assert state.filters == {"extendedAmount": FilterSpec(FilterOp.GREATER, 60.0)}
    assert state.clear("extendedAmount") is True
    assert state.clear("extendedAmount") is False
