from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")

from gridview.engine.columns import ColumnLayout, DragPhase
from gridview.engine.models import ColumnSpec

COLUMNS = [ColumnSpec(key, key.upper()) for key in ("a", "b", "c", "d")]


def test_drop_moves_the_column_before_the_target():
    layout = ColumnLayout(COLUMNS)

    assert layout.drag_start("d") is True
    assert layout.drop("d", "b") is True

    assert layout.order == ["a", "d", "b", "c"]
    assert layout.drag.phase is DragPhase.DROPPED


def test_drop_on_itself_is_a_no_op():
    layout = ColumnLayout(COLUMNS)
    layout.drag_start("b")

    assert layout.drop("b", "b") is False
    assert layout.order == ["a", "b", "c", "d"]


def test_pinned_columns_cannot_be_dragged():
    layout = ColumnLayout(COLUMNS, pinned=["c"])

    assert layout.drag_start("c") is False
    assert layout.drop("c", "a") is False
    assert [spec.key for spec in layout.displayed_columns()] == ["c", "a", "b", "d"]


def test_click_after_drop_is_swallowed_once():
    layout = ColumnLayout(COLUMNS)
    layout.drag_start("a")
    assert layout.drag.accept_click() is False
    layout.drop("a", "c")

    assert layout.drag.accept_click() is False
    assert layout.drag.accept_click() is True


def test_settle_returns_to_idle():
    layout = ColumnLayout(COLUMNS)
    layout.drag_start("a")
    layout.drag_end()
    layout.drag.settle()

    assert layout.drag.phase is DragPhase.IDLE


def test_update_columns_requires_a_permutation():
    layout = ColumnLayout(COLUMNS)
    layout.toggle_best_fit()

    assert layout.update_columns(["a"], ["a", "b", "c"]) is False
    assert layout.update_columns(["a", "zz"], ["a", "b", "c", "d"]) is False
    assert layout.best_fit is True

    assert layout.update_columns(["d", "a"], ["d", "c", "b", "a"]) is True
    assert layout.best_fit is False
    assert [spec.key for spec in layout.displayed_columns()] == ["d", "a"]


def test_set_visible_toggles_one_column():
    layout = ColumnLayout(COLUMNS)

    assert layout.set_visible("b", False) is True
    assert layout.set_visible("b", False) is False
    assert layout.set_visible("zz", True) is False
    assert "b" not in layout.visible


def test_restore_rejects_invalid_fields_independently():
    layout = ColumnLayout(COLUMNS)

    rejected = layout.restore(visible=["a", "b"], order=["a", "b"], pinned=["b", "zz"])

    assert rejected == ["columnOrder"]
    assert layout.visible == ["a", "b"]
    assert layout.order == ["a", "b", "c", "d"]
    assert layout.pinned == ["b"]


def test_drop_without_a_drag_does_not_swallow_the_next_click():
    layout = ColumnLayout(COLUMNS, pinned=["a"])

    assert layout.drop("c", "b") is True
    assert layout.drag.phase is DragPhase.IDLE
    assert layout.drag.accept_click() is True

    assert layout.drag_start("a") is False
    layout.drop("a", "d")
    assert layout.drag.accept_click() is True
