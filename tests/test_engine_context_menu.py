from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")

from gridview.engine import ColumnSpec, ColumnType, MenuKind, TableController

COLUMNS = [
    ColumnSpec("id", "Id"),
    ColumnSpec("buySell", "Buy/Sell"),
    ColumnSpec("extendedAmount", "Amount", type=ColumnType.NUMBER),
]
ROWS = [
    {"id": "r1", "buySell": "Buy", "extendedAmount": 100},
    {"id": "r2", "buySell": "Sell", "extendedAmount": 50},
    {"id": "r3", "buySell": "Buy", "extendedAmount": 25},
]


def _labels(actions):
    return [action.label for action in actions]


def test_header_menu_for_a_numeric_column():
    controller = TableController(ROWS, COLUMNS)
    context = controller.menu_context(MenuKind.HEADER, column_key="extendedAmount", position=(10, 20))

    assert context.position == (10, 20)
    assert _labels(controller.menu_actions(context)) == [
        "Enable Best Fit",
        "Group by Amount",
        "Sum Amount",
        "Average Amount",
    ]


def test_header_menu_offers_ungroup_once_grouped():
    controller = TableController(ROWS, COLUMNS)
    controller.group_by_column("buySell")
    controller.toggle_best_fit()

    actions = controller.menu_actions(controller.menu_context("header", column_key="buySell"))

    assert _labels(actions) == ["Disable Best Fit", "Group by Buy/Sell", "Ungroup by Buy/Sell"]
    actions[2].action()
    assert controller.active_groups == []


def test_row_menu_targets_the_selection_and_creates_groups():
    controller = TableController(ROWS, COLUMNS)
    controller.select("r1", True)
    controller.select("r2", True)

    context = controller.menu_context(MenuKind.ROW, clicked_row=ROWS[0])
    actions = controller.menu_actions(context, group_name="Desk A")

    assert [row["id"] for row in context.target_rows] == ["r1", "r2"]
    assert _labels(actions) == ["Create New Group"]
    actions[0].action()
    assert [group.name for group in controller.get_available_groups()] == ["Desk A"]


def test_row_menu_inside_a_manual_group():
    controller = TableController(ROWS, COLUMNS)
    group = controller.create_group("Desk A", ROWS[:2])

    context = controller.menu_context(MenuKind.ROW, clicked_row=ROWS[0], target_rows=ROWS[:3])
    actions = controller.menu_actions(context, target_group_id=group.id)

    assert _labels(actions) == ["Create New Group", "Add to Existing Group", "Remove from Group"]
    actions[2].action()
    assert controller.manual_group_of("r1") is None
    actions[1].action()
    assert controller.get_available_groups()[0].row_ids == ["r2", "r1", "r3"]


def test_single_row_menu_outside_groups_is_empty():
    controller = TableController(ROWS, COLUMNS)

    context = controller.menu_context(MenuKind.ROW, clicked_row=ROWS[2])

    assert controller.menu_actions(context) == []
