"""Context menu support: derived state and ``{label, action}`` entries.

The engine does not render menus. A front-end asks the controller for a
:class:`MenuContext` when the user right-clicks and turns the entries from
:func:`build_menu_actions` into whatever widget it uses.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from .models import AggregateOp, ColumnSpec, Row

if TYPE_CHECKING:  # pragma: no cover
    from .controller import TableController


class MenuKind(str, Enum):
    HEADER = "header"
    ROW = "row"


@dataclass(frozen=True)
class MenuContext:
    kind: MenuKind
    position: Tuple[int, int] = (0, 0)
    column: Optional[ColumnSpec] = None
    target_rows: List[Row] = field(default_factory=list)
    clicked_row: Optional[Row] = None
    is_grouped: bool = False
    grouping_enabled: bool = True
    aggregation_legal: bool = False
    best_fit_enabled: bool = False
    has_manual_groups: bool = False
    clicked_manual_group_id: Optional[str] = None


@dataclass(frozen=True)
class MenuAction:
    label: str
    action: Callable[[], Any]


def _header_actions(controller: "TableController", context: MenuContext) -> List[MenuAction]:
    column = context.column
    if column is None:
        return []
    key = column.key
    actions = [
        MenuAction(
            label="Disable Best Fit" if context.best_fit_enabled else "Enable Best Fit",
            action=controller.toggle_best_fit,
        )
    ]
    if context.grouping_enabled:
        actions.append(MenuAction(f"Group by {column.title}", lambda: controller.group_by_column(key)))
        if context.is_grouped:
            actions.append(MenuAction(f"Ungroup by {column.title}", lambda: controller.ungroup_by_column(key)))
    if context.aggregation_legal:
        actions.append(
            MenuAction(f"Sum {column.title}", lambda: controller.aggregate_column(key, AggregateOp.SUM))
        )
        actions.append(
            MenuAction(f"Average {column.title}", lambda: controller.aggregate_column(key, AggregateOp.AVERAGE))
        )
    return actions


def _row_actions(
    controller: "TableController",
    context: MenuContext,
    group_name: Optional[str],
    target_group_id: Optional[str],
) -> List[MenuAction]:
    rows = list(context.target_rows)
    actions: List[MenuAction] = []
    if len(rows) > 1:
        actions.append(
            MenuAction("Create New Group", lambda: controller.create_group(group_name or "", rows))
        )
        if context.has_manual_groups:
            actions.append(
                MenuAction("Add to Existing Group", lambda: controller.add_to_group(target_group_id or "", rows))
            )
    clicked = context.clicked_row
    if context.clicked_manual_group_id is not None and clicked is not None:
        group_id = context.clicked_manual_group_id
        row_id = clicked.get(controller.id_field)
        actions.append(MenuAction("Remove from Group", lambda: controller.remove_from_group(group_id, row_id)))
    return actions


def build_menu_actions(
    controller: "TableController",
    context: MenuContext,
    group_name: Optional[str] = None,
    target_group_id: Optional[str] = None,
) -> List[MenuAction]:
    """Entries for ``context``.

    ``group_name`` and ``target_group_id`` are the answers of the dialogs a
    front-end shows before running "Create New Group" / "Add to Existing
    Group".
    """

    if context.kind is MenuKind.HEADER:
        return _header_actions(controller, context)
    return _row_actions(controller, context, group_name, target_group_id)


__all__ = ["MenuAction", "MenuContext", "MenuKind", "build_menu_actions"]
