"""Column layout: visibility, order, pinning, best-fit and header drag gestures."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .models import ColumnSpec

logger = logging.getLogger(__name__)


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"


class DragState:
    """Header drag gesture: ``idle -> dragging -> dropped -> idle``.

    Header clicks only sort while idle. The click that a browser delivers on
    drag release arrives in ``dropped`` and is swallowed, which also
    returns the machine to ``idle``; a render layer without such a click
    calls :meth:`settle` after it finished handling the drop.
    """

    def __init__(self) -> None:
        self.phase = DragPhase.IDLE
        self.dragged_key: Optional[str] = None

    def start(self, key: str) -> None:
        self.phase = DragPhase.DRAGGING
        self.dragged_key = key

    def finish(self) -> None:
        self.phase = DragPhase.DROPPED
        self.dragged_key = None

    def settle(self) -> None:
        self.phase = DragPhase.IDLE
        self.dragged_key = None

    def accept_click(self) -> bool:
        """Whether a header click should sort; consumes the post-drop click."""

        if self.phase is DragPhase.IDLE:
            return True
        if self.phase is DragPhase.DROPPED:
            self.settle()
        return False


class ColumnLayout:
    """Layout state kept apart from the data pipeline."""

    def __init__(self, columns: Sequence[ColumnSpec], pinned: Iterable[str] = ()) -> None:
        self._columns: Dict[str, ColumnSpec] = {spec.key: spec for spec in columns}
        self._keys: List[str] = [spec.key for spec in columns]
        self._pinned: List[str] = [key for key in dict.fromkeys(pinned) if key in self._columns]
        self._visible: List[str] = list(self._keys)
        self._order: List[str] = list(self._keys)
        self.best_fit = False
        self.drag = DragState()

    @property
    def keys(self) -> List[str]:
        return list(self._keys)

    @property
    def visible(self) -> List[str]:
        return list(self._visible)

    @property
    def order(self) -> List[str]:
        return list(self._order)

    @property
    def pinned(self) -> List[str]:
        return list(self._pinned)

    def column(self, key: str) -> Optional[ColumnSpec]:
        return self._columns.get(key)

    def is_pinned(self, key: str) -> bool:
        return key in self._pinned

    def update_columns(self, visible: Sequence[str], order: Sequence[str]) -> bool:
        """Replace visibility and order together; invalid input changes nothing."""

        visible_list = list(dict.fromkeys(visible))
        order_list = list(order)
        unknown = [key for key in visible_list if key not in self._columns]
        if unknown:
            logger.warning("Ignoring column update with unknown keys: %s", ", ".join(unknown))
            return False
        if len(order_list) != len(self._keys) or set(order_list) != set(self._keys):
            logger.warning("Ignoring column update: order is not a permutation of the table columns")
            return False
        self._visible = visible_list
        self._order = order_list
        self.best_fit = False
        return True

    def set_visible(self, key: str, visible: bool) -> bool:
        if key not in self._columns:
            logger.warning("Unknown column '%s'", key)
            return False
        if visible and key not in self._visible:
            self._visible.append(key)
        elif not visible and key in self._visible:
            self._visible.remove(key)
        else:
            return False
        self.best_fit = False
        return True

    def set_pinned(self, pinned: Sequence[str]) -> None:
        self._pinned = [key for key in dict.fromkeys(pinned) if key in self._columns]

    def toggle_best_fit(self) -> bool:
        self.best_fit = not self.best_fit
        return self.best_fit

    def drag_start(self, key: str) -> bool:
        if key not in self._columns or self.is_pinned(key):
            logger.debug("Drag rejected for column '%s'", key)
            return False
        self.drag.start(key)
        return True

    def drop(self, from_key: Optional[str], to_key: Optional[str]) -> bool:
        """Move ``from_key`` immediately before ``to_key``; returns whether the order changed."""

        if self.drag.phase is DragPhase.DRAGGING:
            self.drag.finish()
        if not from_key or not to_key or from_key == to_key:
            return False
        if from_key not in self._order or to_key not in self._order:
            return False
        if self.is_pinned(from_key):
            return False
        order = [key for key in self._order if key != from_key]
        order.insert(order.index(to_key), from_key)
        changed = order != self._order
        self._order = order
        return changed

    def drag_end(self) -> None:
        """Drag cancelled without a drop."""

        if self.drag.phase is DragPhase.DRAGGING:
            self.drag.finish()

    def displayed_columns(self) -> List[ColumnSpec]:
        """Visible pinned columns in pin order, then visible regular columns in order."""

        pinned = [self._columns[key] for key in self._pinned if key in self._visible]
        regular = [
            self._columns[key]
            for key in self._order
            if key in self._visible and key not in self._pinned
        ]
        return pinned + regular

    def restore(
        self,
        visible: Optional[Sequence[str]] = None,
        order: Optional[Sequence[str]] = None,
        pinned: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Apply saved layout fields independently; returns the names of rejected fields."""

        rejected: List[str] = []
        if visible is not None:
            if all(key in self._columns for key in visible):
                self._visible = list(dict.fromkeys(visible))
            else:
                rejected.append("visibleColumnKeys")
        if order is not None:
            if len(order) == len(self._keys) and set(order) == set(self._keys):
                self._order = list(order)
            else:
                rejected.append("columnOrder")
        if pinned is not None:
            self.set_pinned(pinned)
        return rejected


__all__ = ["ColumnLayout", "DragPhase", "DragState"]
