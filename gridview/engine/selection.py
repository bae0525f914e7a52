"""Selection manager: the set of selected data rows."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from .models import Row, RowId

logger = logging.getLogger(__name__)

SelectionCallback = Callable[[List[Row]], None]


class SelectionManager:
    """Track selected rows by id, in selection order.

    Every mutation calls ``on_change`` with the full list of selected row
    objects, even when the mutation left the selection as it was.
    """

    def __init__(self, id_field: str = "id", on_change: Optional[SelectionCallback] = None) -> None:
        self._id_field = id_field
        self._on_change = on_change
        self._selected: Dict[RowId, Row] = {}

    @property
    def selected_rows(self) -> List[Row]:
        return list(self._selected.values())

    @property
    def selected_ids(self) -> List[RowId]:
        return list(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def is_selected(self, row_id: RowId) -> bool:
        return row_id in self._selected

    def select(self, row: Row, included: bool) -> None:
        row_id = row.get(self._id_field)
        if row_id is None:
            logger.debug("Ignoring selection of a row without '%s'", self._id_field)
            return
        if included:
            self._selected.setdefault(row_id, row)
        else:
            self._selected.pop(row_id, None)
        self._notify()

    def select_all(self, rows: Iterable[Row], included: bool) -> None:
        if included:
            self._selected = {}
            for row in rows:
                row_id = row.get(self._id_field)
                if row_id is not None:
                    self._selected[row_id] = row
        else:
            self._selected = {}
        self._notify()

    def retain(self, rows: Iterable[Row]) -> None:
        """Drop selected ids that are not among ``rows`` (after a data reload)."""

        by_id = {row.get(self._id_field): row for row in rows}
        kept = {row_id: by_id[row_id] for row_id in self._selected if row_id in by_id}
        if len(kept) != len(self._selected):
            self._selected = kept
            self._notify()
        else:
            self._selected = kept

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.selected_rows)
        except Exception:  # pragma: no cover - caller bug
            logger.exception("Selection callback failed")


__all__ = ["SelectionCallback", "SelectionManager"]
