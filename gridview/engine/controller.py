"""Table controller: composes the view pipeline behind one imperative API.

Pipeline order is fixed: filter -> sort -> group. Aggregations are computed
on the filtered and sorted rows, before collapsed groups hide anything.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

import pandas as pd

from .aggregation import AggregationState
from .columns import ColumnLayout
from .context_menu import MenuAction, MenuContext, MenuKind, build_menu_actions
from .export import ExportTable, project_rows
from .filtering import FilterState, filter_frame, parse_filter
from .formatting import Formatter, FormatterRegistry
from .frames import build_frame, rows_for
from .grouping import DEFAULT_TOTAL_FIELDS, GroupEngine
from .manual_groups import ManualGroupStore
from .models import (
    AggregateOp,
    AggregateResult,
    ColumnSpec,
    DataRowEntry,
    DisplayEntry,
    FilterSpec,
    GroupNode,
    ManualGroup,
    ManualGroupNode,
    Row,
    RowId,
    SortConfig,
    SortDirection,
    TableFeatures,
    ViewSnapshot,
)
from .notifications import Notice, NoticeCallback, Notifier
from .persistence import KeyValueStore
from .selection import SelectionCallback, SelectionManager
from .sorting import SortState, sort_frame
from .views import SavedViews, ViewStateManager

if TYPE_CHECKING:  # pragma: no cover
    from .loader import TableDefinition

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]

EXPORT_SCOPES = ("all", "filtered", "displayed")


class TableController:
    """Own the table state and expose the operations front-ends call.

    ``title`` namespaces everything persisted through ``store``. When a
    feature flag is off, the operations it governs are silent no-ops.
    """

    def __init__(
        self,
        rows: Sequence[Row],
        columns: Sequence[ColumnSpec],
        *,
        title: str = "table",
        pinned: Iterable[str] = (),
        features: Optional[TableFeatures] = None,
        store: Optional[KeyValueStore] = None,
        id_field: str = "id",
        group_total_fields: Iterable[str] = DEFAULT_TOTAL_FIELDS,
        formatters: Optional[Dict[str, Formatter]] = None,
        on_selection_change: Optional[SelectionCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        apply_current_view: bool = True,
    ) -> None:
        self.title = title
        self.id_field = id_field
        self.features = features or TableFeatures()
        self._columns: List[ColumnSpec] = list(columns)
        self._notifier = Notifier(on_notice)
        self._listeners: List[Listener] = []

        self.layout = ColumnLayout(self._columns, pinned)
        self._sort = SortState()
        self._filters = FilterState()
        self._aggregations = AggregationState(self._columns)
        self._groups = GroupEngine(id_field=id_field, total_fields=group_total_fields)
        self._selection = SelectionManager(id_field=id_field, on_change=on_selection_change)
        self._manual = ManualGroupStore(store, f"{title}_manual_groups", self._notifier, id_field)
        self._view_state = ViewStateManager(
            self.layout, self._sort, self._groups, self._aggregations, self._filters
        )
        self._saved_views = SavedViews(store, title, self._notifier)
        self.formatters = FormatterRegistry(self._columns, formatters)

        self._rows: List[Row] = []
        self._rows_by_id: Dict[RowId, Row] = {}
        self._source: pd.DataFrame = pd.DataFrame()
        self._processed: Optional[pd.DataFrame] = None
        self._display: Optional[List[DisplayEntry]] = None
        self._load_rows(rows)

        self._defaults = self._view_state.capture()
        self._manual.load()
        self._saved_views.load()
        if apply_current_view and self._saved_views.current_view_id is not None:
            current = self._saved_views.get(self._saved_views.current_view_id)
            if current is not None:
                self._apply(current)

    @classmethod
    def from_definition(
        cls,
        definition: "TableDefinition",
        rows: Sequence[Row],
        store: Optional[KeyValueStore] = None,
        **kwargs: Any,
    ) -> "TableController":
        """Convenience factory building a controller from a loaded table definition."""

        return cls(
            rows,
            definition.columns,
            title=definition.title,
            pinned=definition.pinned,
            features=definition.features,
            store=store,
            id_field=definition.id_field,
            group_total_fields=definition.group_total_fields,
            **kwargs,
        )

    # ------------------------------------------------------------------ data
    @property
    def rows(self) -> List[Row]:
        return list(self._rows)

    @property
    def columns(self) -> List[ColumnSpec]:
        return list(self._columns)

    def column(self, key: str) -> Optional[ColumnSpec]:
        return self.layout.column(key)

    def set_rows(self, rows: Sequence[Row]) -> None:
        """Replace the dataset; selection and manual groups keep only rows that still exist."""

        self._load_rows(rows)
        self._selection.retain(self._rows)
        self._manual.retain(self._rows_by_id)
        self._changed("rows")

    def _load_rows(self, rows: Sequence[Row]) -> None:
        unique: List[Row] = []
        by_id: Dict[RowId, Row] = {}
        dropped = 0
        for row in rows:
            row_id = row.get(self.id_field)
            if row_id is None or row_id in by_id:
                dropped += 1
                continue
            by_id[row_id] = row
            unique.append(row)
        if dropped:
            self._notifier.warning(f"{dropped} row(s) without a unique '{self.id_field}' were ignored.")
        self._rows = unique
        self._rows_by_id = by_id
        self._source = build_frame(unique, [spec.key for spec in self._columns])
        self._invalidate()

    def _invalidate(self) -> None:
        self._processed = None
        self._display = None

    def _processed_frame(self) -> pd.DataFrame:
        if self._processed is None:
            filtered = filter_frame(self._source, self._filters.filters)
            config = self._sort.config
            column = self.layout.column(config.key) if config.key else None
            self._processed = sort_frame(
                filtered, config.key, config.direction, column.type if column is not None else None
            )
        return self._processed

    @property
    def processed_rows(self) -> List[Row]:
        """Rows passing the filters, in sort order."""

        return rows_for(self._processed_frame(), self._rows)

    # --------------------------------------------------------- observation
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(event)`` after every state change; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self, event: str) -> None:
        self._invalidate()
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - caller bug
                logger.exception("Listener failed for event '%s'", event)

    @property
    def notices(self) -> List[Notice]:
        return self._notifier.history

    # ------------------------------------------------------------- sorting
    @property
    def sort_config(self) -> SortConfig:
        return self._sort.config

    def sort_by(self, key: str) -> bool:
        """Header click: toggle direction on the same key, ascending on a new one.

        Clicks during or right after a header drag are ignored.
        """

        if not self.layout.drag.accept_click():
            logger.debug("Header click on '%s' suppressed by drag gesture", key)
            return False
        column = self.layout.column(key)
        if column is None or not column.sortable:
            self._notifier.warning(f"Column '{key}' cannot be sorted.")
            return False
        self._sort.toggle(key)
        self._changed("sort")
        return True

    def set_sort(self, key: Optional[str], direction: Union[SortDirection, str] = SortDirection.ASC) -> bool:
        if key is not None and self.layout.column(key) is None:
            self._notifier.warning(f"Column '{key}' does not exist.")
            return False
        self._sort.set(key, direction)
        self._changed("sort")
        return True

    # ----------------------------------------------------------- filtering
    @property
    def filters(self) -> Dict[str, FilterSpec]:
        return self._filters.filters

    def apply_filter(self, key: str, op: Any, value: Any) -> Optional[FilterSpec]:
        """Set the filter of ``key``; raises ``FilterValidationError`` on bad input."""

        spec = parse_filter(op, value)
        if self.layout.column(key) is None:
            self._notifier.warning(f"Column '{key}' does not exist.")
            return None
        self._filters.set(key, spec)
        self._changed("filter")
        return spec

    def clear_filter(self, key: str) -> bool:
        if not self._filters.clear(key):
            return False
        self._changed("filter")
        return True

    def clear_filters(self) -> None:
        self._filters.clear_all()
        self._changed("filter")

    # --------------------------------------------------------- aggregation
    @property
    def aggregations(self) -> Dict[str, AggregateResult]:
        return self._aggregations.results

    def is_aggregation_legal(self, key: str) -> bool:
        return self.features.enable_aggregation and self._aggregations.is_legal(key)

    def aggregate_column(self, key: str, op: Union[AggregateOp, str]) -> Optional[AggregateResult]:
        if not self.features.enable_aggregation:
            return None
        result = self._aggregations.compute(self._processed_frame(), key, op)
        if result is None:
            logger.debug("Aggregation on non-numeric column '%s' ignored", key)
            return None
        self._changed("aggregation")
        return result

    def refresh_aggregations(self) -> Dict[str, AggregateResult]:
        if not self.features.enable_aggregation:
            return self._aggregations.results
        results = self._aggregations.refresh(self._processed_frame())
        self._changed("aggregation")
        return results

    def clear_aggregation(self, key: Optional[str] = None) -> None:
        if not self.features.enable_aggregation:
            return
        self._aggregations.clear(key)
        self._changed("aggregation")

    # ------------------------------------------------------------ grouping
    @property
    def active_groups(self) -> List[str]:
        return self._groups.active

    @property
    def expanded_groups(self) -> Set[str]:
        return self._groups.expanded

    def is_grouped_by(self, key: str) -> bool:
        return self._groups.is_grouped(key)

    def group_by_column(self, key: str) -> bool:
        if not self.features.enable_grouping:
            return False
        if self.layout.column(key) is None:
            self._notifier.warning(f"Column '{key}' does not exist.")
            return False
        if not self._groups.group_by(key):
            return False
        self._changed("group")
        return True

    def ungroup_by_column(self, key: str) -> bool:
        if not self.features.enable_grouping:
            return False
        if not self._groups.ungroup(key, self._source, self._rows):
            self._notifier.warning(f"Table is not grouped by '{key}'.")
            return False
        self._changed("group")
        return True

    def clear_all_groups(self) -> None:
        if not self.features.enable_grouping:
            return
        self._groups.clear()
        self._changed("group")

    def toggle_group(self, group_id: str) -> Optional[bool]:
        """Expand or collapse one group node; returns the new state or ``None`` when unknown."""

        if not self.features.enable_grouping:
            return None
        if group_id not in self._groups.node_ids(self._source, self._rows):
            self._notifier.warning(f"Group '{group_id}' does not exist.")
            return None
        expanded = self._groups.toggle(group_id, self._source, self._rows)
        self._changed("expand")
        return expanded

    def expand_group(self, group_id: str) -> None:
        if not self.features.enable_grouping or group_id in self._groups.expanded:
            return
        self.toggle_group(group_id)

    def collapse_group(self, group_id: str) -> None:
        if not self.features.enable_grouping or group_id not in self._groups.expanded:
            return
        self.toggle_group(group_id)

    def expand_all_groups(self) -> None:
        if not self.features.enable_grouping:
            return
        self._groups.expand_all(self._column_group_frame(), self._rows)
        self._changed("expand")

    def collapse_all_groups(self) -> None:
        if not self.features.enable_grouping:
            return
        self._groups.collapse_all()
        self._changed("expand")

    # ------------------------------------------------------- manual groups
    def get_available_groups(self) -> List[ManualGroup]:
        return self._manual.available_groups()

    def manual_group_of(self, row_id: RowId) -> Optional[str]:
        group = self._manual.group_of(row_id)
        return group.id if group is not None else None

    def create_group(self, name: str, rows: Iterable[Row]) -> Optional[ManualGroup]:
        group = self._manual.create_group(name, rows)
        if group is not None:
            self._changed("manual_group")
        return group

    def add_to_group(self, group_id: str, rows: Iterable[Row]) -> bool:
        if not self._manual.add_to_group(group_id, rows):
            return False
        self._changed("manual_group")
        return True

    def remove_from_group(self, group_id: str, row_id: RowId) -> bool:
        if not self._manual.remove_from_group(group_id, row_id):
            return False
        self._changed("manual_group")
        return True

    # -------------------------------------------------------------- layout
    def columns_state(self) -> Dict[str, List[str]]:
        return {
            "visibleColumnKeys": self.layout.visible,
            "columnOrder": self.layout.order,
            "pinnedColumnKeys": self.layout.pinned,
        }

    def displayed_columns(self) -> List[ColumnSpec]:
        return self.layout.displayed_columns()

    def update_columns(self, visible: Sequence[str], order: Sequence[str]) -> bool:
        if not self.layout.update_columns(visible, order):
            self._notifier.warning("Column layout update was rejected.")
            return False
        self._changed("columns")
        return True

    def set_column_visible(self, key: str, visible: bool) -> bool:
        if not self.layout.set_visible(key, visible):
            return False
        self._changed("columns")
        return True

    def is_best_fit_enabled(self) -> bool:
        return self.layout.best_fit

    def toggle_best_fit(self) -> bool:
        enabled = self.layout.toggle_best_fit()
        self._changed("columns")
        return enabled

    def drag_start(self, key: str) -> bool:
        if not self.features.enable_column_reordering:
            return False
        return self.layout.drag_start(key)

    def drop(self, from_key: Optional[str], to_key: Optional[str]) -> bool:
        if not self.features.enable_column_reordering:
            return False
        if not self.layout.drop(from_key, to_key):
            return False
        self._changed("columns")
        return True

    def drag_end(self) -> None:
        self.layout.drag_end()

    def settle_drag(self) -> None:
        self.layout.drag.settle()

    # ----------------------------------------------------------- selection
    @property
    def selected_rows(self) -> List[Row]:
        return self._selection.selected_rows

    def select(self, target: Union[RowId, DisplayEntry], included: bool) -> bool:
        """Select or deselect one data row; headers are never selectable."""

        if isinstance(target, (GroupNode, ManualGroupNode)):
            return False
        row_id = target.row_id if isinstance(target, DataRowEntry) else target
        row = self._rows_by_id.get(row_id)
        if row is None:
            logger.debug("Ignoring selection of '%s': not a data row", row_id)
            return False
        self._selection.select(row, included)
        self._changed("selection")
        return True

    def select_all(self, included: bool) -> None:
        self._selection.select_all(self.processed_rows if included else [], included)
        self._changed("selection")

    # -------------------------------------------------------------- output
    def _column_group_frame(self) -> pd.DataFrame:
        processed = self._processed_frame()
        members = self._manual.member_ids()
        if not members or processed.empty:
            return processed
        keep = [self._rows[position].get(self.id_field) not in members for position in processed.index]
        return processed.loc[keep]

    @property
    def display_sequence(self) -> List[DisplayEntry]:
        """Manual groups first, then the column-grouped (or flat) rows."""

        if self._display is None:
            self._display = self._build_display()
        return list(self._display)

    def _build_display(self) -> List[DisplayEntry]:
        entries: List[DisplayEntry] = []
        groups = self._manual.available_groups()
        if groups:
            processed = self.processed_rows
            for group in groups:
                members = set(group.row_ids)
                entries.append(ManualGroupNode(id=group.id, name=group.name, item_count=group.count))
                for row in processed:
                    row_id = row.get(self.id_field)
                    if row_id in members:
                        entries.append(
                            DataRowEntry(row=row, row_id=row_id, level=1, manual_group_id=group.id)
                        )
        entries.extend(self._groups.build(self._column_group_frame(), self._rows))
        return entries

    def format_cell(self, key: str, row: Row) -> Any:
        return self.formatters.format(key, row)

    def export(self, scope: str = "filtered") -> ExportTable:
        """Visible columns in display order over ``all``, ``filtered`` or ``displayed`` rows."""

        if scope not in EXPORT_SCOPES:
            raise ValueError(f"Export scope must be one of: {', '.join(EXPORT_SCOPES)}.")
        if scope == "all":
            rows = self.rows
        elif scope == "filtered":
            rows = self.processed_rows
        else:
            rows = [entry.row for entry in self.display_sequence if isinstance(entry, DataRowEntry)]
        return project_rows(self.displayed_columns(), rows, self.formatters)

    # --------------------------------------------------------------- views
    def capture_snapshot(self, name: str = "") -> ViewSnapshot:
        return self._view_state.capture(name)

    def apply_snapshot(self, snapshot: Union[ViewSnapshot, Mapping[str, Any]]) -> bool:
        if not isinstance(snapshot, ViewSnapshot):
            try:
                snapshot = ViewSnapshot.from_dict(snapshot)
            except (KeyError, TypeError, ValueError) as exc:
                self._notifier.warning(f"View could not be applied: {exc}")
                return False
        return self._apply(snapshot)

    def _apply(self, snapshot: ViewSnapshot) -> bool:
        rejected = self._view_state.apply(snapshot)
        if rejected:
            self._notifier.warning(f"Ignored invalid view fields: {', '.join(rejected)}.")
        self._changed("view")
        return not rejected

    @property
    def saved_views(self) -> List[ViewSnapshot]:
        return self._saved_views.views

    @property
    def current_view_id(self) -> Optional[str]:
        return self._saved_views.current_view_id

    def save_view(self, name: str) -> Optional[ViewSnapshot]:
        saved = self._saved_views.save(self.capture_snapshot(), name)
        if saved is not None:
            self._notifier.info(f"View '{saved.name}' saved.")
            self._changed("views")
        return saved

    def load_view(self, view_id: str) -> bool:
        view = self._saved_views.get(view_id)
        if view is None:
            self._notifier.warning(f"View '{view_id}' does not exist.")
            return False
        self._apply(view)
        self._saved_views.set_current(view.id)
        self._notifier.info(f"View '{view.name}' loaded.")
        return True

    def delete_view(self, view_id: str) -> bool:
        if not self._saved_views.delete(view_id):
            return False
        self._changed("views")
        return True

    def clear_all_views(self) -> None:
        self._saved_views.clear_all()
        self._changed("views")

    def reset_to_default(self) -> None:
        """Restore the layout, sort, grouping, filters and aggregations the table started with."""

        self._view_state.apply(self._defaults)
        self.layout.best_fit = False
        self._saved_views.set_current(None)
        self._changed("view")

    # --------------------------------------------------------------- menus
    def menu_context(
        self,
        kind: Union[MenuKind, str],
        column_key: Optional[str] = None,
        clicked_row: Optional[Row] = None,
        target_rows: Optional[Sequence[Row]] = None,
        position: Tuple[int, int] = (0, 0),
    ) -> MenuContext:
        """Derived state for a context menu opened on a header or a row.

        Row menus target the current selection when there is one, otherwise
        the clicked row.
        """

        menu_kind = MenuKind(kind)
        if target_rows is None:
            if menu_kind is MenuKind.ROW and self._selection.selected_rows:
                target_rows = self._selection.selected_rows
            else:
                target_rows = [clicked_row] if clicked_row is not None else []
        clicked_group = None
        if clicked_row is not None:
            clicked_group = self.manual_group_of(clicked_row.get(self.id_field))
        column = self.layout.column(column_key) if column_key else None
        return MenuContext(
            kind=menu_kind,
            position=position,
            column=column,
            target_rows=list(target_rows),
            clicked_row=clicked_row,
            is_grouped=column is not None and self.is_grouped_by(column.key),
            grouping_enabled=self.features.enable_grouping,
            aggregation_legal=column is not None and self.is_aggregation_legal(column.key),
            best_fit_enabled=self.layout.best_fit,
            has_manual_groups=bool(self._manual.available_groups()),
            clicked_manual_group_id=clicked_group,
        )

    def menu_actions(
        self,
        context: MenuContext,
        group_name: Optional[str] = None,
        target_group_id: Optional[str] = None,
    ) -> List[MenuAction]:
        return build_menu_actions(self, context, group_name, target_group_id)


__all__ = ["EXPORT_SCOPES", "TableController"]
