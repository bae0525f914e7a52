"""View state: capture/apply of table snapshots and the persisted list of named views."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .aggregation import AggregationState
from .columns import ColumnLayout
from .errors import PersistenceError
from .filtering import FilterState
from .grouping import GroupEngine
from .models import ViewSnapshot
from .notifications import Notifier
from .persistence import KeyValueStore
from .sorting import SortState

logger = logging.getLogger(__name__)


class ViewStateManager:
    """Read and restore the view-relevant state of the table components.

    Selection is never part of a snapshot.
    """

    def __init__(
        self,
        layout: ColumnLayout,
        sort: SortState,
        groups: GroupEngine,
        aggregations: AggregationState,
        filters: FilterState,
    ) -> None:
        self._layout = layout
        self._sort = sort
        self._groups = groups
        self._aggregations = aggregations
        self._filters = filters

    def capture(self, name: str = "") -> ViewSnapshot:
        return ViewSnapshot(
            name=name,
            visible_column_keys=self._layout.visible,
            column_order=self._layout.order,
            pinned_column_keys=self._layout.pinned,
            sort_config=self._sort.config,
            active_group_list=self._groups.active,
            expanded_group_ids=sorted(self._groups.expanded),
            aggregations=self._aggregations.results,
            filters=self._filters.filters,
        )

    def apply(self, snapshot: ViewSnapshot) -> List[str]:
        """Restore every field the snapshot carries; returns the fields that were rejected."""

        rejected = self._layout.restore(
            visible=snapshot.visible_column_keys,
            order=snapshot.column_order,
            pinned=snapshot.pinned_column_keys,
        )
        if snapshot.sort_config is not None:
            key = snapshot.sort_config.key
            if key is None or self._layout.column(key) is not None:
                self._sort.config = snapshot.sort_config
            else:
                rejected.append("sortConfig")
        if snapshot.active_group_list is not None:
            unknown = [key for key in snapshot.active_group_list if self._layout.column(key) is None]
            if unknown:
                rejected.append("activeGroupList")
            else:
                self._groups.restore(snapshot.active_group_list, None)
        if snapshot.expanded_group_ids is not None:
            self._groups.restore(None, snapshot.expanded_group_ids)
        if snapshot.aggregations is not None:
            if self._aggregations.replace(snapshot.aggregations):
                rejected.append("aggregations")
        if snapshot.filters is not None:
            self._filters.replace(
                {key: spec for key, spec in snapshot.filters.items() if self._layout.column(key) is not None}
            )
        return rejected


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SavedViews:
    """Named snapshots persisted under ``<namespace>_views``.

    Saving under an existing name replaces that view and keeps its id. The
    in-memory list is authoritative; failed writes are reported and do not
    roll it back.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore],
        namespace: str,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.namespace = namespace
        self._notifier = notifier or Notifier()
        self._clock = clock
        self._views: List[ViewSnapshot] = []
        self.current_view_id: Optional[str] = None

    @property
    def views_key(self) -> str:
        return f"{self.namespace}_views"

    @property
    def current_key(self) -> str:
        return f"{self.namespace}_current_view"

    @property
    def views(self) -> List[ViewSnapshot]:
        return list(self._views)

    def load(self) -> List[ViewSnapshot]:
        self._views = []
        self.current_view_id = None
        if self._store is None:
            return []
        try:
            raw = self._store.get(self.views_key)
        except PersistenceError as exc:
            self._notifier.warning(f"Saved views could not be read and were discarded: {exc}")
            return []
        if raw is not None:
            if not isinstance(raw, list):
                self._notifier.warning("Saved views are malformed and were discarded.")
                return []
            try:
                self._views = [ViewSnapshot.from_dict(item) for item in raw]
            except (KeyError, TypeError, ValueError) as exc:
                self._views = []
                self._notifier.warning(f"Saved views are malformed and were discarded: {exc}")
                return []
        try:
            current = self._store.get(self.current_key)
        except PersistenceError as exc:
            self._notifier.warning(f"Current view could not be read: {exc}")
            return self.views
        if isinstance(current, str) and self.get(current) is not None:
            self.current_view_id = current
        return self.views

    def get(self, view_id: str) -> Optional[ViewSnapshot]:
        for view in self._views:
            if view.id == view_id:
                return view
        return None

    def find_by_name(self, name: str) -> Optional[ViewSnapshot]:
        for view in self._views:
            if view.name == name:
                return view
        return None

    def save(self, snapshot: ViewSnapshot, name: str) -> Optional[ViewSnapshot]:
        name = (name or "").strip()
        if not name:
            self._notifier.warning("A view name is required.")
            return None
        snapshot.name = name
        existing = self.find_by_name(name)
        if existing is not None:
            snapshot.id = existing.id
            snapshot.created_at = existing.created_at
            self._views[self._views.index(existing)] = snapshot
        else:
            snapshot.id = f"view-{int(self._clock() * 1000)}"
            while self.get(snapshot.id) is not None:
                snapshot.id = f"{snapshot.id}-1"
            snapshot.created_at = _now_iso()
            self._views.append(snapshot)
        self.current_view_id = snapshot.id
        self._persist()
        return snapshot

    def delete(self, view_id: str) -> bool:
        view = self.get(view_id)
        if view is None:
            self._notifier.warning(f"View '{view_id}' does not exist.")
            return False
        self._views.remove(view)
        if self.current_view_id == view_id:
            self.current_view_id = None
        self._persist()
        return True

    def clear_all(self) -> None:
        self._views = []
        self.current_view_id = None
        if self._store is None:
            return
        try:
            self._store.remove(self.views_key)
            self._store.remove(self.current_key)
        except PersistenceError as exc:
            self._notifier.error(f"Saved views could not be cleared: {exc}")

    def set_current(self, view_id: Optional[str]) -> None:
        self.current_view_id = view_id
        self._persist()

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set(self.views_key, [view.to_dict() for view in self._views])
            if self.current_view_id is None:
                self._store.remove(self.current_key)
            else:
                self._store.set(self.current_key, self.current_view_id)
        except PersistenceError as exc:
            self._notifier.error(f"Views could not be saved: {exc}")


__all__ = ["SavedViews", "ViewStateManager"]
