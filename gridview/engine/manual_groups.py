"""Manual grouping store: user-defined collections of specific rows."""
from __future__ import annotations

import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .errors import PersistenceError
from .models import ManualGroup, Row, RowId
from .notifications import Notifier
from .persistence import KeyValueStore

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _copy(group: ManualGroup) -> ManualGroup:
    return ManualGroup(id=group.id, name=group.name, row_ids=list(group.row_ids), created_at=group.created_at)


class ManualGroupStore:
    """Keep manual groups in memory and mirror them to a key-value store.

    A row belongs to at most one group: adding it to a group moves it out of
    any other group. Groups left without rows are deleted.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore],
        namespace: str,
        notifier: Optional[Notifier] = None,
        id_field: str = "id",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.namespace = namespace
        self._notifier = notifier or Notifier()
        self._id_field = id_field
        self._clock = clock
        self._counter = itertools.count(1)
        self._groups: Dict[str, ManualGroup] = {}

    def load(self) -> List[ManualGroup]:
        """Read persisted groups; corrupt content is discarded."""

        self._groups = {}
        if self._store is None:
            return []
        try:
            raw = self._store.get(self.namespace)
        except PersistenceError as exc:
            self._notifier.warning(f"Saved groups could not be read and were discarded: {exc}")
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            self._notifier.warning("Saved groups are malformed and were discarded.")
            return []
        try:
            groups = [ManualGroup.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            self._notifier.warning(f"Saved groups are malformed and were discarded: {exc}")
            return []
        for group in groups:
            if group.row_ids:
                self._groups[group.id] = group
        return self.available_groups()

    def available_groups(self) -> List[ManualGroup]:
        return [_copy(group) for group in self._groups.values()]

    def get(self, group_id: str) -> Optional[ManualGroup]:
        return self._groups.get(group_id)

    def group_of(self, row_id: RowId) -> Optional[ManualGroup]:
        for group in self._groups.values():
            if row_id in group.row_ids:
                return group
        return None

    def member_ids(self) -> Dict[RowId, str]:
        return {row_id: group.id for group in self._groups.values() for row_id in group.row_ids}

    def create_group(self, name: str, rows: Iterable[Row]) -> Optional[ManualGroup]:
        name = (name or "").strip()
        row_ids = self._row_ids(rows)
        if not name:
            self._notifier.warning("A group name is required.")
            return None
        if not row_ids:
            self._notifier.warning(f"Group '{name}' was not created: no rows were given.")
            return None
        group_id = f"manual-{int(self._clock() * 1000)}-{next(self._counter)}"
        group = ManualGroup(id=group_id, name=name, row_ids=[], created_at=_now_iso())
        self._groups[group_id] = group
        self._attach(group, row_ids)
        self._persist()
        logger.debug("Created manual group %s with %d rows", group_id, group.count)
        return _copy(group)

    def add_to_group(self, group_id: str, rows: Iterable[Row]) -> bool:
        group = self._groups.get(group_id)
        if group is None:
            self._notifier.warning(f"Group '{group_id}' no longer exists.")
            return False
        row_ids = self._row_ids(rows)
        if not row_ids:
            return False
        self._attach(group, row_ids)
        self._persist()
        return True

    def remove_from_group(self, group_id: str, row_id: RowId) -> bool:
        group = self._groups.get(group_id)
        if group is None or row_id not in group.row_ids:
            self._notifier.warning(f"Row '{row_id}' is not a member of group '{group_id}'.")
            return False
        group.row_ids.remove(row_id)
        if not group.row_ids:
            del self._groups[group_id]
        self._persist()
        return True

    def retain(self, row_ids: Iterable[RowId]) -> bool:
        """Drop member ids not in ``row_ids``; groups left empty are deleted."""

        existing = set(row_ids)
        changed = False
        for group_id, group in list(self._groups.items()):
            kept = [row_id for row_id in group.row_ids if row_id in existing]
            if len(kept) == len(group.row_ids):
                continue
            changed = True
            if kept:
                group.row_ids = kept
            else:
                del self._groups[group_id]
        if changed:
            self._persist()
        return changed

    def _row_ids(self, rows: Iterable[Row]) -> List[RowId]:
        ordered: List[RowId] = []
        for row in rows:
            row_id = row.get(self._id_field)
            if row_id is None:
                logger.debug("Skipping row without '%s' field", self._id_field)
                continue
            if row_id not in ordered:
                ordered.append(row_id)
        return ordered

    def _attach(self, group: ManualGroup, row_ids: List[RowId]) -> None:
        for row_id in row_ids:
            current = self.group_of(row_id)
            if current is group:
                continue
            if current is not None:
                logger.warning("Moving row %s from group %s to %s", row_id, current.id, group.id)
                current.row_ids.remove(row_id)
                if not current.row_ids:
                    del self._groups[current.id]
            group.row_ids.append(row_id)

    def _persist(self) -> None:
        if self._store is None:
            return
        payload = [group.to_dict() for group in self._groups.values()]
        try:
            self._store.set(self.namespace, payload)
        except PersistenceError as exc:
            self._notifier.error(f"Groups could not be saved: {exc}")


__all__ = ["ManualGroupStore"]
