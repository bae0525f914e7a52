"""Group engine: hierarchical grouping with lazy materialization.

Rows are bucketed level by level following the active group list. Buckets
keep first-seen order, so appending or prepending rows never reshuffles
existing groups. Only the subtrees of expanded group nodes are emitted.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from .aggregation import first_numeric
from .models import (
    UNKNOWN_GROUP_VALUE,
    DataRowEntry,
    DisplayEntry,
    GroupNode,
    GroupPathEntry,
    Row,
)

DEFAULT_TOTAL_FIELDS: Tuple[str, ...] = ("amount", "extendedAmount")


def _plain(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def make_group_id(key: str, value: Any, level: int, parent_ids: Sequence[str]) -> str:
    """Deterministic id for the bucket ``value`` of ``key`` under ``parent_ids``."""

    token = json.dumps([key, _plain(value), level, list(parent_ids)], default=str)
    digest = hashlib.sha1(token.encode("utf-8")).hexdigest()[:16]
    return f"group-{level}-{key}-{digest}"


def _buckets(frame: pd.DataFrame, key: str) -> Iterator[Tuple[Any, pd.DataFrame]]:
    if key in frame.columns:
        values = frame[key].where(frame[key].notna(), UNKNOWN_GROUP_VALUE)
    else:
        values = pd.Series(UNKNOWN_GROUP_VALUE, index=frame.index, dtype=object)
    for value, bucket in frame.groupby(values, sort=False):
        yield _plain(value), bucket


def _walk(
    frame: pd.DataFrame,
    rows: Sequence[Row],
    active: Sequence[str],
    descend: Callable[[str], bool],
    id_field: str,
    total_fields: Sequence[str],
    leaves: bool,
    level: int = 0,
    path: Tuple[GroupPathEntry, ...] = (),
    expanded: Optional[Set[str]] = None,
) -> Iterator[DisplayEntry]:
    parent_id = path[-1].group_id if path else None
    if level >= len(active):
        if leaves:
            for position in frame.index:
                row = rows[position]
                yield DataRowEntry(
                    row=row,
                    row_id=row.get(id_field),
                    level=level,
                    group_path=path,
                    parent_group_id=parent_id,
                )
        return

    key = active[level]
    parent_ids = [entry.group_id for entry in path]
    for value, bucket in _buckets(frame, key):
        group_id = make_group_id(key, value, level, parent_ids)
        node_path = path + (GroupPathEntry(key=key, value=value, group_id=group_id),)
        bucket_rows = [rows[position] for position in bucket.index]
        yield GroupNode(
            id=group_id,
            level=level,
            group_column_key=key,
            group_value=value,
            item_count=len(bucket_rows),
            aggregate_total=sum(first_numeric(row, total_fields) for row in bucket_rows),
            parent_group_id=parent_id,
            path=node_path,
            expanded=expanded is not None and group_id in expanded,
        )
        if descend(group_id):
            yield from _walk(
                bucket, rows, active, descend, id_field, total_fields, leaves, level + 1, node_path, expanded
            )


def build_display_sequence(
    frame: pd.DataFrame,
    rows: Sequence[Row],
    active: Sequence[str],
    expanded: Set[str],
    id_field: str = "id",
    total_fields: Sequence[str] = DEFAULT_TOTAL_FIELDS,
) -> List[DisplayEntry]:
    """Flatten ``frame`` into group headers and data rows.

    With no active groups the rows pass through unchanged at level 0.
    Collapsed nodes contribute only their header.
    """

    return list(
        _walk(frame, rows, active, expanded.__contains__, id_field, total_fields, True, expanded=expanded)
    )


def iter_group_nodes(
    frame: pd.DataFrame,
    rows: Sequence[Row],
    active: Sequence[str],
    total_fields: Sequence[str] = DEFAULT_TOTAL_FIELDS,
) -> Iterator[GroupNode]:
    """Every group node derivable from ``frame``, regardless of expansion."""

    for entry in _walk(frame, rows, active, lambda _group_id: True, "id", total_fields, False):
        if isinstance(entry, GroupNode):
            yield entry


class GroupEngine:
    """Active group list and expanded set, plus the operations mutating them."""

    def __init__(self, id_field: str = "id", total_fields: Iterable[str] = DEFAULT_TOTAL_FIELDS) -> None:
        self.id_field = id_field
        self.total_fields: Tuple[str, ...] = tuple(total_fields)
        self._active: List[str] = []
        self._expanded: Set[str] = set()

    @property
    def active(self) -> List[str]:
        return list(self._active)

    @property
    def expanded(self) -> Set[str]:
        return set(self._expanded)

    def is_grouped(self, key: str) -> bool:
        return key in self._active

    def group_by(self, key: str) -> bool:
        if key in self._active:
            return False
        self._active.append(key)
        return True

    def ungroup(self, key: str, frame: pd.DataFrame, rows: Sequence[Row]) -> bool:
        """Remove ``key`` and forget expansion of every node at or below its level."""

        if key not in self._active:
            return False
        index = self._active.index(key)
        stale = {
            node.id
            for node in iter_group_nodes(frame, rows, self._active, self.total_fields)
            if node.level >= index
        }
        self._active.remove(key)
        self._expanded -= stale
        return True

    def clear(self) -> None:
        self._active = []
        self._expanded = set()

    def expand(self, group_id: str) -> None:
        self._expanded.add(group_id)

    def collapse(self, group_id: str, frame: pd.DataFrame, rows: Sequence[Row]) -> None:
        """Collapse ``group_id`` and every expanded descendant."""

        descendants = {
            node.id
            for node in iter_group_nodes(frame, rows, self._active, self.total_fields)
            if group_id in node.ancestor_ids
        }
        self._expanded.discard(group_id)
        self._expanded -= descendants

    def toggle(self, group_id: str, frame: pd.DataFrame, rows: Sequence[Row]) -> bool:
        """Flip expansion of ``group_id``; returns the new expanded flag."""

        if group_id in self._expanded:
            self.collapse(group_id, frame, rows)
            return False
        self.expand(group_id)
        return True

    def expand_all(self, frame: pd.DataFrame, rows: Sequence[Row]) -> None:
        self._expanded = {node.id for node in iter_group_nodes(frame, rows, self._active, self.total_fields)}

    def collapse_all(self) -> None:
        self._expanded = set()

    def node_ids(self, frame: pd.DataFrame, rows: Sequence[Row]) -> Set[str]:
        return {node.id for node in iter_group_nodes(frame, rows, self._active, self.total_fields)}

    def restore(self, active: Optional[Sequence[str]], expanded: Optional[Iterable[str]]) -> None:
        if active is not None:
            deduped: List[str] = []
            for key in active:
                if key not in deduped:
                    deduped.append(key)
            self._active = deduped
        if expanded is not None:
            self._expanded = set(expanded)

    def build(self, frame: pd.DataFrame, rows: Sequence[Row]) -> List[DisplayEntry]:
        return build_display_sequence(frame, rows, self._active, self._expanded, self.id_field, self.total_fields)


__all__ = [
    "DEFAULT_TOTAL_FIELDS",
    "GroupEngine",
    "build_display_sequence",
    "iter_group_nodes",
    "make_group_id",
]
