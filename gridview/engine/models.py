"""Dataclasses describing the entities handled by the grid engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigError

Row = Mapping[str, Any]
RowId = Union[str, int]

UNKNOWN_GROUP_VALUE = "Unknown"


class ColumnType(str, Enum):
    """Semantic type of a column; drives formatting and legal aggregations."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"

    @classmethod
    def from_value(cls, value: str) -> "ColumnType":
        """Create a :class:`ColumnType` from a raw string value."""

        try:
            return cls(str(value).lower())
        except ValueError as exc:
            valid_values = ", ".join(item.value for item in cls)
            raise ConfigError(f"Invalid column type '{value}'. Expected one of: {valid_values}.") from exc


def _parse_width(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    text = str(raw).strip().lower()
    if text.endswith("px"):
        text = text[:-2]
    try:
        return int(float(text))
    except ValueError as exc:
        raise ConfigError(f"Invalid column width '{raw}'.") from exc


@dataclass(frozen=True)
class ColumnSpec:
    """Static description of one column of the table."""

    key: str
    title: str
    width: Optional[int] = None
    sortable: bool = True
    type: ColumnType = ColumnType.STRING

    @property
    def supports_aggregation(self) -> bool:
        return self.type is ColumnType.NUMBER

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "ColumnSpec":
        """Instantiate a :class:`ColumnSpec` from a configuration mapping."""

        key = cfg.get("key")
        if not key:
            raise ConfigError("Column configuration requires a 'key' field.")
        title = cfg.get("title", key)
        return cls(
            key=str(key),
            title=str(title),
            width=_parse_width(cfg.get("width")),
            sortable=bool(cfg.get("sortable", True)),
            type=ColumnType.from_value(cfg.get("type", ColumnType.STRING.value)),
        )


def build_column_specs(columns_cfg: Sequence[Mapping[str, Any]]) -> List[ColumnSpec]:
    """Create the ordered column list, rejecting duplicate keys."""

    specs: List[ColumnSpec] = []
    seen = set()
    for cfg in columns_cfg:
        spec = ColumnSpec.from_config(dict(cfg))
        if spec.key in seen:
            raise ConfigError(f"Duplicate column key '{spec.key}'.")
        seen.add(spec.key)
        specs.append(spec)
    return specs


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortConfig:
    """Current sort column and direction; ``key`` is ``None`` when unsorted."""

    key: Optional[str] = None
    direction: SortDirection = SortDirection.ASC

    def toggled(self, key: str) -> "SortConfig":
        """Return the config produced by clicking the header of ``key``."""

        if self.key == key and self.direction is SortDirection.ASC:
            return SortConfig(key=key, direction=SortDirection.DESC)
        return SortConfig(key=key, direction=SortDirection.ASC)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "direction": self.direction.value}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SortConfig":
        key = payload.get("key")
        direction = SortDirection(str(payload.get("direction", SortDirection.ASC.value)).lower())
        return cls(key=str(key) if key is not None else None, direction=direction)


class FilterOp(str, Enum):
    EQUAL = "equal"
    LESS = "less"
    GREATER = "greater"


@dataclass(frozen=True)
class FilterSpec:
    op: FilterOp
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op.value, "value": self.value}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FilterSpec":
        return cls(op=FilterOp(str(payload["op"]).lower()), value=float(payload["value"]))


class AggregateOp(str, Enum):
    SUM = "sum"
    AVERAGE = "average"


@dataclass(frozen=True)
class AggregateResult:
    op: AggregateOp
    value: float
    formatted_value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op.value, "value": self.value, "formattedValue": self.formatted_value}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AggregateResult":
        op = AggregateOp(str(payload["op"]).lower())
        value = float(payload["value"])
        formatted = payload.get("formattedValue")
        if formatted is None:
            # Imported lazily: aggregation depends on this module.
            from .aggregation import format_aggregate

            formatted = format_aggregate(op, value)
        return cls(op=op, value=value, formatted_value=str(formatted))


class EntryKind(str, Enum):
    """Kind of an entry in the display sequence."""

    ROW = "row"
    GROUP = "group"
    MANUAL_GROUP = "manual_group"


@dataclass(frozen=True)
class GroupPathEntry:
    key: str
    value: Any
    group_id: str


@dataclass(frozen=True)
class GroupNode:
    """Synthetic header for one bucket of column-based grouping."""

    id: str
    level: int
    group_column_key: str
    group_value: Any
    item_count: int
    aggregate_total: float
    parent_group_id: Optional[str]
    path: Tuple[GroupPathEntry, ...] = ()
    expanded: bool = False

    @property
    def kind(self) -> EntryKind:
        return EntryKind.GROUP

    @property
    def ancestor_ids(self) -> Tuple[str, ...]:
        return tuple(entry.group_id for entry in self.path[:-1])


@dataclass(frozen=True)
class ManualGroupNode:
    """Header emitted for a user-defined :class:`ManualGroup`."""

    id: str
    name: str
    item_count: int
    level: int = 0

    @property
    def kind(self) -> EntryKind:
        return EntryKind.MANUAL_GROUP


@dataclass(frozen=True)
class DataRowEntry:
    """A leaf data row together with its position in the group hierarchy."""

    row: Row
    row_id: RowId
    level: int = 0
    group_path: Tuple[GroupPathEntry, ...] = ()
    parent_group_id: Optional[str] = None
    manual_group_id: Optional[str] = None

    @property
    def kind(self) -> EntryKind:
        return EntryKind.ROW

    @property
    def is_grouped_item(self) -> bool:
        return self.manual_group_id is not None


DisplayEntry = Union[DataRowEntry, GroupNode, ManualGroupNode]


@dataclass
class ManualGroup:
    """User-created collection of specific rows."""

    id: str
    name: str
    row_ids: List[RowId] = field(default_factory=list)
    created_at: str = ""

    @property
    def count(self) -> int:
        return len(self.row_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rowIds": list(self.row_ids),
            "count": self.count,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ManualGroup":
        row_ids = payload.get("rowIds", [])
        if not isinstance(row_ids, list):
            raise ValueError("Manual group 'rowIds' must be a list.")
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            row_ids=list(row_ids),
            created_at=str(payload.get("createdAt", "")),
        )


@dataclass
class ViewSnapshot:
    """Serializable capture of a table view.

    Every state field is optional: ``None`` means the snapshot does not
    carry that part of the state and applying it leaves the table untouched
    there.
    """

    name: str = ""
    id: Optional[str] = None
    created_at: Optional[str] = None
    visible_column_keys: Optional[List[str]] = None
    column_order: Optional[List[str]] = None
    pinned_column_keys: Optional[List[str]] = None
    sort_config: Optional[SortConfig] = None
    active_group_list: Optional[List[str]] = None
    expanded_group_ids: Optional[List[str]] = None
    aggregations: Optional[Dict[str, AggregateResult]] = None
    filters: Optional[Dict[str, FilterSpec]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.id is not None:
            payload["id"] = self.id
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.visible_column_keys is not None:
            payload["visibleColumnKeys"] = list(self.visible_column_keys)
        if self.column_order is not None:
            payload["columnOrder"] = list(self.column_order)
        if self.pinned_column_keys is not None:
            payload["pinnedColumnKeys"] = list(self.pinned_column_keys)
        if self.sort_config is not None:
            payload["sortConfig"] = self.sort_config.to_dict()
        if self.active_group_list is not None:
            payload["activeGroupList"] = list(self.active_group_list)
        if self.expanded_group_ids is not None:
            payload["expandedGroupIds"] = list(self.expanded_group_ids)
        if self.aggregations is not None:
            payload["aggregations"] = {key: agg.to_dict() for key, agg in self.aggregations.items()}
        if self.filters is not None:
            payload["filters"] = {key: spec.to_dict() for key, spec in self.filters.items()}
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ViewSnapshot":
        """Parse a snapshot; raises ``ValueError``/``KeyError`` on malformed fields."""

        if not isinstance(payload, Mapping):
            raise ValueError("View snapshot must be a JSON object.")

        def _keys(name: str) -> Optional[List[str]]:
            raw = payload.get(name)
            if raw is None:
                return None
            if not isinstance(raw, list):
                raise ValueError(f"View field '{name}' must be a list.")
            return [str(item) for item in raw]

        def _mapping(name: str) -> Optional[Mapping[str, Any]]:
            raw = payload.get(name)
            if raw is None:
                return None
            if not isinstance(raw, Mapping):
                raise ValueError(f"View field '{name}' must be an object.")
            return raw

        sort_raw = _mapping("sortConfig")
        aggregations_raw = _mapping("aggregations")
        filters_raw = _mapping("filters")
        return cls(
            name=str(payload.get("name", "")),
            id=str(payload["id"]) if payload.get("id") is not None else None,
            created_at=str(payload["createdAt"]) if payload.get("createdAt") is not None else None,
            visible_column_keys=_keys("visibleColumnKeys"),
            column_order=_keys("columnOrder"),
            pinned_column_keys=_keys("pinnedColumnKeys"),
            sort_config=SortConfig.from_dict(sort_raw) if sort_raw is not None else None,
            active_group_list=_keys("activeGroupList"),
            expanded_group_ids=_keys("expandedGroupIds"),
            aggregations=(
                {str(k): AggregateResult.from_dict(v) for k, v in aggregations_raw.items()}
                if aggregations_raw is not None
                else None
            ),
            filters=(
                {str(k): FilterSpec.from_dict(v) for k, v in filters_raw.items()}
                if filters_raw is not None
                else None
            ),
        )


@dataclass(frozen=True)
class TableFeatures:
    """Feature flags; disabled features turn their operations into no-ops."""

    enable_grouping: bool = True
    enable_aggregation: bool = True
    enable_column_reordering: bool = True

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "TableFeatures":
        cfg = cfg or {}
        return cls(
            enable_grouping=bool(cfg.get("enable_grouping", True)),
            enable_aggregation=bool(cfg.get("enable_aggregation", True)),
            enable_column_reordering=bool(cfg.get("enable_column_reordering", True)),
        )
