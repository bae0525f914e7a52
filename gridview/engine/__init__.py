"""Engine package exposing the tabular view engine."""
from .controller import TableController
from .context_menu import MenuAction, MenuContext, MenuKind, build_menu_actions
from .errors import ConfigError, FilterValidationError, GridViewError, PersistenceError
from .export import ExportTable
from .loader import TableDefinition, load_definition, load_rows
from .models import (
    AggregateOp,
    AggregateResult,
    ColumnSpec,
    ColumnType,
    DataRowEntry,
    EntryKind,
    FilterOp,
    FilterSpec,
    GroupNode,
    ManualGroup,
    ManualGroupNode,
    SortConfig,
    SortDirection,
    TableFeatures,
    ViewSnapshot,
)
from .notifications import Notice, NoticeLevel
from .persistence import InMemoryStore, JsonFileStore, KeyValueStore, SessionStateStore, build_store

__all__ = [
    "AggregateOp",
    "AggregateResult",
    "ColumnSpec",
    "ColumnType",
    "ConfigError",
    "DataRowEntry",
    "EntryKind",
    "ExportTable",
    "FilterOp",
    "FilterSpec",
    "FilterValidationError",
    "GridViewError",
    "GroupNode",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "ManualGroup",
    "ManualGroupNode",
    "MenuAction",
    "MenuContext",
    "MenuKind",
    "Notice",
    "NoticeLevel",
    "PersistenceError",
    "SessionStateStore",
    "SortConfig",
    "SortDirection",
    "TableController",
    "TableDefinition",
    "TableFeatures",
    "ViewSnapshot",
    "build_menu_actions",
    "build_store",
    "load_definition",
    "load_rows",
]
