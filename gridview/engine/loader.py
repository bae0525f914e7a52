"""Table definitions: YAML configuration plus the dataset it points at."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
import yaml

from .errors import ConfigError
from .grouping import DEFAULT_TOTAL_FIELDS
from .models import ColumnSpec, ColumnType, Row, TableFeatures, build_column_specs


@dataclass(frozen=True)
class TableDefinition:
    """Everything needed to build a :class:`~gridview.engine.controller.TableController`."""

    title: str
    columns: List[ColumnSpec]
    id_field: str = "id"
    pinned: List[str] = field(default_factory=list)
    features: TableFeatures = field(default_factory=TableFeatures)
    group_total_fields: Tuple[str, ...] = DEFAULT_TOTAL_FIELDS
    data: Dict[str, Any] = field(default_factory=dict)
    storage: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "TableDefinition":
        if not isinstance(cfg, Mapping):
            raise ConfigError("Table configuration must be a mapping.")
        columns_cfg = cfg.get("columns")
        if not columns_cfg or not isinstance(columns_cfg, Sequence):
            raise ConfigError("Table configuration requires a non-empty 'columns' list.")
        columns = build_column_specs(columns_cfg)
        keys = {spec.key for spec in columns}
        pinned = [str(key) for key in cfg.get("pinned", []) or []]
        unknown = [key for key in pinned if key not in keys]
        if unknown:
            raise ConfigError(f"Pinned columns are not defined: {', '.join(unknown)}.")
        totals = cfg.get("group_total_fields") or list(DEFAULT_TOTAL_FIELDS)
        return cls(
            title=str(cfg.get("title", "table")),
            columns=columns,
            id_field=str(cfg.get("id_field", "id")),
            pinned=pinned,
            features=TableFeatures.from_config(cfg.get("features")),
            group_total_fields=tuple(str(item) for item in totals),
            data=dict(cfg.get("data") or {}),
            storage=dict(cfg.get("storage") or {}),
        )


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    config_path = Path(path).expanduser()
    with config_path.open("r", encoding="utf-8") as fp:
        try:
            loaded = yaml.safe_load(fp)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse '{config_path}': {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"'{config_path}' does not contain a mapping.")
    return loaded


def load_definition(path: Union[str, Path]) -> TableDefinition:
    """Load a definition and resolve its data path relative to the config file."""

    config_path = Path(path).expanduser().resolve()
    definition = TableDefinition.from_config(load_config(config_path))
    data_cfg = dict(definition.data)
    raw_path = data_cfg.get("path")
    if raw_path:
        data_path = Path(str(raw_path))
        if not data_path.is_absolute():
            data_cfg["path"] = str((config_path.parent / data_path).resolve())
    storage_cfg = dict(definition.storage)
    if storage_cfg.get("path") and not Path(str(storage_cfg["path"])).is_absolute():
        storage_cfg["path"] = str((config_path.parent / str(storage_cfg["path"])).resolve())
    return TableDefinition(
        title=definition.title,
        columns=definition.columns,
        id_field=definition.id_field,
        pinned=definition.pinned,
        features=definition.features,
        group_total_fields=definition.group_total_fields,
        data=data_cfg,
        storage=storage_cfg,
    )


def frame_to_rows(df: pd.DataFrame) -> List[Row]:
    """Convert a frame into plain row dicts with ``None`` for missing cells."""

    cleaned = df.astype(object).where(df.notna(), None)
    return cleaned.to_dict(orient="records")


def load_rows(definition: TableDefinition, data_cfg: Optional[Mapping[str, Any]] = None) -> List[Row]:
    """Read the dataset declared by ``definition`` and coerce declared number columns."""

    cfg = dict(data_cfg if data_cfg is not None else definition.data)
    path = Path(str(cfg.get("path", ""))).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    kind = str(cfg.get("kind", "csv")).lower()
    if kind == "csv":
        read_kwargs: Dict[str, Any] = {}
        sep = cfg.get("sep") or cfg.get("delimiter")
        if sep is not None:
            read_kwargs["sep"] = sep
        encoding = cfg.get("encoding")
        if encoding is not None:
            read_kwargs["encoding"] = encoding
        df = pd.read_csv(path, **read_kwargs)
    elif kind == "json":
        df = pd.read_json(path, orient="records", dtype=False)
    else:
        raise ConfigError("Data kind must be either 'csv' or 'json'.")

    for spec in definition.columns:
        if spec.key in df.columns and spec.type is ColumnType.NUMBER:
            df[spec.key] = pd.to_numeric(df[spec.key], errors="coerce")
    return frame_to_rows(df)


__all__ = ["TableDefinition", "frame_to_rows", "load_config", "load_definition", "load_rows"]
