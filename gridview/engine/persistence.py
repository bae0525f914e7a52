"""Key-value stores backing saved views and manual groups.

Every store exposes ``get(namespace)``, ``set(namespace, value)`` and
``remove(namespace)`` over JSON-compatible values. Failures are raised as
:class:`~gridview.engine.errors.PersistenceError`; callers inside the engine
catch them and report a notice instead of propagating.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Protocol, Union

from .errors import PersistenceError


class KeyValueStore(Protocol):
    def get(self, namespace: str) -> Optional[Any]:
        ...

    def set(self, namespace: str, value: Any) -> None:
        ...

    def remove(self, namespace: str) -> None:
        ...


def _encode(namespace: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Value for '{namespace}' is not JSON serializable: {exc}") from exc


def _decode(namespace: str, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Stored value for '{namespace}' is not valid JSON: {exc}") from exc


class MappingStore:
    """Store JSON text in any mutable mapping.

    Values are round-tripped through JSON text so that the in-memory store
    behaves like browser storage: callers never share mutable objects with
    the store, and unserializable values fail on write.
    """

    def __init__(self, backing: Optional[MutableMapping[str, Any]] = None, prefix: str = "") -> None:
        self._backing: MutableMapping[str, Any] = backing if backing is not None else {}
        self._prefix = prefix

    def _key(self, namespace: str) -> str:
        return f"{self._prefix}{namespace}"

    def get(self, namespace: str) -> Optional[Any]:
        raw = self._backing.get(self._key(namespace))
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise PersistenceError(f"Stored value for '{namespace}' is not JSON text.")
        return _decode(namespace, raw)

    def set(self, namespace: str, value: Any) -> None:
        self._backing[self._key(namespace)] = _encode(namespace, value)

    def remove(self, namespace: str) -> None:
        self._backing.pop(self._key(namespace), None)


class InMemoryStore(MappingStore):
    """Process-local store, mainly for tests and scripts."""

    def __init__(self) -> None:
        super().__init__({})


class SessionStateStore(MappingStore):
    """Store living inside ``streamlit.session_state`` (or any mapping like it)."""

    def __init__(self, session_state: MutableMapping[str, Any], prefix: str = "gridview:") -> None:
        super().__init__(session_state, prefix=prefix)


class JsonFileStore:
    """One JSON file per namespace under ``base_dir``."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir).expanduser()

    def _path(self, namespace: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in namespace)
        return self.base_dir / f"{safe}.json"

    def get(self, namespace: str) -> Optional[Any]:
        path = self._path(namespace)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Cannot read '{path}': {exc}") from exc
        return _decode(namespace, text)

    def set(self, namespace: str, value: Any) -> None:
        text = _encode(namespace, value)
        path = self._path(namespace)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write '{path}': {exc}") from exc

    def remove(self, namespace: str) -> None:
        try:
            self._path(namespace).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot remove '{namespace}': {exc}") from exc


def build_store(cfg: Optional[Dict[str, Any]], session_state: Optional[MutableMapping[str, Any]] = None) -> KeyValueStore:
    """Create a store from a ``storage`` configuration section."""

    cfg = dict(cfg or {})
    kind = str(cfg.get("kind", "memory")).lower()
    if kind == "memory":
        return InMemoryStore()
    if kind == "file":
        return JsonFileStore(cfg.get("path", ".gridview"))
    if kind == "session":
        if session_state is None:
            raise ValueError("Storage kind 'session' requires a session state mapping.")
        return SessionStateStore(session_state, prefix=str(cfg.get("prefix", "gridview:")))
    raise ValueError("Storage kind must be one of 'memory', 'file' or 'session'.")


__all__ = [
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "MappingStore",
    "SessionStateStore",
    "build_store",
]
