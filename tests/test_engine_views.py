from __future__ import annotations

import json
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")

from gridview.engine.errors import PersistenceError
from gridview.engine.models import FilterOp, FilterSpec, SortConfig, SortDirection, ViewSnapshot
from gridview.engine.notifications import NoticeLevel, Notifier
from gridview.engine.persistence import InMemoryStore, MappingStore
from gridview.engine.views import SavedViews


class FailingStore(InMemoryStore):
    def set(self, namespace, value):
        raise PersistenceError("storage unavailable")


def _snapshot(**overrides):
    fields = dict(
        visible_column_keys=["a", "b"],
        column_order=["b", "a"],
        pinned_column_keys=[],
        sort_config=SortConfig("a", SortDirection.DESC),
        active_group_list=["b"],
        expanded_group_ids=["group-0-b-123"],
        aggregations={},
        filters={"a": FilterSpec(FilterOp.GREATER, 5.0)},
    )
    fields.update(overrides)
    return ViewSnapshot(**fields)


def _views(store=None, notifier=None, now=1700000000.0):
    views = SavedViews(store, "cashflow", notifier or Notifier(), clock=lambda: now)
    views.load()
    return views


def test_snapshot_dict_round_trip_is_json_compatible():
    snapshot = _snapshot(name="Daily", id="view-1", created_at="2024-01-01T00:00:00+00:00")

    payload = json.loads(json.dumps(snapshot.to_dict()))

    assert payload["sortConfig"] == {"key": "a", "direction": "desc"}
    assert payload["filters"] == {"a": {"op": "greater", "value": 5.0}}
    assert ViewSnapshot.from_dict(payload) == snapshot


def test_partial_snapshots_omit_absent_fields():
    payload = ViewSnapshot(name="Only sort", sort_config=SortConfig("a")).to_dict()

    assert set(payload) == {"name", "sortConfig"}
    assert ViewSnapshot.from_dict(payload).filters is None


def test_malformed_snapshot_raises():
    with pytest.raises(ValueError):
        ViewSnapshot.from_dict({"name": "x", "columnOrder": "a,b"})


def test_save_assigns_an_id_and_becomes_current():
    store = InMemoryStore()
    views = _views(store)

    saved = views.save(_snapshot(), "Daily")

    assert saved.id == "view-1700000000000"
    assert views.current_view_id == saved.id
    assert store.get("cashflow_views")[0]["name"] == "Daily"
    assert store.get("cashflow_current_view") == saved.id


def test_saving_under_an_existing_name_replaces_and_keeps_the_id():
    views = _views()
    first = views.save(_snapshot(), "Daily")

    second = views.save(_snapshot(column_order=["a", "b"]), "Daily")

    assert len(views.views) == 1
    assert second.id == first.id
    assert views.views[0].column_order == ["a", "b"]


def test_blank_names_are_rejected():
    notifier = Notifier()
    views = _views(notifier=notifier)

    assert views.save(_snapshot(), "   ") is None
    assert views.views == []
    assert notifier.history[-1].level is NoticeLevel.WARNING


def test_delete_clears_the_current_view():
    store = InMemoryStore()
    views = _views(store)
    saved = views.save(_snapshot(), "Daily")

    assert views.delete(saved.id) is True
    assert views.delete(saved.id) is False

    assert views.current_view_id is None
    assert store.get("cashflow_current_view") is None


def test_views_are_reloaded_from_the_store():
    store = InMemoryStore()
    saved = _views(store).save(_snapshot(), "Daily")

    reloaded = _views(store)

    assert [view.name for view in reloaded.views] == ["Daily"]
    assert reloaded.current_view_id == saved.id
    assert reloaded.get(saved.id).filters == {"a": FilterSpec(FilterOp.GREATER, 5.0)}


def test_corrupt_views_are_discarded_with_a_warning():
    store = InMemoryStore()
    store.set("cashflow_views", {"not": "a list"})
    notifier = Notifier()

    views = _views(store, notifier)

    assert views.views == []
    assert notifier.history[-1].level is NoticeLevel.WARNING


def test_write_failures_keep_the_in_memory_list():
    notifier = Notifier()
    views = _views(FailingStore(), notifier)

    saved = views.save(_snapshot(), "Daily")

    assert views.get(saved.id) is saved
    assert notifier.history[-1].level is NoticeLevel.ERROR


def test_clear_all_removes_everything():
    store = InMemoryStore()
    views = _views(store)
    views.save(_snapshot(), "Daily")

    views.clear_all()

    assert views.views == []
    assert store.get("cashflow_views") is None


def test_corrupt_current_view_pointer_keeps_the_views():
    backing = {}
    store = MappingStore(backing)
    _views(store).save(_snapshot(), "Daily")
    backing["cashflow_current_view"] = "{not json"
    notifier = Notifier()

    views = _views(store, notifier)

    assert [view.name for view in views.views] == ["Daily"]
    assert views.current_view_id is None
    assert notifier.history[-1].level is NoticeLevel.WARNING
