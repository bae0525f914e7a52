from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")

from gridview.engine.errors import PersistenceError
from gridview.engine.manual_groups import ManualGroupStore
from gridview.engine.notifications import NoticeLevel, Notifier
from gridview.engine.persistence import InMemoryStore

ROWS = [{"id": n, "amount": n * 10} for n in range(1, 6)]
NAMESPACE = "cashflow_manual_groups"


class FailingStore(InMemoryStore):
    def set(self, namespace, value):
        raise PersistenceError("quota exceeded")


def _store(store=None, notifier=None):
    groups = ManualGroupStore(store, NAMESPACE, notifier or Notifier(), clock=lambda: 1700000000.0)
    groups.load()
    return groups


def test_create_group_counts_unique_rows_and_persists():
    backing = InMemoryStore()
    groups = _store(backing)

    group = groups.create_group("  Desk A ", [ROWS[0], ROWS[1], ROWS[0]])

    assert group.name == "Desk A"
    assert group.row_ids == [1, 2]
    assert group.count == 2
    assert group.id.startswith("manual-1700000000000-")
    persisted = backing.get(NAMESPACE)
    assert persisted[0]["rowIds"] == [1, 2]
    assert persisted[0]["count"] == 2


def test_create_group_requires_a_name_and_rows():
    notifier = Notifier()
    groups = _store(notifier=notifier)

    assert groups.create_group("", ROWS[:2]) is None
    assert groups.create_group("Empty", []) is None
    assert groups.available_groups() == []
    assert [notice.level for notice in notifier.history] == [NoticeLevel.WARNING, NoticeLevel.WARNING]


def test_adding_existing_members_does_not_duplicate():
    groups = _store()
    group = groups.create_group("Desk A", ROWS[:2])

    assert groups.add_to_group(group.id, [ROWS[1], ROWS[2]]) is True

    assert groups.get(group.id).row_ids == [1, 2, 3]


def test_rows_belong_to_a_single_group():
    groups = _store()
    first = groups.create_group("First", ROWS[:2])
    second = groups.create_group("Second", ROWS[2:4])

    groups.add_to_group(second.id, [ROWS[0]])

    assert groups.get(first.id).row_ids == [2]
    assert groups.get(second.id).row_ids == [3, 4, 1]
    assert groups.group_of(1).id == second.id


def test_moving_the_last_member_prunes_the_old_group():
    groups = _store()
    first = groups.create_group("First", ROWS[:1])
    second = groups.create_group("Second", ROWS[1:2])

    groups.add_to_group(second.id, ROWS[:1])

    assert groups.get(first.id) is None
    assert [group.id for group in groups.available_groups()] == [second.id]


def test_removing_the_last_member_deletes_the_group():
    backing = InMemoryStore()
    groups = _store(backing)
    group = groups.create_group("Solo", ROWS[:1])

    assert groups.remove_from_group(group.id, 1) is True

    assert groups.available_groups() == []
    assert backing.get(NAMESPACE) == []


def test_operations_on_stale_groups_warn():
    notifier = Notifier()
    groups = _store(notifier=notifier)

    assert groups.add_to_group("manual-missing", ROWS[:1]) is False
    assert groups.remove_from_group("manual-missing", 1) is False
    assert notifier.history[-1].level is NoticeLevel.WARNING


def test_available_groups_are_copies():
    groups = _store()
    group = groups.create_group("Desk A", ROWS[:2])

    groups.available_groups()[0].row_ids.append(99)

    assert groups.get(group.id).row_ids == [1, 2]


def test_groups_are_restored_from_the_store():
    backing = InMemoryStore()
    _store(backing).create_group("Desk A", ROWS[:3])

    restored = _store(backing).available_groups()

    assert [(group.name, group.row_ids) for group in restored] == [("Desk A", [1, 2, 3])]


def test_corrupt_persisted_groups_are_discarded():
    backing = InMemoryStore()
    backing.set(NAMESPACE, [{"name": "missing id"}])
    notifier = Notifier()

    groups = _store(backing, notifier)

    assert groups.available_groups() == []
    assert notifier.history[-1].level is NoticeLevel.WARNING


def test_failed_writes_keep_memory_state_and_report_an_error():
    notifier = Notifier()
    groups = _store(FailingStore(), notifier)

    group = groups.create_group("Desk A", ROWS[:2])

    assert group is not None
    assert groups.get(group.id).count == 2
    assert notifier.history[-1].level is NoticeLevel.ERROR


def test_created_group_is_a_copy():
    groups = _store()

    group = groups.create_group("Desk A", ROWS[:2])
    group.row_ids.append(99)

    assert groups.get(group.id).row_ids == [1, 2]


def test_retain_prunes_missing_rows_and_empty_groups():
    backing = InMemoryStore()
    groups = _store(backing)
    partial = groups.create_group("Partial", ROWS[:2])
    groups.create_group("Gone", ROWS[4:])

    assert groups.retain([1, 3, 4]) is True

    assert [(group.id, group.row_ids) for group in groups.available_groups()] == [(partial.id, [1])]
    assert backing.get(NAMESPACE)[0]["rowIds"] == [1]
    assert groups.retain([1]) is False
