# tests/test_task_store.py

from __future__ import annotations

from pathlib import Path

import pytest

from routine_keeper.core.errors import StoreError
from routine_keeper.tasks.task_models import RoutineList, Task, TaskSchedule
from routine_keeper.tasks.task_store import RoutineStore, ScheduleUpdate

from .fakes import HOUR, NOW, OWNER, FailingBatchStore


def _task(task_id: str, refresh_ts: int, *, status: bool = True, list_id: str = "list-1") -> Task:
    return Task(
        id=task_id,
        list_id=list_id,
        description=f"task {task_id}",
        status=status,
        refresh_duration_ms=HOUR,
        refresh_timestamp=refresh_ts,
        previous_refresh_timestamp=refresh_ts - HOUR if status else None,
    )


def test_list_roundtrip_and_admin_lookup(store: RoutineStore, routine_list: RoutineList) -> None:
    loaded = store.get_list("list-1")
    assert loaded is not None
    assert loaded.name == "Home"
    assert loaded.timezone == "Europe/Berlin"
    assert loaded.admins == [OWNER]
    assert loaded.webhook_url is None

    assert store.add_admin("list-1", "friend@example.com") is True
    assert store.add_admin("list-1", "friend@example.com") is False
    assert store.get_list("list-1").admins == [OWNER, "friend@example.com"]

    assert [rl.id for rl in store.lists_for_admin("friend@example.com")] == ["list-1"]
    assert store.lists_for_admin("nobody@example.com") == []

    assert store.set_webhook_url("list-1", "https://hooks.example.com/x") is True
    assert store.get_list("list-1").webhook_url == "https://hooks.example.com/x"
    assert store.get_list("missing") is None


def test_task_add_get_delete(store: RoutineStore, routine_list: RoutineList) -> None:
    store.add_task(_task("a", NOW, status=False))
    got = store.get_task("a")
    assert got is not None
    assert got.status is False
    assert got.refresh_timestamp == NOW
    assert got.previous_refresh_timestamp is None
    assert store.count_tasks() == 1
    assert [t.id for t in store.list_tasks("list-1")] == ["a"]

    assert store.delete_task("a") is True
    assert store.delete_task("a") is False
    assert store.get_task("a") is None


def test_task_requires_existing_list(store: RoutineStore) -> None:
    with pytest.raises(StoreError):
        store.add_task(_task("orphan", NOW, list_id="no-such-list"))


def test_query_by_refresh_window_is_inclusive(store: RoutineStore, routine_list: RoutineList) -> None:
    store.add_task(_task("too-old", NOW - HOUR - 1))
    store.add_task(_task("low-edge", NOW - HOUR))
    store.add_task(_task("middle", NOW - 1000))
    store.add_task(_task("high-edge", NOW))
    store.add_task(_task("future", NOW + 1))

    ids = [t.id for t in store.query_by_refresh_window(NOW - HOUR, NOW)]
    assert ids == ["low-edge", "middle", "high-edge"]

    unbounded = [t.id for t in store.query_by_refresh_window(None, NOW)]
    assert unbounded == ["too-old", "low-edge", "middle", "high-edge"]


def test_update_task_schedule_is_compare_and_set(store: RoutineStore, routine_list: RoutineList) -> None:
    store.add_task(_task("a", NOW + 1000, status=False))
    before = store.get_task("a").schedule
    after = TaskSchedule(status=True, refresh_timestamp=NOW + 1000, previous_refresh_timestamp=NOW + 1000)

    assert store.update_task_schedule("a", after, expected=before) is True
    # Same expectation again: the row has moved on, so the write is refused.
    assert store.update_task_schedule("a", after, expected=before) is False
    assert store.get_task("a").schedule == after


def test_batch_update_applies_all_and_skips_stale_rows(store: RoutineStore, routine_list: RoutineList) -> None:
    store.add_task(_task("a", NOW - 10))
    store.add_task(_task("b", NOW - 20))

    reset = TaskSchedule(status=False, refresh_timestamp=NOW - 10 + HOUR, previous_refresh_timestamp=None)
    stale = TaskSchedule(status=False, refresh_timestamp=NOW + 999, previous_refresh_timestamp=None)

    applied = store.batch_update(
        [
            ScheduleUpdate("a", NOW - 10, reset),
            ScheduleUpdate("b", NOW - 12345, stale),  # guard does not match
        ]
    )
    assert applied == ["a"]
    assert store.get_task("a").schedule == reset
    assert store.get_task("b").refresh_timestamp == NOW - 20
    assert store.batch_update([]) == []


def test_batch_update_is_all_or_nothing(tmp_path: Path) -> None:
    store = FailingBatchStore(tmp_path / "flaky.sqlite3", fail_on_row=3)
    store.create_list(RoutineList(id="list-1", name="Home", timezone="UTC", admins=[OWNER]))
    for i in range(4):
        store.add_task(_task(f"t{i}", NOW - 100 - i))

    updates = [
        ScheduleUpdate(
            f"t{i}",
            NOW - 100 - i,
            TaskSchedule(status=False, refresh_timestamp=NOW - 100 - i + HOUR, previous_refresh_timestamp=None),
        )
        for i in range(4)
    ]
    with pytest.raises(StoreError):
        store.batch_update(updates)

    assert store.rows_attempted == 3
    for i in range(4):
        t = store.get_task(f"t{i}")
        assert t.status is True
        assert t.refresh_timestamp == NOW - 100 - i
        assert t.previous_refresh_timestamp == NOW - 100 - i - HOUR


def test_schema_is_idempotent(store: RoutineStore, routine_list: RoutineList) -> None:
    store.add_task(_task("a", NOW))
    reopened = RoutineStore(store.db_path)
    assert reopened.get_task("a") is not None
