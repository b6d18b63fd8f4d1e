# tests/test_list_api.py

from __future__ import annotations

import pytest

from routine_keeper.core.errors import (
    AlreadyExistsError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from routine_keeper.lists.list_api import RoutineService
from routine_keeper.tasks.task_store import RoutineStore

from .fakes import HOUR, NOW, OWNER, ExplodingDispatcher, RecordingDispatcher

STRANGER = "stranger@example.com"


def test_create_list_makes_creator_admin(service: RoutineService) -> None:
    rl = service.create_list("Owner@Example.com ", "Morning", "America/New_York")
    assert rl.admins == [OWNER]
    assert rl.timezone == "America/New_York"
    assert [x.id for x in service.get_lists(OWNER)] == [rl.id]
    assert service.get_lists(STRANGER) == []


@pytest.mark.parametrize(
    "caller,name,tz",
    [("not-an-email", "x", "UTC"), (OWNER, "  ", "UTC"), (OWNER, "x", ""), (OWNER, "x", "Mars/Olympus")],
)
def test_create_list_validation(service: RoutineService, caller, name, tz) -> None:
    with pytest.raises(ValidationError):
        service.create_list(caller, name, tz)


def test_list_details_require_admin(service: RoutineService) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")
    service.add_task(OWNER, rl.id, "Stretch", HOUR)

    details, tasks = service.get_list_details(OWNER, rl.id)
    assert details.name == "Morning"
    assert [t.description for t in tasks] == ["Stretch"]

    with pytest.raises(PermissionDeniedError):
        service.get_list_details(STRANGER, rl.id)
    with pytest.raises(NotFoundError):
        service.get_list_details(OWNER, "missing")


def test_task_operations_check_admin_before_mutating(service: RoutineService, store: RoutineStore) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")
    task = service.add_task(OWNER, rl.id, "Stretch", HOUR)
    assert task.refresh_timestamp == NOW + HOUR

    with pytest.raises(PermissionDeniedError):
        service.add_task(STRANGER, rl.id, "Sneaky", HOUR)
    with pytest.raises(PermissionDeniedError):
        service.update_task_status(STRANGER, task.id, True)
    with pytest.raises(PermissionDeniedError):
        service.remove_task(STRANGER, task.id)

    assert store.count_tasks() == 1
    assert store.get_task(task.id).status is False


def test_update_and_remove_task(service: RoutineService, store: RoutineStore, clock) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")
    task = service.add_task(OWNER, rl.id, "Stretch", HOUR)

    clock.now = NOW + HOUR - 60_000
    done = service.update_task_status(OWNER, task.id, True)
    assert done.status is True
    assert done.refresh_timestamp == NOW + 2 * HOUR

    service.remove_task(OWNER, task.id)
    assert store.get_task(task.id) is None
    with pytest.raises(NotFoundError):
        service.update_task_status(OWNER, task.id, False)


def test_invite_admin(service: RoutineService) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")

    updated = service.invite_admin(OWNER, rl.id, "Friend@Example.com")
    assert updated.admins == [OWNER, "friend@example.com"]
    assert [x.id for x in service.get_lists("friend@example.com")] == [rl.id]

    with pytest.raises(AlreadyExistsError):
        service.invite_admin(OWNER, rl.id, "friend@example.com")
    with pytest.raises(PermissionDeniedError):
        service.invite_admin(STRANGER, rl.id, "other@example.com")
    with pytest.raises(ValidationError):
        service.invite_admin(OWNER, rl.id, "nope")

    # The invited admin can now work on the list.
    service.add_task("friend@example.com", rl.id, "Vacuum", 24 * HOUR)


def test_set_webhook(service: RoutineService, store: RoutineStore) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")

    service.set_webhook(OWNER, rl.id, "https://hooks.example.com/routine")
    assert store.get_list(rl.id).webhook_url == "https://hooks.example.com/routine"

    service.set_webhook(OWNER, rl.id, None)
    assert store.get_list(rl.id).webhook_url is None

    with pytest.raises(ValidationError):
        service.set_webhook(OWNER, rl.id, "ftp://example.com")
    with pytest.raises(PermissionDeniedError):
        service.set_webhook(STRANGER, rl.id, "https://evil.example.com")


def test_mutations_notify_dispatcher(service: RoutineService, dispatcher: RecordingDispatcher) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")
    task = service.add_task(OWNER, rl.id, "Stretch", HOUR)
    service.update_task_status(OWNER, task.id, True)
    service.remove_task(OWNER, task.id)

    assert dispatcher.notified == [
        (rl.id, "task_created"),
        (rl.id, "task_updated"),
        (rl.id, "task_removed"),
    ]


def test_dispatcher_failure_does_not_block_mutation(store: RoutineStore) -> None:
    service = RoutineService(store, ExplodingDispatcher(), clock=lambda: NOW)
    rl = service.create_list(OWNER, "Morning", "UTC")
    task = service.add_task(OWNER, rl.id, "Stretch", HOUR)
    assert store.get_task(task.id) is not None


def test_add_task_rejects_duration_shorter_than_sweep_period(service: RoutineService, store: RoutineStore) -> None:
    rl = service.create_list(OWNER, "Morning", "UTC")

    with pytest.raises(ValidationError, match="sweep period"):
        service.add_task(OWNER, rl.id, "Blink", HOUR // 2)
    assert store.count_tasks() == 0

    # Exactly one period is the shortest cadence the sweep keeps.
    assert service.add_task(OWNER, rl.id, "Stretch", HOUR).refresh_duration_ms == HOUR
