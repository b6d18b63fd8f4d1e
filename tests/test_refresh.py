# tests/test_refresh.py

from __future__ import annotations

import pytest

from routine_keeper.core.errors import ValidationError
from routine_keeper.tasks.refresh import (
    apply_status_toggle,
    compute_initial_schedule,
    is_due,
    rolled_forward,
    sweep_window,
)
from routine_keeper.tasks.task_models import Task

from .fakes import HOUR, NOW


def _task(*, status: bool = False, refresh_ts: int, prev: int | None = None, duration: int = HOUR) -> Task:
    return Task(
        id="t1",
        list_id="list-1",
        description="water plants",
        status=status,
        refresh_duration_ms=duration,
        refresh_timestamp=refresh_ts,
        previous_refresh_timestamp=prev,
    )


@pytest.mark.parametrize("duration", [1, 60_000, HOUR, 7 * 24 * HOUR])
def test_initial_schedule_is_one_duration_after_creation(duration: int) -> None:
    s = compute_initial_schedule(duration, NOW)
    assert s.refresh_timestamp == NOW + duration
    assert s.status is False
    assert s.previous_refresh_timestamp is None


@pytest.mark.parametrize("bad", [0, -5, 1.5, "3600000", None, True])
def test_initial_schedule_rejects_non_positive_or_non_int(bad) -> None:
    with pytest.raises(ValidationError):
        compute_initial_schedule(bad, NOW)



def test_initial_schedule_honours_minimum_duration() -> None:
    with pytest.raises(ValidationError):
        compute_initial_schedule(HOUR - 1, NOW, min_duration_ms=HOUR)
    assert compute_initial_schedule(HOUR, NOW, min_duration_ms=HOUR).refresh_timestamp == NOW + HOUR

def test_late_completion_rolls_forward_one_duration() -> None:
    task = _task(refresh_ts=NOW + 1_000_000)
    s = apply_status_toggle(task, True, NOW)
    assert s.status is True
    assert s.refresh_timestamp == NOW + 1_000_000 + 3_600_000
    assert s.previous_refresh_timestamp == NOW + 1_000_000


def test_early_completion_keeps_due_time() -> None:
    task = _task(refresh_ts=NOW + 3_000_000)
    s = apply_status_toggle(task, True, NOW)
    assert s.status is True
    assert s.refresh_timestamp == NOW + 3_000_000
    assert s.previous_refresh_timestamp == NOW + 3_000_000


def test_completion_exactly_half_a_cycle_early_keeps_due_time() -> None:
    task = _task(refresh_ts=NOW + HOUR // 2)
    s = apply_status_toggle(task, True, NOW)
    assert s.refresh_timestamp == NOW + HOUR // 2


def test_overdue_completion_rolls_forward() -> None:
    task = _task(refresh_ts=NOW - 10_000)
    s = apply_status_toggle(task, True, NOW)
    assert s.refresh_timestamp == NOW - 10_000 + HOUR


def test_undo_restores_exact_pre_done_value() -> None:
    task = _task(refresh_ts=NOW + 1_000_000)
    done = apply_status_toggle(task, True, NOW)

    task.status = done.status
    task.refresh_timestamp = done.refresh_timestamp
    task.previous_refresh_timestamp = done.previous_refresh_timestamp

    undone = apply_status_toggle(task, False, NOW)
    assert undone.status is False
    assert undone.refresh_timestamp == NOW + 1_000_000
    assert undone.previous_refresh_timestamp is None


def test_toggle_to_same_status_is_noop() -> None:
    pending = _task(refresh_ts=NOW + 10)
    assert apply_status_toggle(pending, False, NOW) == pending.schedule

    done = _task(status=True, refresh_ts=NOW + 10, prev=NOW - 5)
    assert apply_status_toggle(done, True, NOW) == done.schedule


def test_undo_without_snapshot_keeps_current_due_time() -> None:
    task = _task(status=True, refresh_ts=NOW + 42, prev=None)
    s = apply_status_toggle(task, False, NOW)
    assert s.status is False
    assert s.refresh_timestamp == NOW + 42
    assert s.previous_refresh_timestamp is None


def test_sweep_window_bounds() -> None:
    assert sweep_window(NOW, HOUR) == (NOW - HOUR, NOW)
    assert sweep_window(NOW, None) == (None, NOW)


def test_is_due_window_is_inclusive_on_both_ends() -> None:
    assert is_due(_task(refresh_ts=NOW - HOUR), NOW, HOUR)
    assert is_due(_task(refresh_ts=NOW), NOW, HOUR)
    assert not is_due(_task(refresh_ts=NOW - HOUR - 1), NOW, HOUR)
    assert not is_due(_task(refresh_ts=NOW + 1), NOW, HOUR)


def test_is_due_catch_up_has_no_lower_bound() -> None:
    assert is_due(_task(refresh_ts=NOW - 30 * HOUR), NOW, None)
    assert not is_due(_task(refresh_ts=NOW + 1), NOW, None)


def test_rolled_forward_is_anchored_to_stored_instant() -> None:
    task = _task(status=True, refresh_ts=NOW - 123, prev=NOW - 999)
    s = rolled_forward(task)
    assert s.status is False
    assert s.refresh_timestamp == NOW - 123 + HOUR
    assert s.previous_refresh_timestamp is None
