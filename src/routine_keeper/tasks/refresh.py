# src/routine_keeper/tasks/refresh.py

from __future__ import annotations

"""
Refresh scheduling rules.

Pure functions over task state; no I/O and no clock reads (callers pass now_ms).

Model: a task resets on a rolling "scheduled instant + fixed duration" cadence.
All arithmetic is on UTC epoch milliseconds; a list's timezone never takes part.
"""

from ..core.errors import ValidationError
from .task_models import Task, TaskSchedule


def validate_duration(refresh_duration_ms: object, *, min_ms: int = 1) -> int:
    """
    Reject anything but a positive int number of milliseconds.

    min_ms is the shortest cadence the caller can keep up with. With a windowed
    sweep this is the sweep period: a shorter duration rolls forward less than
    the window advances and falls out of it for good.
    """
    # bool is an int subclass; True would otherwise pass as 1ms.
    if isinstance(refresh_duration_ms, bool) or not isinstance(refresh_duration_ms, int):
        raise ValidationError("refresh duration must be an integer number of milliseconds")
    if refresh_duration_ms <= 0:
        raise ValidationError("refresh duration must be positive")
    if refresh_duration_ms < min_ms:
        raise ValidationError(f"refresh duration must be at least {min_ms}ms (the sweep period)")
    return refresh_duration_ms


def compute_initial_schedule(refresh_duration_ms: int, now_ms: int, *, min_duration_ms: int = 1) -> TaskSchedule:
    """A new task starts pending and is first due one full duration after creation."""
    duration = validate_duration(refresh_duration_ms, min_ms=min_duration_ms)
    return TaskSchedule(
        status=False,
        refresh_timestamp=int(now_ms) + duration,
        previous_refresh_timestamp=None,
    )


def apply_status_toggle(task: Task, new_status: bool, now_ms: int) -> TaskSchedule:
    """
    Compute the schedule after a user marks the task done or undone.

    Done:
    - snapshot the current refresh_timestamp into previous_refresh_timestamp
    - if less than half a duration remains before the scheduled reset, roll the
      reset forward by one duration; otherwise keep it (early completion)

    Undone:
    - restore the snapshot and clear it

    Toggling to the status the task already has returns its schedule unchanged.
    Undoing a completion that has no snapshot keeps the current refresh_timestamp.
    """
    current = task.schedule
    if bool(new_status) == task.status:
        return current

    if new_status:
        refresh_ts = task.refresh_timestamp
        # refresh_ts - now < duration / 2, kept in integers.
        if 2 * (refresh_ts - int(now_ms)) < task.refresh_duration_ms:
            refresh_ts += task.refresh_duration_ms
        return TaskSchedule(
            status=True,
            refresh_timestamp=refresh_ts,
            previous_refresh_timestamp=task.refresh_timestamp,
        )

    restored = task.previous_refresh_timestamp
    if restored is None:
        restored = task.refresh_timestamp
    return TaskSchedule(
        status=False,
        refresh_timestamp=restored,
        previous_refresh_timestamp=None,
    )


def sweep_window(now_ms: int, window_ms: int | None) -> tuple[int | None, int]:
    """
    Inclusive [low, high] bounds of the due query.

    window_ms=None selects catch-up mode: everything at or before now.
    """
    high = int(now_ms)
    if window_ms is None:
        return None, high
    return high - int(window_ms), high


def is_due(task: Task, now_ms: int, window_ms: int | None) -> bool:
    """The sweep's due check; store window queries must return exactly these tasks."""
    low, high = sweep_window(now_ms, window_ms)
    if task.refresh_timestamp > high:
        return False
    return low is None or task.refresh_timestamp >= low


def rolled_forward(task: Task) -> TaskSchedule:
    """
    The reset a sweep applies to a due task.

    Anchored to the stored instant, not to the sweep's clock, so jitter in when
    the sweep fires never shifts the cadence.
    """
    return TaskSchedule(
        status=False,
        refresh_timestamp=task.refresh_timestamp + task.refresh_duration_ms,
        previous_refresh_timestamp=None,
    )
