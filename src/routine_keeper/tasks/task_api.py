# src/routine_keeper/tasks/task_api.py

from __future__ import annotations

import logging
import re
import uuid

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..core.ports import TaskRepo
from .refresh import apply_status_toggle, compute_initial_schedule, validate_duration
from .task_models import Task, now_ms as _now_ms

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$", re.IGNORECASE)
_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}


def parse_duration(raw: str | int) -> int:
    """
    Parse a refresh duration into milliseconds.

    Accepts a plain integer (milliseconds) or "<n><unit>" with unit in ms/s/m/h/d/w,
    e.g. "30m", "24h", "1w".
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        return validate_duration(raw)

    m = _DURATION_RE.match(str(raw or ""))
    if not m:
        raise ValidationError(f"invalid duration: {raw!r} (use e.g. 90m, 24h, 7d)")
    value = int(m.group(1))
    unit = (m.group(2) or "ms").lower()
    return validate_duration(value * _UNIT_MS[unit])


def create_task(
    store: TaskRepo,
    list_id: str,
    description: str,
    refresh_duration_ms: int,
    *,
    now_ms: int | None = None,
    min_duration_ms: int = 1,
) -> Task:
    """
    Create a pending task, first due one full duration from now.

    min_duration_ms is normally the sweep period; shorter durations are
    rejected with ValidationError. A missing list raises NotFoundError.
    """
    if not list_id:
        raise ValidationError("list_id is required")
    if not description or not description.strip():
        raise ValidationError("description is required")

    now = _now_ms() if now_ms is None else int(now_ms)
    schedule = compute_initial_schedule(refresh_duration_ms, now, min_duration_ms=min_duration_ms)

    if store.get_list(list_id) is None:
        raise NotFoundError("list", list_id)

    task = Task(
        id=uuid.uuid4().hex,
        list_id=list_id,
        description=description.strip(),
        status=schedule.status,
        refresh_duration_ms=refresh_duration_ms,
        refresh_timestamp=schedule.refresh_timestamp,
        previous_refresh_timestamp=schedule.previous_refresh_timestamp,
        created_at=now,
    )
    store.add_task(task)
    logger.info("Task %s created in list %s (refresh every %sms)", task.id, list_id, refresh_duration_ms)
    return task


def toggle_task_status(
    store: TaskRepo,
    task_id: str,
    new_status: bool,
    *,
    now_ms: int | None = None,
) -> Task:
    """
    Mark a task done (True) or undone (False).

    The write is compare-and-set against the state that was read; if a sweep or
    another toggle changed the task in between, ConflictError is raised and the
    caller may retry.
    """
    if not task_id:
        raise ValidationError("task_id is required")
    if not isinstance(new_status, bool):
        raise ValidationError("status must be a boolean")

    task = store.get_task(task_id)
    if task is None:
        raise NotFoundError("task", task_id)

    now = _now_ms() if now_ms is None else int(now_ms)
    before = task.schedule
    after = apply_status_toggle(task, new_status, now)

    if after == before:
        logger.debug("Task %s already status=%s; nothing to do", task_id, new_status)
        return task

    if not store.update_task_schedule(task_id, after, expected=before):
        raise ConflictError(f"task {task_id} changed concurrently; retry")

    task.status = after.status
    task.refresh_timestamp = after.refresh_timestamp
    task.previous_refresh_timestamp = after.previous_refresh_timestamp
    task.updated_at = now
    logger.info(
        "Task %s -> %s (refresh_ts=%s)",
        task_id,
        "done" if after.status else "pending",
        after.refresh_timestamp,
    )
    return task


def remove_task(store: TaskRepo, task_id: str) -> None:
    if not task_id:
        raise ValidationError("task_id is required")
    if not store.delete_task(task_id):
        raise NotFoundError("task", task_id)
    logger.info("Task %s removed", task_id)
