# src/routine_keeper/tasks/task_scheduler.py

from __future__ import annotations

"""
Sweep runner.

run_sweep() is one single-shot sweep:
- computes the due window from the sweep period,
- fetches due tasks from the store,
- rolls each of them forward by exactly one duration in ONE transaction,
- hands the touched list ids to the notification dispatcher.

run_sweep_scheduler() is the periodic driver: a small loop that calls run_sweep()
every period and sleeps in between. Each tick runs to completion before the next.
"""

import asyncio
import logging
import time

from ..core.errors import StoreError
from ..core.ports import NotificationDispatcher, TaskRepo
from .refresh import is_due, rolled_forward, sweep_window
from .task_models import SweepResult, now_ms as _now_ms
from .task_store import ScheduleUpdate

logger = logging.getLogger(__name__)


def _notify(dispatcher: NotificationDispatcher | None, list_ids: set[str]) -> None:
    if dispatcher is None:
        return
    try:
        dispatcher.on_lists_touched(set(list_ids))
    except Exception:
        # Dispatcher failures never undo or fail a committed sweep.
        logger.exception("Dispatcher failed for lists=%s", sorted(list_ids))


def run_sweep(
    store: TaskRepo,
    dispatcher: NotificationDispatcher | None = None,
    *,
    period_ms: int,
    now_ms: int | None = None,
    catch_up: bool = False,
) -> SweepResult:
    """
    Reset every task whose refresh_timestamp is in [now - period, now].

    catch_up=True drops the lower bound (refresh_timestamp <= now), so tasks
    left behind by skipped or late sweeps are still picked up.

    Each due task gets: status=False, previous_refresh_timestamp=None,
    refresh_timestamp += refresh_duration_ms (anchored to the stored value, not now).

    A failed commit is logged and reported with committed=False; nothing is
    written and nobody is notified, so the next trigger sees the same rows again.
    """
    if now_ms is None:
        now_ms = _now_ms()
    period_ms = int(period_ms)
    if period_ms <= 0:
        raise ValueError("period_ms must be positive")

    window_ms = None if catch_up else period_ms
    low, high = sweep_window(now_ms, window_ms)
    result = SweepResult(now_ms=int(now_ms), window_low_ms=low, window_high_ms=high)

    try:
        rows = store.query_by_refresh_window(low, high)
    except StoreError:
        logger.exception("Sweep query failed window=[%s, %s]", low, high)
        result.committed = False
        return result

    # The store query narrows the scan; is_due decides.
    due = [t for t in rows if is_due(t, now_ms, window_ms)]
    if len(due) != len(rows):
        logger.warning("Store returned %d task(s) outside window=[%s, %s]", len(rows) - len(due), low, high)

    if not due:
        logger.info("Sweep found no due tasks window=[%s, %s]", low, high)
        _notify(dispatcher, set())
        return result

    list_by_task = {t.id: t.list_id for t in due}
    updates = [
        ScheduleUpdate(
            task_id=t.id,
            expected_refresh_timestamp=t.refresh_timestamp,
            schedule=rolled_forward(t),
        )
        for t in due
    ]

    try:
        applied = store.batch_update(updates)
    except StoreError:
        logger.exception("Sweep batch commit failed (%d tasks); deferring to next trigger", len(updates))
        result.committed = False
        return result

    result.reset_task_ids = list(applied)
    result.touched_list_ids = {list_by_task[task_id] for task_id in applied}

    skipped = len(updates) - len(applied)
    logger.info(
        "Sweep reset %d tasks across %d lists (skipped=%d) window=[%s, %s]",
        len(applied),
        len(result.touched_list_ids),
        skipped,
        low,
        high,
    )

    _notify(dispatcher, result.touched_list_ids)
    return result


async def run_sweep_scheduler(
    store: TaskRepo,
    dispatcher: NotificationDispatcher | None = None,
    *,
    period_seconds: float = 3600.0,
    catch_up: bool = False,
    run_immediately: bool = True,
) -> None:
    """
    Periodic driver.

    Every period_seconds:
    - run one sweep with a window equal to the period, so back-to-back sweeps
      cover the timeline without gaps or overlaps
    - log and keep going on unexpected errors (the next tick retries wholesale)

    Ticks are scheduled on a monotonic clock so a slow sweep does not push
    later ticks back. To stop the scheduler, cancel the coroutine/task.
    """
    period_s = max(0.01, float(period_seconds))
    period_ms = max(1, int(period_s * 1000))

    next_tick = time.monotonic()
    if not run_immediately:
        next_tick += period_s

    while True:
        delay = next_tick - time.monotonic()
        if delay > 0:
            await asyncio.sleep(delay)

        try:
            run_sweep(store, dispatcher, period_ms=period_ms, catch_up=catch_up)
        except Exception:
            logger.exception("Sweep crashed")

        next_tick += period_s
        # Fell more than a full period behind: resync instead of firing a burst.
        if next_tick < time.monotonic():
            logger.warning("Sweep scheduler fell behind; resyncing")
            next_tick = time.monotonic()
