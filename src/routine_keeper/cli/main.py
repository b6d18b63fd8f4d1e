# src/routine_keeper/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the periodic reset sweep in a background thread (own asyncio loop),
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import run_sweep_scheduler

logger = logging.getLogger(__name__)


class SweepBackgroundRunner(threading.Thread):
    """Runs run_sweep_scheduler() on a private event loop until stop() is called."""

    def __init__(self, state: AppState) -> None:
        super().__init__(name="routine-sweep", daemon=True)
        self._state = state
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._ready = threading.Event()

    def run(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        s = self._state.settings
        self._task = loop.create_task(
            run_sweep_scheduler(
                self._state.store,
                self._state.dispatcher,
                period_seconds=s.sweep_period_seconds,
                catch_up=s.sweep_catch_up,
                run_immediately=s.sweep_on_start,
            )
        )
        self._ready.set()
        try:
            loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            logger.debug("Sweep scheduler cancelled.")
        except Exception:
            logger.exception("Sweep scheduler stopped unexpectedly.")
        finally:
            loop.close()

    def stop(self) -> None:
        self._ready.wait(timeout=5.0)
        if self._loop is not None and self._task is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._task.cancel)


def main() -> None:
    settings = get_settings()

    setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)

    sweeper = SweepBackgroundRunner(state)
    sweeper.start()

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
            logger.info("Console disabled. Running the sweep only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        sweeper.stop()
        sweeper.join(timeout=10.0)
        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
