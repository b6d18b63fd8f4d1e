# src/routine_keeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, the webhook dispatcher and the service into AppState.
"""

from __future__ import annotations

import logging

from ..config import Settings, get_settings
from ..core.state import AppState
from ..lists.list_api import RoutineService
from ..notify.webhook import NullDispatcher, WebhookDispatcher
from ..tasks.task_store import RoutineStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = RoutineStore(settings.db_path, timeout=settings.db_timeout_seconds)

    dispatcher: WebhookDispatcher | NullDispatcher
    if settings.webhooks_enabled:
        dispatcher = WebhookDispatcher(store, timeout_seconds=settings.webhook_timeout_seconds)
    else:
        dispatcher = NullDispatcher()

    return AppState(
        settings=settings,
        store=store,
        dispatcher=dispatcher,
        service=RoutineService(store, dispatcher, min_duration_ms=settings.sweep_period_ms),
        user_email=settings.user_email,
    )


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.dispatcher.close()
    except Exception:
        logger.debug("Dispatcher close failed.", exc_info=True)
