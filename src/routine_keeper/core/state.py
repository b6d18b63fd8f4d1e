# src/routine_keeper/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..lists.list_api import RoutineService
from ..notify.webhook import NullDispatcher, WebhookDispatcher
from ..tasks.task_store import RoutineStore


@dataclass
class AppState:
    """
    Everything a front end needs, built once by the composition root.

    Nothing here is a module-level singleton: tests and the CLI each build their own.
    """

    settings: Settings
    store: RoutineStore
    dispatcher: WebhookDispatcher | NullDispatcher
    service: RoutineService
    user_email: str

    # Console only: the list /show selected last.
    current_list_id: str | None = None
