# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from routine_keeper.config import Settings
from routine_keeper.core.state import AppState
from routine_keeper.lists.list_api import RoutineService
from routine_keeper.tasks.task_models import RoutineList
from routine_keeper.tasks.task_store import RoutineStore

from .fakes import HOUR, NOW, OWNER, RecordingDispatcher


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings built directly (not from env) so tests stay isolated and deterministic.
    """
    return Settings(
        app_name="routine-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "routine.sqlite3",
        db_timeout_seconds=5.0,
        sweep_period_seconds=3600,
        sweep_catch_up=False,
        sweep_on_start=False,
        webhooks_enabled=False,
        webhook_timeout_seconds=1.0,
        console_enabled=False,
        user_email=OWNER,
        default_timezone="UTC",
    )


@pytest.fixture()
def store(settings: Settings) -> RoutineStore:
    # Real SQLite: the transactional behavior is part of what we test.
    return RoutineStore(settings.db_path)


@pytest.fixture()
def routine_list(store: RoutineStore) -> RoutineList:
    return store.create_list(
        RoutineList(id="list-1", name="Home", timezone="Europe/Berlin", admins=[OWNER], created_at=NOW)
    )


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def clock():
    """Mutable fake clock: clock.now is returned by clock()."""

    class _Clock:
        now = NOW

        def __call__(self) -> int:
            return self.now

    return _Clock()


@pytest.fixture()
def service(settings: Settings, store: RoutineStore, dispatcher: RecordingDispatcher, clock) -> RoutineService:
    return RoutineService(store, dispatcher, clock=clock, min_duration_ms=settings.sweep_period_ms)


@pytest.fixture()
def state(settings: Settings, store: RoutineStore, dispatcher: RecordingDispatcher, service) -> AppState:
    return AppState(
        settings=settings,
        store=store,
        dispatcher=dispatcher,
        service=service,
        user_email=OWNER,
    )
