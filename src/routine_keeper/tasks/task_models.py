# src/routine_keeper/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds (UTC)."""
    return int(time.time() * 1000)


@dataclass(slots=True, frozen=True)
class TaskSchedule:
    """
    The scheduling triple the refresh logic reads and writes.

    Kept separate from Task so the scheduler stays a set of pure functions
    and the store can apply it as one atomic update.
    """

    status: bool
    refresh_timestamp: int
    previous_refresh_timestamp: int | None


@dataclass(slots=True)
class Task:
    id: str
    list_id: str
    description: str

    status: bool
    refresh_duration_ms: int
    refresh_timestamp: int
    previous_refresh_timestamp: int | None

    created_at: int = 0
    updated_at: int = 0

    @property
    def schedule(self) -> TaskSchedule:
        return TaskSchedule(
            status=self.status,
            refresh_timestamp=self.refresh_timestamp,
            previous_refresh_timestamp=self.previous_refresh_timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "listId": self.list_id,
            "description": self.description,
            "status": self.status,
            "refreshDurationMs": self.refresh_duration_ms,
            "refreshTimestamp": self.refresh_timestamp,
            "previousRefreshTimestamp": self.previous_refresh_timestamp,
        }


@dataclass(slots=True)
class RoutineList:
    id: str
    name: str
    timezone: str  # display only; resets never depend on it
    admins: list[str]
    webhook_url: str | None = None
    created_at: int = 0

    def is_admin(self, email: str) -> bool:
        return (email or "").strip().lower() in self.admins

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "admins": list(self.admins),
            "webhookUrl": self.webhook_url,
        }


@dataclass(slots=True)
class SweepResult:
    """Outcome of one sweep run."""

    now_ms: int
    window_low_ms: int | None  # None in catch-up mode
    window_high_ms: int
    reset_task_ids: list[str] = field(default_factory=list)
    touched_list_ids: set[str] = field(default_factory=set)
    committed: bool = True
