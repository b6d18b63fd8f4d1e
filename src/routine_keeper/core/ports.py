# src/routine_keeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the store and the notification channel swappable and makes testing easier.
"""

from typing import Any, Iterable, Protocol


class TaskRepo(Protocol):
    # Core operations
    def get_task(self, task_id: str) -> Any | None: ...
    def get_list(self, list_id: str) -> Any | None: ...
    def add_task(self, task: Any) -> Any: ...
    def update_task_schedule(self, task_id: str, schedule: Any, *, expected: Any) -> bool: ...
    def delete_task(self, task_id: str) -> bool: ...

    # Sweep API
    def query_by_refresh_window(self, low_ms: int | None, high_ms: int) -> list[Any]: ...
    def batch_update(self, updates: Iterable[Any]) -> list[str]: ...


class ListRepo(Protocol):
    def create_list(self, routine_list: Any) -> Any: ...
    def get_list(self, list_id: str) -> Any | None: ...
    def lists_for_admin(self, email: str) -> list[Any]: ...
    def add_admin(self, list_id: str, email: str) -> bool: ...
    def set_webhook_url(self, list_id: str, url: str | None) -> bool: ...
    def list_tasks(self, list_id: str) -> list[Any]: ...


class NotificationDispatcher(Protocol):
    """
    Receives the ids of lists whose tasks changed.

    Implementations own their retry policy and must not raise; callers log and
    ignore anything that escapes anyway.
    """

    def on_lists_touched(self, list_ids: set[str]) -> None: ...
    def notify_list(self, list_id: str, event: str) -> None: ...
