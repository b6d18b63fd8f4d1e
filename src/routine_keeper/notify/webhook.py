# src/routine_keeper/notify/webhook.py

"""
Webhook notifications.

After a mutation or a sweep, each affected list that has a webhook_url gets a
POST with a JSON snapshot of the list and its tasks. Delivery is fire-and-forget:
failures are logged, never retried and never raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.ports import ListRepo
from ..tasks.task_models import RoutineList, Task, now_ms

logger = logging.getLogger(__name__)

EVENT_LISTS_TOUCHED = "lists_touched"


def build_snapshot(routine_list: RoutineList, tasks: list[Task], event: str) -> dict[str, Any]:
    return {
        "event": event,
        "list": routine_list.to_dict(),
        "tasks": [t.to_dict() for t in tasks],
        "sentAt": now_ms(),
    }


class WebhookDispatcher:
    """Posts list snapshots to each list's configured webhook URL."""

    def __init__(
        self,
        store: ListRepo,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._store = store
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def on_lists_touched(self, list_ids: set[str]) -> None:
        for list_id in sorted(list_ids):
            self.notify_list(list_id, EVENT_LISTS_TOUCHED)

    def notify_list(self, list_id: str, event: str) -> None:
        try:
            routine_list = self._store.get_list(list_id)
            if routine_list is None or not routine_list.webhook_url:
                return
            tasks = self._store.list_tasks(list_id)
        except Exception:
            logger.exception("Failed to load snapshot for list %s", list_id)
            return

        self._post(routine_list.webhook_url, build_snapshot(routine_list, tasks, event), list_id)

    def _post(self, url: str, payload: dict[str, Any], list_id: str) -> bool:
        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Webhook for list %s returned status %s: %s",
                list_id,
                e.response.status_code,
                e.response.text[:200],
            )
            return False
        except httpx.HTTPError as e:
            logger.error("Webhook for list %s failed: %s", list_id, e)
            return False

        logger.info("Webhook sent for list %s to %s (status: %s)", list_id, url, response.status_code)
        return True


class NullDispatcher:
    """Dispatcher used when webhooks are disabled."""

    def on_lists_touched(self, list_ids: set[str]) -> None:
        logger.debug("Webhooks disabled; lists touched: %s", sorted(list_ids))

    def notify_list(self, list_id: str, event: str) -> None:
        return

    def close(self) -> None:
        return
