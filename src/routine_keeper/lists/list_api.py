# src/routine_keeper/lists/list_api.py

"""
List CRUD and the authorization layer in front of the core task operations.

Every RoutineService method takes the caller's identity (an email) and checks
list membership before touching the scheduler; the core functions in
tasks.task_api are never reached without that check.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.errors import AlreadyExistsError, NotFoundError, PermissionDeniedError, ValidationError
from ..core.ports import NotificationDispatcher
from ..tasks import task_api
from ..tasks.task_models import RoutineList, Task, now_ms
from ..tasks.task_store import RoutineStore

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

EVENT_LIST_UPDATED = "list_updated"
EVENT_TASK_CREATED = "task_created"
EVENT_TASK_UPDATED = "task_updated"
EVENT_TASK_REMOVED = "task_removed"


def normalize_email(raw: str | None) -> str:
    email = (raw or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"invalid email: {raw!r}")
    return email


def validate_timezone(raw: str | None) -> str:
    tz = (raw or "").strip()
    if not tz:
        raise ValidationError("timezone is required")
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"unknown timezone: {tz}") from e
    return tz


def validate_webhook_url(raw: str | None) -> str | None:
    url = (raw or "").strip()
    if not url:
        return None
    if not url.startswith(("http://", "https://")):
        raise ValidationError("webhook url must start with http:// or https://")
    return url


class RoutineService:
    """Client-facing operations over lists and tasks."""

    def __init__(
        self,
        store: RoutineStore,
        dispatcher: NotificationDispatcher | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        min_duration_ms: int = 1,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock
        # Shortest cadence the sweep can keep; set to the sweep period.
        self._min_duration_ms = int(min_duration_ms)

    # ---- helpers ----

    def _notify(self, list_id: str, event: str) -> None:
        if self._dispatcher is None:
            return
        try:
            self._dispatcher.notify_list(list_id, event)
        except Exception:
            logger.exception("Dispatcher failed list=%s event=%s", list_id, event)

    def _require_list(self, list_id: str) -> RoutineList:
        if not list_id:
            raise ValidationError("list_id is required")
        routine_list = self._store.get_list(list_id)
        if routine_list is None:
            raise NotFoundError("list", list_id)
        return routine_list

    def _require_admin(self, caller: str, list_id: str) -> RoutineList:
        routine_list = self._require_list(list_id)
        if not routine_list.is_admin(caller):
            raise PermissionDeniedError("You are not an admin of this list.")
        return routine_list

    def _require_task(self, caller: str, task_id: str) -> Task:
        if not task_id:
            raise ValidationError("task_id is required")
        task = self._store.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        self._require_admin(caller, task.list_id)
        return task

    # ---- lists ----

    def create_list(self, caller: str, name: str, timezone: str) -> RoutineList:
        owner = normalize_email(caller)
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")
        routine_list = RoutineList(
            id=uuid.uuid4().hex,
            name=name,
            timezone=validate_timezone(timezone),
            admins=[owner],
            created_at=self._clock(),
        )
        self._store.create_list(routine_list)
        logger.info("New list created by %s with ID: %s", owner, routine_list.id)
        return routine_list

    def get_lists(self, caller: str) -> list[RoutineList]:
        return self._store.lists_for_admin(normalize_email(caller))

    def get_list_details(self, caller: str, list_id: str) -> tuple[RoutineList, list[Task]]:
        routine_list = self._require_admin(normalize_email(caller), list_id)
        return routine_list, self._store.list_tasks(list_id)

    def invite_admin(self, caller: str, list_id: str, email: str) -> RoutineList:
        inviter = normalize_email(caller)
        invitee = normalize_email(email)
        routine_list = self._require_admin(inviter, list_id)
        if routine_list.is_admin(invitee) or not self._store.add_admin(list_id, invitee):
            raise AlreadyExistsError("This user is already an admin.")
        routine_list.admins.append(invitee)
        logger.info("User %s invited to list %s by %s", invitee, list_id, inviter)
        self._notify(list_id, EVENT_LIST_UPDATED)
        return routine_list

    def set_webhook(self, caller: str, list_id: str, url: str | None) -> RoutineList:
        routine_list = self._require_admin(normalize_email(caller), list_id)
        routine_list.webhook_url = validate_webhook_url(url)
        self._store.set_webhook_url(list_id, routine_list.webhook_url)
        logger.info("Webhook for list %s set to %s", list_id, routine_list.webhook_url)
        return routine_list

    # ---- tasks ----

    def add_task(self, caller: str, list_id: str, description: str, refresh_duration_ms: int) -> Task:
        self._require_admin(normalize_email(caller), list_id)
        task = task_api.create_task(
            self._store,
            list_id,
            description,
            refresh_duration_ms,
            now_ms=self._clock(),
            min_duration_ms=self._min_duration_ms,
        )
        self._notify(list_id, EVENT_TASK_CREATED)
        return task

    def update_task_status(self, caller: str, task_id: str, status: bool) -> Task:
        self._require_task(normalize_email(caller), task_id)
        task = task_api.toggle_task_status(self._store, task_id, status, now_ms=self._clock())
        self._notify(task.list_id, EVENT_TASK_UPDATED)
        return task

    def remove_task(self, caller: str, task_id: str) -> None:
        task = self._require_task(normalize_email(caller), task_id)
        task_api.remove_task(self._store, task_id)
        self._notify(task.list_id, EVENT_TASK_REMOVED)
