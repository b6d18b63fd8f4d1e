# src/routine_keeper/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TypeVar
from zoneinfo import ZoneInfo

from ..core.errors import ConflictError, RoutineError
from ..core.state import AppState
from ..tasks.task_api import parse_duration
from ..tasks.task_models import RoutineList, Task
from ..tasks.task_scheduler import run_sweep

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], str]

logger = logging.getLogger(__name__)

T = TypeVar("T", RoutineList, Task)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /lists, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args, emit)
        except ConflictError:
            return "The task changed while you were editing it. Try again."
        except RoutineError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts_ms: int | None, tz_name: str) -> str:
    if ts_ms is None:
        return "-"
    tz = ZoneInfo(tz_name) if tz_name else timezone.utc
    return datetime.fromtimestamp(ts_ms / 1000, tz=tz).strftime("%Y-%m-%d %H:%M")


def _fmt_duration(ms: int) -> str:
    for unit, size in (("w", 604_800_000), ("d", 86_400_000), ("h", 3_600_000), ("m", 60_000), ("s", 1000)):
        if ms % size == 0:
            return f"{ms // size}{unit}"
    return f"{ms}ms"


def _resolve(items: Sequence[T], ref: str, what: str) -> T:
    """Pick an item by 1-based index or by id prefix."""
    if ref.isdigit() and 1 <= int(ref) <= len(items):
        return items[int(ref) - 1]
    matches = [it for it in items if it.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise RoutineError(f"no {what} matches {ref!r}")
    raise RoutineError(f"{ref!r} is ambiguous; use more characters")


def _current_tasks(state: AppState) -> tuple[RoutineList, list[Task]]:
    if not state.current_list_id:
        raise RoutineError("no list selected; use /show <list> first")
    return state.service.get_list_details(state.user_email, state.current_list_id)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    mode = "catch-up (<= now)" if s.sweep_catch_up else "windowed ([now - period, now])"
    hooks = "ON" if s.webhooks_enabled else "OFF"
    return (
        "Status:\n"
        f"  User: {state.user_email}\n"
        f"  Database: {s.db_path}\n"
        f"  Sweep: every {s.sweep_period_seconds}s, {mode}\n"
        f"  Webhooks: {hooks}"
    )


def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /whoami          -> show the acting identity
    /whoami <email>  -> act as another admin (local use only)
    """
    if args:
        state.user_email = args[0].strip().lower()
        state.current_list_id = None
    return f"Acting as {state.user_email}."


def cmd_lists(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    lists = state.service.get_lists(state.user_email)
    if not lists:
        return "No routine lists found. Create one with /newlist <name>."
    lines = ["Your lists:"]
    for i, rl in enumerate(lists, start=1):
        lines.append(f"{i}. {rl.name} [{rl.timezone}] ({rl.id[:8]})")
    return "\n".join(lines)


def cmd_newlist(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /newlist <name...>                -> list in the default timezone
    /newlist <name...> tz=<IANA zone>  -> explicit timezone
    """
    if not args:
        return "Usage: /newlist <name> [tz=Europe/Berlin]"
    tz = state.settings.default_timezone
    words = []
    for a in args:
        if a.lower().startswith("tz="):
            tz = a[3:]
        else:
            words.append(a)
    rl = state.service.create_list(state.user_email, " ".join(words), tz)
    state.current_list_id = rl.id
    return f"Created list '{rl.name}' ({rl.id[:8]}) in {rl.timezone}."


def cmd_show(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if args:
        lists = state.service.get_lists(state.user_email)
        state.current_list_id = _resolve(lists, args[0], "list").id

    rl, tasks = _current_tasks(state)
    lines = [f"{rl.name} (timezone: {rl.timezone}, admins: {', '.join(rl.admins)})"]
    if rl.webhook_url:
        lines.append(f"  webhook: {rl.webhook_url}")
    if not tasks:
        lines.append("  No tasks in this list. Add one with /add <duration> <description>.")
    for i, t in enumerate(tasks, start=1):
        box = "[x]" if t.status else "[ ]"
        lines.append(
            f"  {i}. {box} {t.description} "
            f"(every {_fmt_duration(t.refresh_duration_ms)}, resets {_fmt_ts(t.refresh_timestamp, rl.timezone)})"
        )
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /add <duration e.g. 24h> <description>"
    if not state.current_list_id:
        return "No list selected; use /show <list> first."
    duration = parse_duration(args[0])
    task = state.service.add_task(state.user_email, state.current_list_id, " ".join(args[1:]), duration)
    return f"Added '{task.description}' (every {_fmt_duration(duration)})."


def _toggle(state: AppState, args: list[str], status: bool) -> str:
    if not args:
        return f"Usage: /{'done' if status else 'undo'} <task number or id>"
    rl, tasks = _current_tasks(state)
    task = _resolve(tasks, args[0], "task")
    task = state.service.update_task_status(state.user_email, task.id, status)
    word = "done" if task.status else "pending"
    return f"'{task.description}' is {word}; resets {_fmt_ts(task.refresh_timestamp, rl.timezone)}."


def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return _toggle(state, args, True)


def cmd_undo(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return _toggle(state, args, False)


def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /rm <task number or id>"
    _, tasks = _current_tasks(state)
    task = _resolve(tasks, args[0], "task")
    state.service.remove_task(state.user_email, task.id)
    return f"Removed '{task.description}'."


def cmd_invite(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /invite <email>"
    if not state.current_list_id:
        return "No list selected; use /show <list> first."
    rl = state.service.invite_admin(state.user_email, state.current_list_id, args[0])
    return f"Admins of '{rl.name}': {', '.join(rl.admins)}"


def cmd_webhook(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /webhook <url>  -> send list snapshots to url after every change
    /webhook off    -> stop sending
    """
    if not args:
        return "Usage: /webhook <url> | /webhook off"
    if not state.current_list_id:
        return "No list selected; use /show <list> first."
    url = None if args[0].lower() in ("off", "none", "-") else args[0]
    rl = state.service.set_webhook(state.user_email, state.current_list_id, url)
    return f"Webhook for '{rl.name}': {rl.webhook_url or 'off'}"


def cmd_sweep(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Run one sweep now, outside the periodic schedule."""
    s = state.settings
    result = run_sweep(
        state.store,
        state.dispatcher,
        period_ms=s.sweep_period_ms,
        catch_up=s.sweep_catch_up,
    )
    if not result.committed:
        return "Sweep failed; see log. It will be retried on the next trigger."
    return f"Sweep reset {len(result.reset_task_ids)} task(s) in {len(result.touched_list_ids)} list(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings (user/db/sweep/webhooks).")
registry.register("whoami", cmd_whoami, help_text="Show or switch the acting admin: /whoami [email].")
registry.register("lists", cmd_lists, help_text="Show lists you administer.", aliases=["ls"])
registry.register("newlist", cmd_newlist, help_text="Create a list: /newlist <name> [tz=Zone].")
registry.register("show", cmd_show, help_text="Select and show a list: /show [n|id].")
registry.register("add", cmd_add, help_text="Add a task: /add <24h|7d|90m> <description>.")
registry.register("done", cmd_done, help_text="Mark a task done: /done <n|id>.")
registry.register("undo", cmd_undo, help_text="Undo a done mark: /undo <n|id>.")
registry.register("rm", cmd_rm, help_text="Remove a task: /rm <n|id>.")
registry.register("invite", cmd_invite, help_text="Add an admin to the list: /invite <email>.")
registry.register("webhook", cmd_webhook, help_text="Configure list webhook: /webhook <url> | off.")
registry.register("sweep", cmd_sweep, help_text="Run the reset sweep now.")
