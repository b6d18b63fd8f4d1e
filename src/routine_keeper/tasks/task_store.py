# src/routine_keeper/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import StoreError
from .task_models import RoutineList, Task, TaskSchedule

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ScheduleUpdate:
    """
    One row of a sweep batch.

    expected_refresh_timestamp guards the write: if the row no longer carries
    that value (a toggle or an overlapping sweep got there first) the row is skipped.
    """

    task_id: str
    expected_refresh_timestamp: int
    schedule: TaskSchedule


class RoutineStore:
    """
    SQLite store for routine lists, their admins and tasks.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Tasks live in their own table (not embedded in the list) so the sweep can
    query due tasks across all lists with one indexed range scan.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "routine.sqlite3", *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = float(timeout)
        self._ensure_schema()
        logger.info("RoutineStore ready db=%s tasks=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Short-lived connection; sqlite errors surface as StoreError."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreError(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS routine_lists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    webhook_url TEXT,
                    created_at INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS list_admins (
                    list_id TEXT NOT NULL REFERENCES routine_lists(id) ON DELETE CASCADE,
                    email TEXT NOT NULL,
                    added_at INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (list_id, email)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    list_id TEXT NOT NULL REFERENCES routine_lists(id) ON DELETE CASCADE,
                    description TEXT NOT NULL,
                    status INTEGER NOT NULL DEFAULT 0,
                    refresh_duration_ms INTEGER NOT NULL CHECK (refresh_duration_ms > 0),
                    refresh_timestamp INTEGER NOT NULL,
                    previous_refresh_timestamp INTEGER,
                    created_at INTEGER NOT NULL DEFAULT 0,
                    updated_at INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("RoutineStore migration: added column %s.%s", table, name)

            add_col("routine_lists", "webhook_url", "TEXT")
            add_col("routine_lists", "created_at", "INTEGER NOT NULL DEFAULT 0")
            add_col("tasks", "previous_refresh_timestamp", "INTEGER")
            add_col("tasks", "created_at", "INTEGER NOT NULL DEFAULT 0")
            add_col("tasks", "updated_at", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_refresh ON tasks(refresh_timestamp)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_admins_email ON list_admins(email)")

            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        prev = row["previous_refresh_timestamp"]
        return Task(
            id=str(row["id"]),
            list_id=str(row["list_id"]),
            description=str(row["description"] or ""),
            status=bool(row["status"]),
            refresh_duration_ms=int(row["refresh_duration_ms"]),
            refresh_timestamp=int(row["refresh_timestamp"]),
            previous_refresh_timestamp=int(prev) if prev is not None else None,
            created_at=int(row["created_at"] or 0),
            updated_at=int(row["updated_at"] or 0),
        )

    @staticmethod
    def _load_admins(conn: sqlite3.Connection, list_id: str) -> list[str]:
        cur = conn.execute(
            "SELECT email FROM list_admins WHERE list_id = ? ORDER BY added_at ASC, rowid ASC",
            (list_id,),
        )
        return [str(r["email"]) for r in cur.fetchall()]

    def _row_to_list(self, conn: sqlite3.Connection, row: sqlite3.Row) -> RoutineList:
        return RoutineList(
            id=str(row["id"]),
            name=str(row["name"]),
            timezone=str(row["timezone"] or "UTC"),
            admins=self._load_admins(conn, str(row["id"])),
            webhook_url=row["webhook_url"],
            created_at=int(row["created_at"] or 0),
        )

    @staticmethod
    def _stamp() -> int:
        return int(time.time() * 1000)

    # ---- lists ----

    def create_list(self, routine_list: RoutineList) -> RoutineList:
        created_at = routine_list.created_at or self._stamp()
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO routine_lists(id, name, timezone, webhook_url, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        routine_list.id,
                        routine_list.name,
                        routine_list.timezone,
                        routine_list.webhook_url,
                        created_at,
                    ),
                )
                conn.executemany(
                    "INSERT OR IGNORE INTO list_admins(list_id, email, added_at) VALUES (?, ?, ?)",
                    [(routine_list.id, email, created_at) for email in routine_list.admins],
                )
        logger.debug("List created id=%s admins=%s", routine_list.id, routine_list.admins)
        routine_list.created_at = created_at
        return routine_list

    def get_list(self, list_id: str) -> RoutineList | None:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM routine_lists WHERE id = ?", (list_id,)).fetchone()
            return self._row_to_list(conn, row) if row else None

    def lists_for_admin(self, email: str) -> list[RoutineList]:
        with self._connection() as conn:
            cur = conn.execute(
                """
                SELECT l.*
                FROM routine_lists l
                JOIN list_admins a ON a.list_id = l.id
                WHERE a.email = ?
                ORDER BY l.created_at ASC, l.name ASC
                """,
                (email,),
            )
            return [self._row_to_list(conn, r) for r in cur.fetchall()]

    def add_admin(self, list_id: str, email: str) -> bool:
        """Returns False if the email already administers the list."""
        with self._connection() as conn:
            with conn:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO list_admins(list_id, email, added_at) VALUES (?, ?, ?)",
                    (list_id, email, self._stamp()),
                )
            return cur.rowcount == 1

    def set_webhook_url(self, list_id: str, url: str | None) -> bool:
        with self._connection() as conn:
            with conn:
                cur = conn.execute(
                    "UPDATE routine_lists SET webhook_url = ? WHERE id = ?",
                    (url, list_id),
                )
            return cur.rowcount == 1

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._connection() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def add_task(self, task: Task) -> Task:
        stamp = self._stamp()
        task.created_at = task.created_at or stamp
        task.updated_at = stamp
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO tasks(
                        id, list_id, description, status,
                        refresh_duration_ms, refresh_timestamp, previous_refresh_timestamp,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task.id,
                        task.list_id,
                        task.description,
                        int(task.status),
                        int(task.refresh_duration_ms),
                        int(task.refresh_timestamp),
                        task.previous_refresh_timestamp,
                        task.created_at,
                        task.updated_at,
                    ),
                )
        logger.debug(
            "Task added id=%s list=%s duration_ms=%s refresh_ts=%s",
            task.id,
            task.list_id,
            task.refresh_duration_ms,
            task.refresh_timestamp,
        )
        return task

    def get_task(self, task_id: str) -> Task | None:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row) if row else None

    def list_tasks(self, list_id: str) -> list[Task]:
        with self._connection() as conn:
            cur = conn.execute(
                "SELECT * FROM tasks WHERE list_id = ? ORDER BY status ASC, created_at ASC",
                (list_id,),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]

    def query_by_refresh_window(self, low_ms: int | None, high_ms: int) -> list[Task]:
        """
        Tasks whose refresh_timestamp lies in [low_ms, high_ms] (both inclusive).

        low_ms=None drops the lower bound (every task at or before high_ms).
        """
        with self._connection() as conn:
            if low_ms is None:
                cur = conn.execute(
                    """
                    SELECT * FROM tasks
                    WHERE refresh_timestamp <= ?
                    ORDER BY refresh_timestamp ASC
                    """,
                    (int(high_ms),),
                )
            else:
                cur = conn.execute(
                    """
                    SELECT * FROM tasks
                    WHERE refresh_timestamp BETWEEN ? AND ?
                    ORDER BY refresh_timestamp ASC
                    """,
                    (int(low_ms), int(high_ms)),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]

    def update_task_schedule(
        self,
        task_id: str,
        schedule: TaskSchedule,
        *,
        expected: TaskSchedule,
    ) -> bool:
        """
        Atomic single-task write, compare-and-set on the schedule read by the caller.

        Returns False if the row changed (or vanished) since it was read.
        """
        with self._connection() as conn:
            with conn:
                cur = conn.execute(
                    """
                    UPDATE tasks
                    SET status = ?,
                        refresh_timestamp = ?,
                        previous_refresh_timestamp = ?,
                        updated_at = ?
                    WHERE id = ?
                      AND status = ?
                      AND refresh_timestamp = ?
                      AND previous_refresh_timestamp IS ?
                    """,
                    (
                        int(schedule.status),
                        int(schedule.refresh_timestamp),
                        schedule.previous_refresh_timestamp,
                        self._stamp(),
                        task_id,
                        int(expected.status),
                        int(expected.refresh_timestamp),
                        expected.previous_refresh_timestamp,
                    ),
                )
            return cur.rowcount == 1

    def _apply_update(self, cur: sqlite3.Cursor, update: ScheduleUpdate, stamp: int) -> bool:
        cur.execute(
            """
            UPDATE tasks
            SET status = ?,
                refresh_timestamp = ?,
                previous_refresh_timestamp = ?,
                updated_at = ?
            WHERE id = ?
              AND refresh_timestamp = ?
            """,
            (
                int(update.schedule.status),
                int(update.schedule.refresh_timestamp),
                update.schedule.previous_refresh_timestamp,
                stamp,
                update.task_id,
                int(update.expected_refresh_timestamp),
            ),
        )
        return cur.rowcount == 1

    def batch_update(self, updates: Iterable[ScheduleUpdate]) -> list[str]:
        """
        Apply all updates in one transaction: either every row is written or none is.

        Rows whose guard no longer matches are skipped (not an error).
        Returns the ids that were actually updated. Raises StoreError after rollback.
        """
        batch = list(updates)
        if not batch:
            return []

        stamp = self._stamp()
        applied: list[str] = []
        with self._connection() as conn:
            with conn:
                # Take the write lock up front so the whole batch sees one snapshot.
                conn.execute("BEGIN IMMEDIATE")
                cur = conn.cursor()
                for update in batch:
                    if self._apply_update(cur, update, stamp):
                        applied.append(update.task_id)
                    else:
                        logger.debug("Batch row skipped (changed concurrently) task_id=%s", update.task_id)
        return applied

    def delete_task(self, task_id: str) -> bool:
        with self._connection() as conn:
            with conn:
                cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cur.rowcount == 1
