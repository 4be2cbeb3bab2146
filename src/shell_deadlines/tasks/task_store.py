# src/shell_deadlines/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from datetime import date, datetime
from pathlib import Path

from ..errors import InvalidTransition, StoreError
from .deadlines import parse_start_time
from .task_models import Task, TaskStatus, UserContact

logger = logging.getLogger(__name__)


class _SQLiteBase:
    """
    Shared connection handling for the local stores.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"{self.__class__.__name__}: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        raise NotImplementedError


class TaskStore(_SQLiteBase):
    """
    SQLite task store.

    The schema is migration-safe:
    - create table if missing
    - add columns with ALTER TABLE only when needed

    Dates are stored as ISO strings (YYYY-MM-DD) so range filters compare
    lexically in the same order as chronologically.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        super().__init__(db_path)
        try:
            total = self.count_tasks()
        except StoreError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    scheduled_date TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL DEFAULT 0,
                    owner_user_id TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("duration_minutes", "INTEGER NOT NULL DEFAULT 0")
            add_col("status", "TEXT NOT NULL DEFAULT 'pending'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_status_date ON tasks(status, scheduled_date)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_user_id)")
            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            scheduled_date=date.fromisoformat(str(row["scheduled_date"])[:10]),
            start_time=str(row["start_time"] or ""),
            duration_minutes=int(row["duration_minutes"] or 0),
            owner_user_id=str(row["owner_user_id"] or ""),
            status=TaskStatus.from_db(row["status"]),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def add_task(
        self,
        *,
        title: str,
        scheduled_date: date,
        start_time: str,
        duration_minutes: int,
        owner_user_id: str,
        task_id: str | None = None,
    ) -> str:
        """Insert a new pending task. Returns its id."""
        if not title or not title.strip():
            raise ValueError("title is required")
        if not owner_user_id:
            raise ValueError("owner_user_id is required")
        if duration_minutes < 0:
            raise ValueError("duration_minutes must be non-negative")
        start = parse_start_time(start_time)

        task_id = task_id or uuid.uuid4().hex
        now = time.time()

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, scheduled_date, start_time, duration_minutes,
                    owner_user_id, status, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    title.strip(),
                    scheduled_date.isoformat(),
                    start.strftime("%H:%M"),
                    int(duration_minutes),
                    owner_user_id,
                    TaskStatus.PENDING.value,
                    now,
                    now,
                ),
            )
            conn.commit()

        logger.debug(
            "Task added id=%s date=%s start=%s duration=%s owner=%s",
            task_id,
            scheduled_date,
            start_time,
            duration_minutes,
            owner_user_id,
        )
        return task_id

    def get_task(self, task_id: str) -> Task | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._row_to_task(row) if row else None

    def list_pending_tasks(self, *, since: datetime) -> list[Task]:
        """
        Pending tasks on or after the calendar day of `since` (its local date).

        A row that cannot be turned into a Task is logged and skipped.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'pending'
                  AND scheduled_date >= ?
                ORDER BY scheduled_date ASC, start_time ASC
                """,
                (since.date().isoformat(),),
            ).fetchall()

        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(self._row_to_task(row))
            except (TypeError, ValueError):
                logger.warning("Skipping malformed task row id=%s", row["id"], exc_info=True)
        return tasks

    def mark_overdue(self, task_ids: Iterable[str]) -> int:
        """
        Flip the given tasks pending -> overdue in one transaction.

        Tasks that already left `pending` (completed in the meantime) are
        left untouched. Either every eligible row changes or none does.
        """
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return 0

        now = time.time()
        with self._connect() as conn:
            try:
                cur = conn.executemany(
                    """
                    UPDATE tasks
                    SET status = 'overdue', updated_at = ?
                    WHERE id = ?
                      AND status = 'pending'
                    """,
                    [(now, task_id) for task_id in ids],
                )
                changed = cur.rowcount
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

        logger.debug("Marked %d/%d tasks overdue", changed, len(ids))
        return int(changed)

    def update_task_status(self, task_id: str, new_status: TaskStatus) -> None:
        """
        Move a pending task to completed or overdue.

        Statuses never go backwards; anything other than a pending -> terminal
        change raises InvalidTransition (a repeat of the current status is a no-op).
        """
        with self._connect() as conn:
            row = conn.execute("SELECT status FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                raise KeyError(task_id)

            current = TaskStatus.from_db(row["status"])
            if current == new_status:
                return
            if current.is_terminal or new_status == TaskStatus.PENDING:
                raise InvalidTransition(f"task {task_id}: {current} -> {new_status}")

            cur = conn.execute(
                """
                UPDATE tasks
                SET status = ?, updated_at = ?
                WHERE id = ?
                  AND status = 'pending'
                """,
                (new_status.value, time.time(), task_id),
            )
            conn.commit()
            if cur.rowcount != 1:
                raise InvalidTransition(f"task {task_id} changed concurrently")


class UserStore(_SQLiteBase):
    """SQLite contact directory (id -> email, display name)."""

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        super().__init__(db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT,
                    display_name TEXT,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()

    def upsert_user(
        self, user_id: str, *, email: str | None, display_name: str | None = None
    ) -> None:
        if not user_id:
            raise ValueError("user_id is required")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users(id, email, display_name, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    display_name = excluded.display_name,
                    updated_at = excluded.updated_at
                """,
                (user_id, email, display_name, time.time()),
            )
            conn.commit()

    def find_contact(self, user_id: str) -> UserContact | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, email, display_name FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return UserContact(id=str(row["id"]), email=row["email"], display_name=row["display_name"])

    async def get_contact(self, user_id: str) -> UserContact | None:
        return self.find_contact(user_id)
