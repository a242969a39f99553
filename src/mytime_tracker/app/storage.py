"""PostgreSQL storage backend for tracker entries.

Beginner terms:
- Migration: creating/updating database tables before normal reads/writes.
- Row factory: returns query rows as dict-like objects instead of tuples.
- FOR SHARE: row lock that stops concurrent writers from changing the task
  row until our transaction ends.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from .errors import NotFoundError, StorageError, ValidationError
from .models import CLOSED_STATUS, TrackerEntry, UpdatedTracker
from .periods import epoch_now

TASK_NOT_FOUND = "Task not found."
TASK_CLOSED = "Cannot add a tracker to a closed task."
TRACKER_NOT_FOUND = "Tracker not found."


class TrackerStorage(Protocol):
    def migrate(self) -> None: ...

    def create_entry(self, taskid: int, hours: int) -> TrackerEntry: ...

    def update_hours(self, tracker_id: int, hours: int) -> UpdatedTracker: ...

    def list_entries(self, taskid: int | None = None) -> list[TrackerEntry]: ...

    def total_hours_for_task(self, taskid: int) -> int: ...

    def total_hours_for_month(self, month: int, year: int) -> int: ...

    def delete_entry(self, tracker_id: int) -> None: ...


class PostgresTrackerStorage:
    """Thread-safe PostgreSQL-backed storage for tracker entries."""

    def __init__(
        self,
        database_url: str,
        *,
        statement_timeout_ms: int = 5000,
        connect_timeout_s: int = 5,
        timezone: str = "",
    ) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self.statement_timeout_ms = statement_timeout_ms
        self.connect_timeout_s = connect_timeout_s
        self.timezone = timezone
        # Lock guards DB operations done through this storage instance.
        self._lock = threading.Lock()
        self._psycopg, self._dict_row = self._load_psycopg()

    def migrate(self) -> None:
        """Create the tracker table and indexes if they do not already exist."""
        with self._session("migrate") as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS task_tracker (
                    tracker_id SERIAL PRIMARY KEY,
                    taskid INTEGER NOT NULL REFERENCES tasks(taskid),
                    hours INTEGER NOT NULL,
                    created_at BIGINT NOT NULL,
                    updated_at BIGINT NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_tracker_taskid
                ON task_tracker(taskid)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_tracker_created_at
                ON task_tracker(created_at)
                """)
            conn.commit()

    def create_entry(self, taskid: int, hours: int) -> TrackerEntry:
        """Insert a tracker row if the task exists and is not closed.

        The status check and the insert share one transaction; the task row
        stays share-locked until commit so it cannot be closed in between.
        """
        now = epoch_now()
        with self._session("create_entry") as conn:
            task = conn.execute(
                "SELECT status FROM tasks WHERE taskid = %s FOR SHARE",
                (taskid,),
            ).fetchone()
            if task is None:
                raise ValidationError(TASK_NOT_FOUND)
            if task["status"] == CLOSED_STATUS:
                raise ValidationError(TASK_CLOSED)
            row = conn.execute(
                """
                INSERT INTO task_tracker (taskid, hours, created_at, updated_at)
                VALUES (%s, %s, %s, %s)
                RETURNING tracker_id, taskid, hours, created_at, updated_at
                """,
                (taskid, hours, now, now),
            ).fetchone()
            conn.commit()
        if row is None:
            raise StorageError("Insert returned no row")
        return self._row_to_entry(row)

    def update_hours(self, tracker_id: int, hours: int) -> UpdatedTracker:
        with self._session("update_hours") as conn:
            row = conn.execute(
                """
                UPDATE task_tracker
                SET hours = %s,
                    updated_at = GREATEST(updated_at, %s)
                WHERE tracker_id = %s
                RETURNING tracker_id, taskid, hours, updated_at
                """,
                (hours, epoch_now(), tracker_id),
            ).fetchone()
            conn.commit()
        if row is None:
            raise NotFoundError(TRACKER_NOT_FOUND)
        return UpdatedTracker(
            tracker_id=int(row["tracker_id"]),
            taskid=int(row["taskid"]),
            hours=int(row["hours"]),
            updated_at=int(row["updated_at"]),
        )

    def list_entries(self, taskid: int | None = None) -> list[TrackerEntry]:
        """Return entries ordered by tracker_id, optionally for a single task."""
        with self._session("list_entries") as conn:
            if taskid is None:
                rows = conn.execute(
                    "SELECT * FROM task_tracker ORDER BY tracker_id ASC"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM task_tracker WHERE taskid = %s ORDER BY tracker_id ASC",
                    (taskid,),
                ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def total_hours_for_task(self, taskid: int) -> int:
        with self._session("total_hours_for_task") as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(hours), 0) AS total_hours
                FROM task_tracker
                WHERE taskid = %s
                """,
                (taskid,),
            ).fetchone()
        return self._total_from_row(row)

    def total_hours_for_month(self, month: int, year: int) -> int:
        """Sum hours for entries created in `[month start, next month start)`.

        Boundaries come from make_timestamptz, so they follow the session
        TimeZone (set from `timezone` when configured).
        """
        with self._session("total_hours_for_month") as conn:
            row = conn.execute(
                """
                WITH bounds AS (
                    SELECT make_timestamptz(%s::int, %s::int, 1, 0, 0, 0) AS month_start
                )
                SELECT COALESCE(SUM(t.hours), 0) AS total_hours
                FROM task_tracker AS t, bounds AS b
                WHERE t.created_at >= EXTRACT(EPOCH FROM b.month_start)
                  AND t.created_at < EXTRACT(EPOCH FROM b.month_start + INTERVAL '1 month')
                """,
                (year, month),
            ).fetchone()
        return self._total_from_row(row)

    def delete_entry(self, tracker_id: int) -> None:
        with self._session("delete_entry") as conn:
            row = conn.execute(
                "DELETE FROM task_tracker WHERE tracker_id = %s RETURNING tracker_id",
                (tracker_id,),
            ).fetchone()
            conn.commit()
        if row is None:
            raise NotFoundError(TRACKER_NOT_FOUND)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Any]:
        """Yield a connection; driver errors surface as StorageError."""
        try:
            with self._lock, self._connect() as conn:
                yield conn
        except self._psycopg.Error as exc:
            raise StorageError(f"{operation} failed") from exc

    def _connect(self) -> Any:
        """Open a psycopg connection that yields dict-like rows."""
        return self._psycopg.connect(
            self.database_url,
            row_factory=self._dict_row,
            connect_timeout=self.connect_timeout_s,
            options=self._session_options(),
        )

    def _session_options(self) -> str:
        options = [f"-c statement_timeout={self.statement_timeout_ms}"]
        if self.timezone:
            options.append(f"-c TimeZone={self.timezone}")
        return " ".join(options)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        """Import psycopg and helpers with a friendly install hint on failure."""
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover - exercised only without dependency
            raise RuntimeError(
                "PostgreSQL backend requires psycopg. Install with: "
                'python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _total_from_row(row: Any) -> int:
        if row is None or row.get("total_hours") is None:
            return 0
        return int(row["total_hours"])

    @staticmethod
    def _row_to_entry(row: Any) -> TrackerEntry:
        return TrackerEntry(
            tracker_id=int(row["tracker_id"]),
            taskid=int(row["taskid"]),
            hours=int(row["hours"]),
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )
