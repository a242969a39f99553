"""In-memory storage backend for tests and local demos."""

from __future__ import annotations

import threading

from .errors import NotFoundError, ValidationError
from .models import CLOSED_STATUS, TrackerEntry, UpdatedTracker
from .periods import epoch_now, month_bounds
from .storage import TASK_CLOSED, TASK_NOT_FOUND, TRACKER_NOT_FOUND


class InMemoryTrackerStorage:
    """Dict-backed implementation of TrackerStorage.

    Task statuses live in `tasks`; seed them with `add_task` since the task
    resource itself belongs to another service.
    """

    def __init__(self, timezone: str = "") -> None:
        self.timezone = timezone
        self.tasks: dict[int, str] = {}
        self._entries: dict[int, TrackerEntry] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def add_task(self, taskid: int, status: str = "OPEN") -> None:
        self.tasks[taskid] = status

    def set_task_status(self, taskid: int, status: str) -> None:
        if taskid not in self.tasks:
            raise KeyError(f"Task {taskid} does not exist")
        self.tasks[taskid] = status

    def create_entry(self, taskid: int, hours: int) -> TrackerEntry:
        with self._lock:
            status = self.tasks.get(taskid)
            if status is None:
                raise ValidationError(TASK_NOT_FOUND)
            if status == CLOSED_STATUS:
                raise ValidationError(TASK_CLOSED)
            now = epoch_now()
            entry = TrackerEntry(
                tracker_id=self._next_id,
                taskid=taskid,
                hours=hours,
                created_at=now,
                updated_at=now,
            )
            self._next_id += 1
            self._entries[entry.tracker_id] = entry
        return entry.model_copy()

    def insert_entry(self, taskid: int, hours: int, created_at: int) -> TrackerEntry:
        """Store a row with an explicit creation time, bypassing the task check."""
        with self._lock:
            entry = TrackerEntry(
                tracker_id=self._next_id,
                taskid=taskid,
                hours=hours,
                created_at=created_at,
                updated_at=created_at,
            )
            self._next_id += 1
            self._entries[entry.tracker_id] = entry
        return entry.model_copy()

    def update_hours(self, tracker_id: int, hours: int) -> UpdatedTracker:
        with self._lock:
            current = self._entries.get(tracker_id)
            if current is None:
                raise NotFoundError(TRACKER_NOT_FOUND)
            updated = current.model_copy(
                update={"hours": hours, "updated_at": max(current.updated_at, epoch_now())}
            )
            self._entries[tracker_id] = updated
        return UpdatedTracker(
            tracker_id=updated.tracker_id,
            taskid=updated.taskid,
            hours=updated.hours,
            updated_at=updated.updated_at,
        )

    def list_entries(self, taskid: int | None = None) -> list[TrackerEntry]:
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda item: item.tracker_id)
        if taskid is not None:
            entries = [entry for entry in entries if entry.taskid == taskid]
        return [entry.model_copy() for entry in entries]

    def total_hours_for_task(self, taskid: int) -> int:
        with self._lock:
            return sum(entry.hours for entry in self._entries.values() if entry.taskid == taskid)

    def total_hours_for_month(self, month: int, year: int) -> int:
        start, end = month_bounds(month, year, self.timezone)
        with self._lock:
            return sum(
                entry.hours
                for entry in self._entries.values()
                if start <= entry.created_at < end
            )

    def delete_entry(self, tracker_id: int) -> None:
        with self._lock:
            if tracker_id not in self._entries:
                raise NotFoundError(TRACKER_NOT_FOUND)
            del self._entries[tracker_id]
