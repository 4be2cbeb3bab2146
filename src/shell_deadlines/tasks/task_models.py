# src/shell_deadlines/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Only two edges exist: pending -> overdue (the scanner) and
    pending -> completed (the owner). Neither is ever reversed.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PENDING


class NotificationKind(StrEnum):
    REMINDER = "REMINDER"
    OVERDUE = "OVERDUE"


@dataclass(slots=True)
class Task:
    id: str
    title: str
    scheduled_date: date
    start_time: str  # "HH:MM", local wall clock
    duration_minutes: int
    owner_user_id: str
    status: TaskStatus = TaskStatus.PENDING


@dataclass(slots=True)
class UserContact:
    id: str
    email: str | None = None
    display_name: str | None = None


@dataclass(slots=True, frozen=True)
class NotificationIntent:
    """One notification the scan wants to send (never persisted)."""

    task: Task
    kind: NotificationKind
    deadline: datetime

    @property
    def task_id(self) -> str:
        return self.task.id

    @property
    def recipient_user_id(self) -> str:
        return self.task.owner_user_id


@dataclass(slots=True, frozen=True)
class ScanResult:
    scanned_count: int = 0
    notified_count: int = 0
    transitioned_count: int = 0
    failed_count: int = 0
    invalid_count: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned_count,
            "notified": self.notified_count,
            "transitioned": self.transitioned_count,
            "failed": self.failed_count,
            "invalid": self.invalid_count,
        }
