# src/shell_deadlines/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the scanner.

The scanner depends on Protocols instead of concrete backends, so the
SQLite store, the Supabase REST adapter and test fakes are interchangeable.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Protocol

from ..tasks.task_models import Task, UserContact

if TYPE_CHECKING:
    from ..connectors.webhook_notifier import NotificationPayload


class TaskRepo(Protocol):
    def list_pending_tasks(self, *, since: datetime) -> list[Task]:
        """
        Pending tasks scheduled on or after `since`, the aware local midnight
        of the scan. Errors here abort the scan.
        """
        ...

    def mark_overdue(self, task_ids: Iterable[str]) -> int:
        """
        Flip every listed task that is still pending to overdue in one atomic
        write. Returns how many rows changed.
        """
        ...


class UserDirectory(Protocol):
    def get_contact(self, user_id: str) -> Awaitable[UserContact | None]: ...


class Notifier(Protocol):
    """Outbound transport. Any exception from send() means the dispatch failed."""

    def send(self, payload: NotificationPayload) -> Awaitable[None]: ...
