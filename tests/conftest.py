# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone

import pytest

from shell_deadlines.tasks.deadline_scanner import DeadlineScanner
from shell_deadlines.tasks.task_models import Task, TaskStatus, UserContact

from .fakes import FakeNotifier, FakeTaskRepo, FakeUserDirectory

TODAY = date(2026, 3, 10)


def at(hour: int, minute: int, second: int = 0) -> datetime:
    """An aware UTC instant on TODAY."""
    return datetime(TODAY.year, TODAY.month, TODAY.day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture()
def make_task() -> Callable[..., Task]:
    counter = {"n": 0}

    def _make(
        *,
        task_id: str | None = None,
        title: str = "Write report",
        scheduled_date: date = TODAY,
        start_time: str = "09:00",
        duration_minutes: int = 30,
        owner_user_id: str = "u1",
        status: TaskStatus = TaskStatus.PENDING,
    ) -> Task:
        counter["n"] += 1
        return Task(
            id=task_id or f"t{counter['n']}",
            title=title,
            scheduled_date=scheduled_date,
            start_time=start_time,
            duration_minutes=duration_minutes,
            owner_user_id=owner_user_id,
            status=status,
        )

    return _make


@pytest.fixture()
def users() -> FakeUserDirectory:
    return FakeUserDirectory(
        contacts={
            "u1": UserContact(id="u1", email="ana@example.com", display_name="Ana"),
            "u2": UserContact(id="u2", email="bo@example.com", display_name=None),
        }
    )


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def build_scanner(users: FakeUserDirectory, notifier: FakeNotifier):
    """Scanner in UTC wired to the given tasks and the shared fakes."""

    def _build(tasks: list[Task]) -> tuple[DeadlineScanner, FakeTaskRepo]:
        repo = FakeTaskRepo(tasks)
        return DeadlineScanner(repo, users, notifier, tz=timezone.utc), repo

    return _build
