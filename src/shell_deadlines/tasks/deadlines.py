# src/shell_deadlines/tasks/deadlines.py

from __future__ import annotations

"""
Deadline arithmetic.

Everything here is pure: the scanner passes `now` and the zone in, so the
classification is deterministic for a given instant.

Windows, relative to `now`:
- reminder:  now < deadline < now + reminder_minutes
- overdue:   now - overdue_grace_minutes < deadline <= now
Anything else needs no action on this scan.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from ..errors import InvalidTaskTime
from .task_models import NotificationKind, Task

DEFAULT_REMINDER_MINUTES = 15
DEFAULT_OVERDUE_GRACE_MINUTES = 2

DEADLINE_FORMAT = "%Y-%m-%d %H:%M"

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_start_time(raw: str | None) -> time:
    """Parse a 24-hour "HH:MM" string."""
    if not isinstance(raw, str):
        raise InvalidTaskTime(f"start time must be 'HH:MM', got {raw!r}")
    m = _HHMM_RE.match(raw)
    if not m:
        raise InvalidTaskTime(f"start time must be 'HH:MM', got {raw!r}")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTaskTime(f"start time out of range: {raw!r}")
    return time(hours, minutes)


def localize(moment: datetime, tz: tzinfo) -> datetime:
    """Attach `tz` to a naive datetime, or convert an aware one into `tz`."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def start_of_day(now: datetime, tz: tzinfo) -> datetime:
    local = localize(now, tz)
    return datetime.combine(local.date(), time(0, 0), tzinfo=tz)


def compute_deadline(task: Task, tz: tzinfo) -> datetime:
    """
    deadline = scheduled_date at start_time (wall clock in `tz`) + duration.

    The duration is added on the absolute timeline, so a task that runs
    across a DST change still lasts exactly `duration_minutes`.
    """
    start = parse_start_time(task.start_time)

    duration = task.duration_minutes
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidTaskTime(f"duration must be an integer, got {duration!r}")
    if duration < 0:
        raise InvalidTaskTime(f"duration must be non-negative, got {duration}")

    if not isinstance(task.scheduled_date, date):
        raise InvalidTaskTime(f"scheduled date is missing: {task.scheduled_date!r}")
    scheduled = task.scheduled_date
    if isinstance(scheduled, datetime):
        scheduled = scheduled.date()

    starts_at = datetime.combine(scheduled, start, tzinfo=tz)
    ends_at = starts_at.astimezone(timezone.utc) + timedelta(minutes=duration)
    return ends_at.astimezone(tz)


@dataclass(slots=True, frozen=True)
class ScanWindow:
    now: datetime
    reminder_horizon: datetime
    overdue_floor: datetime

    @classmethod
    def at(
        cls,
        now: datetime,
        *,
        reminder_minutes: int = DEFAULT_REMINDER_MINUTES,
        overdue_grace_minutes: int = DEFAULT_OVERDUE_GRACE_MINUTES,
    ) -> ScanWindow:
        if now.tzinfo is None:
            raise ValueError("ScanWindow needs an aware datetime")
        return cls(
            now=now,
            reminder_horizon=now + timedelta(minutes=reminder_minutes),
            overdue_floor=now - timedelta(minutes=overdue_grace_minutes),
        )


def classify(deadline: datetime, window: ScanWindow) -> NotificationKind | None:
    if window.now < deadline < window.reminder_horizon:
        return NotificationKind.REMINDER
    if window.overdue_floor < deadline <= window.now:
        return NotificationKind.OVERDUE
    return None


def format_deadline(deadline: datetime, tz: tzinfo) -> str:
    return localize(deadline, tz).strftime(DEADLINE_FORMAT)
