# src/shell_deadlines/tasks/deadline_scanner.py

from __future__ import annotations

"""
Deadline scanner.

One scan:
- loads every pending task scheduled from the start of today,
- computes each deadline and classifies it (reminder / overdue / nothing),
- sends all notifications concurrently, isolating failures per task,
- then commits the pending -> overdue flips as a single batch.

There is no dedup ledger: the overdue window is only a couple of minutes
wide and a flipped task leaves the pending set, so a task is alerted once.
Re-entrancy is the caller's problem; run_scan_loop never overlaps scans.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo

from ..connectors.webhook_notifier import NotificationPayload
from ..core.ports import Notifier, TaskRepo, UserDirectory
from ..errors import InvalidTaskTime
from .deadlines import (
    DEFAULT_OVERDUE_GRACE_MINUTES,
    DEFAULT_REMINDER_MINUTES,
    ScanWindow,
    classify,
    compute_deadline,
    localize,
    start_of_day,
)
from .task_models import NotificationIntent, NotificationKind, ScanResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeadlineScanner:
    def __init__(
        self,
        task_repo: TaskRepo,
        users: UserDirectory,
        notifier: Notifier,
        *,
        tz: tzinfo = timezone.utc,
        reminder_minutes: int = DEFAULT_REMINDER_MINUTES,
        overdue_grace_minutes: int = DEFAULT_OVERDUE_GRACE_MINUTES,
    ) -> None:
        self._tasks = task_repo
        self._users = users
        self._notifier = notifier
        self._tz = tz
        self._reminder_minutes = int(reminder_minutes)
        self._overdue_grace_minutes = int(overdue_grace_minutes)

    @property
    def tz(self) -> tzinfo:
        return self._tz

    async def run_scan(self, now: datetime) -> ScanResult:
        """
        Evaluate all pending tasks at `now` (a naive value is read in the
        scanner's zone).

        A failing task query propagates: nothing is sent or committed.
        Everything after the query is isolated per task.
        """
        now = localize(now, self._tz)
        window = ScanWindow.at(
            now,
            reminder_minutes=self._reminder_minutes,
            overdue_grace_minutes=self._overdue_grace_minutes,
        )

        tasks = self._tasks.list_pending_tasks(since=start_of_day(now, self._tz))

        intents: list[NotificationIntent] = []
        overdue_ids: list[str] = []
        invalid = 0

        for task in tasks:
            try:
                deadline = compute_deadline(task, self._tz)
            except InvalidTaskTime as e:
                invalid += 1
                logger.warning("Skipping task %s: %s", task.id, e)
                continue

            kind = classify(deadline, window)
            if kind is None:
                continue

            intents.append(NotificationIntent(task=task, kind=kind, deadline=deadline))
            if kind == NotificationKind.OVERDUE:
                overdue_ids.append(task.id)

        outcomes = await asyncio.gather(
            *(self._dispatch(intent) for intent in intents),
            return_exceptions=True,
        )
        notified = sum(1 for ok in outcomes if ok is True)

        transitioned = 0
        if overdue_ids:
            try:
                transitioned = self._tasks.mark_overdue(overdue_ids)
            except Exception:
                # Sent notifications stay sent; the tasks are still pending and
                # the next scan inside the grace window will alert them again.
                logger.exception("Batch overdue update failed for %d tasks", len(overdue_ids))

        result = ScanResult(
            scanned_count=len(tasks),
            notified_count=notified,
            transitioned_count=transitioned,
            failed_count=len(intents) - notified,
            invalid_count=invalid,
        )
        logger.info(
            "Checked %d tasks. Sent %d notifications. Marked %d tasks overdue.",
            result.scanned_count,
            result.notified_count,
            result.transitioned_count,
        )
        return result

    async def _dispatch(self, intent: NotificationIntent) -> bool:
        task_id = intent.task_id
        try:
            contact = await self._users.get_contact(intent.recipient_user_id)
            if contact is None or not contact.email:
                logger.info("User not found or no email for task %s", task_id)
                return False

            payload = NotificationPayload.from_intent(intent, contact, self._tz)
            await self._notifier.send(payload)
            return True
        except Exception:
            logger.exception("Failed to send %s notification for task %s", intent.kind.value, task_id)
            return False


async def run_scan_loop(
        scanner: DeadlineScanner,
        *,
        interval_seconds: float = 60.0,
        min_interval_seconds: float = 0.5,
        clock: Clock = utc_now,
) -> None:
    """
    Run a scan every interval_seconds.

    Scans never overlap: the next one starts only after the previous one
    returned. A failed scan is logged and the loop keeps going.

    To stop the loop, cancel the coroutine/task.
    """
    interval_s = max(float(min_interval_seconds), float(interval_seconds))

    while True:
        started = time.monotonic()
        try:
            await scanner.run_scan(clock())
        except Exception:
            logger.exception("Deadline scan failed")

        elapsed = time.monotonic() - started
        await asyncio.sleep(max(0.0, interval_s - elapsed))
