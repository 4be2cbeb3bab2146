# tests/test_deadline_scanner.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from shell_deadlines.errors import StoreError
from shell_deadlines.tasks.deadline_scanner import DeadlineScanner, run_scan_loop
from shell_deadlines.tasks.task_models import TaskStatus

from .conftest import TODAY, at
from .fakes import FakeTaskRepo


@pytest.mark.asyncio
async def test_reminder_when_deadline_inside_next_fifteen_minutes(make_task, build_scanner, notifier) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, repo = build_scanner([task])

    result = await scanner.run_scan(at(9, 20))

    assert [p.notification_type.value for p in notifier.sent] == ["REMINDER"]
    payload = notifier.sent[0]
    assert payload.deadline == "2026-03-10 09:30"
    assert payload.email == "ana@example.com"
    assert payload.user_name == "Ana"
    assert repo.tasks[task.id].status == TaskStatus.PENDING
    assert repo.commits == []
    assert (result.scanned_count, result.notified_count, result.transitioned_count) == (1, 1, 0)


@pytest.mark.asyncio
async def test_no_reminder_when_deadline_beyond_horizon(make_task, build_scanner, notifier) -> None:
    scanner, _ = build_scanner([make_task(start_time="09:00", duration_minutes=30)])

    result = await scanner.run_scan(at(9, 10))

    assert notifier.sent == []
    assert result.notified_count == 0


@pytest.mark.asyncio
async def test_overdue_alert_and_status_flip_just_after_deadline(make_task, build_scanner, notifier) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, repo = build_scanner([task])

    result = await scanner.run_scan(at(9, 31))

    assert notifier.kinds_by_task() == {task.id: "OVERDUE"}
    assert repo.commits == [[task.id]]
    assert repo.tasks[task.id].status == TaskStatus.OVERDUE
    assert result.transitioned_count == 1


@pytest.mark.asyncio
async def test_no_action_once_past_the_grace_window(make_task, build_scanner, notifier) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, repo = build_scanner([task])

    result = await scanner.run_scan(at(9, 40))

    assert notifier.sent == []
    assert repo.commits == []
    assert repo.tasks[task.id].status == TaskStatus.PENDING
    assert result.scanned_count == 1


@pytest.mark.asyncio
async def test_deadline_equal_to_now_is_overdue_not_reminder(make_task, build_scanner, notifier) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, _ = build_scanner([task])

    await scanner.run_scan(at(9, 30))

    assert notifier.kinds_by_task() == {task.id: "OVERDUE"}


@pytest.mark.asyncio
async def test_each_task_gets_at_most_one_notification(make_task, build_scanner, notifier) -> None:
    now = at(12, 0)
    tasks = [
        make_task(start_time="11:59", duration_minutes=1),   # deadline == now
        make_task(start_time="11:30", duration_minutes=29),  # 1 minute ago
        make_task(start_time="12:00", duration_minutes=14),  # in 14 minutes
        make_task(start_time="12:00", duration_minutes=15),  # exactly at horizon
        make_task(start_time="11:00", duration_minutes=58),  # exactly at floor
        make_task(start_time="12:00", duration_minutes=0),   # zero duration at now
    ]
    scanner, repo = build_scanner(tasks)

    result = await scanner.run_scan(now)

    ids = [p.task_id for p in notifier.sent]
    assert len(ids) == len(set(ids))
    assert notifier.kinds_by_task() == {
        tasks[0].id: "OVERDUE",
        tasks[1].id: "OVERDUE",
        tasks[2].id: "REMINDER",
        tasks[5].id: "OVERDUE",
    }
    assert sorted(repo.commits[0]) == sorted([tasks[0].id, tasks[1].id, tasks[5].id])
    assert result.transitioned_count == 3


@pytest.mark.asyncio
async def test_repeated_scan_at_same_instant_does_not_transition_twice(make_task, build_scanner, notifier) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, repo = build_scanner([task])

    first = await scanner.run_scan(at(9, 31))
    second = await scanner.run_scan(at(9, 31))

    assert first.transitioned_count == 1
    assert second.scanned_count == 0
    assert second.transitioned_count == 0
    assert len(notifier.sent) == 1
    assert len(repo.commits) == 1


@pytest.mark.asyncio
async def test_failed_dispatch_does_not_block_siblings(make_task, build_scanner, notifier) -> None:
    broken = make_task(task_id="broken", start_time="09:00", duration_minutes=30)
    fine = make_task(task_id="fine", start_time="09:00", duration_minutes=30, owner_user_id="u2")
    notifier.fail_task_ids.add("broken")
    scanner, repo = build_scanner([broken, fine])

    result = await scanner.run_scan(at(9, 31))

    assert [p.task_id for p in notifier.sent] == ["fine"]
    assert notifier.sent[0].user_name == "User"
    # the transition is committed even though its notification failed
    assert sorted(repo.commits[0]) == ["broken", "fine"]
    assert repo.tasks["broken"].status == TaskStatus.OVERDUE
    assert result.notified_count == 1
    assert result.failed_count == 1
    assert result.transitioned_count == 2


@pytest.mark.asyncio
async def test_missing_or_broken_contacts_are_skipped(make_task, build_scanner, users, notifier) -> None:
    users.broken_ids.add("u-broken")
    tasks = [
        make_task(task_id="nobody", owner_user_id="u-missing"),
        make_task(task_id="raises", owner_user_id="u-broken"),
        make_task(task_id="ok", owner_user_id="u1"),
    ]
    scanner, _ = build_scanner(tasks)

    result = await scanner.run_scan(at(9, 20))

    assert [p.task_id for p in notifier.sent] == ["ok"]
    assert result.failed_count == 2
    assert sorted(users.lookups) == ["u-broken", "u-missing", "u1"]


@pytest.mark.asyncio
async def test_malformed_start_time_only_skips_that_task(make_task, build_scanner, notifier, caplog) -> None:
    bad = make_task(task_id="bad", start_time="9h30")
    good = make_task(task_id="good", start_time="09:00", duration_minutes=30)
    scanner, _ = build_scanner([bad, good])

    with caplog.at_level(logging.WARNING, logger="shell_deadlines"):
        result = await scanner.run_scan(at(9, 20))

    assert [p.task_id for p in notifier.sent] == ["good"]
    assert result.invalid_count == 1
    assert "bad" in caplog.text


@pytest.mark.asyncio
async def test_query_failure_aborts_scan(make_task, build_scanner, notifier) -> None:
    scanner, repo = build_scanner([make_task()])
    repo.fail_query = True

    with pytest.raises(StoreError):
        await scanner.run_scan(at(9, 31))

    assert notifier.sent == []
    assert repo.commits == []


@pytest.mark.asyncio
async def test_batch_failure_is_logged_and_keeps_sent_notifications(make_task, build_scanner, notifier, caplog) -> None:
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner, repo = build_scanner([task])
    repo.fail_commit = True

    with caplog.at_level(logging.ERROR, logger="shell_deadlines"):
        result = await scanner.run_scan(at(9, 31))

    assert result.notified_count == 1
    assert result.transitioned_count == 0
    assert repo.tasks[task.id].status == TaskStatus.PENDING
    assert "Batch overdue update failed" in caplog.text


@pytest.mark.asyncio
async def test_query_starts_at_local_midnight(make_task, users, notifier) -> None:
    berlin = ZoneInfo("Europe/Berlin")
    repo = FakeTaskRepo([
        make_task(task_id="yesterday", scheduled_date=TODAY - timedelta(days=1), start_time="23:50"),
    ])
    scanner = DeadlineScanner(repo, users, notifier, tz=berlin)

    # 23:30 UTC on the 10th is already 00:30 on the 11th in Berlin
    await scanner.run_scan(at(23, 30))

    assert repo.queries == [datetime(2026, 3, 11, 0, 0, tzinfo=berlin)]
    assert repo.queries[0].date() == TODAY + timedelta(days=1)


@pytest.mark.asyncio
async def test_naive_now_is_read_in_scanner_zone(make_task, users, notifier) -> None:
    berlin = ZoneInfo("Europe/Berlin")
    task = make_task(start_time="09:00", duration_minutes=30)
    scanner = DeadlineScanner(FakeTaskRepo([task]), users, notifier, tz=berlin)

    await scanner.run_scan(datetime(2026, 3, 10, 9, 20))

    assert notifier.kinds_by_task() == {task.id: "REMINDER"}
    assert notifier.sent[0].deadline == "2026-03-10 09:30"


@pytest.mark.asyncio
async def test_empty_task_set_is_a_no_op(build_scanner, notifier) -> None:
    scanner, repo = build_scanner([])

    result = await scanner.run_scan(at(9, 0))

    assert result.as_dict() == {"scanned": 0, "notified": 0, "transitioned": 0, "failed": 0, "invalid": 0}
    assert repo.commits == []


class _FlakyScanner:
    def __init__(self) -> None:
        self.calls: list[datetime] = []

    async def run_scan(self, now: datetime):
        self.calls.append(now)
        raise StoreError("backend unavailable")


@pytest.mark.asyncio
async def test_scan_loop_survives_failed_scans(caplog) -> None:
    scanner = _FlakyScanner()
    fixed = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    with caplog.at_level(logging.ERROR, logger="shell_deadlines"):
        runner = asyncio.create_task(
            run_scan_loop(  # type: ignore[arg-type]
                scanner, interval_seconds=0.01, min_interval_seconds=0.0, clock=lambda: fixed
            )
        )
        await asyncio.sleep(0.1)
        assert not runner.done()
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

    assert len(scanner.calls) >= 2
    assert set(scanner.calls) == {fixed}
    assert "Deadline scan failed" in caplog.text
