# src/shell_deadlines/connectors/supabase_store.py

from __future__ import annotations

"""
Supabase backend over its PostgREST API.

Tables (as created by the web app):
- tasks(id, title, date, startTime, duration, userId, status, ...)
- users(id, email, displayName, ...)

Requests use the service-role key, so row-level security does not hide
other users' tasks from the job.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo
from typing import Any

import httpx

from ..errors import StoreError
from ..tasks.task_models import Task, TaskStatus, UserContact

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"


def _auth_headers(service_key: str) -> dict[str, str]:
    return {
        "apikey": service_key,
        "Authorization": f"Bearer {service_key}",
        "Accept": "application/json",
    }


def parse_task_date(raw: Any, tz: tzinfo) -> date:
    """
    Accept "YYYY-MM-DD" or an ISO timestamp.

    A timestamp with an offset is converted to `tz` first, so a task stored
    as midnight local time (serialized in UTC) keeps its calendar day.
    """
    if isinstance(raw, datetime):
        moment = raw
    elif isinstance(raw, date):
        return raw
    elif isinstance(raw, str) and raw.strip():
        s = raw.strip()
        if len(s) == 10:
            return date.fromisoformat(s)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        moment = datetime.fromisoformat(s)
    else:
        raise ValueError(f"unsupported task date: {raw!r}")

    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def format_instant(moment: datetime) -> str:
    if moment.tzinfo is None:
        raise ValueError("an aware datetime is required")
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def row_to_task(row: dict[str, Any], tz: tzinfo) -> Task:
    duration = row.get("duration")
    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        scheduled_date=parse_task_date(row.get("date"), tz),
        start_time=str(row.get("startTime") or ""),
        duration_minutes=int(duration) if duration is not None else 0,
        owner_user_id=str(row.get("userId") or ""),
        status=TaskStatus.from_db(row.get("status")),
    )


class SupabaseTaskRepo:
    """TaskRepo over PostgREST (blocking: the task query is a single round-trip)."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        tz: tzinfo = timezone.utc,
        timeout_seconds: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url or not service_key:
            raise ValueError("Supabase URL and service role key are required")
        self._tz = tz
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/") + REST_PREFIX,
            headers=_auth_headers(service_key),
            timeout=timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()

    def list_pending_tasks(self, *, since: datetime) -> list[Task]:
        """
        `since` goes out as a UTC instant: a timestamp column compared against
        a bare date would be read as midnight UTC, not local midnight.
        """
        try:
            resp = self._client.get(
                "/tasks",
                params={
                    "select": "*",
                    "status": f"eq.{TaskStatus.PENDING.value}",
                    "date": f"gte.{format_instant(since)}",
                },
            )
            resp.raise_for_status()
            rows = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"Supabase task query failed: {e}") from e

        if not isinstance(rows, list):
            raise StoreError("Supabase task query returned a non-list body")

        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(row_to_task(row, self._tz))
            except (KeyError, TypeError, ValueError):
                # The row still gets a chance at the next scan once it is fixed.
                logger.warning("Skipping malformed task row id=%s", row.get("id"), exc_info=True)
        return tasks

    def mark_overdue(self, task_ids: Iterable[str]) -> int:
        """One PATCH statement: PostgREST applies it in a single transaction."""
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return 0

        id_list = ",".join(f'"{i}"' for i in ids)
        try:
            resp = self._client.patch(
                "/tasks",
                params={"id": f"in.({id_list})", "status": f"eq.{TaskStatus.PENDING.value}"},
                json={"status": TaskStatus.OVERDUE.value},
                headers={"Prefer": "return=representation"},
            )
            resp.raise_for_status()
            updated = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"Supabase overdue update failed: {e}") from e

        return len(updated) if isinstance(updated, list) else 0


class SupabaseUserDirectory:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url or not service_key:
            raise ValueError("Supabase URL and service role key are required")
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + REST_PREFIX,
            headers=_auth_headers(service_key),
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_contact(self, user_id: str) -> UserContact | None:
        resp = await self._client.get(
            "/users",
            params={"id": f"eq.{user_id}", "select": "email,displayName", "limit": "1"},
        )
        resp.raise_for_status()
        rows = resp.json()
        if not rows:
            return None
        row = rows[0]
        return UserContact(id=user_id, email=row.get("email"), display_name=row.get("displayName"))
