# src/shell_deadlines/connectors/webhook_notifier.py

from __future__ import annotations

"""
Webhook transport for deadline notifications.

The receiving automation (a Make.com scenario in production) gets one JSON
POST per notification and decides how to reach the user (email, push, ...).
"""

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

import httpx

from ..errors import NotificationError
from ..tasks.deadlines import format_deadline
from ..tasks.task_models import NotificationIntent, NotificationKind, UserContact

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "YOUR_WEBHOOK_ID"
DEFAULT_USER_NAME = "User"


@dataclass(slots=True, frozen=True)
class NotificationPayload:
    email: str
    task_title: str
    deadline: str  # "YYYY-MM-DD HH:MM"
    user_name: str
    task_id: str
    notification_type: NotificationKind

    @classmethod
    def from_intent(
        cls, intent: NotificationIntent, contact: UserContact, tz: tzinfo
    ) -> NotificationPayload:
        if not contact.email:
            raise ValueError(f"contact {contact.id} has no email")
        return cls(
            email=contact.email,
            task_title=intent.task.title,
            deadline=format_deadline(intent.deadline, tz),
            user_name=(contact.display_name or "").strip() or DEFAULT_USER_NAME,
            task_id=intent.task_id,
            notification_type=intent.kind,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "taskTitle": self.task_title,
            "deadline": self.deadline,
            "userName": self.user_name,
            "taskId": self.task_id,
            "notificationType": self.notification_type.value,
        }


def webhook_configured(url: str | None) -> bool:
    if not url or not url.strip():
        return False
    return PLACEHOLDER_MARKER not in url


class WebhookNotifier:
    """
    POST notifications to a configured webhook URL.

    Non-2xx responses, timeouts and network errors all surface as
    NotificationError; the caller treats them uniformly as "dispatch failed".
    """

    def __init__(
        self,
        url: str | None,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = (url or "").strip()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )

    @property
    def configured(self) -> bool:
        return webhook_configured(self._url)

    async def send(self, payload: NotificationPayload) -> None:
        if not self.configured:
            logger.error("Webhook URL not configured; cannot send %s for task %s",
                         payload.notification_type.value, payload.task_id)
            raise NotificationError("webhook URL not configured")

        try:
            resp = await self._client.post(self._url, json=payload.to_json())
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"webhook returned HTTP {e.response.status_code} for task {payload.task_id}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(
                f"webhook request failed for task {payload.task_id}: {e.__class__.__name__}"
            ) from e

        logger.info(
            "%s sent for task %s to %s",
            payload.notification_type.value,
            payload.task_id,
            payload.email,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> WebhookNotifier:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
