# src/shell_deadlines/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the composition root:
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the chosen backend, the webhook transport and the scanner into AppState.
"""

from __future__ import annotations

import logging

from ..config import BACKEND_SUPABASE, Settings, get_settings
from ..connectors.supabase_store import SupabaseTaskRepo, SupabaseUserDirectory
from ..connectors.webhook_notifier import WebhookNotifier
from ..core.state import AppState
from ..tasks.deadline_scanner import DeadlineScanner
from ..tasks.task_store import TaskStore, UserStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(*, settings: Settings | None = None) -> AppState:
    """
    Build AppState from the provided settings (get_settings() when None).

    Keeping settings injectable makes the job easy to test and avoids hidden
    global config reads.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    tz = settings.tz

    task_store: TaskStore | None = None
    user_store: UserStore | None = None

    if settings.backend == BACKEND_SUPABASE:
        key = settings.supabase_service_role_key or ""
        task_repo = SupabaseTaskRepo(settings.supabase_url, key, tz=tz)
        users = SupabaseUserDirectory(settings.supabase_url, key)
        logger.info("Backend: supabase url=%s", settings.supabase_url)
    else:
        task_store = TaskStore(settings.tasks_db_path)
        user_store = UserStore(settings.tasks_db_path)
        task_repo = task_store
        users = user_store
        logger.info("Backend: sqlite db=%s", settings.tasks_db_path)

    notifier = WebhookNotifier(
        settings.webhook_url,
        timeout_seconds=settings.webhook_timeout_seconds,
    )
    if not notifier.configured:
        logger.warning("Webhook URL not configured; notifications will fail until it is set.")

    scanner = DeadlineScanner(
        task_repo,
        users,
        notifier,
        tz=tz,
        reminder_minutes=settings.reminder_minutes,
        overdue_grace_minutes=settings.overdue_grace_minutes,
    )

    return AppState(
        settings=settings,
        task_repo=task_repo,
        users=users,
        notifier=notifier,
        scanner=scanner,
        task_store=task_store,
        user_store=user_store,
    )
