# src/shell_deadlines/core/state.py

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any

from ..tasks.deadline_scanner import DeadlineScanner
from ..tasks.task_store import TaskStore, UserStore
from .ports import Notifier, TaskRepo, UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    # Settings stay on the state so the CLI does not re-read the environment.
    settings: Any

    task_repo: TaskRepo
    users: UserDirectory
    notifier: Notifier
    scanner: DeadlineScanner

    # Present only with the SQLite backend (local helpers: add-task, add-user).
    task_store: TaskStore | None = None
    user_store: UserStore | None = None

    async def aclose(self) -> None:
        """Release HTTP clients held by the adapters."""
        for component in (self.notifier, self.users, self.task_repo):
            closer = getattr(component, "aclose", None) or getattr(component, "close", None)
            if closer is None:
                continue
            try:
                res = closer()
                if inspect.isawaitable(res):
                    await res
            except Exception:
                logger.debug("close failed for %s", component.__class__.__name__, exc_info=True)
