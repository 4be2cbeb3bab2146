# src/shell_deadlines/errors.py

from __future__ import annotations


class ShellDeadlinesError(Exception):
    """Base class for errors raised by this package."""


class StoreError(ShellDeadlinesError):
    """The task store could not be queried or updated."""


class InvalidTaskTime(ShellDeadlinesError):
    """A task carries a start time or duration that cannot form a deadline."""


class InvalidTransition(ShellDeadlinesError):
    """A status change would move a task out of a terminal state."""


class NotificationError(ShellDeadlinesError):
    """A notification could not be delivered to the webhook."""
