"""Deadline reminders and overdue alerts for timed tasks ("shells")."""

__version__ = "0.1.0"
