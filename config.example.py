# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit the Supabase service role key or the webhook URL. Use .env (local, gitignored).
"""

ENV_VARS = {
    # App / logging
    "SHELLS_APP_NAME": "Name used in log lines (default: shell-deadlines).",
    "SHELLS_LOG_LEVEL": "Console logging level (default: INFO). The file log is always DEBUG.",
    # Backend
    "SHELLS_BACKEND": "sqlite (default) or supabase.",
    "SHELLS_DATA_DIR": "Local data directory for logs and SQLite (default: .local/shells).",
    "SHELLS_TASKS_DB_PATH": "SQLite path (default: <data_dir>/tasks.sqlite3).",
    "SHELLS_SUPABASE_URL": "Supabase project URL (SUPABASE_URL is accepted too).",
    "SHELLS_SUPABASE_SERVICE_ROLE_KEY": (
        "Service role key, bypasses row-level security (SUPABASE_SERVICE_ROLE_KEY is accepted too)."
    ),
    # Notifications
    "SHELLS_WEBHOOK_URL": "Webhook receiving one JSON POST per notification (e.g. a Make.com hook).",
    "SHELLS_WEBHOOK_TIMEOUT_SECONDS": "Per-request timeout for the webhook (default: 10).",
    # Scan tuning
    "SHELLS_TIMEZONE": "IANA zone task dates and start times are written in (default: UTC).",
    "SHELLS_REMINDER_MINUTES": "Reminder window ahead of the deadline (default: 15).",
    "SHELLS_OVERDUE_GRACE_MINUTES": "How long after the deadline an overdue alert still fires (default: 2).",
    "SHELLS_SCAN_INTERVAL_SECONDS": "Interval of the `run` loop (default: 60).",
}
