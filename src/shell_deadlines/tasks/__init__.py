"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, NotificationIntent, ScanResult)
- deadlines.py: deadline arithmetic and window classification (no I/O)
- task_store.py: SQLite-backed task/user storage
- deadline_scanner.py: the per-minute scan and its polling loop
"""
