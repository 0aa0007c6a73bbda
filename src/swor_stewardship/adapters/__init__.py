"""Adapters — external integrations for the stewardship engine.

Contains:
- repositories.py   — SQLAlchemy repositories for the primary DB
- audit_log.py      — append-only AuditLogRepository
- notifications.py  — webhook notification sender
- directory.py      — identity provider account lookup
"""

__all__: list[str] = []
