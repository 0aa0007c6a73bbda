"""Append-only repository for the steward audit log.

The audit log shares the primary database with the reviewable items so that a
transition and its audit entry commit or roll back together. The repository
has no update method; entries are removed only by the retention purge, which
the service layer audits before reporting back.

Key exports:
- AuditLogRepository — append + filtered read + count + retention delete
"""

from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from swor_stewardship.core.domain import AuditQuery
from swor_stewardship.core.models import AuditLogEntry
from swor_stewardship.database import utcnow
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)

# Sortable columns, keyed by AuditQuery.sort_column
_SORT_COLUMNS = {
    "created_at": AuditLogEntry.created_at,
    "action_type": AuditLogEntry.action_type,
    "actor_email": AuditLogEntry.actor_email,
}


class AuditLogRepository:
    """Append-only repository for AuditLogEntry.

    IMPORTANT: This class has no update() method because the audit log is
    immutable. append() only flushes; the surrounding unit of work decides
    when the entry is committed, so a failed transition never leaves an
    orphan entry behind.

    Args:
        session: The primary DB async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize AuditLogRepository with a database session.

        Args:
            session: The SQLAlchemy async session for the current unit of work.
        """
        self._session = session

    async def append(
        self,
        action_type: str,
        actor_id: str | None,
        actor_email: str,
        scope_type: str,
        target_id: str | None,
        target_label: str | None,
        details: dict[str, Any],
    ) -> AuditLogEntry:
        """Append an immutable audit log entry.

        This is the ONLY write operation on the audit log apart from the
        retention delete.

        Args:
            action_type: Namespaced action type.
            actor_id: User id of the actor.
            actor_email: Email of the actor.
            scope_type: Scope of the action.
            target_id: Affected entity id.
            target_label: Human-readable label of the affected entity.
            details: Action-specific payload.

        Returns:
            The flushed AuditLogEntry.
        """
        entry = AuditLogEntry(
            action_type=action_type,
            actor_id=actor_id,
            actor_email=actor_email,
            scope_type=scope_type,
            target_id=target_id,
            target_label=target_label,
            details_json=details,
            created_at=utcnow(),
        )
        self._session.add(entry)
        await self._session.flush()

        logger.info(
            "Audit log entry written",
            entry_id=entry.id,
            action_type=action_type,
            scope_type=scope_type,
            target_id=target_id,
        )
        return entry

    def _filtered(self, filters: AuditQuery) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if filters.action_type_filter:
            conditions.append(AuditLogEntry.action_type == filters.action_type_filter)
        if filters.scope_type_filter:
            conditions.append(AuditLogEntry.scope_type == filters.scope_type_filter)
        if filters.actor_email:
            conditions.append(func.lower(AuditLogEntry.actor_email) == filters.actor_email.strip().lower())
        if filters.target_id:
            conditions.append(AuditLogEntry.target_id == filters.target_id)
        if filters.search_term:
            pattern = f"%{filters.search_term.lower()}%"
            conditions.append(
                or_(
                    func.lower(AuditLogEntry.actor_email).like(pattern),
                    func.lower(func.coalesce(AuditLogEntry.target_label, "")).like(pattern),
                )
            )
        if filters.created_from is not None:
            conditions.append(AuditLogEntry.created_at >= filters.created_from)
        if filters.created_before is not None:
            conditions.append(AuditLogEntry.created_at < filters.created_before)
        return conditions

    async def query(self, filters: AuditQuery) -> tuple[list[AuditLogEntry], int]:
        """Query the audit log with filters, sort and pagination.

        Args:
            filters: The AuditQuery to apply.

        Returns:
            Tuple of (entries for the requested page, total matching entries).
        """
        conditions = self._filtered(filters)

        total_stmt = select(func.count()).select_from(AuditLogEntry).where(*conditions)
        total = (await self._session.execute(total_stmt)).scalar_one()

        column = _SORT_COLUMNS[filters.sort_column]
        ordering = column.asc() if filters.sort_direction == "asc" else column.desc()
        # Newest first breaks ties for non-timestamp sort keys
        stmt = (
            select(AuditLogEntry)
            .where(*conditions)
            .order_by(ordering, AuditLogEntry.created_at.desc(), AuditLogEntry.id)
            .offset(filters.offset)
            .limit(filters.limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def count(self) -> int:
        """Return the number of entries in the audit log."""
        result = await self._session.execute(select(func.count()).select_from(AuditLogEntry))
        return result.scalar_one()

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete entries created strictly before cutoff.

        Only AuditService.purge_older_than calls this.

        Args:
            cutoff: Entries older than this timestamp are deleted.

        Returns:
            Number of deleted entries.
        """
        result = await self._session.execute(
            delete(AuditLogEntry)
            .where(AuditLogEntry.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        logger.info("Audit log retention delete", cutoff=cutoff.isoformat(), deleted_count=result.rowcount)
        return result.rowcount or 0

    async def activity_since(
        self,
        since: datetime,
        action_types: list[str],
    ) -> list[tuple[str, str, int, datetime]]:
        """Aggregate actions per actor since a timestamp.

        Args:
            since: Lower bound (inclusive).
            action_types: Action types to count.

        Returns:
            Rows of (actor_email, action_type, count, last_at).
        """
        stmt = (
            select(
                AuditLogEntry.actor_email,
                AuditLogEntry.action_type,
                func.count(AuditLogEntry.id),
                func.max(AuditLogEntry.created_at),
            )
            .where(
                AuditLogEntry.created_at >= since,
                AuditLogEntry.action_type.in_(action_types),
            )
            .group_by(AuditLogEntry.actor_email, AuditLogEntry.action_type)
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1], row[2], row[3]) for row in result.all()]
