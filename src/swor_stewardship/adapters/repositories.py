"""SQLAlchemy repositories for the stewardship engine primary database.

Each repository implements the corresponding interface from core/interfaces.py
and operates on the session of the current unit of work. Repositories only
flush; committing is the job of get_db_session() or session_scope().

Repositories:
- ReviewItemRepository         — profiles, commendations, contributions
- StewardAssignmentRepository  — steward ↔ profile assignments
- ResetRepository              — content cascade and history for safe reset
- ContactRepository            — steward inbox messages

Status updates are compare-and-set: the UPDATE carries the status the caller
read, so a concurrent writer that got there first makes it match zero rows.

NOTE: AuditLogRepository lives in audit_log.py. It has no update method and
must stay separate from the mutable repositories here.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from swor_stewardship.core.models import (
    ContactMessage,
    Milestone,
    ResetHistoryEntry,
    ReviewableItem,
    StewardAssignment,
    StorageCleanupTask,
)
from swor_stewardship.errors import ConflictError, NotFoundError
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)


class ReviewItemRepository:
    """Repository for ReviewableItem persistence.

    Args:
        session: The primary DB async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ReviewItemRepository with a database session.

        Args:
            session: The SQLAlchemy async session for the primary DB.
        """
        self._session = session

    async def get_by_id(self, item_id: str) -> ReviewableItem:
        """Retrieve an item by id.

        Args:
            item_id: The item id.

        Returns:
            The ReviewableItem.

        Raises:
            NotFoundError: If not found.
        """
        item = await self._session.get(ReviewableItem, item_id)
        if item is None:
            raise NotFoundError(resource="ReviewableItem", resource_id=item_id)
        return item

    async def compare_and_set_status(
        self,
        item: ReviewableItem,
        expected_status: str,
        new_status: str,
        values: dict[str, Any],
    ) -> bool:
        """Update status (and extra columns) only if the row still holds expected_status.

        Args:
            item: The item loaded in this session; refreshed on success.
            expected_status: Status the caller read before deciding.
            new_status: Target status.
            values: Extra column values written in the same UPDATE.

        Returns:
            True if exactly one row changed.
        """
        stmt = (
            update(ReviewableItem)
            .where(ReviewableItem.id == item.id, ReviewableItem.status == expected_status)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "Compare-and-set status update matched no row",
                item_id=item.id,
                expected_status=expected_status,
                new_status=new_status,
            )
            return False
        await self._session.refresh(item)
        return True

    async def current_status(self, item_id: str) -> str | None:
        """Read the committed-or-flushed status of an item, None if it no longer exists."""
        result = await self._session.execute(select(ReviewableItem.status).where(ReviewableItem.id == item_id))
        return result.scalar_one_or_none()

    async def display_names(self, item_ids: list[str]) -> dict[str, str]:
        """Map item ids to display names; unknown ids are absent."""
        if not item_ids:
            return {}
        result = await self._session.execute(
            select(ReviewableItem.id, ReviewableItem.display_name).where(ReviewableItem.id.in_(item_ids))
        )
        return {row[0]: row[1] or row[0] for row in result.all()}

    async def search_profiles(self, query: str, limit: int = 20) -> list[ReviewableItem]:
        """Case-insensitive display-name search over profiles.

        Args:
            query: Substring to search for.
            limit: Maximum number of results.

        Returns:
            Matching profiles ordered by display name.
        """
        pattern = f"%{query.strip().lower()}%"
        stmt = (
            select(ReviewableItem)
            .where(
                ReviewableItem.kind == "profile",
                func.lower(ReviewableItem.display_name).like(pattern),
            )
            .order_by(ReviewableItem.display_name)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_kind(
        self,
        kind: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ReviewableItem], int]:
        """List items of one kind for a review queue.

        Args:
            kind: profile | commendation | contribution.
            status: Exact status, or None for every status.
            limit: Page size.
            offset: Page offset.

        Returns:
            Tuple of (page longest-waiting first, total matching).
        """
        conditions = [ReviewableItem.kind == kind]
        if status:
            conditions.append(ReviewableItem.status == status)

        total = (
            await self._session.execute(select(func.count()).select_from(ReviewableItem).where(*conditions))
        ).scalar_one()

        stmt = (
            select(ReviewableItem)
            .where(*conditions)
            .order_by(func.coalesce(ReviewableItem.submitted_at, ReviewableItem.created_at), ReviewableItem.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def status_counts(self, kind: str) -> dict[str, int]:
        """Count items of one kind per status; statuses with no items are absent."""
        stmt = (
            select(ReviewableItem.status, func.count())
            .where(ReviewableItem.kind == kind)
            .group_by(ReviewableItem.status)
        )
        result = await self._session.execute(stmt)
        return {status: count for status, count in result.all()}

    async def list_children(self, profile_id: str, kind: str) -> list[ReviewableItem]:
        """Return commendations or contributions attached to a profile, oldest first."""
        stmt = (
            select(ReviewableItem)
            .where(ReviewableItem.profile_id == profile_id, ReviewableItem.kind == kind)
            .order_by(ReviewableItem.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class StewardAssignmentRepository:
    """Repository for StewardAssignment persistence.

    Args:
        session: The primary DB async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize StewardAssignmentRepository with a database session.

        Args:
            session: The SQLAlchemy async session for the primary DB.
        """
        self._session = session

    async def create(
        self,
        profile_id: str,
        steward_email: str,
        steward_name: str | None,
        steward_user_id: str | None,
        assigned_by_id: str | None,
        assigned_by_email: str | None,
        invite_email_pending: bool,
    ) -> StewardAssignment:
        """Insert a new active assignment.

        Returns:
            The flushed StewardAssignment.
        """
        assignment = StewardAssignment(
            profile_id=profile_id,
            steward_email=steward_email,
            steward_name=steward_name,
            steward_user_id=steward_user_id,
            status="active",
            assigned_by_id=assigned_by_id,
            assigned_by_email=assigned_by_email,
            invite_email_pending=invite_email_pending,
        )
        self._session.add(assignment)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            # Partial unique index on active (profile_id, steward_email)
            raise ConflictError(
                f"Steward {steward_email} already has an active assignment for profile {profile_id}"
            ) from exc
        logger.info(
            "Steward assignment created in DB",
            assignment_id=assignment.id,
            profile_id=profile_id,
            steward_email=steward_email,
        )
        return assignment

    async def get_by_id(self, assignment_id: str) -> StewardAssignment | None:
        return await self._session.get(StewardAssignment, assignment_id)

    async def steward_emails(self, assignment_ids: list[str]) -> dict[str, str]:
        """Map assignment ids to steward emails; unknown ids are absent."""
        if not assignment_ids:
            return {}
        result = await self._session.execute(
            select(StewardAssignment.id, StewardAssignment.steward_email).where(
                StewardAssignment.id.in_(assignment_ids)
            )
        )
        return {row[0]: row[1] for row in result.all()}

    async def find_active(self, profile_id: str, steward_email: str) -> StewardAssignment | None:
        stmt = select(StewardAssignment).where(
            StewardAssignment.profile_id == profile_id,
            StewardAssignment.steward_email == steward_email,
            StewardAssignment.status == "active",
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def deactivate(self, assignment: StewardAssignment, note: str | None, when: datetime) -> bool:
        """Deactivate an assignment only if it is still active.

        Args:
            assignment: The assignment loaded in this session; refreshed on success.
            note: Optional deactivation note.
            when: Deactivation timestamp.

        Returns:
            True if the row changed.
        """
        stmt = (
            update(StewardAssignment)
            .where(StewardAssignment.id == assignment.id, StewardAssignment.status == "active")
            .values(status="inactive", deactivated_at=when, deactivation_note=note)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return False
        await self._session.refresh(assignment)
        return True

    async def list_assignments(
        self,
        search: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[StewardAssignment], int, int]:
        """List assignments with optional search and status filter.

        Args:
            search: Substring of steward email or name.
            status: active | inactive, or None for both.
            limit: Page size.
            offset: Page offset.

        Returns:
            Tuple of (page newest first, total matching, total active overall).
        """
        conditions = []
        if status:
            conditions.append(StewardAssignment.status == status)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(StewardAssignment.steward_email).like(pattern),
                    func.lower(func.coalesce(StewardAssignment.steward_name, "")).like(pattern),
                )
            )

        total = (
            await self._session.execute(select(func.count()).select_from(StewardAssignment).where(*conditions))
        ).scalar_one()
        active_total = (
            await self._session.execute(
                select(func.count()).select_from(StewardAssignment).where(StewardAssignment.status == "active")
            )
        ).scalar_one()

        stmt = (
            select(StewardAssignment)
            .where(*conditions)
            .order_by(StewardAssignment.assigned_at.desc(), StewardAssignment.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total, active_total

    async def active_counts_by_steward(self) -> list[tuple[str, str | None, int]]:
        """Count active assignments per steward, busiest first.

        Returns:
            Rows of (steward_email, steward_name, active_count).
        """
        active_count = func.count(StewardAssignment.id).label("active_count")
        stmt = (
            select(StewardAssignment.steward_email, func.max(StewardAssignment.steward_name), active_count)
            .where(StewardAssignment.status == "active")
            .group_by(StewardAssignment.steward_email)
            .order_by(active_count.desc(), StewardAssignment.steward_email)
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]


class ResetRepository:
    """Repository for the content cascade performed by safe reset.

    Touches only reviewable items, milestones, the storage cleanup queue and
    the reset history. Accounts, roles, steward assignments and the audit log
    are out of its reach.

    Args:
        session: The primary DB async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ResetRepository with a database session.

        Args:
            session: The SQLAlchemy async session for the primary DB.
        """
        self._session = session

    def savepoint(self) -> AsyncSessionTransaction:
        return self._session.begin_nested()

    async def clear_profile(self, profile: ReviewableItem, values: dict[str, Any]) -> None:
        """Write the cleared draft state onto the profile row and refresh it."""
        await self._session.execute(
            update(ReviewableItem)
            .where(ReviewableItem.id == profile.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(profile)

    async def archive_children(self, profile_id: str, kind: str, archived_status: str) -> int:
        result = await self._session.execute(
            update(ReviewableItem)
            .where(
                ReviewableItem.profile_id == profile_id,
                ReviewableItem.kind == kind,
                ReviewableItem.status != archived_status,
            )
            .values(status=archived_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_children(self, profile_id: str, kind: str) -> int:
        result = await self._session.execute(
            delete(ReviewableItem)
            .where(ReviewableItem.profile_id == profile_id, ReviewableItem.kind == kind)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_milestones(self, profile_id: str) -> int:
        result = await self._session.execute(
            delete(Milestone).where(Milestone.profile_id == profile_id).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def storage_paths(self, profile_id: str) -> list[tuple[str, str]]:
        stmt = select(ReviewableItem.id, ReviewableItem.storage_path).where(
            ReviewableItem.profile_id == profile_id,
            ReviewableItem.kind == "contribution",
            ReviewableItem.storage_path.is_not(None),
            ReviewableItem.storage_path != "",
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def enqueue_cleanup(self, profile_id: str, reset_id: str, paths: list[tuple[str, str]]) -> int:
        """Queue storage objects for manual deletion.

        Args:
            profile_id: The reset profile.
            reset_id: Id of the reset history row the tasks belong to.
            paths: (source item id, storage path) pairs.

        Returns:
            Number of queued tasks.
        """
        self._session.add_all(
            [
                StorageCleanupTask(
                    profile_id=profile_id,
                    storage_path=path,
                    source_item_id=item_id,
                    reset_id=reset_id,
                    status="pending",
                )
                for item_id, path in paths
            ]
        )
        await self._session.flush()
        return len(paths)

    async def append_history(self, entry: ResetHistoryEntry) -> ResetHistoryEntry:
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_history(self, profile_id: str) -> list[ResetHistoryEntry]:
        stmt = (
            select(ResetHistoryEntry)
            .where(ResetHistoryEntry.profile_id == profile_id)
            .order_by(ResetHistoryEntry.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ContactRepository:
    """Repository for ContactMessage persistence.

    Args:
        session: The primary DB async session.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ContactRepository with a database session.

        Args:
            session: The SQLAlchemy async session for the primary DB.
        """
        self._session = session

    async def get_by_id(self, message_id: str) -> ContactMessage:
        message = await self._session.get(ContactMessage, message_id)
        if message is None:
            raise NotFoundError(resource="ContactMessage", resource_id=message_id)
        return message

    async def list_messages(self, status: str | None, limit: int, offset: int) -> tuple[list[ContactMessage], int]:
        """List inbox messages, newest first.

        Returns:
            Tuple of (page, total matching).
        """
        conditions = [ContactMessage.status == status] if status else []
        total = (
            await self._session.execute(select(func.count()).select_from(ContactMessage).where(*conditions))
        ).scalar_one()
        stmt = (
            select(ContactMessage)
            .where(*conditions)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total

    async def compare_and_set_status(
        self,
        message: ContactMessage,
        expected_status: str,
        new_status: str,
        values: dict[str, Any],
    ) -> bool:
        stmt = (
            update(ContactMessage)
            .where(ContactMessage.id == message.id, ContactMessage.status == expected_status)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return False
        await self._session.refresh(message)
        return True
