"""Abstract interfaces (Protocol classes) for the stewardship engine.

Defines the contracts between the service layer and the adapter layer using
typing.Protocol. Services depend on these protocols, never on concrete
adapter implementations, so tests can drive them with mock adapters.

Protocols defined:
- IReviewItemRepository
- IAuditLogRepository
- IStewardAssignmentRepository
- IResetRepository
- IContactRepository
- INotificationSender
- IAccountDirectory
- IActivitySummaryProvider
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

from swor_stewardship.core.domain import ActivitySummary, AuditQuery, NotificationPayload
from swor_stewardship.core.models import (
    AuditLogEntry,
    ContactMessage,
    ResetHistoryEntry,
    ReviewableItem,
    StewardAssignment,
)


class IReviewItemRepository(Protocol):
    """Repository contract for ReviewableItem persistence."""

    async def get_by_id(self, item_id: str) -> ReviewableItem:
        """Retrieve an item by id.

        Raises:
            NotFoundError: If no item exists with the given id.
        """
        ...

    async def compare_and_set_status(
        self,
        item: ReviewableItem,
        expected_status: str,
        new_status: str,
        values: dict[str, Any],
    ) -> bool:
        """Move an item to new_status only if it still holds expected_status.

        Args:
            item: The item loaded in the current session.
            expected_status: Status the caller read before deciding.
            new_status: Target status.
            values: Extra column values written with the status.

        Returns:
            True if the row was updated (and `item` refreshed), False if another
            writer changed the status first.
        """
        ...

    async def current_status(self, item_id: str) -> str | None:
        """Return the item's status as stored now, or None if it was deleted."""
        ...

    async def display_names(self, item_ids: list[str]) -> dict[str, str]:
        """Map item ids to display names; unknown ids are absent."""
        ...

    async def search_profiles(self, query: str, limit: int = 20) -> list[ReviewableItem]:
        """Case-insensitive display-name search over profiles."""
        ...

    async def list_by_kind(
        self,
        kind: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ReviewableItem], int]:
        """Return (page of one kind, optionally one status, total matching)."""
        ...

    async def status_counts(self, kind: str) -> dict[str, int]:
        """Return item counts per status for one kind."""
        ...

    async def list_children(self, profile_id: str, kind: str) -> list[ReviewableItem]:
        """Return the commendations or contributions attached to a profile."""
        ...


class IAuditLogRepository(Protocol):
    """Repository contract for the append-only audit log.

    There is deliberately no update method.
    """

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
        """Append one immutable entry and flush it in the current transaction."""
        ...

    async def query(self, filters: AuditQuery) -> tuple[list[AuditLogEntry], int]:
        """Return (entries for the requested page, total matching entries)."""
        ...

    async def count(self) -> int:
        """Return the number of entries in the log."""
        ...

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete entries created before cutoff. Used only by retention."""
        ...

    async def activity_since(self, since: datetime, action_types: list[str]) -> list[tuple[str, str, int, datetime]]:
        """Return (actor_email, action_type, count, last_at) rows since a timestamp."""
        ...


class IStewardAssignmentRepository(Protocol):
    """Repository contract for StewardAssignment persistence."""

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
        """Insert a new active assignment."""
        ...

    async def get_by_id(self, assignment_id: str) -> StewardAssignment | None:
        """Retrieve an assignment by id, or None."""
        ...

    async def steward_emails(self, assignment_ids: list[str]) -> dict[str, str]:
        """Map assignment ids to steward emails; unknown ids are absent."""
        ...

    async def find_active(self, profile_id: str, steward_email: str) -> StewardAssignment | None:
        """Return the active assignment for a (profile, steward) pair, if any."""
        ...

    async def deactivate(self, assignment: StewardAssignment, note: str | None, when: datetime) -> bool:
        """Deactivate an assignment only if it is still active.

        Returns:
            True if the row changed, False if it was not active.
        """
        ...

    async def list_assignments(
        self,
        search: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[StewardAssignment], int, int]:
        """Return (page, total matching, total active)."""
        ...

    async def active_counts_by_steward(self) -> list[tuple[str, str | None, int]]:
        """Return (steward_email, steward_name, active_count) rows, busiest first."""
        ...


class IResetRepository(Protocol):
    """Repository contract for the content touched by a safe reset."""

    def savepoint(self) -> AbstractAsyncContextManager[Any]:
        """Open a nested transaction; leaving it with an error rolls back only its work."""
        ...

    async def clear_profile(self, profile: ReviewableItem, values: dict[str, Any]) -> None:
        """Write the cleared draft state onto the profile row."""
        ...

    async def archive_children(self, profile_id: str, kind: str, archived_status: str) -> int:
        """Set every non-archived child of the kind to archived. Returns rows changed."""
        ...

    async def delete_children(self, profile_id: str, kind: str) -> int:
        """Delete every child of the kind. Returns rows deleted."""
        ...

    async def delete_milestones(self, profile_id: str) -> int:
        """Delete every milestone of the profile. Returns rows deleted."""
        ...

    async def storage_paths(self, profile_id: str) -> list[tuple[str, str]]:
        """Return (item_id, storage_path) for contributions holding a file."""
        ...

    async def enqueue_cleanup(self, profile_id: str, reset_id: str, paths: list[tuple[str, str]]) -> int:
        """Queue storage objects for manual deletion. Returns rows queued."""
        ...

    async def append_history(self, entry: ResetHistoryEntry) -> ResetHistoryEntry:
        """Append one reset history row."""
        ...

    async def list_history(self, profile_id: str) -> list[ResetHistoryEntry]:
        """Return reset history for a profile, newest first."""
        ...


class IContactRepository(Protocol):
    """Repository contract for ContactMessage persistence."""

    async def get_by_id(self, message_id: str) -> ContactMessage:
        """Retrieve a message by id.

        Raises:
            NotFoundError: If not found.
        """
        ...

    async def list_messages(self, status: str | None, limit: int, offset: int) -> tuple[list[ContactMessage], int]:
        """Return (page newest first, total matching)."""
        ...

    async def compare_and_set_status(
        self,
        message: ContactMessage,
        expected_status: str,
        new_status: str,
        values: dict[str, Any],
    ) -> bool:
        """Compare-and-set status update, same contract as the item repository."""
        ...


class INotificationSender(Protocol):
    """Delivers notification payloads to the external notification service."""

    async def send(self, payload: NotificationPayload) -> None:
        """Deliver one payload.

        Raises:
            Exception: Any delivery failure. Callers treat delivery as allowed-to-fail.
        """
        ...


class IAccountDirectory(Protocol):
    """Looks up site accounts known to the identity provider."""

    async def find_user_id(self, email: str) -> str | None:
        """Return the account id registered for an email, or None."""
        ...


class IActivitySummaryProvider(Protocol):
    """Supplies per-steward review activity for the workload leaderboard."""

    async def summarize(self, since: datetime) -> dict[str, ActivitySummary]:
        """Return activity keyed by steward email for actions at or after `since`."""
        ...
