"""Core business logic services for the stewardship engine.

Service classes:
- AuditService                  — append-only audit writes, query, CSV export, retention
- NotificationDispatcher        — allowed-to-fail delivery side channel with failure record
- ReviewService                 — review state machine operations (single choke point)
- StewardAssignmentService      — steward assignment lifecycle and workload
- ContactService                — steward inbox triage
- AuditActivitySummaryProvider  — per-steward activity derived from the audit log

All services are async-first. They accept injected repositories through their
constructors and contain no framework code. Every state-changing operation
writes its audit entry through AuditService in the same unit of work, so an
audit failure fails the operation.
"""

from collections import deque
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any

from swor_stewardship.auth import ActorContext
from swor_stewardship.core.audit_export import (
    AuditExport,
    build_export_filename,
    export_message,
    render_csv,
)
from swor_stewardship.core.domain import (
    ActivitySummary,
    AuditPage,
    AuditQuery,
    NotificationPayload,
    ScopeType,
    StewardWorkload,
    TransitionResult,
)
from swor_stewardship.core.interfaces import (
    IAccountDirectory,
    IActivitySummaryProvider,
    IAuditLogRepository,
    IContactRepository,
    INotificationSender,
    IReviewItemRepository,
    IStewardAssignmentRepository,
)
from swor_stewardship.core.models import AuditLogEntry, ContactMessage, ReviewableItem, StewardAssignment
from swor_stewardship.core.state_machine import (
    STATUSES_BY_KIND,
    ContactStatus,
    ItemKind,
    Transition,
    Verb,
    resolve_transition,
    validate_status,
)
from swor_stewardship.database import utcnow
from swor_stewardship.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)

# Minimum characters before a profile name search hits the database
_MIN_SEARCH_LENGTH = 2

# Audit actions counted by the activity summary
_PROFILE_REVIEW_ACTIONS = ("profile.approved", "profile.needs_changes")
_COMMENDATION_REVIEW_ACTIONS = ("commendation.approved", "commendation.rejected")

# Kinds that have a steward review queue
_QUEUE_KINDS = frozenset({ItemKind.PROFILE, ItemKind.COMMENDATION, ItemKind.CONTRIBUTION})


def _status_filter(kind: str, status: str | None) -> str | None:
    """Normalize a list filter; None, "" and "all" mean every status.

    Raises:
        ValidationError: If the status is not declared for the kind.
    """
    if not status or status == "all":
        return None
    validate_status(kind, status)
    return status


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


@dataclass
class RetentionResult:
    """Outcome of an audit log retention purge."""

    deleted_count: int
    new_total_rows: int
    retention_days: int

    @property
    def message(self) -> str:
        return (
            f"Removed {self.deleted_count:,} entries older than {self.retention_days} days. "
            f"{self.new_total_rows:,} entries remain."
        )


class AuditService:
    """Append-only audit log orchestration.

    The single point of entry for audit writes. Writes happen inside the
    caller's unit of work and errors propagate: a failed audit write fails the
    operation that asked for it.

    IMPORTANT: This service contains NO update operations. If an entry must be
    corrected, write a compensating entry.

    Args:
        audit_repo: Repository implementing IAuditLogRepository.
        export_row_cap: Maximum rows materialized by export_csv().
    """

    def __init__(self, audit_repo: IAuditLogRepository, export_row_cap: int = 1000) -> None:
        """Initialize AuditService with injected audit repository.

        Args:
            audit_repo: Repository implementing IAuditLogRepository.
            export_row_cap: Hard cap on exported rows.
        """
        self._audit_repo = audit_repo
        self._export_row_cap = export_row_cap

    async def record(
        self,
        action_type: str,
        actor: ActorContext,
        scope_type: str,
        target_id: str | None = None,
        target_label: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """Append an immutable audit log entry.

        Args:
            action_type: Namespaced action type, e.g. profile.approved.
            actor: The actor performing the action.
            scope_type: One of ScopeType.
            target_id: Affected entity id.
            target_label: Human-readable label of the affected entity.
            details: Structured action-specific payload.

        Returns:
            The flushed AuditLogEntry.
        """
        if scope_type not in tuple(ScopeType):
            raise ValidationError(message=f"Unknown audit scope '{scope_type}'", field="scope_type")

        return await self._audit_repo.append(
            action_type=action_type,
            actor_id=actor.actor_id,
            actor_email=actor.actor_email or "unknown@system",
            scope_type=scope_type,
            target_id=target_id,
            target_label=target_label,
            details=details or {},
        )

    async def query(self, filters: AuditQuery) -> AuditPage:
        """Query the audit log.

        Args:
            filters: Filters, sort and pagination.

        Returns:
            AuditPage with the requested entries and the total match count.
        """
        entries, total = await self._audit_repo.query(filters)
        return AuditPage(entries=entries, total=total)

    async def export_csv(
        self,
        filters: AuditQuery,
        actor: ActorContext,
        today: date | None = None,
    ) -> AuditExport:
        """Export the filtered audit log as CSV, capped at export_row_cap rows.

        The filters' own limit and offset are ignored: an export always starts
        at the first matching entry in the requested sort order. The export is
        itself audited (audit.csv_exported) before it is returned.

        Args:
            filters: Filters and sort order.
            actor: The steward exporting.
            today: Export date used in the filename (defaults to today, UTC).

        Returns:
            AuditExport with the document and row accounting.
        """
        entries, total = await self._audit_repo.query(replace(filters, limit=self._export_row_cap, offset=0))

        exported_at = utcnow()
        filename = build_export_filename(filters, today or exported_at.date())
        content = render_csv(entries)
        row_count = len(entries)

        await self.record(
            action_type="audit.csv_exported",
            actor=actor,
            scope_type=ScopeType.SYSTEM,
            target_label="steward_audit_log",
            details={
                "filtersApplied": filters.filters_applied(),
                "rowCount": row_count,
                "totalMatches": total,
                "exportedAt": exported_at.isoformat(),
                "filename": filename,
            },
        )

        logger.info("Audit log exported", row_count=row_count, total_matches=total, filename=filename)
        return AuditExport(
            content=content,
            filename=filename,
            row_count=row_count,
            total_matches=total,
            rows_omitted=max(total - row_count, 0),
            message=export_message(row_count, total),
        )

    async def purge_older_than(self, retention_days: int, actor: ActorContext) -> RetentionResult:
        """Delete entries older than the retention window.

        The purge is audited (audit.retention_purged) before the counts are
        reported, so new_total_rows includes that entry.

        Args:
            retention_days: Entries older than this many days are deleted. Must be >= 1.
            actor: The global steward running the purge.

        Returns:
            RetentionResult with deleted_count and new_total_rows.

        Raises:
            ValidationError: If retention_days < 1.
        """
        if retention_days < 1:
            raise ValidationError(message="retention_days must be at least 1", field="retention_days")

        cutoff = utcnow() - timedelta(days=retention_days)
        deleted_count = await self._audit_repo.delete_before(cutoff)
        await self.record(
            action_type="audit.retention_purged",
            actor=actor,
            scope_type=ScopeType.SYSTEM,
            target_label="steward_audit_log",
            details={
                "retentionDays": retention_days,
                "cutoff": cutoff.isoformat(),
                "deletedCount": deleted_count,
            },
        )
        new_total_rows = await self._audit_repo.count()

        logger.info(
            "Audit log retention purge complete",
            retention_days=retention_days,
            deleted_count=deleted_count,
            new_total_rows=new_total_rows,
        )
        return RetentionResult(
            deleted_count=deleted_count,
            new_total_rows=new_total_rows,
            retention_days=retention_days,
        )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotificationFailure:
    """A delivery that failed, kept for diagnostics."""

    kind: str
    recipient_email: str | None
    error: str
    failed_at: datetime


class NotificationDispatcher:
    """Allowed-to-fail notification side channel.

    dispatch() never raises: a delivery failure is logged as
    notification.delivery_failed and remembered in a bounded in-memory record
    (GET /notifications/failures) but never fails the transition that produced
    the payload.

    Args:
        sender: The notification sender.
        max_failures: How many recent failures to remember.
    """

    def __init__(self, sender: INotificationSender, max_failures: int = 100) -> None:
        self._sender = sender
        self._failures: deque[NotificationFailure] = deque(maxlen=max_failures)

    async def dispatch(self, payload: NotificationPayload | None) -> bool:
        """Deliver a payload, recording any failure.

        Args:
            payload: The payload, or None when a transition notifies nobody.

        Returns:
            True if delivered (or nothing to deliver), False if delivery failed.
        """
        if payload is None:
            return True
        try:
            await self._sender.send(payload)
        except Exception as exc:
            logger.warning(
                "notification.delivery_failed",
                kind=payload.kind,
                recipient_email=payload.recipient_email,
                error=str(exc),
            )
            self._failures.append(
                NotificationFailure(
                    kind=payload.kind,
                    recipient_email=payload.recipient_email,
                    error=str(exc),
                    failed_at=utcnow(),
                )
            )
            return False
        return True

    def recent_failures(self) -> list[NotificationFailure]:
        """Return remembered failures, newest first."""
        return list(reversed(self._failures))


# ---------------------------------------------------------------------------
# Review state machine
# ---------------------------------------------------------------------------


@dataclass
class ReviewQueuePage:
    """A page of a review queue with per-status counts for the whole kind.

    Attributes:
        kind: Item kind listed.
        status: Status filter applied, None for every status.
        items: Items on this page.
        total: Items matching the filter.
        counts: Items per status of the kind, zero for empty statuses.
    """

    kind: str
    status: str | None
    items: list[ReviewableItem]
    total: int
    counts: dict[str, int]


class ReviewService:
    """Review operations on profiles, commendations and contributions.

    Every status change goes through _transition(), which resolves the verb
    against the transition table, applies it as a compare-and-set update and
    appends the audit entry in the same unit of work.

    Args:
        item_repo: Repository implementing IReviewItemRepository.
        audit_service: AuditService for audit writes.
    """

    def __init__(self, item_repo: IReviewItemRepository, audit_service: AuditService) -> None:
        """Initialize ReviewService with injected dependencies.

        Args:
            item_repo: Repository implementing IReviewItemRepository.
            audit_service: AuditService for audit writes.
        """
        self._item_repo = item_repo
        self._audit = audit_service

    async def _transition(
        self,
        item: ReviewableItem,
        verb: Verb,
        actor: ActorContext,
        values: dict[str, Any] | None = None,
        note: str | None = None,
        extra_details: dict[str, Any] | None = None,
    ) -> Transition:
        """Apply one transition and audit it.

        Raises:
            InvalidTransition: If the verb is illegal from the item's status, or
                another writer changed the status first.
        """
        transition = resolve_transition(item.kind, verb, item.status, item_id=item.id)

        changed = await self._item_repo.compare_and_set_status(
            item,
            expected_status=transition.from_status,
            new_status=transition.to_status,
            values=values or {},
        )
        if not changed:
            current = await self._item_repo.current_status(item.id)
            if current is None:
                raise NotFoundError(resource="ReviewableItem", resource_id=item.id)
            raise InvalidTransition(kind=item.kind, verb=verb, current_status=current, item_id=item.id)

        details: dict[str, Any] = {"before": transition.from_status, "after": transition.to_status}
        if note:
            details["note"] = note
        if extra_details:
            details.update(extra_details)

        await self._audit.record(
            action_type=transition.action_type,
            actor=actor,
            scope_type=item.kind,
            target_id=item.id,
            target_label=item.display_name or item.id,
            details=details,
        )

        logger.info(
            "Review transition applied",
            item_id=item.id,
            kind=item.kind,
            verb=verb.value,
            from_status=transition.from_status,
            to_status=transition.to_status,
            actor_email=actor.actor_email,
        )
        return transition

    @staticmethod
    def _require_reviewer(reviewer: ActorContext) -> None:
        if not reviewer.is_steward:
            raise ForbiddenError("Only stewards may review submissions")

    @staticmethod
    def _require_owner(item: ReviewableItem, actor: ActorContext) -> None:
        if not item.owner_id or item.owner_id != actor.actor_id:
            raise ForbiddenError("Only the submitting owner may do this")

    @staticmethod
    def _review_values(reviewer: ActorContext) -> dict[str, Any]:
        return {
            "reviewed_at": utcnow(),
            "reviewed_by_id": reviewer.actor_id,
            "reviewed_by_email": reviewer.actor_email,
        }

    async def submit(self, item_id: str, owner: ActorContext) -> TransitionResult:
        """Submit a draft (or a profile needing changes) for review.

        Raises:
            ForbiddenError: If the actor is not the owner.
            InvalidTransition: If the item cannot be submitted from its status.
        """
        item = await self._item_repo.get_by_id(item_id)
        self._require_owner(item, owner)
        transition = await self._transition(item, Verb.SUBMIT, owner, values={"submitted_at": utcnow()})
        return TransitionResult(item=item, transition=transition)

    async def approve(self, item_id: str, reviewer: ActorContext) -> TransitionResult:
        """Approve a submitted item.

        Args:
            item_id: The item id.
            reviewer: The approving steward.

        Returns:
            TransitionResult carrying the notification payload for the owner.

        Raises:
            NotFoundError: If the item does not exist.
            InvalidTransition: If the item is not submitted_for_review.
        """
        self._require_reviewer(reviewer)
        item = await self._item_repo.get_by_id(item_id)
        transition = await self._transition(item, Verb.APPROVE, reviewer, values=self._review_values(reviewer))
        notification = await self._notification_for(item, transition)
        return TransitionResult(item=item, transition=transition, notification=notification)

    async def request_changes(self, item_id: str, reviewer: ActorContext, note: str) -> TransitionResult:
        """Send a submitted profile back to its owner with a steward note.

        Raises:
            ValidationError: If the note is empty or blank.
            InvalidTransition: If the item is not a submitted profile.
        """
        cleaned = (note or "").strip()
        if not cleaned:
            raise ValidationError(message="A steward note is required to request changes", field="note")

        self._require_reviewer(reviewer)
        item = await self._item_repo.get_by_id(item_id)
        values = self._review_values(reviewer) | {"steward_note": cleaned}
        transition = await self._transition(item, Verb.REQUEST_CHANGES, reviewer, values=values, note=cleaned)
        notification = await self._notification_for(item, transition)
        return TransitionResult(item=item, transition=transition, notification=notification)

    async def reject(self, item_id: str, reviewer: ActorContext, reason: str | None = None) -> TransitionResult:
        """Reject a submitted commendation or contribution.

        Raises:
            InvalidTransition: If the item is a profile or not submitted_for_review.
        """
        self._require_reviewer(reviewer)
        item = await self._item_repo.get_by_id(item_id)
        cleaned = (reason or "").strip() or None
        values = self._review_values(reviewer) | {"rejection_reason": cleaned}
        transition = await self._transition(
            item,
            Verb.REJECT,
            reviewer,
            values=values,
            extra_details={"reason": cleaned} if cleaned else None,
        )
        notification = await self._notification_for(item, transition)
        return TransitionResult(item=item, transition=transition, notification=notification)

    async def withdraw(self, item_id: str, owner: ActorContext) -> TransitionResult:
        """Withdraw a submission back to draft. Only the submitting owner may do this.

        Raises:
            ForbiddenError: If the actor is not the owner.
            InvalidTransition: If the item is not submitted_for_review.
        """
        item = await self._item_repo.get_by_id(item_id)
        self._require_owner(item, owner)
        transition = await self._transition(item, Verb.WITHDRAW, owner)
        return TransitionResult(item=item, transition=transition)

    async def get_item(self, item_id: str) -> ReviewableItem:
        return await self._item_repo.get_by_id(item_id)

    async def search_profiles(self, query: str, limit: int = 20) -> list[ReviewableItem]:
        """Profile name search for the assignment and reset pickers.

        Queries shorter than two characters return no results.
        """
        if len((query or "").strip()) < _MIN_SEARCH_LENGTH:
            return []
        return await self._item_repo.search_profiles(query, limit=limit)

    async def list_queue(
        self,
        kind: str,
        status: str | None = "submitted_for_review",
        limit: int = 50,
        offset: int = 0,
    ) -> ReviewQueuePage:
        """List a review queue, longest-waiting first, with per-status counts.

        The counts cover every item of the kind regardless of the status
        filter, so the queue tabs can show their sizes side by side.

        Args:
            kind: profile | commendation | contribution.
            status: Status filter; None, "" or "all" lists every status.
            limit: Page size.
            offset: Page offset.

        Returns:
            ReviewQueuePage for the kind.

        Raises:
            ValidationError: On a kind without a queue or a status the kind does not have.
        """
        if kind not in _QUEUE_KINDS:
            raise ValidationError(message=f"No review queue for '{kind}'", field="kind")
        status_filter = _status_filter(kind, status)

        items, total = await self._item_repo.list_by_kind(kind, status_filter, limit=limit, offset=offset)
        counts = dict.fromkeys(sorted(str(s) for s in STATUSES_BY_KIND[ItemKind(kind)]), 0)
        counts.update(await self._item_repo.status_counts(kind))
        return ReviewQueuePage(kind=kind, status=status_filter, items=items, total=total, counts=counts)

    async def profile_review_history(self, profile_id: str, limit: int = 50) -> list[AuditLogEntry]:
        """Audit entries targeting a profile, newest first.

        Raises:
            NotFoundError: If the profile does not exist.
        """
        await self._item_repo.get_by_id(profile_id)
        page = await self._audit.query(AuditQuery(target_id=profile_id, limit=limit))
        return page.entries

    async def _notification_for(self, item: ReviewableItem, transition: Transition) -> NotificationPayload | None:
        """Build the notification a transition calls for, or None."""
        action = transition.action_type

        if action in ("profile.approved", "profile.needs_changes"):
            variables: dict[str, Any] = {
                "profile_id": item.id,
                "profile_name": item.display_name,
                "owner_user_id": item.owner_id,
            }
            if action == "profile.needs_changes":
                variables["steward_note"] = item.steward_note
            return NotificationPayload(
                kind=action.replace(".", "_"),
                recipient_email=item.owner_email,
                recipient_user_id=item.owner_id,
                variables=variables,
            )

        if action == "commendation.approved":
            # The recipient is the owner of the commended profile
            profile = await self._item_repo.get_by_id(item.profile_id) if item.profile_id else None
            return NotificationPayload(
                kind="commendation_approved",
                recipient_email=profile.owner_email if profile else None,
                recipient_user_id=profile.owner_id if profile else None,
                variables={
                    "commendation_id": item.id,
                    "profile_id": item.profile_id,
                    "profile_name": profile.display_name if profile else None,
                    "commender_name": (item.content or {}).get("commender_name"),
                },
            )

        if action == "commendation.rejected":
            # Only commenders who left an email hear back
            if not item.owner_email:
                return None
            return NotificationPayload(
                kind="commendation_rejected",
                recipient_email=item.owner_email,
                recipient_user_id=item.owner_id,
                variables={"commendation_id": item.id, "reason": item.rejection_reason},
            )

        if action in ("contribution.approved", "contribution.rejected"):
            return NotificationPayload(
                kind=action.replace(".", "_"),
                recipient_email=item.owner_email,
                recipient_user_id=item.owner_id,
                variables={
                    "contribution_id": item.id,
                    "contribution_title": item.display_name,
                    "profile_id": item.profile_id,
                    "reason": item.rejection_reason,
                },
            )

        return None


# ---------------------------------------------------------------------------
# Steward assignments
# ---------------------------------------------------------------------------


@dataclass
class AssignmentPage:
    """A page of assignments with overall counts."""

    items: list[StewardAssignment]
    total: int
    active_total: int


class AuditActivitySummaryProvider:
    """Derives per-steward review activity from the audit log.

    Args:
        audit_repo: Repository implementing IAuditLogRepository.
    """

    def __init__(self, audit_repo: IAuditLogRepository) -> None:
        self._audit_repo = audit_repo

    async def summarize(self, since: datetime) -> dict[str, ActivitySummary]:
        rows = await self._audit_repo.activity_since(
            since,
            list(_PROFILE_REVIEW_ACTIONS + _COMMENDATION_REVIEW_ACTIONS),
        )
        summaries: dict[str, ActivitySummary] = {}
        for actor_email, action_type, count, last_at in rows:
            summary = summaries.setdefault(actor_email.lower(), ActivitySummary())
            if action_type in _PROFILE_REVIEW_ACTIONS:
                summary.profiles_reviewed += count
            else:
                summary.commendations_processed += count
            if last_at is not None and (summary.last_active is None or last_at > summary.last_active):
                summary.last_active = last_at
        return summaries


class StewardAssignmentService:
    """Steward assignment lifecycle: assign, deactivate, list, workload.

    At most one active assignment may exist per (profile, steward email). A
    deactivated assignment is never reactivated; assigning again inserts a
    new row.

    Args:
        assignment_repo: Repository implementing IStewardAssignmentRepository.
        item_repo: Repository used to check that the profile exists.
        audit_service: AuditService for audit writes.
        directory: Account directory deciding invite_email_pending. Without one every
            steward is treated as unknown (invite pending).
        activity_provider: Optional activity summary source for list_workload().
    """

    def __init__(
        self,
        assignment_repo: IStewardAssignmentRepository,
        item_repo: IReviewItemRepository,
        audit_service: AuditService,
        directory: IAccountDirectory | None = None,
        activity_provider: IActivitySummaryProvider | None = None,
    ) -> None:
        self._assignment_repo = assignment_repo
        self._item_repo = item_repo
        self._audit = audit_service
        self._directory = directory
        self._activity_provider = activity_provider

    async def assign(
        self,
        profile_id: str,
        steward_email: str,
        assigner: ActorContext,
        steward_name: str | None = None,
    ) -> StewardAssignment:
        """Assign a steward to a profile.

        Args:
            profile_id: The profile to assign.
            steward_email: The steward's email (normalized to lower case).
            assigner: The global steward creating the assignment.
            steward_name: Optional display name.

        Returns:
            The new active StewardAssignment.

        Raises:
            ValidationError: If profile_id or steward_email is blank or malformed.
            NotFoundError: If the profile does not exist.
            ConflictError: If the pair already has an active assignment.
        """
        profile_id = (profile_id or "").strip()
        email = (steward_email or "").strip().lower()
        missing = [name for name, value in (("profile_id", profile_id), ("steward_email", email)) if not value]
        if missing:
            raise ValidationError(message=f"Required: {', '.join(missing)}", missing=missing)
        if "@" not in email:
            raise ValidationError(message=f"'{steward_email}' is not an email address", field="steward_email")

        profile = await self._item_repo.get_by_id(profile_id)
        if profile.kind != ItemKind.PROFILE:
            raise NotFoundError(resource="Profile", resource_id=profile_id)

        if await self._assignment_repo.find_active(profile_id, email) is not None:
            raise ConflictError(f"Steward {email} already has an active assignment for profile {profile_id}")

        steward_user_id = await self._directory.find_user_id(email) if self._directory is not None else None
        name = (steward_name or "").strip() or None
        assignment = await self._assignment_repo.create(
            profile_id=profile_id,
            steward_email=email,
            steward_name=name,
            steward_user_id=steward_user_id,
            assigned_by_id=assigner.actor_id,
            assigned_by_email=assigner.actor_email,
            invite_email_pending=steward_user_id is None,
        )

        await self._audit.record(
            action_type="steward.assigned",
            actor=assigner,
            scope_type=ScopeType.PROFILE,
            target_id=profile_id,
            target_label=profile.display_name or profile_id,
            details={
                "assignmentId": assignment.id,
                "stewardEmail": email,
                "stewardName": name,
                "invitePending": assignment.invite_email_pending,
            },
        )
        logger.info(
            "Steward assigned",
            assignment_id=assignment.id,
            profile_id=profile_id,
            steward_email=email,
            invite_pending=assignment.invite_email_pending,
        )
        return assignment

    async def deactivate(
        self,
        assignment_id: str,
        actor: ActorContext,
        note: str | None = None,
    ) -> StewardAssignment:
        """Deactivate an active assignment.

        Raises:
            NotFoundError: If the assignment does not exist or is not active.
        """
        assignment = await self._assignment_repo.get_by_id(assignment_id)
        if assignment is None or assignment.status != "active":
            raise NotFoundError(resource="Active steward assignment", resource_id=assignment_id)

        cleaned = (note or "").strip() or None
        if not await self._assignment_repo.deactivate(assignment, cleaned, utcnow()):
            raise NotFoundError(resource="Active steward assignment", resource_id=assignment_id)

        await self._audit.record(
            action_type="steward.deactivated",
            actor=actor,
            scope_type=ScopeType.PROFILE,
            target_id=assignment.profile_id,
            target_label=assignment.steward_email,
            details={
                "assignmentId": assignment.id,
                "stewardEmail": assignment.steward_email,
                "note": cleaned,
            },
        )
        logger.info("Steward assignment deactivated", assignment_id=assignment.id)
        return assignment

    async def list_assignments(
        self,
        search: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> AssignmentPage:
        """List assignments with optional search and status filter ("all" for both)."""
        status_filter = None if status in (None, "", "all") else status
        if status_filter not in (None, "active", "inactive"):
            raise ValidationError(message=f"Unknown assignment status '{status}'", field="status")
        items, total, active_total = await self._assignment_repo.list_assignments(
            search=search,
            status=status_filter,
            limit=limit,
            offset=offset,
        )
        return AssignmentPage(items=items, total=total, active_total=active_total)

    async def list_workload(self, window_days: int = 30, now: datetime | None = None) -> list[StewardWorkload]:
        """Active assignment counts per steward, busiest first, with recent activity.

        Args:
            window_days: Activity window in days.
            now: Window end (defaults to now, UTC).

        Returns:
            Leaderboard rows.
        """
        if window_days < 1:
            raise ValidationError(message="window_days must be at least 1", field="window_days")

        rows = await self._assignment_repo.active_counts_by_steward()
        activity: dict[str, ActivitySummary] = {}
        if self._activity_provider is not None:
            since = (now or utcnow()) - timedelta(days=window_days)
            activity = await self._activity_provider.summarize(since)

        return [
            StewardWorkload(
                steward_email=email,
                steward_name=name,
                active_count=count,
                activity=activity.get(email.lower(), ActivitySummary()),
            )
            for email, name, count in rows
        ]


# ---------------------------------------------------------------------------
# Contact messages
# ---------------------------------------------------------------------------


@dataclass
class ContactUpdate:
    """Result of a contact message status change."""

    message: ContactMessage
    transition: Transition


@dataclass
class ContactPage:
    """One page of the steward inbox."""

    items: list[ContactMessage]
    total: int


class ContactService:
    """Steward inbox triage through the shared transition table.

    Args:
        contact_repo: Repository implementing IContactRepository.
        audit_service: AuditService for audit writes.
    """

    def __init__(self, contact_repo: IContactRepository, audit_service: AuditService) -> None:
        self._contact_repo = contact_repo
        self._audit = audit_service

    async def get_message(self, message_id: str) -> ContactMessage:
        return await self._contact_repo.get_by_id(message_id)

    async def list_messages(self, status: str | None = None, limit: int = 50, offset: int = 0) -> ContactPage:
        """List inbox messages newest first.

        Raises:
            ValidationError: If status is not a contact message status.
        """
        status_filter = _status_filter(ItemKind.CONTACT, status)
        items, total = await self._contact_repo.list_messages(status_filter, limit=limit, offset=offset)
        return ContactPage(items=items, total=total)

    async def update_status(
        self,
        message_id: str,
        new_status: str,
        actor: ActorContext,
        steward_note: str | None = None,
    ) -> ContactUpdate:
        """Move a message to triaged or closed.

        Asking for triaged on a closed message reopens it.

        Raises:
            ValidationError: If new_status is not triaged or closed.
            InvalidTransition: If the change is not legal from the current status.
        """
        message = await self._contact_repo.get_by_id(message_id)

        if new_status == ContactStatus.CLOSED:
            verb = Verb.CLOSE
        elif new_status == ContactStatus.TRIAGED:
            verb = Verb.REOPEN if message.status == ContactStatus.CLOSED else Verb.TRIAGE
        else:
            raise ValidationError(message=f"Cannot move a message to '{new_status}'", field="status")

        transition = resolve_transition(ItemKind.CONTACT, verb, message.status, item_id=message.id)
        note = (steward_note or "").strip() or None
        values: dict[str, Any] = {"steward_note": note} if note else {}
        if not await self._contact_repo.compare_and_set_status(
            message,
            expected_status=transition.from_status,
            new_status=transition.to_status,
            values=values,
        ):
            raise InvalidTransition(
                kind=ItemKind.CONTACT,
                verb=verb,
                current_status=transition.from_status,
                item_id=message.id,
            )

        details: dict[str, Any] = {"before": transition.from_status, "after": transition.to_status}
        if note:
            details["note"] = note
        await self._audit.record(
            action_type=transition.action_type,
            actor=actor,
            scope_type=ScopeType.CONTACT,
            target_id=message.id,
            target_label=message.subject or message.email,
            details=details,
        )
        logger.info("Contact message status updated", message_id=message.id, status=transition.to_status)
        return ContactUpdate(message=message, transition=transition)
