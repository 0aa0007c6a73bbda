"""Pydantic request and response schemas for the stewardship API.

All API inputs and outputs use Pydantic models — never raw dicts.
Schemas are grouped by resource type.

Resources:
- ReviewItem — profiles, commendations and contributions under review
- AuditLogEntry — audit log query, export and retention
- BulkJob — bulk review and bulk deactivation progress
- StewardAssignment — assignments and workload
- ContactMessage — steward inbox triage
- SafeReset — readiness, execution and history
- NotificationFailure — recent delivery failures
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# ReviewItem schemas
# ---------------------------------------------------------------------------


class ReviewItemResponse(BaseModel):
    """Response schema for a reviewable item."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Item id")
    kind: str = Field(description="profile | commendation | contribution")
    owner_id: str | None = Field(description="Owner account id")
    owner_email: str | None = Field(description="Owner email")
    profile_id: str | None = Field(description="Parent profile for commendations and contributions")
    display_name: str = Field(description="Name shown to stewards and used as the audit target label")
    status: str = Field(description="Current status for the item's kind")
    submitted_at: datetime | None = Field(description="Last submission timestamp (UTC)")
    reviewed_at: datetime | None = Field(description="Last review timestamp (UTC)")
    reviewed_by_email: str | None = Field(description="Steward who last reviewed the item")
    steward_note: str | None = Field(description="Note left with a change request")
    rejection_reason: str | None = Field(description="Reason given with a rejection")
    created_at: datetime = Field(description="Creation timestamp (UTC)")
    updated_at: datetime = Field(description="Last update timestamp (UTC)")


class TransitionResponse(BaseModel):
    """Response schema for a review transition."""

    item: ReviewItemResponse = Field(description="The item after the transition")
    action_type: str = Field(description="Audit action type, e.g. profile.approved")
    from_status: str = Field(description="Status before the transition")
    to_status: str = Field(description="Status after the transition")


class ReviewQueueResponse(BaseModel):
    """One page of a steward review queue."""

    kind: str = Field(description="profile | commendation")
    status: str | None = Field(description="Status filter applied, null for every status")
    items: list[ReviewItemResponse] = Field(description="Items on this page, longest-waiting first")
    total: int = Field(description="Items matching the filter")
    counts: dict[str, int] = Field(description="Items per status across the whole queue")


class RequestChangesRequest(BaseModel):
    """Request body for sending a profile back to its owner."""

    note: str = Field(description="Steward note explaining the requested changes", min_length=1)


class RejectRequest(BaseModel):
    """Request body for rejecting a commendation or contribution."""

    reason: str | None = Field(default=None, description="Optional rejection reason shown to the owner")


# ---------------------------------------------------------------------------
# Audit log schemas
# ---------------------------------------------------------------------------


class AuditLogEntryResponse(BaseModel):
    """Response schema for one immutable audit log entry."""

    id: str = Field(description="Entry id")
    action_type: str = Field(description="Namespaced action type, e.g. steward.assigned")
    actor_id: str | None = Field(description="Actor account id")
    actor_email: str = Field(description="Actor email")
    scope_type: str = Field(description="profile | commendation | contribution | contact | system")
    target_id: str | None = Field(description="Affected entity id")
    target_label: str | None = Field(description="Human-readable label of the affected entity")
    details: dict[str, Any] = Field(description="Action-specific payload")
    created_at: datetime = Field(description="When the action happened (UTC)")


class AuditLogPageResponse(BaseModel):
    """One page of the audit log."""

    entries: list[AuditLogEntryResponse] = Field(description="Entries on this page")
    total: int = Field(description="Entries matching the filters")
    limit: int = Field(description="Page size")
    offset: int = Field(description="Page offset")


class RetentionRequest(BaseModel):
    """Request body for an audit log retention purge."""

    retention_days: int = Field(description="Delete entries older than this many days", ge=1)


class RetentionResponse(BaseModel):
    """Response schema for a retention purge."""

    deleted_count: int = Field(description="Entries deleted")
    new_total_rows: int = Field(description="Entries remaining, including the purge's own entry")
    retention_days: int = Field(description="Retention window applied")
    message: str = Field(description="Summary for the steward")


# ---------------------------------------------------------------------------
# Bulk action schemas
# ---------------------------------------------------------------------------


class BulkReviewRequest(BaseModel):
    """Request body for a bulk profile review."""

    profile_ids: list[str] = Field(description="Selected profile ids", min_length=1)
    decision: str = Field(description="approve | request_changes")
    note: str | None = Field(default=None, description="Steward note, required for request_changes")


class BulkDeactivateRequest(BaseModel):
    """Request body for a bulk steward deactivation."""

    assignment_ids: list[str] = Field(description="Selected assignment ids", min_length=1)
    note: str | None = Field(default=None, description="Optional note stored on each deactivated assignment")


class BulkSummaryResponse(BaseModel):
    """Final tally of a bulk action."""

    total: int = Field(description="Items selected")
    succeeded_count: int = Field(description="Items transitioned")
    failed_count: int = Field(description="Items that failed")
    failed_item_labels: list[str] = Field(description="Labels of failed items, for retry")
    failed_item_ids: list[str] = Field(description="Ids of failed items, for retry")
    errors: dict[str, str] = Field(description="Error message per failed item id")
    outcome: str = Field(description="succeeded | partial_failure | failed")
    message: str = Field(description="Summary for the steward")


class BulkJobResponse(BaseModel):
    """Progress of a bulk action job."""

    job_id: str = Field(description="Job id, poll GET /bulk-jobs/{job_id}")
    action: str = Field(description="profile_review | assignment_deactivate")
    decision: str = Field(description="Decision applied, empty for deactivation")
    status: str = Field(description="pending | running | completed | failed")
    total: int = Field(description="Items selected")
    completed: int = Field(description="Items finished so far")
    succeeded: int = Field(description="Items succeeded so far")
    failed: int = Field(description="Items failed so far")
    failed_item_labels: list[str] = Field(description="Labels of items failed so far")
    summary: BulkSummaryResponse | None = Field(default=None, description="Final tally once completed")
    error: str | None = Field(default=None, description="Job-level error if the job itself failed")
    created_at: datetime = Field(description="When the job was accepted (UTC)")
    finished_at: datetime | None = Field(default=None, description="When the job finished (UTC)")


# ---------------------------------------------------------------------------
# Steward assignment schemas
# ---------------------------------------------------------------------------


class AssignStewardRequest(BaseModel):
    """Request body for assigning a steward to a profile."""

    profile_id: str = Field(description="Profile to assign")
    steward_email: str = Field(description="Steward email", min_length=3, max_length=320)
    steward_name: str | None = Field(default=None, description="Optional steward display name")


class DeactivateAssignmentRequest(BaseModel):
    """Request body for deactivating an assignment."""

    note: str | None = Field(default=None, description="Optional deactivation note")


class StewardAssignmentResponse(BaseModel):
    """Response schema for a steward assignment."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Assignment id")
    profile_id: str = Field(description="Assigned profile")
    steward_email: str = Field(description="Steward email (lower case)")
    steward_name: str | None = Field(description="Steward display name")
    steward_user_id: str | None = Field(description="Steward account id, null while the invite is pending")
    status: str = Field(description="active | inactive")
    assigned_at: datetime = Field(description="When the assignment was created (UTC)")
    assigned_by_email: str | None = Field(description="Who created the assignment")
    invite_email_pending: bool = Field(description="True if the steward had no known account")
    deactivated_at: datetime | None = Field(description="When the assignment was deactivated (UTC)")
    deactivation_note: str | None = Field(description="Note given on deactivation")


class AssignmentPageResponse(BaseModel):
    """One page of steward assignments."""

    items: list[StewardAssignmentResponse] = Field(description="Assignments on this page")
    total: int = Field(description="Assignments matching the filters")
    active_total: int = Field(description="Active assignments overall")


class StewardWorkloadResponse(BaseModel):
    """One row of the steward workload leaderboard."""

    steward_email: str = Field(description="Steward email")
    steward_name: str | None = Field(description="Steward display name")
    active_count: int = Field(description="Active assignments")
    profiles_reviewed: int = Field(description="Profiles approved or sent back within the window")
    commendations_processed: int = Field(description="Commendations approved or rejected within the window")
    last_active: datetime | None = Field(description="Most recent review action within the window")


# ---------------------------------------------------------------------------
# Contact message schemas
# ---------------------------------------------------------------------------


class ContactStatusRequest(BaseModel):
    """Request body for triaging or closing a contact message."""

    status: str = Field(description="triaged | closed (triaged on a closed message reopens it)")
    steward_note: str | None = Field(default=None, description="Optional internal note")


class ContactMessageResponse(BaseModel):
    """Response schema for a contact message."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Message id")
    name: str = Field(description="Sender name")
    email: str = Field(description="Sender email")
    subject: str = Field(description="Subject line")
    message: str = Field(description="Message body")
    status: str = Field(description="new | triaged | closed")
    steward_note: str | None = Field(description="Internal steward note")
    assigned_to: str | None = Field(description="Steward handling the message")
    created_at: datetime = Field(description="When the message arrived (UTC)")


class ContactMessagePageResponse(BaseModel):
    """One page of the steward inbox."""

    items: list[ContactMessageResponse] = Field(description="Messages on this page, newest first")
    total: int = Field(description="Messages matching the filter")


# ---------------------------------------------------------------------------
# Safe reset schemas
# ---------------------------------------------------------------------------


class SafeResetRequest(BaseModel):
    """Request body for checking or executing a profile reset."""

    profile_id: str = Field(default="", description="Profile to reset")
    reset_mode: str = Field(default="soft", description="soft | hard")
    reason_code: str = Field(
        default="",
        description="testing_clean_slate | remove_duplicates | governance_update | requested_by_owner | other",
    )
    reason_note: str | None = Field(default=None, description="Required for reason_code=other, at most 240 chars")
    confirm_phrase: str = Field(default="", description="Must be exactly: RESET THIS PROFILE")


class ReadinessResponse(BaseModel):
    """Each reset precondition, checked independently."""

    profile_selected: bool = Field(description="A profile is given and exists")
    reason_valid: bool = Field(description="A known reason, with a note for 'other'")
    confirmation_valid: bool = Field(description="The confirmation phrase matches exactly")
    ready: bool = Field(description="All preconditions hold")
    missing: list[str] = Field(description="Names of unmet preconditions")


class ResetResultResponse(BaseModel):
    """What a reset did."""

    reset_id: str = Field(description="Reset history id")
    profile_id: str = Field(description="Reset profile")
    reset_mode: str = Field(description="soft | hard")
    reset_at: datetime = Field(description="When the reset ran (UTC)")
    counts: dict[str, int] = Field(description="Rows affected per content category")
    outcome: str = Field(description="succeeded | partial_failure")
    failed_step: str | None = Field(description="Step that failed, if any")
    error: str | None = Field(description="Error of the failed step, if any")
    message: str = Field(description="Summary for the steward")


class ResetHistoryResponse(BaseModel):
    """One past reset of a profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Reset id")
    profile_id: str = Field(description="Reset profile")
    reset_mode: str = Field(description="soft | hard")
    requested_by_email: str = Field(description="Global steward who ran the reset")
    reason_code: str = Field(description="Reason code")
    reason: str = Field(description="Human-readable reason")
    counts_json: dict[str, Any] = Field(description="Rows affected per content category")
    outcome: str = Field(description="succeeded | partial_failure")
    created_at: datetime = Field(description="When the reset ran (UTC)")


# ---------------------------------------------------------------------------
# Notification schemas
# ---------------------------------------------------------------------------


class NotificationFailureResponse(BaseModel):
    """A notification delivery that failed."""

    model_config = ConfigDict(from_attributes=True)

    kind: str = Field(description="Notification kind, e.g. profile_approved")
    recipient_email: str | None = Field(description="Intended recipient")
    error: str = Field(description="Delivery error")
    failed_at: datetime = Field(description="When delivery failed (UTC)")
