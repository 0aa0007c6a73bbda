"""SQLAlchemy ORM models for the stewardship engine.

Models:
- ReviewableItem      — profiles, commendations and contributions in one table (kind discriminator)
- AuditLogEntry       — IMMUTABLE append-only audit log
- StewardAssignment   — steward ↔ profile responsibility with active/inactive lifecycle
- ResetHistoryEntry   — one append-only row per executed safe reset
- Milestone           — dated journey milestones attached to a profile
- StorageCleanupTask  — storage files queued by hard reset for later manual deletion
- ContactMessage      — steward inbox messages triaged through the state machine

IMPORTANT: AuditLogEntry and ResetHistoryEntry are written only through their
repositories' append methods. There is no code path that updates them.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from swor_stewardship.database import Base, JSONType, StewardshipModel, new_id, utcnow


class ReviewableItem(StewardshipModel):
    """A profile, commendation or contribution subject to review.

    Status changes only through ReviewService, which checks every change against
    the transition table in core/state_machine.py. The `status` value is always a
    member of the status enum for the row's `kind`.

    Contributions are the "archive items" of a profile (photos, documents,
    links); `storage_path` points at the uploaded file, if any.

    Attributes:
        kind: profile | commendation | contribution.
        owner_id: User id of the submitting owner.
        owner_email: Email of the submitting owner (notification recipient).
        profile_id: Profile a commendation or contribution attaches to. NULL for profiles.
        display_name: Human-readable summary used as the audit target label.
        status: Kind-specific status.
        content: Free-form content payload.
        storage_path: Storage object key of an uploaded file (contributions only).
        submitted_at: When the item last entered submitted_for_review.
        reviewed_at: When a steward last approved, rejected or requested changes.
        reviewed_by_id: User id of that steward.
        reviewed_by_email: Email of that steward.
        steward_note: Feedback left with a request for changes.
        rejection_reason: Optional reason recorded with a rejection.
    """

    __tablename__ = "reviewable_items"

    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Entity kind: profile | commendation | contribution",
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="User id of the submitting owner",
    )
    owner_email: Mapped[str | None] = mapped_column(
        String(320),
        nullable=True,
        comment="Email of the submitting owner",
    )
    profile_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("reviewable_items.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Owning profile for commendations and contributions",
    )
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        comment="Human-readable item summary used as audit target label",
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="Kind-specific status, see core/state_machine.py",
    )
    content: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Free-form content payload",
    )
    storage_path: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        comment="Storage object key of an uploaded file (contributions only)",
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    steward_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class AuditLogEntry(Base):
    """Immutable audit log entry.

    This table has NO UPDATE operations. Entries are removed only by the
    retention purge, which is itself audited. If a correction is needed, write
    a new compensating entry referencing the original entry id in details_json.

    Attributes:
        action_type: Namespaced action, e.g. profile.approved.
        actor_id: User id of the actor (NULL for system actions).
        actor_email: Email of the actor.
        scope_type: profile | commendation | contribution | contact | system.
        target_id: Id of the affected entity, if any.
        target_label: Human-readable label of the affected entity.
        details_json: Action-specific payload.
        created_at: Immutable event timestamp (UTC).
    """

    __tablename__ = "audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    action_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Namespaced action type, e.g. profile.approved",
    )
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    actor_email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        index=True,
        comment="Email of the actor; unknown@system for system actions",
    )
    scope_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="profile | commendation | contribution | contact | system",
    )
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    target_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details_json: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Structured action-specific payload",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
        comment="Immutable event timestamp (UTC) — set at insert time, never modified",
    )


class StewardAssignment(StewardshipModel):
    """A steward's responsibility for one profile.

    At most one ACTIVE row may exist per (profile_id, steward_email). This is
    checked by StewardAssignmentService (ConflictError) and enforced by the
    partial unique index below. Deactivated rows are never reactivated; a new
    assignment inserts a new row.

    Attributes:
        profile_id: The assigned profile.
        steward_email: Normalized (lower-case) steward email.
        steward_name: Optional display name.
        steward_user_id: Known account id, NULL while the invite is pending.
        status: active | inactive.
        assigned_at: When the assignment was created.
        assigned_by_id / assigned_by_email: Who created it.
        invite_email_pending: True if the steward had no known account.
        deactivated_at / deactivation_note: Set on deactivation.
    """

    __tablename__ = "steward_assignments"
    __table_args__ = (
        Index(
            "uq_steward_assignments_active_pair",
            "profile_id",
            "steward_email",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    profile_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reviewable_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    steward_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    steward_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    steward_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        index=True,
        comment="active | inactive",
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    assigned_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    invite_email_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deactivation_note: Mapped[str | None] = mapped_column(Text, nullable=True)


class ResetHistoryEntry(Base):
    """Append-only record of one executed safe reset.

    Attributes:
        profile_id: The reset profile. Not a foreign key: history outlives content.
        reset_mode: soft | hard.
        requested_by_id / requested_by_email: The steward who ran the reset.
        reason_code: Closed-set reason code.
        reason_note: Free-text note (required for reason_code=other, ≤240 chars).
        reason: Human-readable reason label.
        counts_json: Rows affected per content category.
        outcome: succeeded | partial_failure.
        created_at: When the reset ran.
    """

    __tablename__ = "reset_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    reset_mode: Mapped[str] = mapped_column(String(10), nullable=False, comment="soft | hard")
    requested_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requested_by_email: Mapped[str] = mapped_column(String(320), nullable=False)
    reason_code: Mapped[str] = mapped_column(String(40), nullable=False)
    reason_note: Mapped[str | None] = mapped_column(String(240), nullable=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    counts_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="succeeded")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )


class Milestone(StewardshipModel):
    """A dated milestone on a profile's journey timeline."""

    __tablename__ = "milestones"

    profile_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("reviewable_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class StorageCleanupTask(StewardshipModel):
    """A storage object queued by hard reset for separate, manual deletion.

    Files are never deleted synchronously by a reset; an operator works this
    queue later.
    """

    __tablename__ = "storage_cleanup_queue"

    profile_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    source_item_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reset_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", comment="pending | done")


class ContactMessage(StewardshipModel):
    """A message sent through the public contact form, triaged by stewards."""

    __tablename__ = "contact_messages"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new", index=True)
    steward_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(320), nullable=True)
