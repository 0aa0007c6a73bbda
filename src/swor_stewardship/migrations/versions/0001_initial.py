"""Initial stewardship schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "reviewable_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column("owner_email", sa.String(320), nullable=True),
        sa.Column(
            "profile_id",
            sa.String(36),
            sa.ForeignKey("reviewable_items.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("display_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("content", _JSON, nullable=False),
        sa.Column("storage_path", sa.String(1024), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_id", sa.String(64), nullable=True),
        sa.Column("reviewed_by_email", sa.String(320), nullable=True),
        sa.Column("steward_note", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_reviewable_items_kind", "reviewable_items", ["kind"])
    op.create_index("ix_reviewable_items_owner_id", "reviewable_items", ["owner_id"])
    op.create_index("ix_reviewable_items_profile_id", "reviewable_items", ["profile_id"])
    op.create_index("ix_reviewable_items_status", "reviewable_items", ["status"])
    op.create_index("ix_reviewable_items_created_at", "reviewable_items", ["created_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("action_type", sa.String(100), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("actor_email", sa.String(320), nullable=False),
        sa.Column("scope_type", sa.String(30), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("target_label", sa.String(255), nullable=True),
        sa.Column("details_json", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    for column in ("action_type", "actor_id", "actor_email", "scope_type", "target_id", "created_at"):
        op.create_index(f"ix_audit_log_{column}", "audit_log", [column])

    op.create_table(
        "steward_assignments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "profile_id",
            sa.String(36),
            sa.ForeignKey("reviewable_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("steward_email", sa.String(320), nullable=False),
        sa.Column("steward_name", sa.String(255), nullable=True),
        sa.Column("steward_user_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by_id", sa.String(64), nullable=True),
        sa.Column("assigned_by_email", sa.String(320), nullable=True),
        sa.Column("invite_email_pending", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivation_note", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_steward_assignments_profile_id", "steward_assignments", ["profile_id"])
    op.create_index("ix_steward_assignments_steward_email", "steward_assignments", ["steward_email"])
    op.create_index("ix_steward_assignments_status", "steward_assignments", ["status"])
    op.create_index("ix_steward_assignments_created_at", "steward_assignments", ["created_at"])
    op.create_index(
        "uq_steward_assignments_active_pair",
        "steward_assignments",
        ["profile_id", "steward_email"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "reset_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("profile_id", sa.String(36), nullable=False),
        sa.Column("reset_mode", sa.String(10), nullable=False),
        sa.Column("requested_by_id", sa.String(64), nullable=True),
        sa.Column("requested_by_email", sa.String(320), nullable=False),
        sa.Column("reason_code", sa.String(40), nullable=False),
        sa.Column("reason_note", sa.String(240), nullable=True),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("counts_json", _JSON, nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False, server_default="succeeded"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_reset_history_profile_id", "reset_history", ["profile_id"])
    op.create_index("ix_reset_history_created_at", "reset_history", ["created_at"])

    op.create_table(
        "milestones",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "profile_id",
            sa.String(36),
            sa.ForeignKey("reviewable_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_milestones_profile_id", "milestones", ["profile_id"])
    op.create_index("ix_milestones_created_at", "milestones", ["created_at"])

    op.create_table(
        "storage_cleanup_queue",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("profile_id", sa.String(36), nullable=False),
        sa.Column("storage_path", sa.String(1024), nullable=False),
        sa.Column("source_item_id", sa.String(36), nullable=True),
        sa.Column("reset_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("ix_storage_cleanup_queue_profile_id", "storage_cleanup_queue", ["profile_id"])
    op.create_index("ix_storage_cleanup_queue_reset_id", "storage_cleanup_queue", ["reset_id"])
    op.create_index("ix_storage_cleanup_queue_created_at", "storage_cleanup_queue", ["created_at"])

    op.create_table(
        "contact_messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False, server_default=""),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("steward_note", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.String(320), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_contact_messages_status", "contact_messages", ["status"])
    op.create_index("ix_contact_messages_created_at", "contact_messages", ["created_at"])


def downgrade() -> None:
    op.drop_table("contact_messages")
    op.drop_table("storage_cleanup_queue")
    op.drop_table("milestones")
    op.drop_table("reset_history")
    op.drop_index("uq_steward_assignments_active_pair", table_name="steward_assignments")
    op.drop_table("steward_assignments")
    op.drop_table("audit_log")
    op.drop_table("reviewable_items")
