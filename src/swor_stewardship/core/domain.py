"""Plain value objects passed between services, adapters and the API layer.

These are not persisted; they describe queries and results:
- AuditQuery           — filter/sort/pagination for the audit log
- AuditPage            — one page of audit entries with the total match count
- NotificationPayload  — opaque message handed to the notification sender
- TransitionResult     — outcome of a single review transition
- ActivitySummary      — per-steward review activity in a time window
- StewardWorkload      — one row of the workload leaderboard
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from enum import StrEnum
from typing import Any

from swor_stewardship.core.models import AuditLogEntry, ReviewableItem
from swor_stewardship.core.state_machine import Transition
from swor_stewardship.errors import ValidationError


class ScopeType(StrEnum):
    """Audit scope of an action."""

    PROFILE = "profile"
    COMMENDATION = "commendation"
    CONTRIBUTION = "contribution"
    CONTACT = "contact"
    SYSTEM = "system"


# Accepted sort keys, including the aliases used by the steward console
_SORT_ALIASES: dict[str, str] = {
    "created_at": "created_at",
    "timestamp": "created_at",
    "action_type": "action_type",
    "event_type": "action_type",
    "actor_email": "actor_email",
    "actor": "actor_email",
}

ALL = "all"


@dataclass(frozen=True)
class AuditQuery:
    """Filters for reading the audit log.

    `action_type` and `scope_type` accept "all" (or None) to disable the
    filter. `search` matches actor email or target label, case-insensitively.
    `date_from` and `date_to` are inclusive calendar days in UTC.
    """

    action_type: str | None = None
    scope_type: str | None = None
    search: str | None = None
    actor_email: str | None = None
    target_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    limit: int = 50
    offset: int = 0
    sort_by: str = "created_at"
    sort_direction: str = "desc"

    def __post_init__(self) -> None:
        if self.sort_by not in _SORT_ALIASES:
            raise ValidationError(
                message=f"Unsupported sort key '{self.sort_by}'",
                field="sort_by",
            )
        if self.sort_direction not in ("asc", "desc"):
            raise ValidationError(message="sort_direction must be 'asc' or 'desc'", field="sort_direction")
        if self.limit < 1:
            raise ValidationError(message="limit must be at least 1", field="limit")
        if self.offset < 0:
            raise ValidationError(message="offset must not be negative", field="offset")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValidationError(message="date_from must not be after date_to", field="date_from")

    @property
    def sort_column(self) -> str:
        """Canonical column name for sort_by."""
        return _SORT_ALIASES[self.sort_by]

    @property
    def action_type_filter(self) -> str | None:
        return None if not self.action_type or self.action_type == ALL else self.action_type

    @property
    def scope_type_filter(self) -> str | None:
        return None if not self.scope_type or self.scope_type == ALL else self.scope_type

    @property
    def search_term(self) -> str | None:
        term = (self.search or "").strip()
        return term or None

    @property
    def created_from(self) -> datetime | None:
        """Start of date_from (inclusive)."""
        if self.date_from is None:
            return None
        return datetime.combine(self.date_from, time.min, tzinfo=UTC)

    @property
    def created_before(self) -> datetime | None:
        """Start of the day after date_to (exclusive)."""
        if self.date_to is None:
            return None
        return datetime.combine(self.date_to + timedelta(days=1), time.min, tzinfo=UTC)

    def filters_applied(self) -> dict[str, str]:
        """Active filters, keyed the way export audit entries record them."""
        applied: dict[str, str] = {}
        if self.action_type_filter:
            applied["action_type"] = self.action_type_filter
        if self.scope_type_filter:
            applied["scope_type"] = self.scope_type_filter
        if self.date_from:
            applied["date_from"] = self.date_from.isoformat()
        if self.date_to:
            applied["date_to"] = self.date_to.isoformat()
        if self.search_term:
            applied["search"] = self.search_term
        if self.actor_email:
            applied["actor_email"] = self.actor_email
        if self.target_id:
            applied["target_id"] = self.target_id
        return applied


@dataclass
class AuditPage:
    """A page of audit entries and the number of entries matching the filters."""

    entries: list[AuditLogEntry]
    total: int


@dataclass(frozen=True)
class NotificationPayload:
    """A notification for the external sender.

    Attributes:
        kind: Template key, e.g. profile_approved.
        recipient_email: Where to deliver, if known.
        recipient_user_id: Recipient account id, if known.
        variables: Template variables.
    """

    kind: str
    recipient_email: str | None
    recipient_user_id: str | None
    variables: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "recipient_email": self.recipient_email,
            "recipient_user_id": self.recipient_user_id,
            "variables": self.variables,
        }


@dataclass
class TransitionResult:
    """A committed-to-session transition and the notification it calls for."""

    item: ReviewableItem
    transition: Transition
    notification: NotificationPayload | None = None


@dataclass
class ActivitySummary:
    """Review activity of one steward within a window."""

    profiles_reviewed: int = 0
    commendations_processed: int = 0
    last_active: datetime | None = None


@dataclass
class StewardWorkload:
    """One leaderboard row: active assignments and recent activity."""

    steward_email: str
    steward_name: str | None
    active_count: int
    activity: ActivitySummary = field(default_factory=ActivitySummary)
