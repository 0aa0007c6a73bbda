"""Safe reset request model and precondition checks.

A reset may run only when three preconditions hold, each checked on its own
so the caller can show exactly what is missing:

1. profile_selected    — a profile id is given and the profile exists
2. reason_valid        — a known reason code; "other" needs a 1-240 char note
3. confirmation_valid  — the typed phrase equals CONFIRM_PHRASE exactly

The confirmation phrase travels with each request and is never stored.
"""

from dataclasses import dataclass, field
from enum import StrEnum

CONFIRM_PHRASE = "RESET THIS PROFILE"
MAX_REASON_NOTE = 240


class ResetMode(StrEnum):
    SOFT = "soft"
    HARD = "hard"


class ResetReason(StrEnum):
    """Closed set of reasons a global steward may give for a reset."""

    TESTING_CLEAN_SLATE = "testing_clean_slate"
    REMOVE_DUPLICATES = "remove_duplicates"
    GOVERNANCE_UPDATE = "governance_update"
    REQUESTED_BY_OWNER = "requested_by_owner"
    OTHER = "other"


REASON_LABELS: dict[ResetReason, str] = {
    ResetReason.TESTING_CLEAN_SLATE: "Testing clean slate",
    ResetReason.REMOVE_DUPLICATES: "Remove old duplicate uploads",
    ResetReason.GOVERNANCE_UPDATE: "Rebuild after governance update",
    ResetReason.REQUESTED_BY_OWNER: "Requested by profile owner",
    ResetReason.OTHER: "Other",
}


@dataclass(frozen=True)
class ResetRequest:
    """A global steward's request to reset one profile.

    Attributes:
        profile_id: The profile to reset.
        reset_mode: soft | hard.
        reason_code: One of ResetReason.
        confirm_phrase: The phrase as typed by the steward.
        reason_note: Free-text note, required for reason_code=other.
    """

    profile_id: str
    reset_mode: str
    reason_code: str
    confirm_phrase: str
    reason_note: str | None = None

    @property
    def cleaned_note(self) -> str | None:
        return (self.reason_note or "").strip() or None

    @property
    def reason_text(self) -> str:
        """Human-readable reason stored in history: the note for "other", else the label."""
        if self.reason_code == ResetReason.OTHER:
            return self.cleaned_note or ""
        try:
            return REASON_LABELS[ResetReason(self.reason_code)]
        except ValueError:
            return self.reason_code


@dataclass
class Readiness:
    """Result of checking each precondition independently."""

    profile_selected: bool
    reason_valid: bool
    confirmation_valid: bool
    mode_valid: bool = True
    missing: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.missing


def is_reason_valid(reason_code: str | None, reason_note: str | None) -> bool:
    """A known code, and for "other" a note of 1 to MAX_REASON_NOTE characters."""
    try:
        reason = ResetReason(reason_code or "")
    except ValueError:
        return False
    if reason is ResetReason.OTHER:
        note = (reason_note or "").strip()
        return 0 < len(note) <= MAX_REASON_NOTE
    return True


def is_confirmation_valid(confirm_phrase: str | None) -> bool:
    # Exact match: no trimming, no case folding
    return confirm_phrase == CONFIRM_PHRASE


def is_mode_valid(reset_mode: str | None) -> bool:
    return reset_mode in tuple(ResetMode)


def evaluate(request: ResetRequest, profile_exists: bool) -> Readiness:
    """Evaluate every precondition of a request.

    Args:
        request: The reset request.
        profile_exists: Whether request.profile_id names an existing profile.

    Returns:
        Readiness with one flag per precondition and the names of the unmet ones.
    """
    profile_selected = bool((request.profile_id or "").strip()) and profile_exists
    reason_valid = is_reason_valid(request.reason_code, request.reason_note)
    confirmation_valid = is_confirmation_valid(request.confirm_phrase)
    mode_valid = is_mode_valid(request.reset_mode)

    missing = [
        name
        for name, ok in (
            ("profile_selected", profile_selected),
            ("reason_valid", reason_valid),
            ("confirmation_valid", confirmation_valid),
            ("reset_mode", mode_valid),
        )
        if not ok
    ]
    return Readiness(
        profile_selected=profile_selected,
        reason_valid=reason_valid,
        confirmation_valid=confirmation_valid,
        mode_valid=mode_valid,
        missing=missing,
    )
