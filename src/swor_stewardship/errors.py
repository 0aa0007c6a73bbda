"""Error taxonomy for the stewardship engine.

Every error raised by the service layer derives from StewardshipError and
carries a stable machine-readable `code` plus the HTTP status the API layer
maps it to. Routes never build error responses themselves — the handler
registered in main.py does it from these attributes.

Errors:
- ValidationError     — malformed or missing required input
- InvalidTransition   — current status does not permit the requested verb
- NotFoundError       — referenced item/assignment does not exist
- ConflictError       — duplicate active steward assignment
- ForbiddenError      — actor may not perform the operation on this item

Partial failures of bulk and cascading operations are not exceptions: they are
reported as Outcome.PARTIAL_FAILURE on the returned result so the work that did
succeed is committed and visible to the caller.
"""

from enum import StrEnum
from typing import Any


class Outcome(StrEnum):
    """Overall outcome of a bulk or cascading operation."""

    SUCCEEDED = "succeeded"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


class StewardshipError(Exception):
    """Base class for all domain errors.

    Attributes:
        message: Human-readable error description.
        code: Stable machine-readable error code.
        status_code: HTTP status the API layer responds with.
    """

    code: str = "stewardship_error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        """Initialize StewardshipError.

        Args:
            message: Error description.
        """
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for an API response body."""
        return {"error": self.code, "detail": self.message}


class ValidationError(StewardshipError):
    """Raised when required input is missing or malformed.

    Attributes:
        field: The offending input field, if a single one.
        missing: Names of every unmet precondition, for multi-field checks.
    """

    code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str,
        field: str | None = None,
        missing: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.missing = missing or ([field] if field else [])

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        if self.missing:
            body["missing"] = self.missing
        return body


class InvalidTransition(StewardshipError):
    """Raised when an item's current status does not permit a verb.

    Attributes:
        kind: Entity kind of the item.
        verb: The requested transition verb.
        current_status: The status the item held when the call was made.
    """

    code = "invalid_transition"
    status_code = 409

    def __init__(self, kind: str, verb: str, current_status: str, item_id: str | None = None) -> None:
        target = f" {item_id}" if item_id else ""
        super().__init__(f"Cannot {verb} {kind}{target} in status '{current_status}'")
        self.kind = kind
        self.verb = verb
        self.current_status = current_status
        self.item_id = item_id

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update({"kind": self.kind, "verb": self.verb, "current_status": self.current_status})
        return body


class NotFoundError(StewardshipError):
    """Raised when a referenced resource does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} '{resource_id}' not found")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(StewardshipError):
    """Raised when an operation would duplicate a unique active record."""

    code = "conflict"
    status_code = 409


class ForbiddenError(StewardshipError):
    """Raised when the actor may not perform the operation."""

    code = "forbidden"
    status_code = 403
