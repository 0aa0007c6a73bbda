"""Safe reset — guarded soft or hard reset of one profile's content.

A reset runs only when a profile is selected, a reason is given and the
confirmation phrase is typed exactly. Every run leaves a reset history row and
an audit entry behind.
"""

from swor_stewardship.safe_reset.preconditions import (
    CONFIRM_PHRASE,
    Readiness,
    ResetMode,
    ResetReason,
    ResetRequest,
)
from swor_stewardship.safe_reset.service import ResetResult, SafeResetService

__all__ = [
    "CONFIRM_PHRASE",
    "Readiness",
    "ResetMode",
    "ResetReason",
    "ResetRequest",
    "ResetResult",
    "SafeResetService",
]
