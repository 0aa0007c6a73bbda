"""SafeResetService — guarded reset of one profile's content.

Soft reset returns the profile to draft with its content and review metadata
cleared, and archives its contributions and commendations. Milestones and
storage are left alone.

Hard reset clears the profile the same way, queues the storage objects of its
contributions for manual cleanup, then deletes its contributions,
commendations and milestones.

Each cascade step runs in its own savepoint. A failing step is rolled back on
its own, the remaining steps are skipped, and the result reports
partial_failure with the counts that were applied. Either way one reset
history row and one profile.reset_executed audit entry are written.

Never touched: accounts, roles, steward assignments, the audit log and the
reset history itself.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from swor_stewardship.auth import ActorContext
from swor_stewardship.core.domain import ScopeType
from swor_stewardship.core.interfaces import IResetRepository, IReviewItemRepository
from swor_stewardship.core.models import ResetHistoryEntry, ReviewableItem
from swor_stewardship.core.services import AuditService
from swor_stewardship.core.state_machine import (
    CommendationStatus,
    ContributionStatus,
    ItemKind,
    Verb,
    resolve_transition,
)
from swor_stewardship.database import new_id, utcnow
from swor_stewardship.errors import ForbiddenError, NotFoundError, Outcome, ValidationError
from swor_stewardship.observability import get_logger
from swor_stewardship.safe_reset.preconditions import Readiness, ResetMode, ResetRequest, evaluate

logger = get_logger(__name__)

# Columns cleared on the profile row by both modes
_CLEARED_PROFILE_VALUES: dict[str, Any] = {
    "submitted_at": None,
    "reviewed_at": None,
    "reviewed_by_id": None,
    "reviewed_by_email": None,
    "steward_note": None,
    "rejection_reason": None,
}


@dataclass
class ResetResult:
    """What a reset did.

    Attributes:
        reset_id: Id of the reset history row.
        profile_id: The reset profile.
        reset_mode: soft | hard.
        reset_at: When the reset ran.
        counts: Rows affected per content category.
        outcome: succeeded | partial_failure.
        failed_step: Name of the step that failed, if any.
        error: Error message of the failed step, if any.
    """

    reset_id: str
    profile_id: str
    reset_mode: str
    reset_at: datetime
    counts: dict[str, int]
    outcome: Outcome = Outcome.SUCCEEDED
    failed_step: str | None = None
    error: str | None = None

    @property
    def message(self) -> str:
        if self.failed_step is None:
            return f"Profile reset ({self.reset_mode}) complete."
        return f"Profile reset ({self.reset_mode}) stopped at step '{self.failed_step}': {self.error}"


def _initial_counts(mode: ResetMode) -> dict[str, int]:
    counts = {
        "archive_items_affected": 0,
        "commendations_affected": 0,
        "milestones_affected": 0,
    }
    if mode is ResetMode.HARD:
        counts["cleanup_queue_count"] = 0
    return counts


class SafeResetService:
    """Readiness checks, execution and history of profile resets.

    Args:
        reset_repo: Repository implementing IResetRepository.
        item_repo: Repository used to load the profile.
        audit_service: AuditService for the reset audit entry.
    """

    def __init__(
        self,
        reset_repo: IResetRepository,
        item_repo: IReviewItemRepository,
        audit_service: AuditService,
    ) -> None:
        self._reset_repo = reset_repo
        self._item_repo = item_repo
        self._audit = audit_service

    async def _find_profile(self, profile_id: str) -> ReviewableItem | None:
        if not (profile_id or "").strip():
            return None
        try:
            item = await self._item_repo.get_by_id(profile_id)
        except NotFoundError:
            return None
        return item if item.kind == ItemKind.PROFILE else None

    async def check_readiness(self, request: ResetRequest) -> Readiness:
        """Evaluate each precondition without changing anything."""
        profile = await self._find_profile(request.profile_id)
        return evaluate(request, profile_exists=profile is not None)

    async def execute(self, request: ResetRequest, actor: ActorContext) -> ResetResult:
        """Run a reset.

        Args:
            request: The reset request, including the typed confirmation phrase.
            actor: The global steward running the reset.

        Returns:
            ResetResult. outcome is partial_failure if a cascade step failed.

        Raises:
            ForbiddenError: If the actor is not a global steward.
            ValidationError: If any precondition is unmet; nothing has changed.
        """
        if not actor.is_global_steward:
            raise ForbiddenError("Only global stewards may reset a profile")

        profile = await self._find_profile(request.profile_id)
        readiness = evaluate(request, profile_exists=profile is not None)
        if not readiness.ready or profile is None:
            raise ValidationError(
                message=f"Reset preconditions not met: {', '.join(readiness.missing)}",
                missing=readiness.missing,
            )

        mode = ResetMode(request.reset_mode)
        profile_label = profile.display_name or profile.id
        result = ResetResult(
            reset_id=new_id(),
            profile_id=profile.id,
            reset_mode=mode.value,
            reset_at=utcnow(),
            counts=_initial_counts(mode),
        )
        logger.info(
            "Profile reset started",
            reset_id=result.reset_id,
            profile_id=profile.id,
            reset_mode=mode.value,
            reason_code=request.reason_code,
            actor_email=actor.actor_email,
        )

        for name, step in self._plan(mode, profile, result):
            try:
                async with self._reset_repo.savepoint():
                    await step()
            except Exception as exc:
                result.outcome = Outcome.PARTIAL_FAILURE
                result.failed_step = name
                result.error = str(exc)
                logger.exception("Profile reset step failed", reset_id=result.reset_id, step=name)
                break

        await self._reset_repo.append_history(
            ResetHistoryEntry(
                id=result.reset_id,
                profile_id=result.profile_id,
                reset_mode=mode.value,
                requested_by_id=actor.actor_id,
                requested_by_email=actor.actor_email,
                reason_code=request.reason_code,
                reason_note=request.cleaned_note,
                reason=request.reason_text,
                counts_json=dict(result.counts),
                outcome=result.outcome.value,
                created_at=result.reset_at,
            )
        )
        await self._audit.record(
            action_type="profile.reset_executed",
            actor=actor,
            scope_type=ScopeType.PROFILE,
            target_id=result.profile_id,
            target_label=profile_label,
            details={
                "resetId": result.reset_id,
                "resetMode": mode.value,
                "reasonCode": request.reason_code,
                "reason": request.reason_text,
                "counts": dict(result.counts),
                "outcome": result.outcome.value,
                "failedStep": result.failed_step,
            },
        )

        logger.info(
            "Profile reset finished",
            reset_id=result.reset_id,
            profile_id=result.profile_id,
            outcome=result.outcome.value,
            failed_step=result.failed_step,
            **result.counts,
        )
        return result

    async def reset_history(self, profile_id: str) -> list[ResetHistoryEntry]:
        """Past resets of a profile, newest first."""
        return await self._reset_repo.list_history(profile_id)

    def _plan(
        self,
        mode: ResetMode,
        profile: ReviewableItem,
        result: ResetResult,
    ) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        """Build the ordered cascade steps for a mode. Steps write their counts into result."""
        repo = self._reset_repo
        counts = result.counts

        async def clear_profile() -> None:
            transition = resolve_transition(ItemKind.PROFILE, Verb.RESET, profile.status, item_id=profile.id)
            values = _CLEARED_PROFILE_VALUES | {"status": transition.to_status, "content": {}}
            await repo.clear_profile(profile, values)

        async def archive_contributions() -> None:
            counts["archive_items_affected"] = await repo.archive_children(
                profile.id, ItemKind.CONTRIBUTION, ContributionStatus.ARCHIVED
            )

        async def archive_commendations() -> None:
            counts["commendations_affected"] = await repo.archive_children(
                profile.id, ItemKind.COMMENDATION, CommendationStatus.ARCHIVED
            )

        async def queue_storage_cleanup() -> None:
            paths = await repo.storage_paths(profile.id)
            counts["cleanup_queue_count"] = await repo.enqueue_cleanup(profile.id, result.reset_id, paths)

        async def delete_contributions() -> None:
            counts["archive_items_affected"] = await repo.delete_children(profile.id, ItemKind.CONTRIBUTION)

        async def delete_commendations() -> None:
            counts["commendations_affected"] = await repo.delete_children(profile.id, ItemKind.COMMENDATION)

        async def delete_milestones() -> None:
            counts["milestones_affected"] = await repo.delete_milestones(profile.id)

        if mode is ResetMode.SOFT:
            return [
                ("profile", clear_profile),
                ("contributions", archive_contributions),
                ("commendations", archive_commendations),
            ]
        return [
            ("profile", clear_profile),
            ("storage_cleanup", queue_storage_cleanup),
            ("contributions", delete_contributions),
            ("commendations", delete_commendations),
            ("milestones", delete_milestones),
        ]
