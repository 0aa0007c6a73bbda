"""Bulk action processors: bulk profile review and bulk steward deactivation.

Both processors share one contract:
- the selection is de-duplicated, blanks dropped; an empty selection is a no-op
  (no audit entry, summary with total 0)
- items run through bulk.fanout.run_in_batches, batch size from settings
- each item is its own unit of work (own session, own commit), so a failure
  rolls back only that item and is folded into the summary
- notification delivery happens after the item commits and may fail freely
- one summary audit entry is written after all batches, even when every item failed
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swor_stewardship.adapters.audit_log import AuditLogRepository
from swor_stewardship.adapters.repositories import ReviewItemRepository, StewardAssignmentRepository
from swor_stewardship.auth import ActorContext
from swor_stewardship.bulk.fanout import ItemOutcome, run_in_batches, unique_ids
from swor_stewardship.bulk.jobs import BulkJob
from swor_stewardship.core.domain import ScopeType
from swor_stewardship.core.services import (
    AuditService,
    NotificationDispatcher,
    ReviewService,
    StewardAssignmentService,
)
from swor_stewardship.core.state_machine import ItemKind
from swor_stewardship.database import session_scope
from swor_stewardship.errors import Outcome, ValidationError
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)


class BulkDecision(StrEnum):
    """Decisions a bulk profile review can apply."""

    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"


@dataclass
class BulkSummary:
    """What a bulk run did, by name, so a steward can retry only the failures.

    Attributes:
        total: Items selected.
        succeeded_count: Items transitioned.
        failed_count: Items that failed.
        failed_item_labels: Display labels of the failed items, in selection order.
        failed_item_ids: Ids of the failed items, in selection order.
        errors: Error message per failed item id.
    """

    total: int
    succeeded_count: int
    failed_count: int
    failed_item_labels: list[str] = field(default_factory=list)
    failed_item_ids: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def outcome(self) -> Outcome:
        if self.failed_count == 0:
            return Outcome.SUCCEEDED
        if self.succeeded_count == 0:
            return Outcome.FAILED
        return Outcome.PARTIAL_FAILURE

    @property
    def message(self) -> str:
        if self.failed_count == 0:
            return f"Succeeded {self.succeeded_count} of {self.total}."
        return (
            f"Succeeded {self.succeeded_count} of {self.total}, "
            f"failed: {', '.join(self.failed_item_labels)}"
        )


class _BatchedProcessor:
    """Shared fan-out, progress and summary machinery.

    Args:
        session_factory: Opens one session per item.
        batch_size: Items processed concurrently per batch.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], batch_size: int = 5) -> None:
        self._session_factory = session_factory
        self._batch_size = batch_size

    @staticmethod
    def _selection(raw_ids: list[str], job: BulkJob | None) -> list[str]:
        ids = unique_ids(raw_ids)
        if job is not None:
            # The job tallies progress against the items actually processed
            job.target_ids = ids
        return ids

    async def _execute(
        self,
        ids: list[str],
        labels: dict[str, str],
        worker: Callable[[str], Awaitable[Any]],
        job: BulkJob | None,
    ) -> BulkSummary:
        async def on_batch_done(batch: list[ItemOutcome[str, Any]]) -> None:
            failed = [outcome for outcome in batch if not outcome.ok]
            for outcome in failed:
                logger.warning(
                    "Bulk item failed",
                    item_id=outcome.item,
                    error=str(outcome.error),
                    error_type=type(outcome.error).__name__,
                )
            if job is not None:
                job.record_batch(
                    succeeded=len(batch) - len(failed),
                    failed_labels=[labels.get(outcome.item, outcome.item) for outcome in failed],
                )

        if job is not None:
            job.mark_running()
        outcomes = await run_in_batches(ids, worker, batch_size=self._batch_size, on_batch_done=on_batch_done)

        failed = [outcome for outcome in outcomes if not outcome.ok]
        return BulkSummary(
            total=len(ids),
            succeeded_count=len(outcomes) - len(failed),
            failed_count=len(failed),
            failed_item_labels=[labels.get(outcome.item, outcome.item) for outcome in failed],
            failed_item_ids=[outcome.item for outcome in failed],
            errors={outcome.item: str(outcome.error) for outcome in failed},
        )

    async def _record_summary(
        self,
        action_type: str,
        actor: ActorContext,
        target_label: str,
        details: dict[str, Any],
    ) -> None:
        async with session_scope(self._session_factory) as session:
            await AuditService(AuditLogRepository(session)).record(
                action_type=action_type,
                actor=actor,
                scope_type=ScopeType.SYSTEM,
                target_label=target_label,
                details=details,
            )


class BulkReviewProcessor(_BatchedProcessor):
    """Applies one review decision to many profiles.

    Args:
        session_factory: Opens one session per item.
        dispatcher: Notification side channel.
        batch_size: Items processed concurrently per batch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: NotificationDispatcher,
        batch_size: int = 5,
    ) -> None:
        super().__init__(session_factory, batch_size)
        self._dispatcher = dispatcher

    @staticmethod
    def validate(decision: str, note: str | None) -> tuple[BulkDecision, str | None]:
        """Validate the decision and note before any item is touched.

        Raises:
            ValidationError: On an unknown decision, or request_changes without a note.
        """
        try:
            parsed = BulkDecision(decision)
        except ValueError as exc:
            raise ValidationError(message=f"Unknown bulk decision '{decision}'", field="decision") from exc
        cleaned = (note or "").strip() or None
        if parsed is BulkDecision.REQUEST_CHANGES and cleaned is None:
            raise ValidationError(message="A steward note is required to request changes", field="note")
        return parsed, cleaned

    async def run(
        self,
        profile_ids: list[str],
        decision: str,
        actor: ActorContext,
        note: str | None = None,
        job: BulkJob | None = None,
    ) -> BulkSummary:
        """Apply the decision to every selected profile.

        Args:
            profile_ids: Selected profile ids.
            decision: approve | request_changes.
            actor: The steward running the action.
            note: Steward note, required for request_changes.
            job: Optional job receiving progress after each batch.

        Returns:
            BulkSummary of the run.

        Raises:
            ValidationError: Before any item is processed, for a bad decision or missing note.
        """
        parsed, cleaned_note = self.validate(decision, note)
        ids = self._selection(profile_ids, job)
        if not ids:
            summary = BulkSummary(total=0, succeeded_count=0, failed_count=0)
            if job is not None:
                job.finish(summary)
            return summary

        async with session_scope(self._session_factory) as session:
            labels = await ReviewItemRepository(session).display_names(ids)

        async def review_one(profile_id: str) -> str:
            async with session_scope(self._session_factory) as session:
                service = ReviewService(ReviewItemRepository(session), AuditService(AuditLogRepository(session)))
                item = await service.get_item(profile_id)
                if item.kind != ItemKind.PROFILE:
                    raise ValidationError(message=f"Item {profile_id} is not a profile", field="profile_ids")
                if parsed is BulkDecision.APPROVE:
                    result = await service.approve(profile_id, actor)
                else:
                    result = await service.request_changes(profile_id, actor, cleaned_note or "")
            # Committed; delivery may fail without failing the item
            await self._dispatcher.dispatch(result.notification)
            return result.item.id

        logger.info("Bulk review started", decision=parsed.value, count=len(ids), actor_email=actor.actor_email)
        summary = await self._execute(ids, labels, review_one, job)

        await self._record_summary(
            action_type="profile.bulk_review_executed",
            actor=actor,
            target_label=f"{len(ids)} profiles",
            details={
                "decision": parsed.value,
                "count": len(ids),
                "succeededCount": summary.succeeded_count,
                "failedCount": summary.failed_count,
                "note": cleaned_note,
            },
        )
        logger.info(
            "Bulk review finished",
            decision=parsed.value,
            total=summary.total,
            succeeded=summary.succeeded_count,
            failed=summary.failed_count,
        )
        if job is not None:
            job.finish(summary)
        return summary


class BulkDeactivateProcessor(_BatchedProcessor):
    """Deactivates many steward assignments with the bulk contract."""

    async def run(
        self,
        assignment_ids: list[str],
        actor: ActorContext,
        note: str | None = None,
        job: BulkJob | None = None,
    ) -> BulkSummary:
        """Deactivate every selected assignment.

        Args:
            assignment_ids: Selected assignment ids.
            actor: The global steward running the action.
            note: Optional deactivation note applied to every assignment.
            job: Optional job receiving progress after each batch.

        Returns:
            BulkSummary of the run.
        """
        cleaned_note = (note or "").strip() or None
        ids = self._selection(assignment_ids, job)
        if not ids:
            summary = BulkSummary(total=0, succeeded_count=0, failed_count=0)
            if job is not None:
                job.finish(summary)
            return summary

        async with session_scope(self._session_factory) as session:
            labels = await StewardAssignmentRepository(session).steward_emails(ids)

        async def deactivate_one(assignment_id: str) -> str:
            async with session_scope(self._session_factory) as session:
                service = StewardAssignmentService(
                    assignment_repo=StewardAssignmentRepository(session),
                    item_repo=ReviewItemRepository(session),
                    audit_service=AuditService(AuditLogRepository(session)),
                )
                assignment = await service.deactivate(assignment_id, actor, note=cleaned_note)
            return assignment.id

        logger.info("Bulk deactivate started", count=len(ids), actor_email=actor.actor_email)
        summary = await self._execute(ids, labels, deactivate_one, job)

        await self._record_summary(
            action_type="steward.bulk_deactivate_executed",
            actor=actor,
            target_label=f"{len(ids)} assignments",
            details={
                "count": len(ids),
                "succeededCount": summary.succeeded_count,
                "failedCount": summary.failed_count,
                "note": cleaned_note,
            },
        )
        if job is not None:
            job.finish(summary)
        return summary
