"""API router for swor-stewardship.

All stewardship endpoints are registered here and included in main.py under
the /api/v1 prefix. Routes are thin — all business logic lives in the service
layer.

Endpoints:
- GET         /items/{id}                          — Get a reviewable item
- POST        /items/{id}/submit                   — Owner submits for review
- POST        /items/{id}/withdraw                 — Owner withdraws a submission
- POST        /items/{id}/approve                  — Steward approves
- POST        /items/{id}/request-changes          — Steward sends a profile back with a note
- POST        /items/{id}/reject                   — Steward rejects a commendation or contribution
- GET         /profiles/queue                      — Profile review queue with per-status counts
- GET         /profiles/search                     — Profile picker search
- GET         /profiles/{id}/review-history        — Audit entries targeting a profile
- GET         /profiles/{id}/reset-history         — Past resets of a profile
- GET         /commendations/queue                 — Commendation moderation queue with per-status counts
- GET         /audit-log                           — Query the audit log
- GET         /audit-log/export                    — Capped CSV export
- POST        /audit-log/retention                 — Purge entries past retention
- POST        /bulk/profile-review                 — Start a bulk review job (202)
- POST        /bulk/assignment-deactivate          — Start a bulk deactivation job (202)
- GET         /bulk-jobs/{id}                      — Poll bulk job progress
- POST/GET    /assignments                         — Assign a steward / list assignments
- POST        /assignments/{id}/deactivate         — Deactivate an assignment
- GET         /assignments/workload                — Steward workload leaderboard
- GET         /contact-messages                    — Steward inbox, newest first
- GET         /contact-messages/{id}               — Get a contact message
- POST        /contact-messages/{id}/status        — Triage, close or reopen a message
- POST        /safe-reset/readiness                — Check reset preconditions
- POST        /safe-reset                          — Execute a profile reset
- GET         /notifications/failures              — Recent notification delivery failures
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swor_stewardship.adapters.audit_log import AuditLogRepository
from swor_stewardship.adapters.repositories import (
    ContactRepository,
    ResetRepository,
    ReviewItemRepository,
    StewardAssignmentRepository,
)
from swor_stewardship.api.schemas import (
    AssignmentPageResponse,
    AssignStewardRequest,
    AuditLogEntryResponse,
    AuditLogPageResponse,
    BulkDeactivateRequest,
    BulkJobResponse,
    BulkReviewRequest,
    BulkSummaryResponse,
    ContactMessagePageResponse,
    ContactMessageResponse,
    ContactStatusRequest,
    DeactivateAssignmentRequest,
    NotificationFailureResponse,
    ReadinessResponse,
    RejectRequest,
    RequestChangesRequest,
    ResetHistoryResponse,
    ResetResultResponse,
    RetentionRequest,
    RetentionResponse,
    ReviewItemResponse,
    ReviewQueueResponse,
    SafeResetRequest,
    StewardAssignmentResponse,
    StewardWorkloadResponse,
    TransitionResponse,
)
from swor_stewardship.auth import ActorContext, get_current_actor, require_global_steward, require_steward
from swor_stewardship.bulk.jobs import BulkJob, BulkJobRegistry
from swor_stewardship.bulk.processor import BulkDeactivateProcessor, BulkReviewProcessor, BulkSummary
from swor_stewardship.core.domain import AuditQuery, TransitionResult
from swor_stewardship.core.interfaces import IAccountDirectory
from swor_stewardship.core.models import AuditLogEntry
from swor_stewardship.core.services import (
    AuditActivitySummaryProvider,
    AuditService,
    ContactService,
    NotificationDispatcher,
    ReviewQueuePage,
    ReviewService,
    StewardAssignmentService,
)
from swor_stewardship.core.state_machine import ItemKind
from swor_stewardship.database import get_db_session
from swor_stewardship.observability import get_logger
from swor_stewardship.safe_reset.preconditions import ResetRequest
from swor_stewardship.safe_reset.service import SafeResetService
from swor_stewardship.settings import Settings

logger = get_logger(__name__)

router = APIRouter(tags=["stewardship"])


# ---------------------------------------------------------------------------
# Dependency factories — wire repositories, services, and clients together
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_job_registry(request: Request) -> BulkJobRegistry:
    return request.app.state.job_registry


def get_directory(request: Request) -> IAccountDirectory | None:
    return request.app.state.directory


def get_request_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_audit_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuditService:
    """Construct AuditService on the request session.

    Args:
        session: Request-scoped DB session.
        settings: Service settings (export row cap).

    Returns:
        Fully wired AuditService instance.
    """
    return AuditService(AuditLogRepository(session), export_row_cap=settings.audit_export_row_cap)


def get_review_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> ReviewService:
    """Construct ReviewService sharing the request session with its audit writes.

    Args:
        session: Request-scoped DB session.
        audit_service: AuditService on the same session.

    Returns:
        Fully wired ReviewService instance.
    """
    return ReviewService(item_repo=ReviewItemRepository(session), audit_service=audit_service)


def get_assignment_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
    directory: Annotated[IAccountDirectory | None, Depends(get_directory)],
) -> StewardAssignmentService:
    """Construct StewardAssignmentService with the account directory and activity provider.

    Args:
        session: Request-scoped DB session.
        audit_service: AuditService on the same session.
        directory: Account directory from app state, or None.

    Returns:
        Fully wired StewardAssignmentService instance.
    """
    return StewardAssignmentService(
        assignment_repo=StewardAssignmentRepository(session),
        item_repo=ReviewItemRepository(session),
        audit_service=audit_service,
        directory=directory,
        activity_provider=AuditActivitySummaryProvider(AuditLogRepository(session)),
    )


def get_contact_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> ContactService:
    return ContactService(contact_repo=ContactRepository(session), audit_service=audit_service)


def get_reset_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
) -> SafeResetService:
    return SafeResetService(
        reset_repo=ResetRepository(session),
        item_repo=ReviewItemRepository(session),
        audit_service=audit_service,
    )


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        item=ReviewItemResponse.model_validate(result.item),
        action_type=result.transition.action_type,
        from_status=result.transition.from_status,
        to_status=result.transition.to_status,
    )


def _audit_entry_response(entry: AuditLogEntry) -> AuditLogEntryResponse:
    return AuditLogEntryResponse(
        id=entry.id,
        action_type=entry.action_type,
        actor_id=entry.actor_id,
        actor_email=entry.actor_email,
        scope_type=entry.scope_type,
        target_id=entry.target_id,
        target_label=entry.target_label,
        details=entry.details_json or {},
        created_at=entry.created_at,
    )


def _summary_response(summary: BulkSummary) -> BulkSummaryResponse:
    return BulkSummaryResponse(
        total=summary.total,
        succeeded_count=summary.succeeded_count,
        failed_count=summary.failed_count,
        failed_item_labels=summary.failed_item_labels,
        failed_item_ids=summary.failed_item_ids,
        errors=summary.errors,
        outcome=summary.outcome.value,
        message=summary.message,
    )


def _queue_response(page: ReviewQueuePage) -> ReviewQueueResponse:
    return ReviewQueueResponse(
        kind=page.kind,
        status=page.status,
        items=[ReviewItemResponse.model_validate(item) for item in page.items],
        total=page.total,
        counts=page.counts,
    )


def _job_response(job: BulkJob) -> BulkJobResponse:
    progress = job.progress
    return BulkJobResponse(
        job_id=job.job_id,
        action=job.action,
        decision=job.decision,
        status=progress.status.value,
        total=progress.total,
        completed=progress.completed,
        succeeded=progress.succeeded,
        failed=progress.failed,
        failed_item_labels=list(job.failed_item_labels),
        summary=_summary_response(job.summary) if isinstance(job.summary, BulkSummary) else None,
        error=job.error,
        created_at=job.created_at,
        finished_at=job.finished_at,
    )


async def _notify_after_commit(
    session: AsyncSession,
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    result: TransitionResult,
) -> None:
    # The transition and its audit entry commit before anyone is told about them
    await session.commit()
    if result.notification is not None:
        background_tasks.add_task(dispatcher.dispatch, result.notification)


# ---------------------------------------------------------------------------
# Review endpoints
# ---------------------------------------------------------------------------


@router.get("/items/{item_id}", response_model=ReviewItemResponse)
async def get_item(
    item_id: str,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> ReviewItemResponse:
    """Get a reviewable item by id."""
    return ReviewItemResponse.model_validate(await service.get_item(item_id))


@router.post("/items/{item_id}/submit", response_model=TransitionResponse)
async def submit_item(
    item_id: str,
    actor: Annotated[ActorContext, Depends(get_current_actor)],
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> TransitionResponse:
    """Submit a draft for steward review. Only the owner may submit.

    Args:
        item_id: The item id.
        actor: The owner, from gateway headers.
        service: Injected ReviewService.

    Returns:
        The transition applied.
    """
    return _transition_response(await service.submit(item_id, actor))


@router.post("/items/{item_id}/withdraw", response_model=TransitionResponse)
async def withdraw_item(
    item_id: str,
    actor: Annotated[ActorContext, Depends(get_current_actor)],
    service: Annotated[ReviewService, Depends(get_review_service)],
) -> TransitionResponse:
    """Withdraw a pending submission back to draft. Only the owner may withdraw."""
    return _transition_response(await service.withdraw(item_id, actor))


@router.post("/items/{item_id}/approve", response_model=TransitionResponse)
async def approve_item(
    item_id: str,
    background_tasks: BackgroundTasks,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> TransitionResponse:
    """Approve a submitted item.

    The owner is notified after the approval commits; a failed delivery does
    not fail the request.

    Args:
        item_id: The item id.
        background_tasks: Runs notification delivery after the response.
        actor: The approving steward.
        service: Injected ReviewService.
        session: Request session, committed before notifying.
        dispatcher: Notification side channel.

    Returns:
        The transition applied.
    """
    logger.info("POST /items/{item_id}/approve", item_id=item_id, actor_email=actor.actor_email)
    result = await service.approve(item_id, actor)
    await _notify_after_commit(session, background_tasks, dispatcher, result)
    return _transition_response(result)


@router.post("/items/{item_id}/request-changes", response_model=TransitionResponse)
async def request_changes(
    item_id: str,
    request: RequestChangesRequest,
    background_tasks: BackgroundTasks,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> TransitionResponse:
    """Send a submitted profile back to its owner with a steward note."""
    result = await service.request_changes(item_id, actor, request.note)
    await _notify_after_commit(session, background_tasks, dispatcher, result)
    return _transition_response(result)


@router.post("/items/{item_id}/reject", response_model=TransitionResponse)
async def reject_item(
    item_id: str,
    request: RejectRequest,
    background_tasks: BackgroundTasks,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> TransitionResponse:
    """Reject a submitted commendation or contribution."""
    result = await service.reject(item_id, actor, reason=request.reason)
    await _notify_after_commit(session, background_tasks, dispatcher, result)
    return _transition_response(result)


# ---------------------------------------------------------------------------
# Profile endpoints
# ---------------------------------------------------------------------------


@router.get("/profiles/search", response_model=list[ReviewItemResponse])
async def search_profiles(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    q: str = Query(default="", description="Name fragment, at least 2 characters"),
    limit: int = Query(default=20, ge=1, le=50),
) -> list[ReviewItemResponse]:
    """Search profiles by name for the assignment and reset pickers."""
    profiles = await service.search_profiles(q, limit=limit)
    return [ReviewItemResponse.model_validate(profile) for profile in profiles]


@router.get("/profiles/queue", response_model=ReviewQueueResponse)
async def profile_queue(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    status: str = Query(default="submitted_for_review", description="Profile status, or all"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ReviewQueueResponse:
    """Profiles awaiting review, longest-waiting first, with counts per status."""
    page = await service.list_queue(ItemKind.PROFILE, status=status, limit=limit, offset=offset)
    return _queue_response(page)


@router.get("/profiles/{profile_id}/review-history", response_model=list[AuditLogEntryResponse])
async def profile_review_history(
    profile_id: str,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    limit: int = Query(default=50, ge=1, le=200),
) -> list[AuditLogEntryResponse]:
    """Audit entries targeting a profile, newest first."""
    entries = await service.profile_review_history(profile_id, limit=limit)
    return [_audit_entry_response(entry) for entry in entries]


@router.get("/profiles/{profile_id}/reset-history", response_model=list[ResetHistoryResponse])
async def profile_reset_history(
    profile_id: str,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[SafeResetService, Depends(get_reset_service)],
) -> list[ResetHistoryResponse]:
    """Past resets of a profile, newest first."""
    history = await service.reset_history(profile_id)
    return [ResetHistoryResponse.model_validate(entry) for entry in history]


# ---------------------------------------------------------------------------
# Commendation endpoints
# ---------------------------------------------------------------------------


@router.get("/commendations/queue", response_model=ReviewQueueResponse)
async def commendation_queue(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ReviewService, Depends(get_review_service)],
    status: str = Query(default="submitted_for_review", description="Commendation status, or all"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ReviewQueueResponse:
    """Commendations awaiting moderation, longest-waiting first, with counts per status."""
    page = await service.list_queue(ItemKind.COMMENDATION, status=status, limit=limit, offset=offset)
    return _queue_response(page)

# ---------------------------------------------------------------------------
# Audit log endpoints
# ---------------------------------------------------------------------------


@router.get("/audit-log", response_model=AuditLogPageResponse)
async def query_audit_log(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[AuditService, Depends(get_audit_service)],
    action_type: str | None = Query(default=None, description="Exact action type, or 'all'"),
    scope_type: str | None = Query(default=None, description="Scope type, or 'all'"),
    search: str | None = Query(default=None, description="Matches actor email or target label"),
    actor_email: str | None = Query(default=None, description="Exact actor email"),
    target_id: str | None = Query(default=None, description="Affected entity id"),
    date_from: date | None = Query(default=None, description="First day included (UTC)"),
    date_to: date | None = Query(default=None, description="Last day included (UTC)"),
    sort_by: str = Query(default="created_at", description="created_at | action_type | actor_email"),
    sort_direction: str = Query(default="desc", description="asc | desc"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> AuditLogPageResponse:
    """Query the audit log.

    Entries are immutable. Filters combine with AND; the total reflects every
    entry matching the filters, not just this page.

    Args:
        actor: The steward reading the log.
        service: Injected AuditService.
        action_type: Optional action type filter.
        scope_type: Optional scope filter.
        search: Optional free-text search.
        actor_email: Optional actor filter.
        target_id: Optional target filter.
        date_from: Optional first day.
        date_to: Optional last day.
        sort_by: Sort key.
        sort_direction: Sort direction.
        limit: Page size.
        offset: Page offset.

    Returns:
        The requested page and the total match count.
    """
    filters = AuditQuery(
        action_type=action_type,
        scope_type=scope_type,
        search=search,
        actor_email=actor_email,
        target_id=target_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    page = await service.query(filters)
    return AuditLogPageResponse(
        entries=[_audit_entry_response(entry) for entry in page.entries],
        total=page.total,
        limit=limit,
        offset=offset,
    )


@router.get("/audit-log/export")
async def export_audit_log(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[AuditService, Depends(get_audit_service)],
    action_type: str | None = Query(default=None),
    scope_type: str | None = Query(default=None),
    search: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_direction: str = Query(default="desc"),
) -> Response:
    """Export the filtered audit log as CSV.

    At most audit_export_row_cap rows are exported. The row accounting is
    returned in X-Export-* headers so the console can show
    "1,000 of 1,200 exported." alongside the download.
    """
    filters = AuditQuery(
        action_type=action_type,
        scope_type=scope_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    export = await service.export_csv(filters, actor)
    return Response(
        content=export.content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export.filename}"',
            "X-Export-Row-Count": str(export.row_count),
            "X-Export-Total-Matches": str(export.total_matches),
            "X-Export-Message": export.message,
        },
    )


@router.post("/audit-log/retention", response_model=RetentionResponse)
async def purge_audit_log(
    request: RetentionRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[AuditService, Depends(get_audit_service)],
) -> RetentionResponse:
    """Delete audit entries older than the retention window. Global stewards only."""
    logger.info("POST /audit-log/retention", retention_days=request.retention_days, actor_email=actor.actor_email)
    result = await service.purge_older_than(request.retention_days, actor)
    return RetentionResponse(
        deleted_count=result.deleted_count,
        new_total_rows=result.new_total_rows,
        retention_days=result.retention_days,
        message=result.message,
    )


# ---------------------------------------------------------------------------
# Bulk action endpoints
# ---------------------------------------------------------------------------


@router.post("/bulk/profile-review", response_model=BulkJobResponse, status_code=202)
async def start_bulk_review(
    request: BulkReviewRequest,
    actor: Annotated[ActorContext, Depends(require_steward)],
    registry: Annotated[BulkJobRegistry, Depends(get_job_registry)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_request_session_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BulkJobResponse:
    """Start a bulk profile review in the background.

    The decision and note are validated before the job is accepted. Progress
    is polled with GET /bulk-jobs/{job_id}.

    Args:
        request: Selection, decision and note.
        actor: The steward running the action.
        registry: In-memory job registry.
        dispatcher: Notification side channel for per-item notifications.
        session_factory: Opens one session per item.
        settings: Service settings (batch size).

    Returns:
        The accepted job.
    """
    decision, note = BulkReviewProcessor.validate(request.decision, request.note)
    processor = BulkReviewProcessor(session_factory, dispatcher, batch_size=settings.bulk_batch_size)
    job = registry.create(action="profile_review", decision=decision.value, target_ids=request.profile_ids)
    registry.start(job, processor.run(request.profile_ids, decision.value, actor, note=note, job=job))
    logger.info("Bulk review accepted", job_id=job.job_id, count=job.total, decision=decision.value)
    return _job_response(job)


@router.post("/bulk/assignment-deactivate", response_model=BulkJobResponse, status_code=202)
async def start_bulk_deactivate(
    request: BulkDeactivateRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    registry: Annotated[BulkJobRegistry, Depends(get_job_registry)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_request_session_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BulkJobResponse:
    """Start a bulk steward deactivation in the background."""
    processor = BulkDeactivateProcessor(session_factory, batch_size=settings.bulk_batch_size)
    job = registry.create(action="assignment_deactivate", decision="", target_ids=request.assignment_ids)
    registry.start(job, processor.run(request.assignment_ids, actor, note=request.note, job=job))
    return _job_response(job)


@router.get("/bulk-jobs/{job_id}", response_model=BulkJobResponse)
async def get_bulk_job(
    job_id: str,
    actor: Annotated[ActorContext, Depends(require_steward)],
    registry: Annotated[BulkJobRegistry, Depends(get_job_registry)],
) -> BulkJobResponse:
    """Poll the progress of a bulk job."""
    return _job_response(registry.get(job_id))


# ---------------------------------------------------------------------------
# Steward assignment endpoints
# ---------------------------------------------------------------------------


@router.post("/assignments", response_model=StewardAssignmentResponse, status_code=201)
async def assign_steward(
    request: AssignStewardRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[StewardAssignmentService, Depends(get_assignment_service)],
) -> StewardAssignmentResponse:
    """Assign a steward to a profile.

    Fails with 409 if the steward already has an active assignment for the
    profile. A steward without a known account is flagged invite_email_pending.
    """
    logger.info("POST /assignments", profile_id=request.profile_id, steward_email=request.steward_email)
    assignment = await service.assign(
        profile_id=request.profile_id,
        steward_email=request.steward_email,
        assigner=actor,
        steward_name=request.steward_name,
    )
    return StewardAssignmentResponse.model_validate(assignment)


@router.get("/assignments", response_model=AssignmentPageResponse)
async def list_assignments(
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[StewardAssignmentService, Depends(get_assignment_service)],
    search: str | None = Query(default=None, description="Matches steward email or name"),
    status: str = Query(default="all", description="active | inactive | all"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> AssignmentPageResponse:
    """List steward assignments."""
    page = await service.list_assignments(search=search, status=status, limit=limit, offset=offset)
    return AssignmentPageResponse(
        items=[StewardAssignmentResponse.model_validate(item) for item in page.items],
        total=page.total,
        active_total=page.active_total,
    )


@router.get("/assignments/workload", response_model=list[StewardWorkloadResponse])
async def steward_workload(
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[StewardAssignmentService, Depends(get_assignment_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    window_days: int | None = Query(default=None, ge=1, le=365),
) -> list[StewardWorkloadResponse]:
    """Active assignments per steward, busiest first, with recent review activity."""
    rows = await service.list_workload(window_days=window_days or settings.activity_window_days)
    return [
        StewardWorkloadResponse(
            steward_email=row.steward_email,
            steward_name=row.steward_name,
            active_count=row.active_count,
            profiles_reviewed=row.activity.profiles_reviewed,
            commendations_processed=row.activity.commendations_processed,
            last_active=row.activity.last_active,
        )
        for row in rows
    ]


@router.post("/assignments/{assignment_id}/deactivate", response_model=StewardAssignmentResponse)
async def deactivate_assignment(
    assignment_id: str,
    request: DeactivateAssignmentRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[StewardAssignmentService, Depends(get_assignment_service)],
) -> StewardAssignmentResponse:
    """Deactivate an active steward assignment."""
    assignment = await service.deactivate(assignment_id, actor, note=request.note)
    return StewardAssignmentResponse.model_validate(assignment)


# ---------------------------------------------------------------------------
# Contact message endpoints
# ---------------------------------------------------------------------------


@router.get("/contact-messages", response_model=ContactMessagePageResponse)
async def list_contact_messages(
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ContactService, Depends(get_contact_service)],
    status: str = Query(default="all", description="new | triaged | closed | all"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ContactMessagePageResponse:
    """The steward inbox, newest first."""
    page = await service.list_messages(status=status, limit=limit, offset=offset)
    return ContactMessagePageResponse(
        items=[ContactMessageResponse.model_validate(message) for message in page.items],
        total=page.total,
    )


@router.get("/contact-messages/{message_id}", response_model=ContactMessageResponse)
async def get_contact_message(
    message_id: str,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactMessageResponse:
    return ContactMessageResponse.model_validate(await service.get_message(message_id))


@router.post("/contact-messages/{message_id}/status", response_model=ContactMessageResponse)
async def update_contact_status(
    message_id: str,
    request: ContactStatusRequest,
    actor: Annotated[ActorContext, Depends(require_steward)],
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactMessageResponse:
    """Triage, close or reopen a contact message."""
    update = await service.update_status(message_id, request.status, actor, steward_note=request.steward_note)
    return ContactMessageResponse.model_validate(update.message)


# ---------------------------------------------------------------------------
# Safe reset endpoints
# ---------------------------------------------------------------------------


def _reset_request(body: SafeResetRequest) -> ResetRequest:
    return ResetRequest(
        profile_id=body.profile_id,
        reset_mode=body.reset_mode,
        reason_code=body.reason_code,
        confirm_phrase=body.confirm_phrase,
        reason_note=body.reason_note,
    )


@router.post("/safe-reset/readiness", response_model=ReadinessResponse)
async def check_reset_readiness(
    request: SafeResetRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[SafeResetService, Depends(get_reset_service)],
) -> ReadinessResponse:
    """Report which reset preconditions hold, without changing anything."""
    readiness = await service.check_readiness(_reset_request(request))
    return ReadinessResponse(
        profile_selected=readiness.profile_selected,
        reason_valid=readiness.reason_valid,
        confirmation_valid=readiness.confirmation_valid,
        ready=readiness.ready,
        missing=readiness.missing,
    )


@router.post("/safe-reset", response_model=ResetResultResponse)
async def execute_reset(
    request: SafeResetRequest,
    actor: Annotated[ActorContext, Depends(require_global_steward)],
    service: Annotated[SafeResetService, Depends(get_reset_service)],
) -> ResetResultResponse:
    """Reset a profile's content. Global stewards only.

    Preconditions are validated before anything changes (422 listing what is
    missing). A step failure is reported as outcome=partial_failure with the
    counts that were applied.

    Args:
        request: Profile, mode, reason and the typed confirmation phrase.
        actor: The global steward running the reset.
        service: Injected SafeResetService.

    Returns:
        What the reset did.
    """
    logger.info(
        "POST /safe-reset",
        profile_id=request.profile_id,
        reset_mode=request.reset_mode,
        actor_email=actor.actor_email,
    )
    result = await service.execute(_reset_request(request), actor)
    return ResetResultResponse(
        reset_id=result.reset_id,
        profile_id=result.profile_id,
        reset_mode=result.reset_mode,
        reset_at=result.reset_at,
        counts=result.counts,
        outcome=result.outcome.value,
        failed_step=result.failed_step,
        error=result.error,
        message=result.message,
    )


# ---------------------------------------------------------------------------
# Notification endpoints
# ---------------------------------------------------------------------------


@router.get("/notifications/failures", response_model=list[NotificationFailureResponse])
async def notification_failures(
    actor: Annotated[ActorContext, Depends(require_steward)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> list[NotificationFailureResponse]:
    """Recent notification delivery failures, newest first."""
    return [NotificationFailureResponse.model_validate(failure) for failure in dispatcher.recent_failures()]
