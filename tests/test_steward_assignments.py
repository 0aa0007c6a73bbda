"""Tests for steward assignments against the database.

Covers the one-active-assignment-per-pair rule, reassignment after
deactivation and the workload leaderboard with audit-derived activity.
"""

from datetime import UTC, datetime, timedelta

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from swor_stewardship.adapters.audit_log import AuditLogRepository
from swor_stewardship.adapters.directory import HttpAccountDirectory
from swor_stewardship.adapters.repositories import ReviewItemRepository, StewardAssignmentRepository
from swor_stewardship.auth import ActorContext
from swor_stewardship.core.models import AuditLogEntry, StewardAssignment
from swor_stewardship.core.services import (
    AuditActivitySummaryProvider,
    AuditService,
    StewardAssignmentService,
)
from swor_stewardship.errors import ConflictError, NotFoundError
from tests.conftest import add_audit_entry, add_item


def _service(session: AsyncSession, directory: HttpAccountDirectory | None = None) -> StewardAssignmentService:
    audit_repo = AuditLogRepository(session)
    return StewardAssignmentService(
        assignment_repo=StewardAssignmentRepository(session),
        item_repo=ReviewItemRepository(session),
        audit_service=AuditService(audit_repo),
        directory=directory,
        activity_provider=AuditActivitySummaryProvider(audit_repo),
    )


def _directory(known: dict[str, str]) -> HttpAccountDirectory:
    def handler(request: httpx.Request) -> httpx.Response:
        user_id = known.get(request.url.params["email"])
        if user_id is None:
            return httpx.Response(404)
        return httpx.Response(200, json={"id": user_id})

    return HttpAccountDirectory("https://id.example.org", transport=httpx.MockTransport(handler))


class TestStewardAssignments:
    """Tests for StewardAssignmentService with real repositories."""

    @pytest.mark.asyncio()
    async def test_double_assign_conflicts(self, session: AsyncSession, global_steward: ActorContext) -> None:
        profile = await add_item(session, status="approved")
        service = _service(session)
        await service.assign(profile.id, "helper@swor.org", global_steward)

        with pytest.raises(ConflictError):
            await service.assign(profile.id, " HELPER@swor.org ", global_steward)

        count = await session.execute(select(func.count()).select_from(StewardAssignment))
        assert count.scalar_one() == 1

    @pytest.mark.asyncio()
    async def test_same_steward_may_hold_many_profiles(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        first = await add_item(session, status="approved")
        second = await add_item(session, status="approved")
        service = _service(session)

        await service.assign(first.id, "helper@swor.org", global_steward)
        await service.assign(second.id, "helper@swor.org", global_steward)

        page = await service.list_assignments(status="active")
        assert page.total == 2

    @pytest.mark.asyncio()
    async def test_invite_pending_follows_directory(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await add_item(session, status="approved")
        service = _service(session, directory=_directory({"known@swor.org": "user-9"}))

        known = await service.assign(profile.id, "known@swor.org", global_steward)
        unknown = await service.assign(profile.id, "new@swor.org", global_steward)

        assert known.invite_email_pending is False
        assert known.steward_user_id == "user-9"
        assert unknown.invite_email_pending is True
        assert unknown.steward_user_id is None

    @pytest.mark.asyncio()
    async def test_no_directory_means_invite_pending(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await add_item(session, status="approved")

        assignment = await _service(session).assign(profile.id, "helper@swor.org", global_steward)

        assert assignment.invite_email_pending is True

    @pytest.mark.asyncio()
    async def test_deactivate_then_reassign(self, session: AsyncSession, global_steward: ActorContext) -> None:
        profile = await add_item(session, status="approved")
        service = _service(session)
        first = await service.assign(profile.id, "helper@swor.org", global_steward)

        await service.deactivate(first.id, global_steward, note="rotation")
        second = await service.assign(profile.id, "helper@swor.org", global_steward)

        assert first.status == "inactive"
        assert first.deactivation_note == "rotation"
        assert first.deactivated_at is not None
        assert second.id != first.id
        assert second.status == "active"

        actions = (await session.execute(select(AuditLogEntry.action_type))).scalars().all()
        assert sorted(actions) == ["steward.assigned", "steward.assigned", "steward.deactivated"]

    @pytest.mark.asyncio()
    async def test_deactivate_twice_is_not_found(self, session: AsyncSession, global_steward: ActorContext) -> None:
        profile = await add_item(session, status="approved")
        service = _service(session)
        assignment = await service.assign(profile.id, "helper@swor.org", global_steward)
        await service.deactivate(assignment.id, global_steward)

        with pytest.raises(NotFoundError):
            await service.deactivate(assignment.id, global_steward)

    @pytest.mark.asyncio()
    async def test_assign_unknown_profile_is_not_found(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        with pytest.raises(NotFoundError):
            await _service(session).assign("missing", "helper@swor.org", global_steward)

    @pytest.mark.asyncio()
    async def test_workload_leaderboard_with_activity(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profiles = [await add_item(session, status="approved", display_name=f"P{index}") for index in range(3)]
        service = _service(session)
        for profile in profiles:
            await service.assign(profile.id, "busy@swor.org", global_steward, steward_name="Busy Bee")
        await service.assign(profiles[0].id, "calm@swor.org", global_steward)

        now = datetime.now(UTC)
        await add_audit_entry(session, actor_email="busy@swor.org", action_type="profile.approved")
        await add_audit_entry(session, actor_email="busy@swor.org", action_type="commendation.approved")
        await add_audit_entry(
            session,
            actor_email="busy@swor.org",
            action_type="profile.approved",
            created_at=now - timedelta(days=45),
        )

        rows = await service.list_workload(window_days=30)

        assert [(row.steward_email, row.active_count) for row in rows] == [
            ("busy@swor.org", 3),
            ("calm@swor.org", 1),
        ]
        assert rows[0].steward_name == "Busy Bee"
        assert rows[0].activity.profiles_reviewed == 1
        assert rows[0].activity.commendations_processed == 1
        assert rows[0].activity.last_active is not None
        assert rows[1].activity.profiles_reviewed == 0
        assert rows[1].activity.last_active is None
