"""Tests for the SQLAlchemy repositories against an in-memory SQLite database.

Verifies:
- AuditLogRepository is append-only (no update method)
- Audit queries filter, sort and paginate; date bounds are inclusive UTC days
- Compare-and-set status updates lose cleanly to a concurrent writer
- The partial unique index allows one active assignment per (profile, steward)
- ResetRepository cascades touch only the reset profile's content
- Review queues and the contact inbox filter, count and order their pages
"""

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from swor_stewardship.adapters.audit_log import AuditLogRepository
from swor_stewardship.adapters.repositories import (
    ContactRepository,
    ResetRepository,
    ReviewItemRepository,
    StewardAssignmentRepository,
)
from swor_stewardship.core.domain import AuditQuery
from swor_stewardship.core.models import (
    ContactMessage,
    Milestone,
    ResetHistoryEntry,
    StewardAssignment,
    StorageCleanupTask,
)
from swor_stewardship.errors import ConflictError, NotFoundError
from tests.conftest import add_audit_entry, add_item


class TestAuditLogRepository:
    """Tests for AuditLogRepository — immutability, filters and retention."""

    def test_repository_has_no_update_method(self) -> None:
        """AuditLogRepository must not expose an update method."""
        assert not hasattr(AuditLogRepository, "update"), (
            "AuditLogRepository must not have an update() method — audit log is immutable"
        )

    @pytest.mark.asyncio()
    async def test_append_flushes_entry(self, session: AsyncSession) -> None:
        repo = AuditLogRepository(session)

        entry = await repo.append(
            action_type="profile.approved",
            actor_id="steward-1",
            actor_email="steward@swor.org",
            scope_type="profile",
            target_id="p-1",
            target_label="Ada",
            details={"before": "submitted_for_review", "after": "approved"},
        )

        assert entry.id is not None
        assert entry.created_at is not None
        assert await repo.count() == 1

    @pytest.mark.asyncio()
    async def test_query_filters_by_action_and_scope(self, session: AsyncSession) -> None:
        await add_audit_entry(session, action_type="profile.approved", scope_type="profile")
        await add_audit_entry(session, action_type="commendation.approved", scope_type="commendation")
        await add_audit_entry(session, action_type="audit.csv_exported", scope_type="system")
        repo = AuditLogRepository(session)

        entries, total = await repo.query(AuditQuery(action_type="profile.approved"))
        assert total == 1
        assert entries[0].action_type == "profile.approved"

        entries, total = await repo.query(AuditQuery(action_type="all", scope_type="system"))
        assert total == 1
        assert entries[0].scope_type == "system"

        _, total = await repo.query(AuditQuery(action_type="all", scope_type="all"))
        assert total == 3

    @pytest.mark.asyncio()
    async def test_search_matches_actor_or_target_case_insensitively(self, session: AsyncSession) -> None:
        await add_audit_entry(session, actor_email="Alice@swor.org", target_label="Profile one")
        await add_audit_entry(session, actor_email="bob@swor.org", target_label="ALICE Walker")
        await add_audit_entry(session, actor_email="carol@swor.org", target_label=None)
        repo = AuditLogRepository(session)

        _, total = await repo.query(AuditQuery(search="alice"))

        assert total == 2

    @pytest.mark.asyncio()
    async def test_date_range_is_inclusive_of_whole_days(self, session: AsyncSession) -> None:
        """date_to includes entries up to the last instant of that UTC day."""
        await add_audit_entry(session, target_label="before", created_at=datetime(2025, 2, 28, 23, 59, tzinfo=UTC))
        await add_audit_entry(session, target_label="start", created_at=datetime(2025, 3, 1, 0, 0, tzinfo=UTC))
        await add_audit_entry(session, target_label="end", created_at=datetime(2025, 3, 2, 23, 59, 59, tzinfo=UTC))
        await add_audit_entry(session, target_label="after", created_at=datetime(2025, 3, 3, 0, 0, tzinfo=UTC))
        repo = AuditLogRepository(session)

        entries, total = await repo.query(AuditQuery(date_from=date(2025, 3, 1), date_to=date(2025, 3, 2)))

        assert total == 2
        assert {entry.target_label for entry in entries} == {"start", "end"}

    @pytest.mark.asyncio()
    async def test_default_sort_newest_first_with_pagination(self, session: AsyncSession) -> None:
        base = datetime(2025, 1, 1, tzinfo=UTC)
        for offset in range(5):
            await add_audit_entry(session, target_label=f"e{offset}", created_at=base + timedelta(hours=offset))
        repo = AuditLogRepository(session)

        entries, total = await repo.query(AuditQuery(limit=2, offset=1))

        assert total == 5
        assert [entry.target_label for entry in entries] == ["e3", "e2"]

    @pytest.mark.asyncio()
    async def test_sort_by_actor_ascending(self, session: AsyncSession) -> None:
        await add_audit_entry(session, actor_email="zed@swor.org")
        await add_audit_entry(session, actor_email="amy@swor.org")
        repo = AuditLogRepository(session)

        entries, _ = await repo.query(AuditQuery(sort_by="actor", sort_direction="asc"))

        assert [entry.actor_email for entry in entries] == ["amy@swor.org", "zed@swor.org"]

    @pytest.mark.asyncio()
    async def test_delete_before_removes_only_older_entries(self, session: AsyncSession) -> None:
        now = datetime.now(UTC)
        await add_audit_entry(session, created_at=now - timedelta(days=100))
        await add_audit_entry(session, created_at=now - timedelta(days=95))
        await add_audit_entry(session, created_at=now - timedelta(days=1))
        repo = AuditLogRepository(session)

        deleted = await repo.delete_before(now - timedelta(days=90))

        assert deleted == 2
        assert await repo.count() == 1

    @pytest.mark.asyncio()
    async def test_activity_since_groups_by_actor_and_action(self, session: AsyncSession) -> None:
        now = datetime.now(UTC)
        await add_audit_entry(session, actor_email="a@swor.org", action_type="profile.approved")
        await add_audit_entry(session, actor_email="a@swor.org", action_type="profile.approved")
        await add_audit_entry(session, actor_email="a@swor.org", action_type="commendation.rejected")
        await add_audit_entry(
            session,
            actor_email="a@swor.org",
            action_type="profile.approved",
            created_at=now - timedelta(days=60),
        )
        await add_audit_entry(session, actor_email="b@swor.org", action_type="audit.csv_exported")
        repo = AuditLogRepository(session)

        rows = await repo.activity_since(now - timedelta(days=30), ["profile.approved", "commendation.rejected"])

        counts = {(email, action): count for email, action, count, _ in rows}
        assert counts == {("a@swor.org", "profile.approved"): 2, ("a@swor.org", "commendation.rejected"): 1}


class TestReviewItemRepository:
    """Tests for ReviewItemRepository — compare-and-set and lookups."""

    @pytest.mark.asyncio()
    async def test_get_missing_item_raises(self, session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await ReviewItemRepository(session).get_by_id("missing")

    @pytest.mark.asyncio()
    async def test_compare_and_set_applies_when_status_matches(self, session: AsyncSession) -> None:
        item = await add_item(session)
        repo = ReviewItemRepository(session)

        changed = await repo.compare_and_set_status(
            item,
            expected_status="submitted_for_review",
            new_status="approved",
            values={"reviewed_by_email": "steward@swor.org"},
        )

        assert changed is True
        assert item.status == "approved"
        assert item.reviewed_by_email == "steward@swor.org"

    @pytest.mark.asyncio()
    async def test_compare_and_set_loses_to_concurrent_writer(self, session: AsyncSession) -> None:
        """A stale expected_status matches no row and leaves the item untouched."""
        item = await add_item(session)
        repo = ReviewItemRepository(session)
        assert await repo.compare_and_set_status(item, "submitted_for_review", "needs_changes", {})

        changed = await repo.compare_and_set_status(item, "submitted_for_review", "approved", {})

        assert changed is False
        assert await repo.current_status(item.id) == "needs_changes"

    @pytest.mark.asyncio()
    async def test_current_status_of_missing_item_is_none(self, session: AsyncSession) -> None:
        assert await ReviewItemRepository(session).current_status("missing") is None

    @pytest.mark.asyncio()
    async def test_search_profiles_only_returns_profiles(self, session: AsyncSession) -> None:
        profile = await add_item(session, display_name="Ada Lovelace")
        await add_item(session, kind="commendation", display_name="Ada's friend", profile_id=profile.id)
        await add_item(session, display_name="Grace Hopper")

        results = await ReviewItemRepository(session).search_profiles("ADA")

        assert [item.id for item in results] == [profile.id]

    @pytest.mark.asyncio()
    async def test_display_names_skips_unknown_ids(self, session: AsyncSession) -> None:
        profile = await add_item(session, display_name="Ada")

        names = await ReviewItemRepository(session).display_names([profile.id, "missing"])

        assert names == {profile.id: "Ada"}

    @pytest.mark.asyncio()
    async def test_list_by_kind_filters_and_orders_longest_waiting_first(self, session: AsyncSession) -> None:
        now = datetime.now(UTC)
        recent = await add_item(session, display_name="Recent")
        oldest = await add_item(session, display_name="Oldest")
        await add_item(session, status="approved", display_name="Approved")
        await add_item(session, kind="commendation", profile_id=recent.id)
        recent.submitted_at = now - timedelta(hours=1)
        oldest.submitted_at = now - timedelta(days=3)
        await session.flush()
        repo = ReviewItemRepository(session)

        items, total = await repo.list_by_kind("profile", "submitted_for_review", limit=10, offset=0)
        assert total == 2
        assert [item.display_name for item in items] == ["Oldest", "Recent"]

        items, total = await repo.list_by_kind("profile", None, limit=1, offset=1)
        assert total == 3
        assert len(items) == 1

    @pytest.mark.asyncio()
    async def test_status_counts_cover_one_kind(self, session: AsyncSession) -> None:
        profile = await add_item(session)
        await add_item(session)
        await add_item(session, status="needs_changes")
        await add_item(session, kind="commendation", profile_id=profile.id)

        counts = await ReviewItemRepository(session).status_counts("profile")

        assert counts == {"submitted_for_review": 2, "needs_changes": 1}


class TestStewardAssignmentRepository:
    """Tests for StewardAssignmentRepository — active-pair uniqueness and listing."""

    async def _create(self, repo: StewardAssignmentRepository, profile_id: str, email: str) -> StewardAssignment:
        return await repo.create(
            profile_id=profile_id,
            steward_email=email,
            steward_name=None,
            steward_user_id=None,
            assigned_by_id="global-1",
            assigned_by_email="global@swor.org",
            invite_email_pending=True,
        )

    @pytest.mark.asyncio()
    async def test_second_active_assignment_for_pair_conflicts(self, session: AsyncSession) -> None:
        profile = await add_item(session)
        repo = StewardAssignmentRepository(session)
        await self._create(repo, profile.id, "helper@swor.org")

        with pytest.raises(ConflictError):
            await self._create(repo, profile.id, "helper@swor.org")

    @pytest.mark.asyncio()
    async def test_reassign_after_deactivation_inserts_new_row(self, session: AsyncSession) -> None:
        profile = await add_item(session)
        repo = StewardAssignmentRepository(session)
        first = await self._create(repo, profile.id, "helper@swor.org")

        assert await repo.deactivate(first, "rotated", datetime.now(UTC))
        second = await self._create(repo, profile.id, "helper@swor.org")

        assert second.id != first.id
        active = await repo.find_active(profile.id, "helper@swor.org")
        assert active is not None and active.id == second.id

    @pytest.mark.asyncio()
    async def test_deactivate_twice_returns_false(self, session: AsyncSession) -> None:
        profile = await add_item(session)
        repo = StewardAssignmentRepository(session)
        assignment = await self._create(repo, profile.id, "helper@swor.org")

        assert await repo.deactivate(assignment, None, datetime.now(UTC))
        assert not await repo.deactivate(assignment, None, datetime.now(UTC))

    @pytest.mark.asyncio()
    async def test_list_and_workload_counts(self, session: AsyncSession) -> None:
        first = await add_item(session, display_name="One")
        second = await add_item(session, display_name="Two")
        repo = StewardAssignmentRepository(session)
        await self._create(repo, first.id, "busy@swor.org")
        await self._create(repo, second.id, "busy@swor.org")
        idle = await self._create(repo, first.id, "idle@swor.org")
        await repo.deactivate(idle, None, datetime.now(UTC))

        items, total, active_total = await repo.list_assignments(search="BUSY", status=None, limit=10, offset=0)
        assert len(items) == 2
        assert total == 2
        assert active_total == 2

        _, inactive_total, _ = await repo.list_assignments(search=None, status="inactive", limit=10, offset=0)
        assert inactive_total == 1

        assert await repo.active_counts_by_steward() == [("busy@swor.org", None, 2)]


class TestResetRepository:
    """Tests for ResetRepository — cascade scoped to one profile."""

    @pytest.mark.asyncio()
    async def test_archive_children_skips_other_profiles(self, session: AsyncSession) -> None:
        profile = await add_item(session, status="approved")
        other = await add_item(session, status="approved")
        await add_item(session, kind="contribution", status="approved", profile_id=profile.id)
        await add_item(session, kind="contribution", status="archived", profile_id=profile.id)
        untouched = await add_item(session, kind="contribution", status="approved", profile_id=other.id)
        repo = ResetRepository(session)

        archived = await repo.archive_children(profile.id, "contribution", "archived")

        assert archived == 1
        assert await ReviewItemRepository(session).current_status(untouched.id) == "approved"

    @pytest.mark.asyncio()
    async def test_delete_children_and_milestones(self, session: AsyncSession) -> None:
        profile = await add_item(session, status="approved")
        await add_item(session, kind="commendation", status="approved", profile_id=profile.id)
        session.add(Milestone(profile_id=profile.id, title="First ascent", year=1999))
        await session.flush()
        repo = ResetRepository(session)

        assert await repo.delete_children(profile.id, "commendation") == 1
        assert await repo.delete_milestones(profile.id) == 1
        remaining = await session.execute(select(func.count()).select_from(Milestone))
        assert remaining.scalar_one() == 0

    @pytest.mark.asyncio()
    async def test_storage_paths_are_queued(self, session: AsyncSession) -> None:
        profile = await add_item(session, status="approved")
        upload = await add_item(
            session,
            kind="contribution",
            status="approved",
            profile_id=profile.id,
            storage_path="uploads/a.pdf",
        )
        await add_item(session, kind="contribution", status="draft", profile_id=profile.id)
        repo = ResetRepository(session)

        paths = await repo.storage_paths(profile.id)
        queued = await repo.enqueue_cleanup(profile.id, "reset-1", paths)

        assert paths == [(upload.id, "uploads/a.pdf")]
        assert queued == 1
        task = (await session.execute(select(StorageCleanupTask))).scalar_one()
        assert task.reset_id == "reset-1"
        assert task.status == "pending"

    @pytest.mark.asyncio()
    async def test_savepoint_rolls_back_only_inner_work(self, session: AsyncSession) -> None:
        profile = await add_item(session, status="approved")
        child = await add_item(session, kind="contribution", status="approved", profile_id=profile.id)
        repo = ResetRepository(session)

        with pytest.raises(RuntimeError):
            async with repo.savepoint():
                await repo.archive_children(profile.id, "contribution", "archived")
                raise RuntimeError("step failed")

        assert await ReviewItemRepository(session).current_status(child.id) == "approved"
        assert await ReviewItemRepository(session).current_status(profile.id) == "approved"

    @pytest.mark.asyncio()
    async def test_history_newest_first(self, session: AsyncSession) -> None:
        repo = ResetRepository(session)
        for index, created in enumerate((datetime(2025, 1, 1, tzinfo=UTC), datetime(2025, 2, 1, tzinfo=UTC))):
            await repo.append_history(
                ResetHistoryEntry(
                    profile_id="p-1",
                    reset_mode="soft",
                    requested_by_email="global@swor.org",
                    reason_code="testing_clean_slate",
                    reason=f"reset {index}",
                    counts_json={},
                    created_at=created,
                )
            )

        history = await repo.list_history("p-1")

        assert [entry.reason for entry in history] == ["reset 1", "reset 0"]


class TestContactRepository:
    @pytest.mark.asyncio()
    async def test_compare_and_set_status(self, session: AsyncSession) -> None:
        message = ContactMessage(name="Visitor", email="visitor@example.com", subject="Hi", message="Hello")
        session.add(message)
        await session.flush()
        repo = ContactRepository(session)

        assert await repo.compare_and_set_status(message, "new", "triaged", {"steward_note": "seen"})
        assert message.status == "triaged"
        assert not await repo.compare_and_set_status(message, "new", "closed", {})

    @pytest.mark.asyncio()
    async def test_list_messages_newest_first_with_status_filter(self, session: AsyncSession) -> None:
        now = datetime.now(UTC)
        for index, status in enumerate(["new", "closed", "new"]):
            session.add(
                ContactMessage(
                    name=f"Visitor {index}",
                    email="visitor@example.com",
                    subject="Hi",
                    message="Hello",
                    status=status,
                    created_at=now - timedelta(days=3 - index),
                )
            )
        await session.flush()
        repo = ContactRepository(session)

        messages, total = await repo.list_messages("new", limit=10, offset=0)
        assert total == 2
        assert [message.name for message in messages] == ["Visitor 2", "Visitor 0"]

        messages, total = await repo.list_messages(None, limit=2, offset=0)
        assert total == 3
        assert len(messages) == 2
