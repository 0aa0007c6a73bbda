"""Tests for safe reset: preconditions, soft and hard cascades, partial failure.

The cascade tests run against SQLite with savepoints enabled, so a failing
step rolls back on its own while earlier steps stay applied.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from swor_stewardship.adapters.audit_log import AuditLogRepository
from swor_stewardship.adapters.repositories import ResetRepository, ReviewItemRepository
from swor_stewardship.auth import ActorContext
from swor_stewardship.core.models import (
    AuditLogEntry,
    Milestone,
    ResetHistoryEntry,
    ReviewableItem,
    StewardAssignment,
    StorageCleanupTask,
)
from swor_stewardship.core.services import AuditService
from swor_stewardship.errors import ForbiddenError, Outcome, ValidationError
from swor_stewardship.safe_reset import CONFIRM_PHRASE, ResetRequest, SafeResetService
from swor_stewardship.safe_reset.preconditions import evaluate, is_confirmation_valid, is_reason_valid
from tests.conftest import add_audit_entry, add_item


def _request(profile_id: str, mode: str = "soft", **overrides: str | None) -> ResetRequest:
    values: dict[str, str | None] = {
        "reset_mode": mode,
        "reason_code": "testing_clean_slate",
        "confirm_phrase": CONFIRM_PHRASE,
        "reason_note": None,
    }
    values.update(overrides)
    return ResetRequest(profile_id=profile_id, **values)  # type: ignore[arg-type]


def _service(session: AsyncSession, reset_repo: ResetRepository | None = None) -> SafeResetService:
    return SafeResetService(
        reset_repo=reset_repo or ResetRepository(session),
        item_repo=ReviewItemRepository(session),
        audit_service=AuditService(AuditLogRepository(session)),
    )


async def _count(session: AsyncSession, model: type, *conditions: object) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*conditions))
    return result.scalar_one()


async def _seed_profile(session: AsyncSession) -> ReviewableItem:
    """A profile with two contributions (one uploaded), a commendation and a milestone."""
    profile = await add_item(session, status="approved", display_name="Ada", content={"bio": "long text"})
    await add_item(
        session,
        kind="contribution",
        status="approved",
        profile_id=profile.id,
        storage_path="uploads/ada/map.pdf",
    )
    await add_item(session, kind="contribution", status="submitted_for_review", profile_id=profile.id)
    await add_item(session, kind="commendation", status="approved", profile_id=profile.id)
    session.add(Milestone(profile_id=profile.id, title="First crossing", year=1990))
    session.add(
        StewardAssignment(
            profile_id=profile.id,
            steward_email="helper@swor.org",
            status="active",
            invite_email_pending=False,
        )
    )
    await session.flush()
    return profile


class TestPreconditions:
    """Tests for the independent reset preconditions."""

    def test_confirmation_requires_exact_phrase(self) -> None:
        assert is_confirmation_valid("RESET THIS PROFILE")
        assert not is_confirmation_valid("reset this profile")
        assert not is_confirmation_valid(" RESET THIS PROFILE ")
        assert not is_confirmation_valid(None)

    @pytest.mark.parametrize(
        ("code", "note", "expected"),
        [
            ("testing_clean_slate", None, True),
            ("requested_by_owner", "ignored", True),
            ("other", "Owner asked by phone", True),
            ("other", "x" * 240, True),
            ("other", "x" * 241, False),
            ("other", "   ", False),
            ("other", None, False),
            ("because", None, False),
            ("", None, False),
        ],
    )
    def test_reason_validity(self, code: str, note: str | None, expected: bool) -> None:
        assert is_reason_valid(code, note) is expected

    def test_evaluate_reports_every_unmet_precondition(self) -> None:
        request = ResetRequest(profile_id="", reset_mode="wipe", reason_code="other", confirm_phrase="yes")

        readiness = evaluate(request, profile_exists=False)

        assert not readiness.ready
        assert readiness.missing == ["profile_selected", "reason_valid", "confirmation_valid", "reset_mode"]

    def test_reason_text_uses_label_or_note(self) -> None:
        assert _request("p").reason_text == "Testing clean slate"
        assert _request("p", reason_code="other", reason_note=" phone call ").reason_text == "phone call"


class TestSafeResetService:
    """Tests for SafeResetService against the database."""

    @pytest.mark.asyncio()
    async def test_readiness_for_unknown_or_non_profile_item(self, session: AsyncSession) -> None:
        profile = await add_item(session)
        commendation = await add_item(session, kind="commendation", profile_id=profile.id)
        service = _service(session)

        assert (await service.check_readiness(_request(profile.id))).ready
        assert not (await service.check_readiness(_request("missing"))).profile_selected
        assert not (await service.check_readiness(_request(commendation.id))).profile_selected

    @pytest.mark.asyncio()
    async def test_steward_cannot_reset(self, session: AsyncSession, steward: ActorContext) -> None:
        profile = await _seed_profile(session)

        with pytest.raises(ForbiddenError):
            await _service(session).execute(_request(profile.id), steward)

        assert await _count(session, ResetHistoryEntry) == 0

    @pytest.mark.asyncio()
    async def test_lowercase_phrase_blocks_reset(self, session: AsyncSession, global_steward: ActorContext) -> None:
        profile = await _seed_profile(session)

        with pytest.raises(ValidationError) as exc_info:
            await _service(session).execute(
                _request(profile.id, confirm_phrase="reset this profile"),
                global_steward,
            )

        assert exc_info.value.missing == ["confirmation_valid"]
        assert await ReviewItemRepository(session).current_status(profile.id) == "approved"
        assert await _count(session, ResetHistoryEntry) == 0
        assert await _count(session, AuditLogEntry) == 0

    @pytest.mark.asyncio()
    async def test_other_reason_without_note_blocks_reset(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await _seed_profile(session)

        with pytest.raises(ValidationError) as exc_info:
            await _service(session).execute(_request(profile.id, reason_code="other"), global_steward)

        assert exc_info.value.missing == ["reason_valid"]

    @pytest.mark.asyncio()
    async def test_soft_reset_archives_and_keeps_rows(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await _seed_profile(session)
        await add_audit_entry(session, action_type="profile.approved", target_label="Ada")
        items_before = await _count(session, ReviewableItem)

        result = await _service(session).execute(_request(profile.id, "soft"), global_steward)

        assert result.outcome == Outcome.SUCCEEDED
        assert result.message == "Profile reset (soft) complete."
        assert result.counts == {
            "archive_items_affected": 2,
            "commendations_affected": 1,
            "milestones_affected": 0,
        }
        assert profile.status == "draft"
        assert profile.content == {}
        assert await _count(session, ReviewableItem) == items_before
        children = (
            await session.execute(select(ReviewableItem.status).where(ReviewableItem.profile_id == profile.id))
        ).scalars()
        assert set(children) == {"archived"}
        assert await _count(session, Milestone) == 1
        assert await _count(session, StorageCleanupTask) == 0
        assert await _count(session, StewardAssignment, StewardAssignment.status == "active") == 1

    @pytest.mark.asyncio()
    async def test_hard_reset_deletes_and_queues_storage(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await _seed_profile(session)
        await add_audit_entry(session, action_type="profile.approved", target_label="Ada")

        result = await _service(session).execute(_request(profile.id, "hard"), global_steward)

        assert result.outcome == Outcome.SUCCEEDED
        assert result.counts == {
            "archive_items_affected": 2,
            "commendations_affected": 1,
            "milestones_affected": 1,
            "cleanup_queue_count": 1,
        }
        assert await _count(session, ReviewableItem) == 1
        assert await _count(session, Milestone) == 0
        task = (await session.execute(select(StorageCleanupTask))).scalar_one()
        assert task.storage_path == "uploads/ada/map.pdf"
        assert task.reset_id == result.reset_id
        assert await _count(session, StewardAssignment) == 1
        # The earlier audit entry plus the reset entry
        assert await _count(session, AuditLogEntry) == 2

    @pytest.mark.asyncio()
    async def test_history_and_audit_written_once(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        profile = await _seed_profile(session)

        result = await _service(session).execute(
            _request(profile.id, "soft", reason_code="other", reason_note="Owner asked by phone"),
            global_steward,
        )

        (history,) = (await session.execute(select(ResetHistoryEntry))).scalars().all()
        assert history.id == result.reset_id
        assert history.reason == "Owner asked by phone"
        assert history.reason_note == "Owner asked by phone"
        assert history.requested_by_email == "global@swor.org"
        assert history.counts_json == result.counts
        assert history.outcome == "succeeded"

        (entry,) = (await session.execute(select(AuditLogEntry))).scalars().all()
        assert entry.action_type == "profile.reset_executed"
        assert entry.target_id == profile.id
        assert entry.details_json["resetId"] == result.reset_id
        assert entry.details_json["resetMode"] == "soft"
        assert entry.details_json["failedStep"] is None

    @pytest.mark.asyncio()
    async def test_failing_step_reports_partial_failure(
        self,
        session: AsyncSession,
        global_steward: ActorContext,
    ) -> None:
        """A failing step rolls back alone; earlier steps stay applied and later ones are skipped."""

        class FailingCommendations(ResetRepository):
            async def delete_children(self, profile_id: str, kind: str) -> int:
                if kind == "commendation":
                    await super().delete_children(profile_id, kind)
                    raise RuntimeError("commendation store unavailable")
                return await super().delete_children(profile_id, kind)

        profile = await _seed_profile(session)
        service = _service(session, reset_repo=FailingCommendations(session))

        result = await service.execute(_request(profile.id, "hard"), global_steward)

        assert result.outcome == Outcome.PARTIAL_FAILURE
        assert result.failed_step == "commendations"
        assert result.error == "commendation store unavailable"
        assert "stopped at step 'commendations'" in result.message
        assert result.counts["archive_items_affected"] == 2
        assert result.counts["milestones_affected"] == 0
        assert await _count(session, ReviewableItem, ReviewableItem.kind == "contribution") == 0
        # Rolled back with its savepoint
        assert await _count(session, ReviewableItem, ReviewableItem.kind == "commendation") == 1
        # Never reached
        assert await _count(session, Milestone) == 1

        history = (await session.execute(select(ResetHistoryEntry))).scalar_one()
        assert history.outcome == "partial_failure"
        entry = (await session.execute(select(AuditLogEntry))).scalar_one()
        assert entry.details_json["outcome"] == "partial_failure"
        assert entry.details_json["failedStep"] == "commendations"

    @pytest.mark.asyncio()
    async def test_reset_history_newest_first(self, session: AsyncSession, global_steward: ActorContext) -> None:
        profile = await _seed_profile(session)
        service = _service(session)

        await service.execute(_request(profile.id, "soft"), global_steward)
        await service.execute(_request(profile.id, "hard"), global_steward)

        history = await service.reset_history(profile.id)
        assert [entry.reset_mode for entry in history] == ["hard", "soft"]
