"""Test fixtures for swor-stewardship.

Provides:
- steward / global_steward / owner / member: ActorContext fixtures
- mock_audit_repo: A mock AuditLogRepository that captures append() calls
- mock_item_repo: A mock IReviewItemRepository
- engine / session_factory / session: in-memory SQLite (aiosqlite) database
- serialized_factory: session factory that runs units of work one at a time
- make_fake_item / make_fake_assignment: fake ORM objects for service tests
- add_item / add_audit_entry: row builders for database-backed tests
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from swor_stewardship.auth import ActorContext, Role
from swor_stewardship.core.models import AuditLogEntry, ReviewableItem
from swor_stewardship.database import Base, enable_sqlite_savepoints


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def steward() -> ActorContext:
    """Return a steward actor."""
    return ActorContext(actor_id="steward-1", actor_email="steward@swor.org", role=Role.STEWARD)


@pytest.fixture()
def global_steward() -> ActorContext:
    """Return a global steward actor."""
    return ActorContext(actor_id="global-1", actor_email="global@swor.org", role=Role.GLOBAL_STEWARD)


@pytest.fixture()
def owner() -> ActorContext:
    """Return the member who owns the fake items."""
    return ActorContext(actor_id="owner-1", actor_email="owner@example.com", role=Role.MEMBER)


@pytest.fixture()
def member() -> ActorContext:
    """Return a member who owns nothing."""
    return ActorContext(actor_id="member-2", actor_email="someone@example.com", role=Role.MEMBER)


# ---------------------------------------------------------------------------
# Mock repositories
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_audit_repo() -> AsyncMock:
    """Create a mock AuditLogRepository.

    Returns:
        AsyncMock with append() returning a fake AuditLogEntry.
    """
    repo = AsyncMock()
    fake_entry = MagicMock()
    fake_entry.id = str(uuid.uuid4())
    fake_entry.created_at = datetime.now(UTC)
    repo.append.return_value = fake_entry
    repo.query.return_value = ([], 0)
    repo.count.return_value = 0
    repo.delete_before.return_value = 0
    repo.activity_since.return_value = []
    return repo


@pytest.fixture()
def mock_item_repo() -> AsyncMock:
    """Create a mock IReviewItemRepository whose compare-and-set always succeeds.

    Returns:
        AsyncMock repository. Tests set get_by_id.return_value.
    """
    repo = AsyncMock()
    repo.compare_and_set_status.return_value = True
    return repo


def make_fake_item(
    kind: str = "profile",
    status: str = "submitted_for_review",
    owner_id: str | None = "owner-1",
    owner_email: str | None = "owner@example.com",
    display_name: str = "Ada Lovelace",
    profile_id: str | None = None,
    content: dict[str, Any] | None = None,
) -> MagicMock:
    """Create a fake ReviewableItem ORM object for tests.

    Args:
        kind: Item kind.
        status: Current status.
        owner_id: Owner account id.
        owner_email: Owner email.
        display_name: Audit target label.
        profile_id: Parent profile for commendations and contributions.
        content: Content payload.

    Returns:
        MagicMock with item-like attributes.
    """
    item = MagicMock()
    item.id = str(uuid.uuid4())
    item.kind = kind
    item.status = status
    item.owner_id = owner_id
    item.owner_email = owner_email
    item.display_name = display_name
    item.profile_id = profile_id
    item.content = content or {}
    item.steward_note = None
    item.rejection_reason = None
    item.created_at = datetime.now(UTC)
    item.updated_at = datetime.now(UTC)
    return item


def make_fake_assignment(status: str = "active", steward_email: str = "helper@swor.org") -> MagicMock:
    """Create a fake StewardAssignment ORM object for tests."""
    assignment = MagicMock()
    assignment.id = str(uuid.uuid4())
    assignment.profile_id = str(uuid.uuid4())
    assignment.steward_email = steward_email
    assignment.steward_name = None
    assignment.status = status
    assignment.invite_email_pending = True
    return assignment


# ---------------------------------------------------------------------------
# SQLite database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with every table.

    A StaticPool keeps the single in-memory database alive across sessions.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(test_engine)
    async with test_engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db_session:
        yield db_session


class SerializedSessionFactory:
    """Session factory that lets one session exist at a time.

    All sessions share the single StaticPool connection, so units of work
    opened concurrently by the bulk processors must not interleave. Each
    session holds the lock from open to close, commit included.
    """

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[AsyncSession]:
        async with self._lock:
            async with self._factory() as db_session:
                yield db_session


@pytest.fixture()
def serialized_factory(session_factory: async_sessionmaker[AsyncSession]) -> SerializedSessionFactory:
    return SerializedSessionFactory(session_factory)


async def add_item(
    session: AsyncSession,
    kind: str = "profile",
    status: str = "submitted_for_review",
    display_name: str = "Profile",
    profile_id: str | None = None,
    owner_id: str | None = "owner-1",
    owner_email: str | None = "owner@example.com",
    storage_path: str | None = None,
    content: dict[str, Any] | None = None,
) -> ReviewableItem:
    """Insert and flush one reviewable item."""
    item = ReviewableItem(
        kind=kind,
        status=status,
        display_name=display_name,
        profile_id=profile_id,
        owner_id=owner_id,
        owner_email=owner_email,
        storage_path=storage_path,
        content=content or {"bio": "text"},
    )
    session.add(item)
    await session.flush()
    return item


async def add_audit_entry(
    session: AsyncSession,
    action_type: str = "profile.approved",
    actor_email: str = "steward@swor.org",
    scope_type: str = "profile",
    target_label: str | None = "Profile",
    created_at: datetime | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLogEntry:
    """Insert and flush one audit entry with a chosen timestamp."""
    entry = AuditLogEntry(
        action_type=action_type,
        actor_id="actor",
        actor_email=actor_email,
        scope_type=scope_type,
        target_id=str(uuid.uuid4()),
        target_label=target_label,
        details_json=details or {},
        created_at=created_at or datetime.now(UTC),
    )
    session.add(entry)
    await session.flush()
    return entry
