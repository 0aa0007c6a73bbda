"""In-memory bulk action jobs with incremental progress.

A BulkJob is ephemeral: only its effects (the underlying transitions and
audit entries) are persisted. Progress is updated after each batch, and
callers observe it either by polling `progress` or by iterating `watch()`.
Nobody observing a job does not stop it; the registry keeps a reference to
each running task until it finishes.
"""

import asyncio
import uuid
from collections import OrderedDict
from collections.abc import AsyncIterator, Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from swor_stewardship.bulk.fanout import unique_ids
from swor_stewardship.database import utcnow
from swor_stewardship.errors import NotFoundError
from swor_stewardship.observability import get_logger

logger = get_logger(__name__)


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BulkProgress:
    """Snapshot of a job's running tally.

    Attributes:
        total: Items selected.
        completed: Items finished so far, successful or not.
        failed: Items that failed so far.
        status: Job status at snapshot time.
    """

    total: int
    completed: int
    failed: int
    status: JobStatus

    @property
    def succeeded(self) -> int:
        return self.completed - self.failed


@dataclass
class BulkJob:
    """A bulk action running in the background."""

    action: str
    decision: str
    target_ids: list[str]
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    completed: int = 0
    failed: int = 0
    failed_item_labels: list[str] = field(default_factory=list)
    summary: Any = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    _changed: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def total(self) -> int:
        return len(self.target_ids)

    @property
    def done(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def progress(self) -> BulkProgress:
        return BulkProgress(total=self.total, completed=self.completed, failed=self.failed, status=self.status)

    def _notify(self) -> None:
        # Wake current watchers and arm a fresh event for the next change
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING
        self._notify()

    def record_batch(self, succeeded: int, failed_labels: list[str]) -> None:
        """Fold one finished batch into the tally."""
        self.completed += succeeded + len(failed_labels)
        self.failed += len(failed_labels)
        self.failed_item_labels.extend(failed_labels)
        self._notify()

    def finish(self, summary: Any) -> None:
        self.summary = summary
        self.status = JobStatus.COMPLETED
        self.finished_at = utcnow()
        self._notify()

    def fail(self, error: str) -> None:
        self.error = error
        self.status = JobStatus.FAILED
        self.finished_at = utcnow()
        self._notify()

    async def watch(self) -> AsyncIterator[BulkProgress]:
        """Yield a progress snapshot now and after every change until the job is done."""
        while True:
            changed = self._changed
            yield self.progress
            if self.done:
                return
            await changed.wait()


class BulkJobRegistry:
    """Keeps recent bulk jobs addressable by id and their tasks alive.

    Args:
        max_jobs: Finished jobs beyond this many are forgotten, oldest first.
    """

    def __init__(self, max_jobs: int = 200) -> None:
        self._jobs: OrderedDict[str, BulkJob] = OrderedDict()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._max_jobs = max_jobs

    def create(self, action: str, decision: str, target_ids: list[str]) -> BulkJob:
        """Register a pending job over the de-duplicated selection."""
        job = BulkJob(action=action, decision=decision, target_ids=unique_ids(target_ids))
        self._jobs[job.job_id] = job
        self._evict()
        return job

    def get(self, job_id: str) -> BulkJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise NotFoundError(resource="BulkJob", resource_id=job_id) from None

    def start(self, job: BulkJob, runner: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run `runner` in the background; failures are recorded on the job."""

        async def _run() -> None:
            try:
                await runner
            except Exception as exc:
                logger.exception("Bulk job failed", job_id=job.job_id, action=job.action)
                job.fail(str(exc))

        task = asyncio.create_task(_run(), name=f"bulk-job-{job.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self) -> None:
        """Wait for running jobs so in-flight items finish before the engine closes."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _evict(self) -> None:
        while len(self._jobs) > self._max_jobs:
            oldest_id, oldest = next(iter(self._jobs.items()))
            if not oldest.done:
                break
            del self._jobs[oldest_id]
