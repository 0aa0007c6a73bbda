"""Bulk actions — batched, partial-failure tolerant review and deactivation.

Runs one transition per selected item in sequential batches of concurrent
items, folds per-item failures into a summary and exposes progress through
in-memory jobs.
"""

from swor_stewardship.bulk.fanout import ItemOutcome, run_in_batches
from swor_stewardship.bulk.jobs import BulkJob, BulkJobRegistry, BulkProgress, JobStatus
from swor_stewardship.bulk.processor import (
    BulkDeactivateProcessor,
    BulkDecision,
    BulkReviewProcessor,
    BulkSummary,
)

__all__ = [
    "BulkDeactivateProcessor",
    "BulkDecision",
    "BulkJob",
    "BulkJobRegistry",
    "BulkProgress",
    "BulkReviewProcessor",
    "BulkSummary",
    "ItemOutcome",
    "JobStatus",
    "run_in_batches",
]
