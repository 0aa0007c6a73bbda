"""CSV rendering for audit log exports.

The column order and escaping rule are a compatibility surface for downstream
consumers parsing the file:

    timestamp,action_type,scope_type,actor_email,target_label,details

A value is wrapped in double quotes when it contains a comma, a double quote,
CR or LF; embedded double quotes are doubled. Rows are joined with LF and the
document starts with a UTF-8 byte order mark so spreadsheet tools detect the
encoding.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from swor_stewardship.core.domain import AuditQuery
from swor_stewardship.core.models import AuditLogEntry

CSV_COLUMNS = ("timestamp", "action_type", "scope_type", "actor_email", "target_label", "details")

BOM = "\ufeff"

_NEEDS_QUOTING = (",", '"', "\n", "\r")


@dataclass
class AuditExport:
    """A rendered export and what the caller must be told about it.

    Attributes:
        content: CSV document including the BOM.
        filename: Suggested download filename.
        row_count: Data rows in the document.
        total_matches: Entries matching the filters.
        rows_omitted: Matching entries left out by the row cap.
        message: Caller-visible summary, e.g. "1,000 of 1,200 exported."
    """

    content: str
    filename: str
    row_count: int
    total_matches: int
    rows_omitted: int
    message: str

    @property
    def truncated(self) -> bool:
        return self.rows_omitted > 0


# Written by hand so rows end in LF; csv.writer would emit CRLF.
# test_standard_csv_reader_recovers_awkward_values checks csv.reader still parses the output.
def escape_csv_value(value: Any) -> str:
    """Render one CSV field, quoting only when needed."""
    if value is None:
        return ""
    text = str(value)
    if any(token in text for token in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def _timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _details(details: dict[str, Any] | None) -> str:
    if details is None:
        return ""
    return json.dumps(details, separators=(",", ":"), ensure_ascii=False, default=str)


def render_csv(entries: Iterable[AuditLogEntry]) -> str:
    """Render audit entries as a BOM-prefixed CSV document."""
    lines = [",".join(CSV_COLUMNS)]
    for entry in entries:
        fields = (
            _timestamp(entry.created_at),
            entry.action_type,
            entry.scope_type,
            entry.actor_email,
            entry.target_label,
            _details(entry.details_json),
        )
        lines.append(",".join(escape_csv_value(field) for field in fields))
    return BOM + "\n".join(lines)


def build_export_filename(filters: AuditQuery, today: date) -> str:
    """Build a descriptive filename from the export date and active filters.

    Examples:
        SWOR_Steward_Audit_2025-03-01_all.csv
        SWOR_Steward_Audit_2025-03-01_from-2025-01-01_to-now_profile-approved_all.csv
    """
    filename = f"SWOR_Steward_Audit_{today.isoformat()}"
    if filters.date_from or filters.date_to:
        start = filters.date_from.isoformat() if filters.date_from else "start"
        end = filters.date_to.isoformat() if filters.date_to else "now"
        filename += f"_from-{start}_to-{end}"

    action_part = filters.action_type_filter.replace(".", "-") if filters.action_type_filter else "all"
    scope_part = filters.scope_type_filter or "all"
    if action_part == "all" and scope_part == "all":
        filename += "_all"
    else:
        filename += f"_{action_part}_{scope_part}"
    return filename + ".csv"


def export_message(row_count: int, total_matches: int) -> str:
    """Caller-visible summary of an export."""
    if total_matches == 0:
        return "No entries match the current filters."
    if total_matches > row_count:
        return f"{row_count:,} of {total_matches:,} exported."
    return f"{row_count:,} entries exported."
