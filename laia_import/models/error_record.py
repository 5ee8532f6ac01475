from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .validation import ValidationIssue

"""ErrorRecord model for the JSON Lines error log.

Each record mirrors one ValidationIssue raised while importing a file, plus the
file name, the pipeline stage that produced it and a UTC timestamp. ``row=-1``
is kept for batch-level issues where no single row is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Spreadsheet filename being imported
        stage: Pipeline stage (``parse``, ``validation`` or ``commit``)
        row: Spreadsheet row number. -1 for batch-level issues
        field: Offending field, empty string when not field-scoped
        severity: ``error`` or ``warning``
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    stage: str
    row: int
    field: str
    severity: str
    message: str

    @staticmethod
    def create(
        file: str,
        stage: str,
        row: int,
        message: str,
        field: str = "",
        severity: str = "error",
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            stage=stage,
            row=row,
            field=field,
            severity=severity,
            message=message,
        )

    @staticmethod
    def from_issue(file: str, stage: str, issue: ValidationIssue) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            stage=stage,
            row=issue.row,
            message=issue.message,
            field=issue.field or "",
            severity=issue.severity.value,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line with exactly the dataclass keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
