from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .parsed_row import ParsedRow

"""Validation issue and result models.

Issues are plain data: the validator and the committer never raise for a
row-scoped problem, they return it inside these structures. ``row=-1`` marks
batch-level issues (e.g. a sector that could not be created) where no single
spreadsheet row is to blame.
"""

__all__ = [
    "BATCH_ROW",
    "Severity",
    "ValidationIssue",
    "ValidationStats",
    "ValidationResult",
]

BATCH_ROW = -1


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    row: int  # spreadsheet row, BATCH_ROW when not row-scoped
    message: str
    field: str | None = None
    severity: Severity = Severity.ERROR

    @staticmethod
    def error(row: int, message: str, field: str | None = None) -> ValidationIssue:
        return ValidationIssue(row=row, message=message, field=field, severity=Severity.ERROR)

    @staticmethod
    def warning(row: int, message: str, field: str | None = None) -> ValidationIssue:
        return ValidationIssue(row=row, message=message, field=field, severity=Severity.WARNING)

    @property
    def is_batch_level(self) -> bool:
        return self.row == BATCH_ROW


@dataclass(frozen=True)
class ValidationStats:
    total: int
    valid: int
    invalid: int
    new_reference_entities: tuple[str, ...] = ()  # deduplicated, first-seen order
    sectors_found: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a parsed batch.

    Invariants: ``stats.valid + stats.invalid == stats.total`` and
    ``len(valid_rows) == stats.valid``. A row number appears either in
    ``valid_rows`` or among the rows of ``errors``, never both.
    """
    valid_rows: tuple[ParsedRow, ...]
    errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    stats: ValidationStats
    invalid_row_numbers: tuple[int, ...] = field(default=())

    @property
    def is_valid(self) -> bool:
        return self.stats.invalid == 0

    def issues_for_row(self, row_number: int) -> list[ValidationIssue]:
        return [i for i in (*self.errors, *self.warnings) if i.row == row_number]
