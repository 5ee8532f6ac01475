from __future__ import annotations

from dataclasses import dataclass

from .validation import ValidationIssue

"""Commit outcome and progress models.

ImportResult is always complete: the committer returns one even when every
row failed. ImportProgress is the structured value pushed through the
progress channel after each processed row.
"""

__all__ = [
    "ImportProgress",
    "ImportResult",
]


@dataclass(frozen=True)
class ImportProgress:
    current: int
    total: int
    message: str = ""

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(self.current * 100.0 / self.total, 1)


@dataclass(frozen=True)
class ImportResult:
    """Per-batch commit accounting.

    ``imported + failed`` equals the number of valid rows handed to the
    committer. ``errors`` holds row issues in row order, preceded by any
    batch-level issues (``row == -1``).
    """
    success: bool
    imported: int
    failed: int
    created_reference_entities: tuple[str, ...] = ()
    errors: tuple[ValidationIssue, ...] = ()
    cancelled: bool = False
    record_ids: tuple[str, ...] = ()

    @property
    def row_errors(self) -> list[ValidationIssue]:
        return [e for e in self.errors if not e.is_batch_level]

    @property
    def batch_errors(self) -> list[ValidationIssue]:
        return [e for e in self.errors if e.is_batch_level]
