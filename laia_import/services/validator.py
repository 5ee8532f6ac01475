from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models.parsed_row import ParsedRow, normalize_code
from ..models.reference import ReferenceEntity
from ..models.validation import ValidationIssue, ValidationResult, ValidationStats

"""Row validation for parsed LAIA batches.

Checks run per row in a fixed order:
1. required fields (sector, aspect, impact)
2. category / significance membership
3. sector reference against the tenant snapshot (warning, auto-created later)
4. duplicate (sector, aspect, impact) rows within the batch (warning)
5. informational warnings (aspect code reuse, missing activity)

A blocking failure in stage 1 or 2 short-circuits the remaining stages for
that row only. Warnings never turn a valid row invalid. The output depends
only on the inputs: no clock, no randomness, insertion-ordered containers.
"""

__all__ = [
    "RowValidator",
    "snapshot_codes",
]

logger = logging.getLogger(__name__)


def snapshot_codes(entities: Iterable[ReferenceEntity]) -> set[str]:
    """Upper-cased codes of an existing-sector listing."""
    return {normalize_code(e.code) for e in entities}


class RowValidator:
    REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
        ("sector_code", "Sector code is required"),
        ("environmental_aspect", "Environmental aspect is required"),
        ("environmental_impact", "Environmental impact is required"),
    )

    def __init__(self, *, flag_duplicates: bool = True) -> None:
        self.flag_duplicates = flag_duplicates

    def _required_errors(self, row: ParsedRow) -> list[ValidationIssue]:
        return [
            ValidationIssue.error(row.row_number, message, field)
            for field, message in self.REQUIRED_FIELDS
            if not getattr(row, field).strip()
        ]

    @staticmethod
    def _enum_issues(row: ParsedRow) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        if row.category is None:
            if row.category_raw:
                errors.append(ValidationIssue.error(
                    row.row_number,
                    f'Invalid category "{row.category_raw}" (expected crítico, moderado or baixo)',
                    "category",
                ))
            else:
                warnings.append(ValidationIssue.warning(
                    row.row_number, "Category not informed, imported as low", "category"
                ))
        if row.significance is None:
            if row.significance_raw:
                errors.append(ValidationIssue.error(
                    row.row_number,
                    f'Invalid significance "{row.significance_raw}" '
                    "(expected significativo or não significativo)",
                    "significance",
                ))
            else:
                warnings.append(ValidationIssue.warning(
                    row.row_number, "Significance not informed, imported as non significant", "significance"
                ))
        return errors, warnings

    def validate(
        self,
        rows: Sequence[ParsedRow],
        existing_codes: Iterable[str],
        existing_aspect_codes: Iterable[str] = (),
    ) -> ValidationResult:
        known = {normalize_code(c) for c in existing_codes}
        known_aspects = set(existing_aspect_codes)
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        valid_rows: list[ParsedRow] = []
        invalid_numbers: list[int] = []
        # dicts as ordered sets keep first-seen order deterministic
        new_codes: dict[str, None] = {}
        found_codes: dict[str, None] = {}
        seen_keys: dict[tuple[str, str, str], int] = {}

        for row in rows:
            blocking = self._required_errors(row)
            row_warnings: list[ValidationIssue] = []
            if not blocking:
                enum_errors, enum_warnings = self._enum_issues(row)
                blocking = enum_errors
                row_warnings.extend(enum_warnings)
            if blocking:
                errors.extend(blocking)
                invalid_numbers.append(row.row_number)
                continue

            code = row.sector_key
            found_codes.setdefault(code)
            if code not in known:
                new_codes.setdefault(code)
                row_warnings.append(ValidationIssue.warning(
                    row.row_number,
                    f'Sector "{row.sector_code}" does not exist and will be created automatically',
                    "sector_code",
                ))

            if self.flag_duplicates:
                key = row.duplicate_key
                first = seen_keys.setdefault(key, row.row_number)
                if first != row.row_number:
                    row_warnings.append(ValidationIssue.warning(
                        row.row_number, f"Duplicate of row {first} (same sector, aspect and impact)", None
                    ))

            if row.aspect_code and row.aspect_code in known_aspects:
                row_warnings.append(ValidationIssue.warning(
                    row.row_number,
                    f'Aspect code "{row.aspect_code}" already exists, a new code will be generated',
                    "aspect_code",
                ))
            if not row.activity_operation:
                row_warnings.append(ValidationIssue.warning(
                    row.row_number, "Activity/operation not informed", "activity_operation"
                ))

            warnings.extend(row_warnings)
            valid_rows.append(row)

        stats = ValidationStats(
            total=len(rows),
            valid=len(valid_rows),
            invalid=len(invalid_numbers),
            new_reference_entities=tuple(new_codes),
            sectors_found=tuple(found_codes),
        )
        logger.debug(
            "validated rows=%d valid=%d invalid=%d new_sectors=%s",
            stats.total,
            stats.valid,
            stats.invalid,
            list(stats.new_reference_entities),
        )
        return ValidationResult(
            valid_rows=tuple(valid_rows),
            errors=tuple(errors),
            warnings=tuple(warnings),
            stats=stats,
            invalid_row_numbers=tuple(invalid_numbers),
        )
