from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..models.import_result import ImportProgress, ImportResult
from ..models.parsed_row import ParsedRow, normalize_code
from ..models.reference import CreationPlan, ReferenceEntity
from ..models.validation import BATCH_ROW, ValidationIssue
from ..repository.base import Repository

"""Write phase of an import.

Order of work:
1. create the planned sectors, one at a time; a failure is recorded as a
   batch-level issue and the run continues
2. write every valid row in spreadsheet order, each one independently; a
   failing row is recorded and the next one is attempted, nothing already
   written is rolled back
3. push an ImportProgress after every row

``commit`` never raises. Whatever happens in the repository, the caller gets
a complete ImportResult with ``imported + failed == len(rows)``.
"""

__all__ = [
    "ImportCommitter",
    "ProgressCallback",
    "next_aspect_code",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]

CANCELLED_MESSAGE = "Import cancelled before this row was written"


def _aspect_number(aspect_code: str | None) -> int:
    if not aspect_code:
        return 0
    try:
        return int(aspect_code.rsplit(".", 1)[1])
    except (IndexError, ValueError):
        return 0


def next_aspect_code(sector_code: str, number: int) -> str:
    return f"{sector_code}.{number:02d}"


class ImportCommitter:
    def __init__(self, repository: Repository, *, create_missing: bool = True) -> None:
        self.repository = repository
        self.create_missing = create_missing

    def _create_sectors(
        self,
        plan: CreationPlan,
        sectors: dict[str, ReferenceEntity],
        batch_errors: list[ValidationIssue],
    ) -> list[str]:
        created: list[str] = []
        for request in plan.requests:
            if request.code in sectors:
                continue
            try:
                entity = self.repository.create_reference_entity(
                    plan.scope.tenant_id, request.code, request.name
                )
            except Exception as e:
                logger.warning("sector creation failed code=%s: %s", request.code, e)
                batch_errors.append(ValidationIssue.error(
                    BATCH_ROW, f'Could not create sector "{request.code}": {e}', "sector_code"
                ))
                continue
            sectors[request.code] = entity
            created.append(request.code)
        return created

    def _next_number(self, tenant_id: str, sector: ReferenceEntity, counters: dict[str, int]) -> int:
        code = normalize_code(sector.code)
        if code not in counters:
            counters[code] = _aspect_number(self.repository.latest_aspect_code(tenant_id, sector))
        return counters[code] + 1

    def commit(
        self,
        rows: Sequence[ParsedRow],
        plan: CreationPlan,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> ImportResult:
        """Write ``rows`` into ``plan.scope`` and account for every one of them."""
        total = len(rows)
        tenant_id = plan.scope.tenant_id
        batch_errors: list[ValidationIssue] = list(plan.issues)
        row_errors: list[ValidationIssue] = []
        record_ids: list[str] = []
        sectors: dict[str, ReferenceEntity] = dict(plan.existing)
        counters: dict[str, int] = {}
        created: list[str] = []
        cancelled = False

        def emit(current: int, message: str) -> None:
            if on_progress is None:
                return
            try:
                on_progress(ImportProgress(current=current, total=total, message=message))
            except Exception:
                logger.warning("progress callback failed", exc_info=True)

        if self.create_missing and plan.requests:
            emit(0, f"Creating {len(plan.requests)} sector(s)...")
            created = self._create_sectors(plan, sectors, batch_errors)

        for index, row in enumerate(rows):
            if should_stop is not None and should_stop():
                cancelled = True
                for pending in rows[index:]:
                    row_errors.append(ValidationIssue.error(pending.row_number, CANCELLED_MESSAGE))
                logger.info("import cancelled after %d of %d rows", index, total)
                break

            sector = sectors.get(row.sector_key)
            if sector is None:
                row_errors.append(ValidationIssue.error(
                    row.row_number, f'Sector "{row.sector_code}" not found', "sector_code"
                ))
            else:
                try:
                    number = self._next_number(tenant_id, sector, counters)
                    aspect_code = next_aspect_code(normalize_code(sector.code), number)
                    record_id = self.repository.create_record(
                        tenant_id,
                        plan.scope.branch_id,
                        row,
                        reference=sector,
                        aspect_code=aspect_code,
                    )
                except Exception as e:
                    logger.warning("row=%d insert failed: %s", row.row_number, e)
                    row_errors.append(ValidationIssue.error(row.row_number, str(e) or type(e).__name__))
                else:
                    counters[normalize_code(sector.code)] = number
                    record_ids.append(record_id)
            emit(index + 1, f"Importing row {row.row_number}...")

        failed = len(row_errors)
        imported = total - failed
        logger.info(
            "commit tenant=%s branch=%s imported=%d failed=%d sectors_created=%s",
            tenant_id,
            plan.scope.branch_id,
            imported,
            failed,
            created,
        )
        return ImportResult(
            success=failed == 0,
            imported=imported,
            failed=failed,
            created_reference_entities=tuple(created),
            errors=tuple(batch_errors + row_errors),
            cancelled=cancelled,
            record_ids=tuple(record_ids),
        )
