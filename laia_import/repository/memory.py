from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass

from ..models.parsed_row import ParsedRow, normalize_code
from ..models.reference import ReferenceEntity
from .base import RepositoryError

"""In-memory repository.

Backs the unit tests and ``--dry-run`` executions. Failures can be injected
per sector code or per spreadsheet row through ``fail_sector_codes`` /
``fail_rows`` (or an arbitrary ``record_hook``) to exercise the
partial-failure paths.
"""

__all__ = [
    "StoredRecord",
    "InMemoryRepository",
]


@dataclass(frozen=True)
class StoredRecord:
    id: str
    tenant_id: str
    scope_id: str | None
    sector_id: str
    aspect_code: str
    row: ParsedRow


class InMemoryRepository:
    def __init__(
        self,
        sectors: list[ReferenceEntity] | None = None,
        *,
        fail_sector_codes: set[str] | None = None,
        fail_rows: set[int] | None = None,
        fail_listing: bool = False,
        record_hook: Callable[[ParsedRow], None] | None = None,
    ) -> None:
        self._ids = itertools.count(1)
        self.sectors: dict[tuple[str, str], ReferenceEntity] = {}
        self.records: list[StoredRecord] = []
        self.fail_sector_codes = {normalize_code(c) for c in (fail_sector_codes or set())}
        self.fail_rows = set(fail_rows or set())
        self.fail_listing = fail_listing
        self.record_hook = record_hook
        self.create_reference_calls = 0
        for sector in sectors or []:
            self.add_sector(sector)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_sector(self, sector: ReferenceEntity) -> ReferenceEntity:
        if sector.id is None:
            sector = ReferenceEntity(
                tenant_id=sector.tenant_id, code=sector.code, name=sector.name, id=self._next_id("sector")
            )
        self.sectors[sector.key] = sector
        return sector

    def list_reference_entities(self, tenant_id: str) -> list[ReferenceEntity]:
        if self.fail_listing:
            raise RepositoryError("sector lookup unavailable")
        return [s for (tenant, _), s in self.sectors.items() if tenant == tenant_id]

    def create_reference_entity(self, tenant_id: str, code: str, name: str) -> ReferenceEntity:
        self.create_reference_calls += 1
        if normalize_code(code) in self.fail_sector_codes:
            raise RepositoryError(f"could not create sector {code}")
        key = (tenant_id, normalize_code(code))
        if key in self.sectors:
            raise RepositoryError(f"duplicate key value violates unique constraint: sector {code}")
        return self.add_sector(ReferenceEntity(tenant_id=tenant_id, code=code, name=name))

    def create_record(
        self,
        tenant_id: str,
        scope_id: str | None,
        row: ParsedRow,
        *,
        reference: ReferenceEntity,
        aspect_code: str,
    ) -> str:
        if self.record_hook is not None:
            self.record_hook(row)
        if row.row_number in self.fail_rows:
            raise RepositoryError(f"insert failed for row {row.row_number}")
        record = StoredRecord(
            id=self._next_id("assessment"),
            tenant_id=tenant_id,
            scope_id=scope_id,
            sector_id=reference.id or "",
            aspect_code=aspect_code,
            row=row,
        )
        self.records.append(record)
        return record.id

    def list_aspect_codes(self, tenant_id: str) -> list[str]:
        return [r.aspect_code for r in self.records if r.tenant_id == tenant_id]

    def latest_aspect_code(self, tenant_id: str, reference: ReferenceEntity) -> str | None:
        codes = [
            r.aspect_code
            for r in self.records
            if r.tenant_id == tenant_id and r.sector_id == reference.id
        ]
        return max(codes, key=lambda c: (len(c), c)) if codes else None

    def sector_codes(self, tenant_id: str) -> list[str]:
        return [s.code for (tenant, _), s in self.sectors.items() if tenant == tenant_id]
