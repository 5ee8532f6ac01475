from __future__ import annotations

from typing import Any

import psycopg2

from ..models.parsed_row import ParsedRow
from ..models.reference import ReferenceEntity
from .base import RepositoryError

"""PostgreSQL repository over a psycopg2 cursor.

The cursor is expected to belong to an autocommit connection: there is no
cross-row transaction, every statement commits on its own so a failing row
never rolls back the rows written before it.

Tables (created by the application's migrations, not here):
- laia_sectors(id, company_id, code, name, description)
- laia_assessments(id, company_id, sector_id, branch_id, aspect_code, ...)
"""

__all__ = [
    "PostgresRepository",
    "ASSESSMENT_COLUMNS",
]

SECTOR_DESCRIPTION = "Created automatically by the spreadsheet import"

ASSESSMENT_COLUMNS = [
    "company_id",
    "sector_id",
    "branch_id",
    "aspect_code",
    "activity_operation",
    "environmental_aspect",
    "environmental_impact",
    "temporality",
    "operational_situation",
    "incidence",
    "impact_class",
    "scope",
    "severity",
    "consequence_score",
    "frequency_probability",
    "total_score",
    "category",
    "has_legal_requirements",
    "has_stakeholder_demand",
    "has_strategic_options",
    "significance",
    "control_types",
    "existing_controls",
    "legislation_reference",
    "has_lifecycle_control",
    "lifecycle_stages",
    "output_actions",
    "status",
]


def assessment_values(
    tenant_id: str,
    scope_id: str | None,
    row: ParsedRow,
    reference: ReferenceEntity,
    aspect_code: str,
) -> list[Any]:
    """Column values for one assessment, in ASSESSMENT_COLUMNS order."""
    return [
        tenant_id,
        reference.id,
        scope_id,
        aspect_code,
        row.activity_operation or "Not specified",
        row.environmental_aspect,
        row.environmental_impact,
        row.temporality.value,
        row.operational_situation.value,
        row.incidence.value,
        row.impact_class.value,
        row.scope.value,
        row.severity.value,
        row.consequence_score,
        row.frequency_probability.value,
        row.total_score,
        row.effective_category.value,
        row.has_legal_requirements,
        row.has_stakeholder_demand,
        row.has_strategic_options,
        row.effective_significance.value,
        list(row.control_types),
        row.existing_controls or None,
        row.legislation_reference or None,
        row.has_lifecycle_control,
        list(row.lifecycle_stages),
        row.output_actions or None,
        "active",
    ]


class PostgresRepository:
    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor

    def _execute(self, sql: str, params: tuple[Any, ...] | list[Any]) -> None:
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise RepositoryError(str(e).strip()) from e

    def _fetchone(self) -> tuple[Any, ...] | None:
        try:
            return self.cursor.fetchone()
        except psycopg2.Error as e:
            raise RepositoryError(str(e).strip()) from e

    def list_reference_entities(self, tenant_id: str) -> list[ReferenceEntity]:
        self._execute(
            "SELECT id, code, name FROM laia_sectors WHERE company_id = %s ORDER BY code",
            (tenant_id,),
        )
        try:
            rows = self.cursor.fetchall()
        except psycopg2.Error as e:
            raise RepositoryError(str(e).strip()) from e
        return [
            ReferenceEntity(tenant_id=tenant_id, code=code, name=name, id=str(sector_id))
            for sector_id, code, name in rows
        ]

    def create_reference_entity(self, tenant_id: str, code: str, name: str) -> ReferenceEntity:
        self._execute(
            "INSERT INTO laia_sectors (company_id, code, name, description) "
            "VALUES (%s, %s, %s, %s) RETURNING id",
            (tenant_id, code, name, SECTOR_DESCRIPTION),
        )
        row = self._fetchone()
        if row is None:
            raise RepositoryError(f"sector insert returned no id: {code}")
        return ReferenceEntity(tenant_id=tenant_id, code=code, name=name, id=str(row[0]))

    def create_record(
        self,
        tenant_id: str,
        scope_id: str | None,
        row: ParsedRow,
        *,
        reference: ReferenceEntity,
        aspect_code: str,
    ) -> str:
        cols_sql = ",".join(f'"{c}"' for c in ASSESSMENT_COLUMNS)
        placeholders = ",".join(["%s"] * len(ASSESSMENT_COLUMNS))
        self._execute(
            f"INSERT INTO laia_assessments ({cols_sql}) VALUES ({placeholders}) RETURNING id",
            assessment_values(tenant_id, scope_id, row, reference, aspect_code),
        )
        inserted = self._fetchone()
        if inserted is None:
            raise RepositoryError(f"assessment insert returned no id (row {row.row_number})")
        return str(inserted[0])

    def list_aspect_codes(self, tenant_id: str) -> list[str]:
        self._execute(
            "SELECT aspect_code FROM laia_assessments WHERE company_id = %s",
            (tenant_id,),
        )
        try:
            return [r[0] for r in self.cursor.fetchall() if r[0]]
        except psycopg2.Error as e:
            raise RepositoryError(str(e).strip()) from e

    def latest_aspect_code(self, tenant_id: str, reference: ReferenceEntity) -> str | None:
        self._execute(
            "SELECT aspect_code FROM laia_assessments "
            "WHERE company_id = %s AND sector_id = %s "
            "ORDER BY length(aspect_code) DESC, aspect_code DESC LIMIT 1",
            (tenant_id, reference.id),
        )
        row = self._fetchone()
        return row[0] if row else None
