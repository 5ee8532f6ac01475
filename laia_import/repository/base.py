from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models.parsed_row import ParsedRow
from ..models.reference import ReferenceEntity

"""Persistence contract consumed by the import pipeline.

The pipeline only ever talks to storage through these five calls, so it can be
exercised against ``InMemoryRepository`` in tests and dry runs and against
``PostgresRepository`` in production. Implementations wrap driver failures in
RepositoryError; callers in the pipeline also tolerate any other exception.
"""

__all__ = [
    "RepositoryError",
    "Repository",
]


class RepositoryError(Exception):
    """Transport or persistence failure reported by a repository."""


@runtime_checkable
class Repository(Protocol):
    def list_reference_entities(self, tenant_id: str) -> list[ReferenceEntity]:
        """Return every sector of the tenant."""
        ...

    def create_reference_entity(self, tenant_id: str, code: str, name: str) -> ReferenceEntity:
        """Persist a new sector and return it with its storage id."""
        ...

    def create_record(
        self,
        tenant_id: str,
        scope_id: str | None,
        row: ParsedRow,
        *,
        reference: ReferenceEntity,
        aspect_code: str,
    ) -> str:
        """Persist one assessment bound to ``reference`` and return its id."""
        ...

    def list_aspect_codes(self, tenant_id: str) -> list[str]:
        """Return the aspect codes already used by the tenant's assessments."""
        ...

    def latest_aspect_code(self, tenant_id: str, reference: ReferenceEntity) -> str | None:
        """Return the highest aspect code stored for the sector, if any."""
        ...
