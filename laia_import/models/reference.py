from __future__ import annotations

from dataclasses import dataclass, field

from .parsed_row import normalize_code
from .validation import ValidationIssue

__all__ = [
    "ReferenceEntity",
    "TargetScope",
    "CreationRequest",
    "CreationPlan",
]


@dataclass(frozen=True)
class ReferenceEntity:
    """A tenant-scoped lookup record (a LAIA sector) identified by ``(tenant_id, code)``."""
    tenant_id: str
    code: str
    name: str
    id: str | None = None  # storage key, unknown until persisted

    @property
    def key(self) -> tuple[str, str]:
        return (self.tenant_id, normalize_code(self.code))


@dataclass(frozen=True)
class TargetScope:
    """Where imported records are attached: a company and optionally one of its branches."""
    tenant_id: str
    branch_id: str | None = None


@dataclass(frozen=True)
class CreationRequest:
    code: str
    name: str


@dataclass(frozen=True)
class CreationPlan:
    """Sectors to create before the records are written.

    ``existing`` is the snapshot of sectors already present in the tenant,
    keyed by upper-cased code; the committer binds rows against it and adds
    whatever it creates.
    """
    scope: TargetScope
    requests: tuple[CreationRequest, ...] = ()
    existing: dict[str, ReferenceEntity] = field(default_factory=dict)
    skipped: tuple[str, ...] = ()  # requested codes that already existed
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def codes(self) -> list[str]:
        return [r.code for r in self.requests]
