from __future__ import annotations

import logging
from collections.abc import Iterable

from ..models.config_models import DEFAULT_SECTOR_NAME_TEMPLATE
from ..config.loader import check_name_template
from ..models.parsed_row import normalize_code
from ..models.reference import CreationPlan, CreationRequest, ReferenceEntity, TargetScope
from ..models.validation import BATCH_ROW, ValidationIssue
from ..repository.base import Repository

"""Reference (sector) resolution.

Turns the new sector codes reported by validation into a creation plan. The
tenant's sectors are looked up right before planning, so a second run after a
partial commit finds the sectors created by the first one and skips them
instead of failing on a duplicate.
"""

__all__ = [
    "ReferenceResolver",
]

logger = logging.getLogger(__name__)


class ReferenceResolver:
    def __init__(
        self,
        repository: Repository,
        *,
        name_template: str = DEFAULT_SECTOR_NAME_TEMPLATE,
    ) -> None:
        self.repository = repository
        check_name_template(name_template)
        self.name_template = name_template

    def display_name(self, code: str) -> str:
        return self.name_template.format(code=code)

    def plan(self, codes: Iterable[str], scope: TargetScope) -> CreationPlan:
        """Build one creation request per distinct code missing from the tenant.

        Never raises: a failed lookup is reported in ``plan.issues`` and every
        code is then planned, leaving duplicates to fail at creation time.
        """
        issues: list[ValidationIssue] = []
        existing: dict[str, ReferenceEntity] = {}
        try:
            for entity in self.repository.list_reference_entities(scope.tenant_id):
                existing[normalize_code(entity.code)] = entity
        except Exception as e:
            logger.warning("sector lookup failed tenant=%s: %s", scope.tenant_id, e)
            issues.append(ValidationIssue.error(
                BATCH_ROW, f"Could not look up existing sectors: {e}", "sector_code"
            ))

        requests: list[CreationRequest] = []
        skipped: list[str] = []
        seen: set[str] = set()
        for raw in codes:
            code = normalize_code(raw)
            if not code or code in seen:
                continue
            seen.add(code)
            if code in existing:
                skipped.append(code)
                continue
            requests.append(CreationRequest(code=code, name=self.display_name(code)))

        if skipped:
            logger.info("sectors already present, not re-created: %s", skipped)
        return CreationPlan(
            scope=scope,
            requests=tuple(requests),
            existing=existing,
            skipped=tuple(skipped),
            issues=tuple(issues),
        )
