from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from ..excel.reader import ParseError, read_spreadsheet
from ..models.config_models import ImportSettings
from ..models.import_result import ImportProgress, ImportResult
from ..models.parsed_row import ParsedRow
from ..models.reference import TargetScope
from ..models.validation import BATCH_ROW, ValidationIssue, ValidationResult
from ..repository.base import Repository
from .committer import ImportCommitter, ProgressCallback
from .progress import ProgressRecorder
from .resolver import ReferenceResolver
from .validator import RowValidator, snapshot_codes

"""Import wizard state machine.

The wizard is modelled as an immutable SessionState plus pure transition
functions, so it can be unit-tested without any UI:

    upload --parsed--> target-selection --confirmed--> preview
    preview --validation started--> validating --completed--> validating (result set)
    validating (result set) --import started--> importing --completed--> result
    result --reset--> upload
    any --cancel--> upload

Transitions that lack their preceding artifact (parsed rows, validation
result) raise SessionStateError: that is a caller bug, not a business error.

ImportSession drives the parser, validator, resolver and committer through
these transitions and owns the cancellation flag.
"""

__all__ = [
    "Step",
    "SessionState",
    "SessionStateError",
    "ImportSession",
    "file_parsed",
    "target_confirmed",
    "validation_started",
    "validation_completed",
    "import_started",
    "import_completed",
    "go_back",
    "reset",
]

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """Raised on an illegal wizard transition."""


class Step(Enum):
    UPLOAD = "upload"
    TARGET_SELECTION = "target-selection"
    PREVIEW = "preview"
    VALIDATING = "validating"
    IMPORTING = "importing"
    RESULT = "result"


STEP_ORDER: tuple[Step, ...] = tuple(Step)


@dataclass(frozen=True)
class SessionState:
    step: Step = Step.UPLOAD
    file_name: str | None = None
    parsed_rows: tuple[ParsedRow, ...] = ()
    target: TargetScope | None = None
    validation_result: ValidationResult | None = None
    import_result: ImportResult | None = None

    @property
    def is_validated(self) -> bool:
        return self.step is Step.VALIDATING and self.validation_result is not None


def _require(state: SessionState, *steps: Step) -> None:
    if state.step not in steps:
        expected = ", ".join(s.value for s in steps)
        raise SessionStateError(f"invalid transition from '{state.step.value}' (expected {expected})")


def reset(state: SessionState | None = None) -> SessionState:
    return SessionState()


def file_parsed(state: SessionState, rows: Sequence[ParsedRow], file_name: str | None = None) -> SessionState:
    _require(state, Step.UPLOAD)
    if not rows:
        raise SessionStateError("cannot leave upload without parsed rows")
    return SessionState(step=Step.TARGET_SELECTION, file_name=file_name, parsed_rows=tuple(rows))


def target_confirmed(state: SessionState, target: TargetScope) -> SessionState:
    _require(state, Step.TARGET_SELECTION)
    if not state.parsed_rows:
        raise SessionStateError("no parsed rows to preview")
    return replace(state, step=Step.PREVIEW, target=target)


def validation_started(state: SessionState) -> SessionState:
    _require(state, Step.PREVIEW)
    if not state.parsed_rows or state.target is None:
        raise SessionStateError("validation needs parsed rows and a confirmed target")
    return replace(state, step=Step.VALIDATING, validation_result=None)


def validation_completed(state: SessionState, result: ValidationResult) -> SessionState:
    _require(state, Step.VALIDATING)
    if state.validation_result is not None:
        raise SessionStateError("validation already completed")
    return replace(state, validation_result=result)


def import_started(state: SessionState) -> SessionState:
    _require(state, Step.VALIDATING)
    if state.validation_result is None:
        raise SessionStateError("cannot import before validation completed")
    return replace(state, step=Step.IMPORTING)


def import_completed(state: SessionState, result: ImportResult) -> SessionState:
    _require(state, Step.IMPORTING)
    return replace(state, step=Step.RESULT, import_result=result)


def go_back(state: SessionState) -> SessionState:
    """Previous wizard page: target-selection → upload → ..., validated → preview."""
    if state.step is Step.TARGET_SELECTION:
        return reset(state)
    if state.step is Step.PREVIEW:
        return replace(state, step=Step.TARGET_SELECTION)
    if state.is_validated:
        return replace(state, step=Step.PREVIEW, validation_result=None)
    raise SessionStateError(f"cannot go back from '{state.step.value}'")


class ImportSession:
    """One import attempt for one tenant, from upload to result.

    Only ParseError (from ``upload``) and SessionStateError (caller bugs)
    leave this class; everything else comes back as data.
    """

    def __init__(
        self,
        repository: Repository,
        tenant_id: str,
        *,
        settings: ImportSettings | None = None,
    ) -> None:
        self.repository = repository
        self.tenant_id = tenant_id
        self.settings = settings or ImportSettings()
        self.validator = RowValidator(flag_duplicates=self.settings.flag_duplicate_rows)
        self.resolver = ReferenceResolver(repository, name_template=self.settings.sector_name_template)
        self.committer = ImportCommitter(repository, create_missing=self.settings.create_missing_sectors)
        self._state = SessionState()
        self._stop = threading.Event()
        self._progress = ProgressRecorder()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def step(self) -> Step:
        return self._state.step

    @property
    def step_index(self) -> int:
        return STEP_ORDER.index(self._state.step)

    @property
    def progress(self) -> ImportProgress | None:
        return self._progress.latest

    def upload(self, source: bytes | str | Path | BinaryIO, file_name: str | None = None) -> list[ParsedRow]:
        if self._state.step is Step.RESULT:
            self.reset()
        _require(self._state, Step.UPLOAD)
        if file_name is None and isinstance(source, (str, Path)):
            file_name = Path(source).name
        try:
            rows = read_spreadsheet(
                source,
                header_scan_rows=self.settings.header_scan_rows,
                max_file_bytes=self.settings.max_file_bytes,
            )
        except ParseError as e:
            logger.error("parse failed file=%s: %s", file_name, e)
            self._state = SessionState()
            raise
        self._state = file_parsed(self._state, rows, file_name)
        logger.info("parsed file=%s rows=%d", file_name, len(rows))
        return rows

    def confirm_target(self, branch_id: str | None = None) -> TargetScope:
        """Choose the branch the records go to (``None`` = company level)."""
        target = TargetScope(tenant_id=self.tenant_id, branch_id=branch_id)
        self._state = target_confirmed(self._state, target)
        return target

    def _existing_snapshot(self) -> tuple[set[str], list[str], list[ValidationIssue]]:
        try:
            codes = snapshot_codes(self.repository.list_reference_entities(self.tenant_id))
            aspect_codes = self.repository.list_aspect_codes(self.tenant_id)
        except Exception as e:
            logger.warning("existing sector lookup failed tenant=%s: %s", self.tenant_id, e)
            issue = ValidationIssue.warning(
                BATCH_ROW, f"Could not look up existing sectors, all sectors treated as new: {e}"
            )
            return set(), [], [issue]
        return codes, aspect_codes, []

    def validate(self) -> ValidationResult:
        self._state = validation_started(self._state)
        codes, aspect_codes, lookup_issues = self._existing_snapshot()
        result = self.validator.validate(self._state.parsed_rows, codes, aspect_codes)
        if lookup_issues:
            result = replace(result, warnings=tuple(lookup_issues) + result.warnings)
        self._state = validation_completed(self._state, result)
        logger.info(
            "validated file=%s total=%d valid=%d invalid=%d",
            self._state.file_name,
            result.stats.total,
            result.stats.valid,
            result.stats.invalid,
        )
        return result

    def commit(self, on_progress: ProgressCallback | None = None) -> ImportResult:
        self._state = import_started(self._state)
        validation = self._state.validation_result
        target = self._state.target
        if validation is None or target is None:
            raise SessionStateError("import needs a validation result and a target")

        self._stop.clear()
        self._progress.clear()

        def fan_out(progress: ImportProgress) -> None:
            self._progress(progress)
            if on_progress is not None:
                on_progress(progress)

        plan = self.resolver.plan(validation.stats.new_reference_entities, target)
        result = self.committer.commit(
            validation.valid_rows,
            plan,
            on_progress=fan_out,
            should_stop=self._stop.is_set,
        )
        if self._stop.is_set():
            logger.info("import cancelled, session returned to upload")
            self.reset()
        else:
            self._state = import_completed(self._state, result)
        return result

    def cancel(self) -> None:
        """Close the wizard. While importing, stop issuing writes after the current row."""
        if self._state.step is Step.IMPORTING:
            self._stop.set()
            return
        self.reset()

    def reset(self) -> None:
        self._state = reset(self._state)
        self._stop.clear()
        self._progress.clear()

    def back(self) -> None:
        self._state = go_back(self._state)
