from __future__ import annotations

import pytest

from laia_import.config.loader import ConfigError
from laia_import.excel.reader import ParseError
from laia_import.models import BATCH_ROW, ImportSettings, TargetScope, ValidationResult, ValidationStats
from laia_import.repository import InMemoryRepository
from laia_import.services import session as sm
from laia_import.services.session import ImportSession, SessionState, SessionStateError, Step

from conftest import TENANT, laia_line, make_row, sector


def _validation() -> ValidationResult:
    return ValidationResult((), (), (), ValidationStats(total=0, valid=0, invalid=0))


class TestTransitions:
    """Pure transition functions."""

    def test_happy_path(self):
        state = SessionState()
        state = sm.file_parsed(state, [make_row(2)], "laia.xlsx")
        assert state.step is Step.TARGET_SELECTION
        state = sm.target_confirmed(state, TargetScope(TENANT))
        assert state.step is Step.PREVIEW
        state = sm.validation_started(state)
        assert state.step is Step.VALIDATING and not state.is_validated
        state = sm.validation_completed(state, _validation())
        assert state.is_validated
        state = sm.import_started(state)
        assert state.step is Step.IMPORTING
        state = sm.import_completed(state, object())
        assert state.step is Step.RESULT
        assert sm.reset(state) == SessionState()

    def test_cannot_leave_upload_without_rows(self):
        with pytest.raises(SessionStateError):
            sm.file_parsed(SessionState(), [])

    def test_cannot_import_before_validation_completed(self):
        state = sm.file_parsed(SessionState(), [make_row(2)])
        state = sm.target_confirmed(state, TargetScope(TENANT))
        with pytest.raises(SessionStateError):
            sm.import_started(state)
        state = sm.validation_started(state)
        with pytest.raises(SessionStateError):
            sm.import_started(state)

    def test_validation_cannot_complete_twice(self):
        state = sm.file_parsed(SessionState(), [make_row(2)])
        state = sm.validation_started(sm.target_confirmed(state, TargetScope(TENANT)))
        state = sm.validation_completed(state, _validation())
        with pytest.raises(SessionStateError):
            sm.validation_completed(state, _validation())

    def test_go_back(self):
        state = sm.file_parsed(SessionState(), [make_row(2)], "f.xlsx")
        assert sm.go_back(state).step is Step.UPLOAD
        preview = sm.target_confirmed(state, TargetScope(TENANT))
        assert sm.go_back(preview).step is Step.TARGET_SELECTION
        validated = sm.validation_completed(sm.validation_started(preview), _validation())
        back = sm.go_back(validated)
        assert back.step is Step.PREVIEW and back.validation_result is None
        assert back.parsed_rows == validated.parsed_rows
        with pytest.raises(SessionStateError):
            sm.go_back(SessionState())


class TestImportSession:
    def test_end_to_end(self, laia_workbook):
        repo = InMemoryRepository([sector("SEC-01")])
        s = ImportSession(repo, TENANT)
        rows = s.upload(laia_workbook(laia_line(), laia_line(sector="SEC-99"), laia_line(category="invalido")))
        assert len(rows) == 3
        assert s.state.file_name == "laia.xlsx"
        assert s.step is Step.TARGET_SELECTION

        s.confirm_target("branch-1")
        assert s.state.target == TargetScope(TENANT, "branch-1")

        validation = s.validate()
        assert validation.stats.total == 3
        assert validation.stats.valid == 2
        assert validation.stats.invalid == 1
        assert validation.stats.new_reference_entities == ("SEC-99",)

        result = s.commit()
        assert s.step is Step.RESULT
        assert result.imported == 2
        assert result.created_reference_entities == ("SEC-99",)
        assert s.progress is not None and s.progress.current == 2
        assert s.step_index == 5

    def test_upload_parse_error_resets(self):
        s = ImportSession(InMemoryRepository(), TENANT)
        with pytest.raises(ParseError):
            s.upload(b"garbage", "bad.csv")
        assert s.state == SessionState()

    def test_validate_before_target_is_an_error(self, laia_workbook):
        s = ImportSession(InMemoryRepository(), TENANT)
        s.upload(laia_workbook(laia_line()))
        with pytest.raises(SessionStateError):
            s.validate()

    def test_commit_before_validate_is_an_error(self, laia_workbook):
        s = ImportSession(InMemoryRepository(), TENANT)
        s.upload(laia_workbook(laia_line()))
        s.confirm_target()
        with pytest.raises(SessionStateError):
            s.commit()

    def test_snapshot_failure_becomes_warning(self, laia_workbook):
        s = ImportSession(InMemoryRepository(fail_listing=True), TENANT)
        s.upload(laia_workbook(laia_line()))
        s.confirm_target()
        validation = s.validate()
        assert validation.stats.valid == 1
        assert validation.warnings[0].row == BATCH_ROW
        assert validation.stats.new_reference_entities == ("SEC-01",)

    def test_cancel_outside_import_resets(self, laia_workbook):
        s = ImportSession(InMemoryRepository(), TENANT)
        s.upload(laia_workbook(laia_line()))
        s.cancel()
        assert s.step is Step.UPLOAD
        assert s.state.parsed_rows == ()

    def test_cancel_during_import(self, laia_workbook):
        repo = InMemoryRepository([sector("SEC-01")])
        s = ImportSession(repo, TENANT)
        s.upload(laia_workbook(*[laia_line(aspect=f"Aspecto {i}") for i in range(4)]))
        s.confirm_target()
        s.validate()

        def on_progress(progress):
            if progress.current == 1:
                s.cancel()

        result = s.commit(on_progress=on_progress)
        assert result.cancelled
        assert result.imported == 1
        assert result.failed == 3
        assert s.step is Step.UPLOAD
        assert len(repo.records) == 1

    def test_upload_after_result_starts_over(self, laia_workbook):
        s = ImportSession(InMemoryRepository([sector("SEC-01")]), TENANT)
        s.upload(laia_workbook(laia_line()))
        s.confirm_target()
        s.validate()
        s.commit()
        assert s.step is Step.RESULT
        s.upload(laia_workbook(laia_line(), laia_line(aspect="Outro"), name="second.xlsx"))
        assert s.step is Step.TARGET_SELECTION
        assert s.state.file_name == "second.xlsx"
        assert s.state.import_result is None

    def test_back_then_revalidate(self, laia_workbook):
        s = ImportSession(InMemoryRepository(), TENANT)
        s.upload(laia_workbook(laia_line()))
        s.confirm_target()
        s.validate()
        s.back()
        assert s.step is Step.PREVIEW
        assert s.validate().stats.total == 1

    def test_settings_flow_into_components(self):
        settings = ImportSettings(flag_duplicate_rows=False, create_missing_sectors=False, sector_name_template="S-{code}")
        s = ImportSession(InMemoryRepository(), TENANT, settings=settings)
        assert s.validator.flag_duplicates is False
        assert s.committer.create_missing is False
        assert s.resolver.display_name("X") == "S-X"

    def test_unfillable_name_template_is_rejected_before_import(self):
        settings = ImportSettings(sector_name_template="Setor {code} ({unit})")
        with pytest.raises(ConfigError):
            ImportSession(InMemoryRepository(), TENANT, settings=settings)


def test_rerun_after_partial_commit_creates_no_duplicate_sectors(laia_workbook):
    repo = InMemoryRepository(fail_rows={4})
    path = laia_workbook(laia_line(sector="SEC-99"), laia_line(sector="SEC-99", aspect="Outro"))

    first = ImportSession(repo, TENANT)
    first.upload(path)
    first.confirm_target()
    first.validate()
    result = first.commit()
    assert result.created_reference_entities == ("SEC-99",)
    assert result.imported == 1 and result.failed == 1

    repo.fail_rows.clear()
    second = ImportSession(repo, TENANT)
    second.upload(path)
    second.confirm_target()
    validation = second.validate()
    assert validation.stats.new_reference_entities == ()
    rerun = second.commit()
    assert rerun.created_reference_entities == ()
    assert rerun.imported == 2
    assert repo.create_reference_calls == 1
    assert repo.sector_codes(TENANT) == ["SEC-99"]
