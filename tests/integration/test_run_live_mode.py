from __future__ import annotations

import itertools
import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from laia_import.cli import main as cli_main
from laia_import.repository.postgres import ASSESSMENT_COLUMNS

from conftest import laia_line

"""Integration test: CLI against the PostgreSQL repository.

psycopg2.connect is patched to hand out a scripted cursor, so the whole
parse -> validate -> resolve -> commit -> report path runs with the real
SQL the repository issues. A row whose impact is "Falha" is rejected by the
fake database to exercise partial failure.
"""

IMPACT_IDX = ASSESSMENT_COLUMNS.index("environmental_impact")
ASPECT_CODE_IDX = ASSESSMENT_COLUMNS.index("aspect_code")


class ScriptedCursor:
    def __init__(self, sectors: list[tuple[Any, str, str]], latest: dict[Any, str] | None = None) -> None:
        self.sectors = list(sectors)
        self.latest = latest or {}
        self.statements: list[tuple[str, Any]] = []
        self.assessments: list[list[Any]] = []
        self._ids = itertools.count(100)
        self._all: list[tuple[Any, ...]] = []
        self._one: tuple[Any, ...] | None = None

    def __enter__(self) -> ScriptedCursor:
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, sql: str, params: Any) -> None:
        self.statements.append((sql, params))
        if sql.startswith("SELECT id, code, name FROM laia_sectors"):
            self._all = list(self.sectors)
        elif sql.startswith("INSERT INTO laia_sectors"):
            new_id = next(self._ids)
            self.sectors.append((new_id, params[1], params[2]))
            self._one = (new_id,)
        elif sql.startswith("INSERT INTO laia_assessments"):
            if params[IMPACT_IDX] == "Falha":
                raise psycopg2.IntegrityError('new row violates check constraint "impact_check"')
            self.assessments.append(list(params))
            self._one = (next(self._ids),)
        elif "AND sector_id = %s" in sql:
            code = self.latest.get(params[1])
            self._one = (code,) if code else None
        elif sql.startswith("SELECT aspect_code FROM laia_assessments"):
            self._all = [(c,) for c in self.latest.values()]
        else:  # pragma: no cover
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._all

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._one


@pytest.fixture
def scripted_db(monkeypatch):
    for name in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(name, raising=False)
    cursor = ScriptedCursor(sectors=[(1, "SEC-01", "Caldeiraria")], latest={"1": "SEC-01.04"})
    conn = MagicMock()
    conn.cursor.return_value = cursor
    with patch("laia_import.cli.__main__.psycopg2.connect", return_value=conn) as connect:
        yield connect, conn, cursor


def test_live_run_success(write_config, laia_workbook, temp_workdir: Path, capsys, scripted_db):
    _, conn, cursor = scripted_db
    path = laia_workbook(
        laia_line(aspect="Consumo de água"),
        laia_line(aspect="Consumo de energia"),
        laia_line(sector="SEC-99", aspect="Emissão de gases"),
        directory=temp_workdir / "data",
    )
    code = cli_main([str(path), "--branch", "filial-2"])
    out = capsys.readouterr().out

    assert code == 0
    assert conn.autocommit is True
    conn.close.assert_called_once()
    assert "SUMMARY rows=3 valid=3 invalid=0 warnings=1 imported=3 failed=0 sectors_created=1 " in out
    assert [a[ASPECT_CODE_IDX] for a in cursor.assessments] == ["SEC-01.05", "SEC-01.06", "SEC-99.01"]
    assert {a[ASSESSMENT_COLUMNS.index("branch_id")] for a in cursor.assessments} == {"filial-2"}
    created = [s for s in cursor.sectors if s[1] == "SEC-99"]
    assert created and created[0][2] == "Setor SEC-99"


def test_live_run_partial_failure(write_config, laia_workbook, temp_workdir: Path, capsys, scripted_db):
    _, _, cursor = scripted_db
    path = laia_workbook(
        laia_line(aspect="A1"),
        laia_line(aspect="A2", impact="Falha"),
        laia_line(aspect="A3"),
        laia_line(aspect="A4", category="???"),
        directory=temp_workdir / "data",
    )
    code = cli_main([str(path)])
    out = capsys.readouterr().out

    assert code == 2
    assert "SUMMARY rows=4 valid=3 invalid=1 warnings=0 imported=2 failed=1 sectors_created=0 " in out
    assert 'ERROR row=4 new row violates check constraint "impact_check"' in out
    # the failed row does not consume an aspect number
    assert [a[ASPECT_CODE_IDX] for a in cursor.assessments] == ["SEC-01.05", "SEC-01.06"]

    log = next((temp_workdir / "logs").glob("errors-*.log"))
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    by_stage = {(r["stage"], r["row"]) for r in records}
    assert ("validation", 6) in by_stage
    assert ("commit", 4) in by_stage
