# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from laia_import.logging.init import reset_logging
from laia_import.models import Category, ParsedRow, ReferenceEntity, Significance

TENANT = "company-1"

LAIA_HEADER = [
    "COD SET",
    "COD",
    "Atividade/Operação",
    "Aspecto Ambiental",
    "Impacto Ambiental",
    "Temporalidade",
    "Situação Operacional",
    "Incidência",
    "Classe do Impacto",
    "Abrangência",
    "Severidade",
    "Consequência",
    "Frequência/Probabilidade",
    "Total",
    "Categoria",
    "Req. Legais",
    "DPI",
    "OE",
    "Significância",
    "Tipos de Controle",
    "Controles Existentes",
    "Legislação/Norma",
]


def laia_line(
    sector: str = "SEC-01",
    aspect: str = "Consumo de energia",
    impact: str = "Esgotamento de recursos",
    category: str = "moderado",
    significance: str = "significativo",
    activity: str = "Operação de caldeira",
    code: str = "",
) -> list[object]:
    """One spreadsheet line in LAIA_HEADER column order."""
    return [
        sector,
        code,
        activity,
        aspect,
        impact,
        "A",
        "N",
        "SC",
        "A",
        "L",
        "M",
        2,
        "B",
        4,
        category,
        "1",
        "",
        "",
        significance,
        "ST, MO",
        "Procedimento operacional",
        "CONAMA 382",
    ]


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""tenant_id: {TENANT}
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
import:
  header_scan_rows: 20
  flag_duplicate_rows: true
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    """Write an .xlsx file with the given rows (no pandas header row)."""

    def _make(lines: list[list[object]], name: str = "laia.xlsx", directory: Path | None = None) -> Path:
        path = (directory or tmp_path) / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame(lines).to_excel(writer, sheet_name="LAIA", header=False, index=False)
        return path

    return _make


@pytest.fixture()
def laia_workbook(make_workbook) -> Callable[..., Path]:
    """Title row, header row, then one line per argument (data starts at row 3)."""

    def _make(*lines: list[object], name: str = "laia.xlsx", directory: Path | None = None) -> Path:
        return make_workbook(
            [["LAIA - Levantamento de Aspectos e Impactos Ambientais"], LAIA_HEADER, *lines],
            name=name,
            directory=directory,
        )

    return _make


def make_row(row_number: int, sector: str = "SEC-01", **kwargs) -> ParsedRow:
    values = {
        "environmental_aspect": f"Aspecto {row_number}",
        "environmental_impact": f"Impacto {row_number}",
        "activity_operation": "Operação",
        "category_raw": "moderado",
        "significance_raw": "significativo",
    }
    values.update(kwargs)
    if "category" not in values:
        values["category"] = Category.MODERATE if values["category_raw"] else None
    if "significance" not in values:
        values["significance"] = Significance.SIGNIFICANT if values["significance_raw"] else None
    return ParsedRow(row_number=row_number, sector_code=sector, **values)


def sector(code: str, tenant: str = TENANT, id: str | None = None) -> ReferenceEntity:
    return ReferenceEntity(tenant_id=tenant, code=code, name=f"Setor {code}", id=id)
