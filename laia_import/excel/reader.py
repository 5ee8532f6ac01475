from __future__ import annotations

import io
import re
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from ..models.config_models import DEFAULT_HEADER_SCAN_ROWS, DEFAULT_MAX_FILE_BYTES
from ..models.parsed_row import (
    CONTROL_TYPES,
    Category,
    ImpactClass,
    Incidence,
    Level,
    OperationalSituation,
    ParsedRow,
    Scope,
    Significance,
    Temporality,
)

"""LAIA spreadsheet reader.

Two admissible formats: Office Open XML workbooks (.xlsx, read with openpyxl)
and legacy BIFF workbooks (.xls, read with xlrd). Only the first worksheet is
read. The header row is searched for within the first rows of the sheet (LAIA
sheets usually carry a title block above it); every non-empty row below it
becomes a ParsedRow numbered after its visual spreadsheet row.

Nothing here writes anywhere. Every failure is raised as ParseError.
"""

__all__ = [
    "ParseError",
    "UnsupportedFormatError",
    "HeaderNotFoundError",
    "EmptySheetError",
    "SpreadsheetFormat",
    "SheetData",
    "detect_format",
    "load_sheet",
    "normalize_rows",
    "read_spreadsheet",
    "normalize_key",
    "clean_text",
]

REQUIRED_COLUMNS = ("sector_code", "environmental_aspect", "environmental_impact")

ZIP_MAGIC = b"PK\x03\x04"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class ParseError(Exception):
    """Raised when a spreadsheet cannot be turned into rows."""


class UnsupportedFormatError(ParseError):
    """Raised when the input is neither an .xlsx nor an .xls workbook."""


class HeaderNotFoundError(ParseError):
    """Raised when no row within the scan window carries the required columns."""


class EmptySheetError(ParseError):
    """Raised when the sheet has a header but no data rows below it."""


class SpreadsheetFormat(Enum):
    XLSX = "xlsx"
    XLS = "xls"

    @property
    def engine(self) -> str:
        return "openpyxl" if self is SpreadsheetFormat.XLSX else "xlrd"


@dataclass
class SheetData:
    header_row: int  # visual row number of the header
    columns: dict[str, int]  # field name -> column index
    rows: list[ParsedRow]


# Header aliases after normalize_key(); first matching column wins.
COLUMN_MAP: dict[str, str] = {
    "cod set": "sector_code",
    "codigo setor": "sector_code",
    "codigo do setor": "sector_code",
    "setor": "sector_code",
    "sector": "sector_code",
    "sector code": "sector_code",
    "cod": "aspect_code",
    "codigo": "aspect_code",
    "cod set . cod asp/imp": "aspect_code",
    "aspecto ambiental": "environmental_aspect",
    "aspecto": "environmental_aspect",
    "aspect": "environmental_aspect",
    "impacto ambiental": "environmental_impact",
    "impacto": "environmental_impact",
    "impact": "environmental_impact",
    "atividade/operacao": "activity_operation",
    "atividade / operacao": "activity_operation",
    "atividade": "activity_operation",
    "operacao": "activity_operation",
    "temporalidade": "temporality",
    "situacao operacional": "operational_situation",
    "situacao": "operational_situation",
    "incidencia": "incidence",
    "classe do impacto": "impact_class",
    "classe": "impact_class",
    "abrangencia": "scope",
    "severidade": "severity",
    "consequencia": "consequence_score",
    "frequencia/probabilidade": "frequency_probability",
    "freq/prob": "frequency_probability",
    "frequencia": "frequency_probability",
    "total": "total_score",
    "soma (cons + fre pro)": "total_score",
    "categoria": "category",
    "category": "category",
    "req. legais": "has_legal_requirements",
    "requisitos legais": "has_legal_requirements",
    "dpi": "has_stakeholder_demand",
    "demanda partes interessadas": "has_stakeholder_demand",
    "oe": "has_strategic_options",
    "opcoes estrategicas": "has_strategic_options",
    "significancia": "significance",
    "significance": "significance",
    "enquadramento": "significance",
    "tipo de controle": "control_types",
    "tipos de controle": "control_types",
    "tipos": "control_types",
    "controles existentes": "existing_controls",
    "controle existente": "existing_controls",
    "legislacao/norma": "legislation_reference",
    "legislacao": "legislation_reference",
    "norma": "legislation_reference",
    "link legislacao": "legislation_reference",
    "controle ciclo de vida": "has_lifecycle_control",
    "ciclo de vida": "has_lifecycle_control",
    "existe controle ou influencia suficiente em algum estagio?": "has_lifecycle_control",
    "etapas ciclo de vida": "lifecycle_stages",
    "etapas": "lifecycle_stages",
    "em qual(is) estagio(s)?": "lifecycle_stages",
    "acoes saidas": "output_actions",
    "acoes": "output_actions",
    "saidas": "output_actions",
    "saida(s) com base na avaliacao.": "output_actions",
}

CATEGORY_MAP: dict[str, Category] = {
    "critico": Category.CRITICAL,
    "critical": Category.CRITICAL,
    "moderado": Category.MODERATE,
    "moderate": Category.MODERATE,
    "baixo": Category.LOW,
    "desprezivel": Category.LOW,
    "low": Category.LOW,
}

SIGNIFICANCE_MAP: dict[str, Significance] = {
    "significativo": Significance.SIGNIFICANT,
    "sig": Significance.SIGNIFICANT,
    "s": Significance.SIGNIFICANT,
    "significant": Significance.SIGNIFICANT,
    "nao significativo": Significance.NON_SIGNIFICANT,
    "nao_significativo": Significance.NON_SIGNIFICANT,
    "nao sig": Significance.NON_SIGNIFICANT,
    "ns": Significance.NON_SIGNIFICANT,
    "n": Significance.NON_SIGNIFICANT,
    "non_significant": Significance.NON_SIGNIFICANT,
    "non significant": Significance.NON_SIGNIFICANT,
}

TEMPORALITY_MAP: dict[str, Temporality] = {
    "p": Temporality.PAST,
    "passada": Temporality.PAST,
    "a": Temporality.CURRENT,
    "atual": Temporality.CURRENT,
    "f": Temporality.FUTURE,
    "futura": Temporality.FUTURE,
    "a/f": Temporality.CURRENT,
    "f/a": Temporality.CURRENT,
}

OPERATIONAL_SITUATION_MAP: dict[str, OperationalSituation] = {
    "n": OperationalSituation.NORMAL,
    "normal": OperationalSituation.NORMAL,
    "a": OperationalSituation.ABNORMAL,
    "anormal": OperationalSituation.ABNORMAL,
    "e": OperationalSituation.EMERGENCY,
    "emergencia": OperationalSituation.EMERGENCY,
}

INCIDENCE_MAP: dict[str, Incidence] = {
    "sc": Incidence.DIRECT,
    "sob controle": Incidence.DIRECT,
    "controle": Incidence.DIRECT,
    "direto": Incidence.DIRECT,
    "si": Incidence.INDIRECT,
    "sob influencia": Incidence.INDIRECT,
    "influencia": Incidence.INDIRECT,
    "indireto": Incidence.INDIRECT,
}

IMPACT_CLASS_MAP: dict[str, ImpactClass] = {
    "a": ImpactClass.ADVERSE,
    "adverso": ImpactClass.ADVERSE,
    "b": ImpactClass.BENEFICIAL,
    "benefico": ImpactClass.BENEFICIAL,
}

SCOPE_MAP: dict[str, Scope] = {
    "l": Scope.LOCAL,
    "local": Scope.LOCAL,
    "r": Scope.REGIONAL,
    "regional": Scope.REGIONAL,
    "g": Scope.GLOBAL,
    "global": Scope.GLOBAL,
}

LEVEL_MAP: dict[str, Level] = {
    "b": Level.LOW,
    "baixa": Level.LOW,
    "m": Level.MEDIUM,
    "media": Level.MEDIUM,
    "a": Level.HIGH,
    "alta": Level.HIGH,
}

_TRUTHY = {"1", "sim", "yes", "true", "x"}
_LIST_SPLIT = re.compile(r"[,/;]")
_TAG = re.compile(r"<[^>]*>")
_BR = re.compile(r"<br\s*/?>", re.IGNORECASE)
_SPACES = re.compile(r"\s+")
_NUMBER_PREFIX = re.compile(r"^\d+\)\s*")


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_key(text: str) -> str:
    """Lower-case, drop ``"12) "`` prefixes and accents, collapse whitespace."""
    key = _NUMBER_PREFIX.sub("", text.strip().lower())
    return _SPACES.sub(" ", _strip_accents(key)).strip()


def clean_text(value: Any) -> str:
    """Render a cell value as trimmed single-line text ("" for blanks)."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if hasattr(value, "isoformat"):
        return value.isoformat()
    text = _BR.sub(" ", str(value))
    text = _TAG.sub("", text)
    return _SPACES.sub(" ", text).strip()


def _lookup(table: dict[str, Any], raw: str, default: Any) -> Any:
    if not raw:
        return default
    return table.get(normalize_key(raw), default)


def _parse_int(raw: str) -> int | None:
    if not raw:
        return None
    try:
        return int(float(raw.replace(",", ".")))
    except ValueError:
        return None


def _parse_bool(raw: str) -> bool:
    return normalize_key(raw) in _TRUTHY if raw else False


def _parse_lifecycle_control(raw: str) -> bool:
    key = normalize_key(raw)
    if not key or key.startswith("nao"):
        return False
    return "sim" in key or "controle" in key or "influencia" in key


def _split_list(raw: str) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in _LIST_SPLIT.split(raw) if part.strip()]


def _parse_control_types(raw: str) -> tuple[str, ...]:
    return tuple(t for t in (p.upper() for p in _split_list(raw)) if t in CONTROL_TYPES)


def detect_format(data: bytes) -> SpreadsheetFormat:
    """Identify the workbook container from its leading bytes."""
    if data.startswith(ZIP_MAGIC):
        return SpreadsheetFormat.XLSX
    if data.startswith(OLE2_MAGIC):
        return SpreadsheetFormat.XLS
    raise UnsupportedFormatError("unrecognized spreadsheet format (expected .xlsx or .xls)")


def _read_source(source: bytes | bytearray | str | Path | BinaryIO, max_bytes: int) -> bytes:
    try:
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif isinstance(source, (str, Path)):
            path = Path(source)
            if not path.is_file():
                raise ParseError(f"file not found: {path}")
            if path.stat().st_size > max_bytes:
                raise ParseError(f"file exceeds {max_bytes} bytes: {path.name}")
            data = path.read_bytes()
        else:
            data = source.read(max_bytes + 1)
    except OSError as e:
        raise ParseError(f"could not read spreadsheet: {e}") from e
    if not data:
        raise ParseError("file is empty")
    if len(data) > max_bytes:
        raise ParseError(f"file exceeds {max_bytes} bytes")
    return data


def load_sheet(
    source: bytes | bytearray | str | Path | BinaryIO,
    *,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> pd.DataFrame:
    """Decode the first worksheet into a raw DataFrame (no header applied).

    Cells are read as objects and pandas' NA coercion is turned off so that
    codes like ``"NA"`` or ``"N"`` survive as text.
    """
    data = _read_source(source, max_file_bytes)
    fmt = detect_format(data)
    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine=fmt.engine)
        if not xls.sheet_names:
            raise EmptySheetError("workbook has no worksheets")
        return xls.parse(
            xls.sheet_names[0],
            header=None,
            dtype=object,
            keep_default_na=False,
            na_values=[],
        )
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(f"could not decode {fmt.value} workbook: {e}") from e


def _find_header(df: pd.DataFrame, scan_rows: int) -> tuple[int, dict[str, int]]:
    for idx in range(min(scan_rows, df.shape[0])):
        columns: dict[str, int] = {}
        for col_idx, value in enumerate(df.iloc[idx].tolist()):
            text = clean_text(value)
            if not text:
                continue
            field = COLUMN_MAP.get(normalize_key(text))
            if field and field not in columns:
                columns[field] = col_idx
        if all(req in columns for req in REQUIRED_COLUMNS):
            return idx, columns
    raise HeaderNotFoundError(
        "header row not found: expected columns for sector, aspect and impact "
        f"(e.g. 'COD SET', 'ASPECTO AMBIENTAL', 'IMPACTO AMBIENTAL') within the first {scan_rows} rows"
    )


def _build_row(row_number: int, cell: Callable[[str], str]) -> ParsedRow:
    category_raw = cell("category")
    significance_raw = cell("significance")
    consequence = _parse_int(cell("consequence_score"))
    total = _parse_int(cell("total_score"))
    return ParsedRow(
        row_number=row_number,
        sector_code=cell("sector_code").upper(),
        environmental_aspect=cell("environmental_aspect"),
        environmental_impact=cell("environmental_impact"),
        category=_lookup(CATEGORY_MAP, category_raw, None),
        significance=_lookup(SIGNIFICANCE_MAP, significance_raw, None),
        category_raw=category_raw,
        significance_raw=significance_raw,
        aspect_code=cell("aspect_code"),
        activity_operation=cell("activity_operation"),
        temporality=_lookup(TEMPORALITY_MAP, cell("temporality"), Temporality.CURRENT),
        operational_situation=_lookup(
            OPERATIONAL_SITUATION_MAP, cell("operational_situation"), OperationalSituation.NORMAL
        ),
        incidence=_lookup(INCIDENCE_MAP, cell("incidence"), Incidence.DIRECT),
        impact_class=_lookup(IMPACT_CLASS_MAP, cell("impact_class"), ImpactClass.ADVERSE),
        scope=_lookup(SCOPE_MAP, cell("scope"), Scope.LOCAL),
        severity=_lookup(LEVEL_MAP, cell("severity"), Level.LOW),
        frequency_probability=_lookup(LEVEL_MAP, cell("frequency_probability"), Level.LOW),
        consequence_score=consequence,
        total_score=total,
        has_legal_requirements=_parse_bool(cell("has_legal_requirements")),
        has_stakeholder_demand=_parse_bool(cell("has_stakeholder_demand")),
        has_strategic_options=_parse_bool(cell("has_strategic_options")),
        control_types=_parse_control_types(cell("control_types")),
        existing_controls=cell("existing_controls"),
        legislation_reference=cell("legislation_reference"),
        has_lifecycle_control=_parse_lifecycle_control(cell("has_lifecycle_control")),
        lifecycle_stages=tuple(_split_list(cell("lifecycle_stages"))),
        output_actions=cell("output_actions"),
    )


def normalize_rows(df: pd.DataFrame, header_scan_rows: int = DEFAULT_HEADER_SCAN_ROWS) -> SheetData:
    """Locate the header and turn every non-empty row below it into a ParsedRow.

    Steps:
    1. Scan the first ``header_scan_rows`` rows for the required columns
    2. Map each data row's cells through the column/value alias tables
    3. Skip rows whose mapped cells are all blank
    4. Fail when nothing is left
    """
    if df.shape[0] == 0:
        raise EmptySheetError("worksheet is empty")
    header_idx, columns = _find_header(df, header_scan_rows)

    rows: list[ParsedRow] = []
    for idx in range(header_idx + 1, df.shape[0]):
        values = df.iloc[idx].tolist()
        cells = {
            field: clean_text(values[col]) if col < len(values) else ""
            for field, col in columns.items()
        }
        if not any(cells.values()):
            continue
        rows.append(_build_row(idx + 1, lambda f, c=cells: c.get(f, "")))

    if not rows:
        raise EmptySheetError("no data rows after header")
    return SheetData(header_row=header_idx + 1, columns=columns, rows=rows)


def read_spreadsheet(
    source: bytes | bytearray | str | Path | BinaryIO,
    *,
    header_scan_rows: int = DEFAULT_HEADER_SCAN_ROWS,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> list[ParsedRow]:
    """Parse a LAIA spreadsheet into rows in file order.

    Raises:
        ParseError: unrecognized format, oversized/empty input, missing
            header or no data rows.
    """
    df = load_sheet(source, max_file_bytes=max_file_bytes)
    return normalize_rows(df, header_scan_rows).rows
