from __future__ import annotations

from ..models.import_result import ImportResult
from ..models.validation import ValidationResult

"""SUMMARY line rendering for an import run.

Format:
SUMMARY rows={total} valid={valid} invalid={invalid} warnings={warnings}
imported={imported} failed={failed} sectors_created={n} elapsed_sec={elapsed}

``imported``/``failed``/``sectors_created`` are 0 when the run stopped after
validation because no row was valid.
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or trailing zeros."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(
    validation: ValidationResult,
    result: ImportResult | None = None,
    elapsed_seconds: float = 0.0,
) -> str:
    """Render the SUMMARY line for a validated (and possibly committed) batch.

    Examples:
        >>> from laia_import.models import ValidationResult, ValidationStats
        >>> v = ValidationResult((), (), (), ValidationStats(total=3, valid=2, invalid=1))
        >>> render_summary_line(v, elapsed_seconds=0.5)
        'SUMMARY rows=3 valid=2 invalid=1 warnings=0 imported=0 failed=0 sectors_created=0 elapsed_sec=0.5'
    """
    imported = result.imported if result is not None else 0
    failed = result.failed if result is not None else 0
    created = len(result.created_reference_entities) if result is not None else 0
    return (
        f"SUMMARY rows={validation.stats.total} "
        f"valid={validation.stats.valid} "
        f"invalid={validation.stats.invalid} "
        f"warnings={len(validation.warnings)} "
        f"imported={imported} "
        f"failed={failed} "
        f"sectors_created={created} "
        f"elapsed_sec={format_seconds(elapsed_seconds)}"
    )
