"""Domain models for the LAIA import pipeline.

This package contains the immutable value objects passed between the reader,
the validator, the reference resolver, the committer and the import session.
"""

from .config_models import DatabaseConfig, ImportConfig, ImportSettings
from .error_record import ErrorRecord
from .import_result import ImportProgress, ImportResult
from .parsed_row import (
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
    normalize_code,
)
from .reference import CreationPlan, CreationRequest, ReferenceEntity, TargetScope
from .validation import BATCH_ROW, Severity, ValidationIssue, ValidationResult, ValidationStats

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "ImportSettings",
    # Row models
    "CONTROL_TYPES",
    "normalize_code",
    "Category",
    "ImpactClass",
    "Incidence",
    "Level",
    "OperationalSituation",
    "ParsedRow",
    "Scope",
    "Significance",
    "Temporality",
    # Validation models
    "BATCH_ROW",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "ValidationStats",
    # Reference entities
    "CreationPlan",
    "CreationRequest",
    "ReferenceEntity",
    "TargetScope",
    # Commit models
    "ErrorRecord",
    "ImportProgress",
    "ImportResult",
]
