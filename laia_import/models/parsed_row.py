from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""ParsedRow model and the closed value sets of a LAIA assessment row.

A ParsedRow is created once by the spreadsheet reader and never mutated.
Characterization fields carry the defaults the assessment form applies when a
cell is blank; category and significance keep their raw cell text so the
validator can tell an omitted value from an unrecognized one.
"""

__all__ = [
    "Category",
    "Significance",
    "Temporality",
    "OperationalSituation",
    "Incidence",
    "ImpactClass",
    "Scope",
    "Level",
    "CONTROL_TYPES",
    "ParsedRow",
    "normalize_code",
]


class Category(Enum):
    CRITICAL = "critical"
    MODERATE = "moderate"
    LOW = "low"


class Significance(Enum):
    SIGNIFICANT = "significant"
    NON_SIGNIFICANT = "non_significant"


class Temporality(Enum):
    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


class OperationalSituation(Enum):
    NORMAL = "normal"
    ABNORMAL = "abnormal"
    EMERGENCY = "emergency"


class Incidence(Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"


class ImpactClass(Enum):
    BENEFICIAL = "beneficial"
    ADVERSE = "adverse"


class Scope(Enum):
    LOCAL = "local"
    REGIONAL = "regional"
    GLOBAL = "global"


class Level(Enum):
    """Shared low/medium/high scale for severity and frequency/probability."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ST=treatment systems, CO=operational controls, MO=monitoring,
# PRE=emergency response plans, NC=no control
CONTROL_TYPES = ("ST", "CO", "MO", "PRE", "NC")


def normalize_code(code: str) -> str:
    """Canonical form of a sector code: trimmed and upper-cased."""
    return code.strip().upper()


@dataclass(frozen=True)
class ParsedRow:
    """One candidate assessment record extracted from the spreadsheet.

    ``row_number`` is the visual spreadsheet row (1-based) so that issues can
    be reported against what the user sees in their editor.
    """
    row_number: int
    sector_code: str
    environmental_aspect: str
    environmental_impact: str
    category: Category | None = None
    significance: Significance | None = None
    category_raw: str = ""  # cleaned cell text, "" when omitted
    significance_raw: str = ""
    aspect_code: str = ""
    activity_operation: str = ""
    temporality: Temporality = Temporality.CURRENT
    operational_situation: OperationalSituation = OperationalSituation.NORMAL
    incidence: Incidence = Incidence.DIRECT
    impact_class: ImpactClass = ImpactClass.ADVERSE
    scope: Scope = Scope.LOCAL
    severity: Level = Level.LOW
    frequency_probability: Level = Level.LOW
    consequence_score: int | None = None
    total_score: int | None = None
    has_legal_requirements: bool = False
    has_stakeholder_demand: bool = False
    has_strategic_options: bool = False
    control_types: tuple[str, ...] = ()
    existing_controls: str = ""
    legislation_reference: str = ""
    has_lifecycle_control: bool = False
    lifecycle_stages: tuple[str, ...] = ()
    output_actions: str = ""

    @property
    def effective_category(self) -> Category:
        # omitted category is imported as low
        return self.category if self.category is not None else Category.LOW

    @property
    def effective_significance(self) -> Significance:
        if self.significance is not None:
            return self.significance
        return Significance.NON_SIGNIFICANT

    @property
    def sector_key(self) -> str:
        return normalize_code(self.sector_code)

    @property
    def duplicate_key(self) -> tuple[str, str, str]:
        return (
            self.sector_key,
            self.environmental_aspect.casefold(),
            self.environmental_impact.casefold(),
        )
