"""Field Completeness Evaluator - tiered schema coverage.

A flat "count populated fields" metric under-rewards subjects with excellent
identity data but thin peripheral metadata. Fields are split into three
tiers, each contributing at most its cap:

- Core (identity):   <= 0.40
- Important:         <= 0.30
- Extended:          <= 0.30

Per field: absent or empty -> 0, present -> 1. Free-text fields shorter
than the minimum length earn partial credit (0.5).
"""

from dataclasses import dataclass
from typing import Optional

from ..config import TrustEngineConfig
from ..models.subject import CORE_FIELDS, EXTENDED_FIELDS, FREE_TEXT_FIELDS, IMPORTANT_FIELDS, Subject, is_populated


@dataclass
class CompletenessResult:
    """Completeness score with per-tier detail."""

    score: float  # 0-1, rounded to 2 decimals
    core: float
    important: float
    extended: float
    missing_core: list[str]

    @property
    def has_all_core(self) -> bool:
        return not self.missing_core


class FieldCompletenessEvaluator:
    """Scores how much of a subject's schema is populated."""

    def __init__(self, config: Optional[TrustEngineConfig] = None):
        self.config = config or TrustEngineConfig()
        self.tiers = [
            (CORE_FIELDS, self.config.core_tier_cap),
            (IMPORTANT_FIELDS, self.config.important_tier_cap),
            (EXTENDED_FIELDS, self.config.extended_tier_cap),
        ]

    def field_credit(self, field_name: str, value) -> float:
        """Credit for a single field value (0, partial, or 1)."""
        if not is_populated(value):
            return 0.0
        if field_name in FREE_TEXT_FIELDS and isinstance(value, str):
            if len(value.strip()) < self.config.free_text_min_length:
                return self.config.free_text_partial_credit
        return 1.0

    def tier_score(self, subject: Subject, field_names: list[str], cap: float) -> float:
        if not field_names:
            return 0.0
        earned = sum(self.field_credit(name, subject.value_of(name)) for name in field_names)
        return earned / len(field_names) * cap

    def evaluate(self, subject: Subject) -> CompletenessResult:
        """Evaluate completeness across all tiers."""
        core, important, extended = (self.tier_score(subject, names, cap) for names, cap in self.tiers)
        missing_core = [name for name in CORE_FIELDS if not is_populated(subject.value_of(name))]
        return CompletenessResult(
            score=round(min(1.0, core + important + extended), 2),
            core=round(core, 4),
            important=round(important, 4),
            extended=round(extended, 4),
            missing_core=missing_core,
        )

    def score(self, subject: Subject) -> float:
        return self.evaluate(subject).score
