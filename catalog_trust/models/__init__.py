"""Subject and result models shared across the trust engine."""

from .outcomes import (
    CandidateTally,
    ClassificationOutcome,
    ConfidenceBreakdown,
    ConfidenceResult,
    ConfidenceTier,
    OutcomeKind,
    Signal,
    SourceTierCounts,
    TrustBadge,
)
from .run import FilledClassification, ReviewCase, RunResult, RunStats
from .subject import (
    CATEGORICAL_FIELDS,
    CORE_FIELDS,
    EXTENDED_FIELDS,
    FREE_TEXT_FIELDS,
    IMPORTANT_FIELDS,
    STORE_COLUMNS,
    Subject,
    is_populated,
)

__all__ = [
    # Subject
    "Subject",
    "is_populated",
    "CORE_FIELDS",
    "IMPORTANT_FIELDS",
    "EXTENDED_FIELDS",
    "FREE_TEXT_FIELDS",
    "CATEGORICAL_FIELDS",
    "STORE_COLUMNS",
    # Results
    "CandidateTally",
    "ClassificationOutcome",
    "ConfidenceBreakdown",
    "ConfidenceResult",
    "ConfidenceTier",
    "OutcomeKind",
    "Signal",
    "SourceTierCounts",
    "TrustBadge",
    # Runs
    "FilledClassification",
    "ReviewCase",
    "RunResult",
    "RunStats",
]
