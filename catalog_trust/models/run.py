"""Per-run state: counters, review cases and accepted classifications.

Owned by one TrustRunCoordinator instance per run, never shared between runs.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .outcomes import CandidateTally, ConfidenceTier, OutcomeKind


@dataclass
class RunStats:
    """Outcome counters for the run summary."""

    total: int = 0
    scored: int = 0
    filled_high: int = 0
    filled_medium: int = 0
    skipped_ambiguous: int = 0
    skipped_insufficient_evidence: int = 0
    skipped_already_authoritative: int = 0
    failed_io: int = 0
    errors: int = 0
    unchanged: int = 0
    written: int = 0
    badge_distribution: Counter = field(default_factory=Counter)

    def count_fill(self, tier: ConfidenceTier) -> None:
        if tier.rank >= ConfidenceTier.HIGH.rank:
            self.filled_high += 1
        else:
            self.filled_medium += 1

    def count_skip(self, kind: OutcomeKind) -> None:
        if kind == OutcomeKind.AMBIGUOUS:
            self.skipped_ambiguous += 1
        elif kind == OutcomeKind.INSUFFICIENT_EVIDENCE:
            self.skipped_insufficient_evidence += 1
        elif kind == OutcomeKind.ALREADY_AUTHORITATIVE:
            self.skipped_already_authoritative += 1

    def summary_rows(self) -> list[tuple[str, int]]:
        """(label, count) rows in display order."""
        return [
            ("scored", self.scored),
            ("filled-high", self.filled_high),
            ("filled-medium", self.filled_medium),
            ("skipped-ambiguous", self.skipped_ambiguous),
            ("skipped-insufficient-evidence", self.skipped_insufficient_evidence),
            ("skipped-already-authoritative", self.skipped_already_authoritative),
            ("failed-io", self.failed_io),
        ]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            **{label: count for label, count in self.summary_rows()},
            "unchanged": self.unchanged,
            "written": self.written,
            "errors": self.errors,
            "badge_distribution": dict(self.badge_distribution),
        }


@dataclass
class ReviewCase:
    """A field left null that needs a human decision."""

    subject_id: str
    title: str
    year: Optional[int]
    field: str
    outcome: OutcomeKind
    reason: str
    candidates: list[CandidateTally] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "title": self.title,
            "year": self.year,
            "field": self.field,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "candidates": [c.model_dump() for c in self.candidates],
        }


@dataclass
class FilledClassification:
    """An accepted categorical value."""

    subject_id: str
    title: str
    year: Optional[int]
    field: str
    value: str
    tier: ConfidenceTier
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subject_id": self.subject_id,
            "title": self.title,
            "year": self.year,
            "field": self.field,
            "value": self.value,
            "tier": self.tier.value,
            "sources": self.sources,
        }


@dataclass
class RunResult:
    """Everything the audit report and the run summary need."""

    as_of: datetime
    dry_run: bool
    fields: list[str]
    stats: RunStats
    review_cases: list[ReviewCase] = field(default_factory=list)
    filled: list[FilledClassification] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def manual_review_count(self) -> int:
        return len(self.review_cases)
