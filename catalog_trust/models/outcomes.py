"""
Pydantic models for scoring and classification results.

These models define what the trust engine hands back to callers and writes
to the record store: the confidence breakdown, the classification outcome
per categorical field, and the candidate signals behind it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TrustBadge(str, Enum):
    """Display badge summarizing a confidence score."""

    VERIFIED = "verified"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNVERIFIED = "unverified"


class ConfidenceTier(str, Enum):
    """Confidence tier of a filled categorical field."""

    VERIFIED = "verified"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @property
    def rank(self) -> int:
        """Ordering used by the update policy (higher = more trusted)."""
        return _TIER_RANKS[self]


_TIER_RANKS = {
    ConfidenceTier.NONE: 0,
    ConfidenceTier.LOW: 1,
    ConfidenceTier.MEDIUM: 2,
    ConfidenceTier.HIGH: 3,
    ConfidenceTier.VERIFIED: 4,
}


class OutcomeKind(str, Enum):
    """What happened to a categorical field in a run."""

    FILLED = "filled"
    AMBIGUOUS = "ambiguous"  # Leading margin too small
    INSUFFICIENT_EVIDENCE = "insufficient_evidence"  # Too little weight or corroboration
    ALREADY_AUTHORITATIVE = "already_authoritative"  # Existing value outranks the proposal


class Signal(BaseModel):
    """A proposed value for a categorical field from one enrichment source."""

    field: str = Field(..., description="Categorical field the signal applies to")
    candidate_value: str = Field(..., description="Proposed value")
    source_id: str = Field(..., description="Source that produced the proposal")
    weight: float = Field(..., ge=0.0, le=1.0, description="Strength of the proposal")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "field": "primary_genre",
                "candidate_value": "Action",
                "source_id": "tmdb",
                "weight": 0.5,
            }
        },
    )


class SourceTierCounts(BaseModel):
    """Count of distinct sources per reliability tier."""

    tier1: int = 0
    tier2: int = 0
    tier3: int = 0

    model_config = ConfigDict(frozen=True)


class ConfidenceBreakdown(BaseModel):
    """Explainable components behind a confidence score.

    Immutable once built; a new run recomputes it from scratch.
    """

    source_count: int = Field(..., ge=0, description="Distinct sources behind the subject")
    source_tier_counts: SourceTierCounts = Field(..., description="Distinct sources per tier")
    source_weight_avg: float = Field(..., ge=0.0, le=1.0, description="Mean registry weight of sources")
    field_completeness: float = Field(..., ge=0.0, le=1.0, description="Tiered completeness (0-1)")
    data_age_days: int = Field(..., ge=0, description="Days since the subject was last updated")
    alignment_bonus: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Agreement across independent ratings, absent with fewer than two"
    )
    explanation: str = Field(..., description="End-user summary of why the subject is trusted")

    model_config = ConfigDict(frozen=True)

    def to_store(self) -> dict:
        """Serialize for the record store (undefined alignment is omitted, not zero)."""
        return self.model_dump(mode="json", exclude_none=True)


class ConfidenceResult(BaseModel):
    """Score, badge and breakdown for one subject."""

    subject_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    badge: TrustBadge
    breakdown: ConfidenceBreakdown

    model_config = ConfigDict(frozen=True)


class CandidateTally(BaseModel):
    """Accumulated weight behind one candidate value."""

    value: str
    total_weight: float
    sources: list[str] = Field(default_factory=list)
    tier1_sources: int = 0
    tier2_sources: int = 0

    def describe(self) -> str:
        """Compact form used in audit tables, e.g. 'Action (tmdb, omdb: 0.70)'."""
        return f"{self.value} ({', '.join(self.sources)}: {self.total_weight:.2f})"


class ClassificationOutcome(BaseModel):
    """Consensus result for one categorical field of one subject."""

    field: str
    value: Optional[str] = None
    confidence_tier: ConfidenceTier = ConfidenceTier.NONE
    outcome: OutcomeKind
    ambiguous: bool = False
    ambiguity_reason: Optional[str] = None
    contributing_sources: list[str] = Field(default_factory=list)
    candidates: list[CandidateTally] = Field(default_factory=list)
    total_weight: float = 0.0

    @property
    def filled(self) -> bool:
        return self.outcome == OutcomeKind.FILLED and self.value is not None
