"""
Classification Consensus Deriver - fills categorical fields only on agreement.

Signals for a field are grouped by candidate value and their weights summed.
The leading candidate is accepted only when:
- it leads the runner-up by at least the ambiguity margin (default 0.10)
- its cumulative weight reaches the consensus threshold (default 0.65)
- enough reliable sources back it:
    high   = 2+ tier-1 sources, or 1 tier-1 source among 2+ distinct sources
    medium = exactly 1 tier-1 source alone, or 2+ tier-2 sources

Anything else leaves the field null. A single weak signal never produces a
guess, and there is no neutral fallback value.
"""

import logging
from typing import Optional

from ..config import TrustEngineConfig
from ..models.outcomes import CandidateTally, ClassificationOutcome, ConfidenceTier, OutcomeKind, Signal
from ..scorers.source_registry import SourceRegistry, normalize_source_id

logger = logging.getLogger(__name__)

# Float sums are compared at this precision (0.40 + 0.25 must reach 0.65)
WEIGHT_PRECISION = 6


class ClassificationConsensusDeriver:
    """Turns weighted candidate signals into an accepted value or an explicit skip."""

    def __init__(self, registry: SourceRegistry, config: Optional[TrustEngineConfig] = None):
        self.registry = registry
        self.config = config or TrustEngineConfig()
        self.priorities = {"primary_genre": list(self.config.genre_priority)}

    def _dedupe(self, field: str, signals: list[Signal]) -> dict[tuple[str, str], float]:
        """Keep the strongest signal per (source, candidate) so one source votes once per value."""
        strongest: dict[tuple[str, str], float] = {}
        for signal in signals:
            if signal.field != field:
                continue
            value = signal.candidate_value.strip()
            if not value:
                continue
            key = (normalize_source_id(signal.source_id), value)
            strongest[key] = max(strongest.get(key, 0.0), signal.weight)
        return strongest

    def tally(self, field: str, signals: list[Signal]) -> list[CandidateTally]:
        """Group signals by candidate value, ordered strongest first."""
        grouped: dict[str, dict] = {}
        for (source_id, value), weight in self._dedupe(field, signals).items():
            entry = grouped.setdefault(value, {"weight": 0.0, "sources": []})
            entry["weight"] += weight
            entry["sources"].append(source_id)

        tallies = []
        for value, entry in grouped.items():
            sources = sorted(entry["sources"])
            tiers = [self.registry.tier_of(source_id) for source_id in sources]
            tallies.append(
                CandidateTally(
                    value=value,
                    total_weight=round(entry["weight"], WEIGHT_PRECISION),
                    sources=sources,
                    tier1_sources=tiers.count(1),
                    tier2_sources=tiers.count(2),
                )
            )

        priority = self.priorities.get(field, [])

        def sort_key(candidate: CandidateTally):
            rank = priority.index(candidate.value) if candidate.value in priority else len(priority)
            return (-candidate.total_weight, -len(candidate.sources), rank, candidate.value)

        return sorted(tallies, key=sort_key)

    def confidence_tier(self, leader: CandidateTally) -> ConfidenceTier:
        cfg = self.config
        if leader.tier1_sources >= cfg.high_tier_min_tier1:
            return ConfidenceTier.HIGH
        if leader.tier1_sources >= 1 and len(leader.sources) >= 2:
            return ConfidenceTier.HIGH
        if leader.tier1_sources == 1 or leader.tier2_sources >= cfg.medium_tier_min_tier2:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.NONE

    def derive(self, field: str, signals: list[Signal]) -> ClassificationOutcome:
        """
        Evaluate the signals for one categorical field.

        Args:
            field: Categorical field name
            signals: All signals known for the subject (other fields are ignored)

        Returns:
            ClassificationOutcome; value is set only when outcome is FILLED
        """
        cfg = self.config
        candidates = self.tally(field, signals)
        all_weight = round(sum(c.total_weight for c in candidates), WEIGHT_PRECISION)

        def skipped(kind: OutcomeKind, reason: str, ambiguous: bool) -> ClassificationOutcome:
            logger.debug(f"{field}: {kind.value} ({reason})")
            return ClassificationOutcome(
                field=field,
                outcome=kind,
                ambiguous=ambiguous,
                ambiguity_reason=reason,
                candidates=candidates,
                total_weight=all_weight,
            )

        if not candidates:
            return skipped(OutcomeKind.INSUFFICIENT_EVIDENCE, "No signals available", ambiguous=False)

        leader = candidates[0]
        if len(candidates) > 1:
            runner_up = candidates[1]
            margin = round(leader.total_weight - runner_up.total_weight, WEIGHT_PRECISION)
            if margin < round(cfg.ambiguity_margin, WEIGHT_PRECISION):
                return skipped(
                    OutcomeKind.AMBIGUOUS,
                    f"{leader.value} leads {runner_up.value} by {margin:.2f} "
                    f"(needs {cfg.ambiguity_margin:.2f}) - needs review",
                    ambiguous=True,
                )

        if leader.total_weight < round(cfg.consensus_threshold, WEIGHT_PRECISION):
            return skipped(
                OutcomeKind.INSUFFICIENT_EVIDENCE,
                f"Weight {leader.total_weight:.2f} for {leader.value} below threshold "
                f"{cfg.consensus_threshold:.2f} - needs review",
                ambiguous=True,
            )

        tier = self.confidence_tier(leader)
        if tier == ConfidenceTier.NONE:
            return skipped(
                OutcomeKind.INSUFFICIENT_EVIDENCE,
                f"{leader.value} is backed only by low-trust sources ({', '.join(leader.sources)})",
                ambiguous=False,
            )

        return ClassificationOutcome(
            field=field,
            value=leader.value,
            confidence_tier=tier,
            outcome=OutcomeKind.FILLED,
            contributing_sources=list(leader.sources),
            candidates=candidates,
            total_weight=all_weight,
        )
