"""Confidence Composer - score, badge and explanation for a subject.

Composition:
1. Baseline: 0.40 with every identity field present, else 0.20
2. + completeness * 0.35
3. + source quality * 0.15 (mean of the strongest sources, see below)
4. + 0.033 per distinct source, up to 3 sources
5. + 0.05 verified poster, + 0.05 substantial synopsis
6. + alignment * 0.05 when defined
7. - half of the temporal decay penalty
8. Clamp to [0.15, 1.0], round to 2 decimals

Source quality uses the mean of the top `source_count_bonus_cap` weights so
that adding a tier-1 source never lowers the score. The breakdown still
reports the plain mean of all sources.

Badges (first match wins):
- verified:   score >= 0.80 AND >= 2 tier-1 sources
- high:       score >= 0.60
- medium:     score >= 0.40
- low:        score >= 0.20
- unverified: otherwise

Pure computation: no I/O, no shared state. The run clock is passed in so
every subject of a run is aged against the same instant.
"""

import logging
from datetime import datetime
from typing import Optional

from .. import constants
from ..config import TrustEngineConfig
from ..models.outcomes import ConfidenceBreakdown, ConfidenceResult, SourceTierCounts, TrustBadge
from ..models.subject import Subject, is_populated
from .alignment import AlignmentScorer
from .completeness import FieldCompletenessEvaluator
from .source_quality import SourceQualityAggregator
from .source_registry import SourceRegistry
from .temporal_decay import TemporalDecayEstimator

logger = logging.getLogger(__name__)


def has_verified_image(subject: Subject, image_reachable: Optional[bool] = None) -> bool:
    """A real (non-placeholder) poster; when probed, the probe must have succeeded."""
    poster = subject.poster_url
    if not is_populated(poster):
        return False
    if constants.PLACEHOLDER_IMAGE_MARKER in poster.lower():
        return False
    return image_reachable is not False


def build_explanation(source_count: int, tier_counts: SourceTierCounts, completeness: float) -> str:
    """End-user sentence: source narrative plus completeness phrase."""
    if source_count == 0:
        parts = ["No verified sources"]
    elif tier_counts.tier1 >= 2:
        parts = [f"Verified by {tier_counts.tier1} authoritative sources"]
    elif tier_counts.tier1 == 1:
        parts = ["Verified by 1 authoritative source"]
    elif tier_counts.tier2 >= 2:
        parts = [f"Supported by {tier_counts.tier2} reliable sources"]
    else:
        parts = ["Limited source verification"]

    if completeness >= 0.9:
        parts.append("complete data profile")
    elif completeness >= 0.7:
        parts.append("good data coverage")
    elif completeness >= 0.5:
        parts.append("moderate data coverage")
    else:
        parts.append("partial data")

    return ", ".join(parts)


class ConfidenceComposer:
    """Combines the component scorers into a ConfidenceResult."""

    def __init__(self, registry: SourceRegistry, config: Optional[TrustEngineConfig] = None):
        self.config = config or TrustEngineConfig()
        self.completeness = FieldCompletenessEvaluator(self.config)
        self.sources = SourceQualityAggregator(registry)
        self.decay = TemporalDecayEstimator(self.config.decay_ladder, self.config.decay_max_penalty)
        self.alignment = AlignmentScorer()

    def assign_badge(self, score: float, tier1_sources: int) -> TrustBadge:
        cfg = self.config
        if score >= cfg.verified_badge_threshold and tier1_sources >= cfg.verified_min_tier1_sources:
            return TrustBadge.VERIFIED
        if score >= cfg.high_badge_threshold:
            return TrustBadge.HIGH
        if score >= cfg.medium_badge_threshold:
            return TrustBadge.MEDIUM
        if score >= cfg.low_badge_threshold:
            return TrustBadge.LOW
        return TrustBadge.UNVERIFIED

    def compose(self, subject: Subject, as_of: datetime, image_reachable: Optional[bool] = None) -> ConfidenceResult:
        """Score a subject.

        Args:
            subject: Subject to score
            as_of: Run clock used for data age
            image_reachable: Result of the optional poster probe (None = not probed)

        Returns:
            ConfidenceResult with score, badge and breakdown
        """
        cfg = self.config
        completeness = self.completeness.evaluate(subject)
        quality = self.sources.aggregate(subject)
        age_days = self.decay.days_since(subject.updated_at, as_of)
        penalty = self.decay.penalty(age_days)
        alignment = self.alignment.score(subject)

        if quality.distinct_count == 0 and cfg.pin_unsourced_to_floor:
            raw = cfg.confidence_floor
        else:
            raw = cfg.core_baseline if completeness.has_all_core else cfg.minimal_baseline
            raw += completeness.score * cfg.completeness_weight
            raw += quality.top_weight_average(cfg.source_count_bonus_cap) * cfg.source_weight
            raw += min(quality.distinct_count, cfg.source_count_bonus_cap) * cfg.source_count_bonus_per_source
            if has_verified_image(subject, image_reachable):
                raw += cfg.verified_image_bonus
            if isinstance(subject.synopsis, str) and len(subject.synopsis.strip()) > cfg.description_min_length:
                raw += cfg.description_bonus
            if alignment is not None:
                raw += alignment * cfg.alignment_weight
            raw -= penalty * cfg.decay_weight

        score = round(min(cfg.confidence_ceiling, max(cfg.confidence_floor, raw)), 2)
        badge = self.assign_badge(score, quality.tier_counts.tier1)

        breakdown = ConfidenceBreakdown(
            source_count=quality.distinct_count,
            source_tier_counts=quality.tier_counts,
            source_weight_avg=quality.weighted_average,
            field_completeness=completeness.score,
            data_age_days=age_days,
            alignment_bonus=alignment,
            explanation=build_explanation(quality.distinct_count, quality.tier_counts, completeness.score),
        )
        logger.debug(
            f"Scored {subject.label}: {score:.2f} ({badge.value}) sources={quality.source_ids} "
            f"completeness={completeness.score:.2f} age={age_days}d"
        )
        return ConfidenceResult(subject_id=subject.id, score=score, badge=badge, breakdown=breakdown)
