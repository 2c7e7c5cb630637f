"""Source Quality Aggregator - distinct origins behind a subject.

Sources come from two places: the subject's explicit `data_sources` list and
sources inferred from identifiers (a tmdb_id means TMDB was consulted even
if the enrichment pass never logged it). Both are normalized and merged, so
"TMDB" in data_sources plus a tmdb_id counts once.

Never raises. Malformed entries in data_sources are skipped.
"""

import logging
from dataclasses import dataclass, field

from .. import constants
from ..models.outcomes import SourceTierCounts
from ..models.subject import Subject, is_populated
from .source_registry import SourceEntry, SourceRegistry, normalize_source_id

logger = logging.getLogger(__name__)


@dataclass
class SourceQuality:
    """Aggregated view of a subject's sources."""

    distinct_count: int
    tier_counts: SourceTierCounts
    weighted_average: float
    entries: list[SourceEntry] = field(default_factory=list)

    @property
    def source_ids(self) -> list[str]:
        return [entry.source_id for entry in self.entries]

    def top_weight_average(self, k: int) -> float:
        """Mean of the k highest source weights (default weight when no sources)."""
        weights = sorted((entry.weight for entry in self.entries), reverse=True)[:k]
        if not weights:
            return constants.EMPTY_SOURCE_WEIGHT_AVG
        return sum(weights) / len(weights)


class SourceQualityAggregator:
    """Counts and weights the distinct sources of a subject."""

    def __init__(self, registry: SourceRegistry):
        self.registry = registry

    def explicit_sources(self, subject: Subject) -> list[str]:
        raw = subject.data_sources
        if raw is None:
            return []
        if isinstance(raw, str):
            raw = [raw]
        sources = []
        for item in raw:
            if isinstance(item, str) and item.strip():
                sources.append(normalize_source_id(item))
            else:
                logger.debug(f"Skipping malformed source entry {item!r} on subject {subject.id}")
        return sources

    def inferred_sources(self, subject: Subject) -> list[str]:
        """Sources implied by populated identifier fields."""
        sources = []
        for rule in self.registry.inference_rules:
            value = getattr(subject, rule.field, None)
            if not is_populated(value):
                continue
            if rule.min_length and len(str(value).strip()) <= rule.min_length:
                continue
            sources.append(rule.source_id)
        return sources

    def distinct_sources(self, subject: Subject) -> list[str]:
        """Explicit then inferred sources, deduplicated in first-seen order."""
        seen = {}
        for source_id in self.explicit_sources(subject) + self.inferred_sources(subject):
            seen.setdefault(source_id, None)
        return list(seen)

    def aggregate(self, subject: Subject) -> SourceQuality:
        entries = [self.registry.lookup(source_id) for source_id in self.distinct_sources(subject)]

        counts = {1: 0, 2: 0, 3: 0}
        for entry in entries:
            counts[entry.tier] += 1

        if entries:
            average = round(sum(entry.weight for entry in entries) / len(entries), 2)
        else:
            average = constants.EMPTY_SOURCE_WEIGHT_AVG

        return SourceQuality(
            distinct_count=len(entries),
            tier_counts=SourceTierCounts(tier1=counts[1], tier2=counts[2], tier3=counts[3]),
            weighted_average=average,
            entries=entries,
        )
