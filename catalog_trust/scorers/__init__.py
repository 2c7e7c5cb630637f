"""Scorers for subject confidence."""

from .alignment import AlignmentScorer
from .completeness import CompletenessResult, FieldCompletenessEvaluator
from .confidence_composer import ConfidenceComposer, build_explanation, has_verified_image
from .source_quality import SourceQuality, SourceQualityAggregator
from .source_registry import SourceEntry, SourceRegistry, clear_cache, get_source_registry
from .temporal_decay import TemporalDecayEstimator

__all__ = [
    "AlignmentScorer",
    "CompletenessResult",
    "ConfidenceComposer",
    "FieldCompletenessEvaluator",
    "SourceEntry",
    "SourceQuality",
    "SourceQualityAggregator",
    "SourceRegistry",
    "TemporalDecayEstimator",
    "build_explanation",
    "clear_cache",
    "get_source_registry",
    "has_verified_image",
]
