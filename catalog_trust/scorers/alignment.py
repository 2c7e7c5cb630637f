"""Cross-Field Alignment Scorer.

Rewards agreement between independently sourced ratings. Every rating is
normalized to a 0-5 scale; the bonus is max(0, 1 - variance). With fewer than
two independent ratings the bonus is undefined (None), which the composer
skips instead of treating as zero.
"""

import logging
from typing import Optional

from ..models.subject import Subject
from .source_registry import normalize_source_id

logger = logging.getLogger(__name__)

COMMON_SCALE = 5.0
AVG_RATING_SCALE = 10.0
AVG_RATING_SOURCE = "editorial"


def normalize_rating(value, scale) -> Optional[float]:
    """Normalize a rating to the 0-5 scale, or None if unusable."""
    try:
        value = float(value)
        scale = float(scale)
    except (TypeError, ValueError):
        return None
    if scale <= 0 or value < 0 or value > scale:
        return None
    return value / scale * COMMON_SCALE


def collect_ratings(subject: Subject) -> dict[str, float]:
    """One normalized rating per independent source (first occurrence wins)."""
    ratings: dict[str, float] = {}
    for item in subject.external_ratings or []:
        if not isinstance(item, dict):
            continue
        source = normalize_source_id(item.get("source"))
        normalized = normalize_rating(item.get("value"), item.get("scale", COMMON_SCALE))
        if not source or normalized is None:
            logger.debug(f"Skipping unusable rating {item!r} on subject {subject.id}")
            continue
        ratings.setdefault(source, normalized)

    if subject.avg_rating is not None:
        normalized = normalize_rating(subject.avg_rating, AVG_RATING_SCALE)
        if normalized is not None:
            ratings.setdefault(AVG_RATING_SOURCE, normalized)
    return ratings


class AlignmentScorer:
    def score(self, subject: Subject) -> Optional[float]:
        values = list(collect_ratings(subject).values())
        if len(values) < 2:
            return None
        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        return round(max(0.0, 1.0 - variance), 2)
