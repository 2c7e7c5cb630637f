"""Temporal Decay Estimator - staleness penalty.

Historical facts do not become less true with time, so the penalty is capped
and the composer applies it at half weight.
"""

from datetime import datetime, timezone
from typing import Optional

from .. import constants


class TemporalDecayEstimator:
    """Maps days since last update to a penalty using a step ladder."""

    def __init__(self, ladder: Optional[list] = None, max_penalty: float = constants.DECAY_MAX_PENALTY):
        # (max_days_inclusive, penalty), ascending by days
        self.ladder = sorted((int(days), float(penalty)) for days, penalty in (ladder or constants.DECAY_LADDER))
        self.max_penalty = max_penalty

    def penalty(self, days_since_update: int) -> float:
        days = max(0, int(days_since_update))
        for max_days, penalty in self.ladder:
            if days <= max_days:
                return penalty
        return self.max_penalty

    @staticmethod
    def days_since(updated_at: Optional[datetime], as_of: datetime) -> int:
        """Whole days between updated_at and the run clock.

        Subjects without a timestamp are treated as fresh; future timestamps
        count as 0 days.
        """
        if updated_at is None:
            return 0
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=timezone.utc)
        return max(0, (as_of - updated_at).days)
