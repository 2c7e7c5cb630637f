"""
Update Policy Guard - non-destructive, monotonic field writes.

Rules, checked per field:
1. A non-null value is never replaced by null.
2. A null field may always be filled, at any tier (the tier is recorded).
3. A set field is only replaced by a strictly higher tier. Values set
   upstream without a recorded tier count as `untracked_value_tier` (high).
4. Ordered fields (age_rating: U < U/A < A < S) never move to a less
   restrictive value.

A rejected write is a normal outcome, returned as WriteDecision(allowed=False).
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config import TrustEngineConfig
from ..models.outcomes import ConfidenceTier
from ..models.subject import is_populated

logger = logging.getLogger(__name__)


@dataclass
class WriteDecision:
    """Result of checking one proposed field write."""

    field: str
    allowed: bool
    reason: str
    value: Any = None
    tier: Optional[ConfidenceTier] = None


def _as_tier(tier) -> ConfidenceTier:
    if tier is None:
        return ConfidenceTier.NONE
    if isinstance(tier, ConfidenceTier):
        return tier
    try:
        return ConfidenceTier(str(tier).lower())
    except ValueError:
        return ConfidenceTier.NONE


class UpdatePolicyGuard:
    """Reconciles proposed categorical values with the persisted state."""

    def __init__(self, config: Optional[TrustEngineConfig] = None):
        self.config = config or TrustEngineConfig()
        self.untracked_tier = ConfidenceTier(self.config.untracked_value_tier)

    def current_tier(self, current_value: Any, recorded_tier: Optional[str]) -> ConfidenceTier:
        """Effective tier of the persisted value."""
        if not is_populated(current_value):
            return ConfidenceTier.NONE
        if recorded_tier is None:
            return self.untracked_tier
        return _as_tier(recorded_tier)

    def _is_downgrade(self, field: str, current_value: Any, incoming_value: Any) -> bool:
        order = self.config.ordered_fields.get(field)
        if not order or current_value not in order or incoming_value not in order:
            return False
        return order.index(incoming_value) < order.index(current_value)

    def check(
        self,
        field: str,
        current_value: Any,
        recorded_tier: Optional[str],
        incoming_value: Any,
        incoming_tier,
    ) -> WriteDecision:
        """
        Decide whether an incoming value may be written.

        Args:
            field: Field name
            current_value: Persisted value (None if unset)
            recorded_tier: Persisted confidence tier for the field, if tracked
            incoming_value: Proposed value
            incoming_tier: Confidence tier of the proposal

        Returns:
            WriteDecision with allowed flag and reason
        """
        incoming = _as_tier(incoming_tier)

        if not is_populated(incoming_value):
            if is_populated(current_value):
                return WriteDecision(field, False, "would replace a value with null")
            return WriteDecision(field, False, "nothing to write")

        if not is_populated(current_value):
            return WriteDecision(field, True, f"fill empty field at {incoming.value} tier", incoming_value, incoming)

        current = self.current_tier(current_value, recorded_tier)
        if current_value == incoming_value:
            if incoming.rank > current.rank:
                return WriteDecision(
                    field, True, f"raise tier {current.value} -> {incoming.value}", incoming_value, incoming
                )
            return WriteDecision(field, False, "value unchanged")

        if incoming.rank <= current.rank:
            return WriteDecision(
                field,
                False,
                f"existing {current.value}-tier value outranks incoming {incoming.value}-tier value",
            )

        if self._is_downgrade(field, current_value, incoming_value):
            return WriteDecision(
                field,
                False,
                f"{incoming_value} is less restrictive than {current_value}",
            )

        return WriteDecision(
            field,
            True,
            f"upgrade {current.value} -> {incoming.value} tier",
            incoming_value,
            incoming,
        )
