"""
Central configuration for data paths and scoring thresholds.

Local files (audit reports, logs) are stored in ~/.catalog-trust/ unless
overridden. Numeric thresholds come from constants.py and can be tuned in
config/trust_engine.yaml without touching code.

Environment variables:
  - CATALOG_TRUST_DATA_DIR (default: ~/.catalog-trust)
  - CATALOG_TRUST_REPORT_DIR (default: <data dir>/reports)
  - CATALOG_TRUST_CONFIG_DIR (default: <repo>/config)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from . import constants
from .models.subject import CATEGORICAL_FIELDS

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """
    Get the local data directory path for reports and logs.

    Uses CATALOG_TRUST_DATA_DIR environment variable if set, otherwise
    defaults to ~/.catalog-trust/

    Returns:
        Path to data directory
    """
    env_path = os.environ.get("CATALOG_TRUST_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".catalog-trust"


def get_report_dir() -> Path:
    """Get the audit report output directory."""
    env_path = os.environ.get("CATALOG_TRUST_REPORT_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return get_data_dir() / "reports"


def get_config_dir() -> Path:
    """Get the directory holding the YAML configuration files."""
    env_path = os.environ.get("CATALOG_TRUST_CONFIG_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).parent.parent / "config"


@dataclass
class TrustEngineConfig:
    """Tunable thresholds for scoring, consensus and batch runs.

    Attributes:
        confidence_floor: Lowest score any subject can receive
        confidence_ceiling: Highest score any subject can receive
        core_tier_cap: Share of completeness earned by identity fields
        important_tier_cap: Share earned by important fields
        extended_tier_cap: Share earned by extended fields
        free_text_min_length: Free text shorter than this earns partial credit
        consensus_threshold: Minimum cumulative signal weight to fill a field
        ambiguity_margin: Minimum lead of the winning candidate over the runner-up
        pin_unsourced_to_floor: Subjects with zero sources score exactly the floor
        categorical_fields: Fields the consensus deriver may fill
        ordered_fields: Fields whose values carry a restrictiveness order
        genre_priority: Tie-break order for primary_genre candidates
    """

    # Bounds
    confidence_floor: float = constants.CONFIDENCE_FLOOR
    confidence_ceiling: float = constants.CONFIDENCE_CEILING

    # Completeness
    core_tier_cap: float = constants.CORE_TIER_CAP
    important_tier_cap: float = constants.IMPORTANT_TIER_CAP
    extended_tier_cap: float = constants.EXTENDED_TIER_CAP
    free_text_min_length: int = constants.FREE_TEXT_MIN_LENGTH
    free_text_partial_credit: float = constants.FREE_TEXT_PARTIAL_CREDIT

    # Composition
    core_baseline: float = constants.CORE_BASELINE
    minimal_baseline: float = constants.MINIMAL_BASELINE
    completeness_weight: float = constants.COMPLETENESS_WEIGHT
    source_weight: float = constants.SOURCE_WEIGHT
    source_count_bonus_per_source: float = constants.SOURCE_COUNT_BONUS_PER_SOURCE
    source_count_bonus_cap: int = constants.SOURCE_COUNT_BONUS_CAP
    verified_image_bonus: float = constants.VERIFIED_IMAGE_BONUS
    description_bonus: float = constants.DESCRIPTION_BONUS
    description_min_length: int = constants.DESCRIPTION_MIN_LENGTH
    alignment_weight: float = constants.ALIGNMENT_WEIGHT
    decay_weight: float = constants.DECAY_WEIGHT
    pin_unsourced_to_floor: bool = True

    # Temporal decay
    decay_ladder: list = field(default_factory=lambda: [list(step) for step in constants.DECAY_LADDER])
    decay_max_penalty: float = constants.DECAY_MAX_PENALTY

    # Badges
    verified_badge_threshold: float = constants.VERIFIED_BADGE_THRESHOLD
    verified_min_tier1_sources: int = constants.VERIFIED_MIN_TIER1_SOURCES
    high_badge_threshold: float = constants.HIGH_BADGE_THRESHOLD
    medium_badge_threshold: float = constants.MEDIUM_BADGE_THRESHOLD
    low_badge_threshold: float = constants.LOW_BADGE_THRESHOLD

    # Consensus
    consensus_threshold: float = constants.CONSENSUS_THRESHOLD
    ambiguity_margin: float = constants.AMBIGUITY_MARGIN
    high_tier_min_tier1: int = constants.HIGH_TIER_MIN_TIER1
    medium_tier_min_tier2: int = constants.MEDIUM_TIER_MIN_TIER2
    categorical_fields: list = field(default_factory=lambda: list(CATEGORICAL_FIELDS))
    ordered_fields: dict = field(default_factory=lambda: {"age_rating": ["U", "U/A", "A", "S"]})
    genre_priority: list = field(default_factory=list)
    untracked_value_tier: str = "high"

    # Batch runs
    batch_limit: int = constants.DEFAULT_BATCH_LIMIT
    rescore_below: float = constants.RESCORE_BELOW
    workers: int = constants.DEFAULT_WORKERS
    image_probe_timeout: float = constants.IMAGE_PROBE_TIMEOUT_SECONDS
    image_probe_workers: int = constants.IMAGE_PROBE_WORKERS

    def __post_init__(self):
        """Validate configuration values."""
        if not 0.0 < self.confidence_floor < self.confidence_ceiling <= 1.0:
            raise ValueError(
                f"confidence bounds must satisfy 0 < floor < ceiling <= 1, "
                f"got floor={self.confidence_floor}, ceiling={self.confidence_ceiling}"
            )
        caps = self.core_tier_cap + self.important_tier_cap + self.extended_tier_cap
        if abs(caps - 1.0) > 1e-9:
            raise ValueError(f"completeness tier caps must sum to 1.0, got {caps:.2f}")
        cutoffs = [
            self.verified_badge_threshold,
            self.high_badge_threshold,
            self.medium_badge_threshold,
            self.low_badge_threshold,
        ]
        if cutoffs != sorted(cutoffs, reverse=True):
            raise ValueError(f"badge cutoffs must be descending (verified > high > medium > low), got {cutoffs}")
        for name in ("consensus_threshold", "ambiguity_margin", "rescore_below"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
        if self.workers < 1 or self.image_probe_workers < 1:
            raise ValueError("worker counts must be at least 1")
        if self.image_probe_timeout <= 0:
            raise ValueError("image_probe_timeout must be positive")
        if self.untracked_value_tier not in ("verified", "high", "medium", "low"):
            raise ValueError(f"untracked_value_tier must be a confidence tier, got {self.untracked_value_tier}")
        if not self.categorical_fields:
            raise ValueError("categorical_fields must name at least one field")
        unknown = set(self.categorical_fields) - set(CATEGORICAL_FIELDS)
        if unknown:
            raise ValueError(
                f"categorical_fields {sorted(unknown)} are not writable categorical fields; "
                f"expected some of {CATEGORICAL_FIELDS}"
            )
        unordered = set(self.ordered_fields) - set(CATEGORICAL_FIELDS)
        if unordered:
            raise ValueError(f"ordered_fields {sorted(unordered)} are not writable categorical fields")
        self.decay_ladder = sorted([int(days), float(penalty)] for days, penalty in self.decay_ladder)


def load_engine_config(path: Optional[Path] = None) -> TrustEngineConfig:
    """Load engine configuration, overlaying YAML values on the defaults.

    Args:
        path: YAML file to read (defaults to <config dir>/trust_engine.yaml)

    Returns:
        Validated TrustEngineConfig

    Raises:
        ValueError: If the file contains unknown keys or invalid values
    """
    config_path = Path(path) if path else get_config_dir() / "trust_engine.yaml"
    if not config_path.exists():
        logger.warning(f"Trust engine config not found at {config_path}, using defaults")
        return TrustEngineConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    known = {f.name for f in fields(TrustEngineConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown keys in {config_path}: {sorted(unknown)}")

    logger.info(f"Loaded trust engine config from {config_path} ({len(raw)} overrides)")
    return TrustEngineConfig(**raw)
