"""
Global constants for trust scoring configuration.

Centralizes the default numeric values used by the scorers, the consensus
deriver and the batch runner. Every value here can be overridden through
config/trust_engine.yaml (see config.TrustEngineConfig).
"""

# Confidence bounds
CONFIDENCE_FLOOR = 0.15  # No subject is ever zero-trust
CONFIDENCE_CEILING = 1.0

# Field completeness tier caps (sum to 1.0)
CORE_TIER_CAP = 0.40
IMPORTANT_TIER_CAP = 0.30
EXTENDED_TIER_CAP = 0.30
FREE_TEXT_MIN_LENGTH = 10  # Below this a free-text field earns half credit
FREE_TEXT_PARTIAL_CREDIT = 0.5

# Confidence composition
CORE_BASELINE = 0.40  # All identity fields present
MINIMAL_BASELINE = 0.20
COMPLETENESS_WEIGHT = 0.35
SOURCE_WEIGHT = 0.15
SOURCE_COUNT_BONUS_PER_SOURCE = 0.033
SOURCE_COUNT_BONUS_CAP = 3  # ~10% for 3+ sources
VERIFIED_IMAGE_BONUS = 0.05
DESCRIPTION_BONUS = 0.05
DESCRIPTION_MIN_LENGTH = 100
ALIGNMENT_WEIGHT = 0.05
DECAY_WEIGHT = 0.5  # Staleness is applied at half weight
PLACEHOLDER_IMAGE_MARKER = "placeholder"

# Temporal decay ladder: (max_days_inclusive, penalty)
DECAY_LADDER = [
    (30, 0.0),
    (90, 0.05),
    (180, 0.10),
    (365, 0.15),
]
DECAY_MAX_PENALTY = 0.20

# Trust badges
VERIFIED_BADGE_THRESHOLD = 0.80
VERIFIED_MIN_TIER1_SOURCES = 2
HIGH_BADGE_THRESHOLD = 0.60
MEDIUM_BADGE_THRESHOLD = 0.40
LOW_BADGE_THRESHOLD = 0.20

# Source registry
DEFAULT_SOURCE_TIER = 3
DEFAULT_SOURCE_WEIGHT = 0.3
EMPTY_SOURCE_WEIGHT_AVG = 0.3  # Weighted average reported with zero sources

# Classification consensus
CONSENSUS_THRESHOLD = 0.65
AMBIGUITY_MARGIN = 0.10
HIGH_TIER_MIN_TIER1 = 2
MEDIUM_TIER_MIN_TIER2 = 2

# Batch processing
DEFAULT_BATCH_LIMIT = 500
RESCORE_BELOW = 0.60  # Subjects under this score are re-read by the default filter
DEFAULT_WORKERS = 8
IMAGE_PROBE_TIMEOUT_SECONDS = 5.0
IMAGE_PROBE_WORKERS = 4
REPORT_SAMPLE_SIZE = 20
