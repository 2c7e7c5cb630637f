"""Source Registry - data-origin reliability lookup.

Maps source ids to a reliability tier (1 = authoritative, 2 = reliable
secondary, 3 = low-trust/inferred) and a weight in 0..1. Both the confidence
composer and the consensus deriver read tiers from here, so the table lives
in config/source_registry.yaml rather than in code.

Usage:
    from catalog_trust.scorers.source_registry import get_source_registry

    registry = get_source_registry()
    registry.lookup("tmdb")          # SourceEntry(source_id="tmdb", tier=1, weight=0.95)
    registry.lookup("some-blog")     # default entry: tier 3, weight 0.3
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .. import constants
from ..config import get_config_dir

logger = logging.getLogger(__name__)

VALID_TIERS = (1, 2, 3)

# Fallback table used when the YAML file is missing
DEFAULT_SOURCES = {
    "wikipedia": (1, 1.0),
    "tmdb": (1, 0.95),
    "wikidata": (1, 0.90),
    "imdb": (1, 0.90),
    "omdb": (2, 0.80),
    "archive_org": (2, 0.75),
    "news_sources": (2, 0.70),
    "fan_sites": (3, 0.40),
    "ai_inference": (3, 0.35),
    "generated": (3, 0.30),
}

DEFAULT_INFERRED_SOURCES = {
    "tmdb": {"field": "tmdb_id"},
    "imdb": {"field": "imdb_id"},
    "wikidata": {"field": "wikidata_id"},
    "wikipedia": {"field": "synopsis", "min_length": 200},
}


def normalize_source_id(source_id: Optional[str]) -> str:
    """Normalize a source id for lookup (trimmed, lower-case)."""
    return (source_id or "").strip().lower()


@dataclass(frozen=True)
class SourceEntry:
    """Reliability of a single data source."""

    source_id: str
    tier: int
    weight: float
    known: bool = True


@dataclass(frozen=True)
class InferenceRule:
    """A populated field that implies a source was consulted."""

    source_id: str
    field: str
    min_length: int = 0


class SourceRegistry:
    """Static source_id -> {tier, weight} table with a low-trust default."""

    def __init__(
        self,
        sources: dict[str, tuple[int, float]],
        default_tier: int = constants.DEFAULT_SOURCE_TIER,
        default_weight: float = constants.DEFAULT_SOURCE_WEIGHT,
        inferred_sources: Optional[dict[str, dict]] = None,
    ):
        _validate_entry("default_source", default_tier, default_weight)
        self.default_tier = default_tier
        self.default_weight = default_weight

        self._entries: dict[str, SourceEntry] = {}
        for source_id, (tier, weight) in sources.items():
            key = normalize_source_id(source_id)
            _validate_entry(key, tier, weight)
            self._entries[key] = SourceEntry(source_id=key, tier=int(tier), weight=float(weight))

        self.inference_rules: list[InferenceRule] = []
        for source_id, rule in (inferred_sources or {}).items():
            if not rule or not rule.get("field"):
                raise ValueError(f"Inferred source {source_id} needs a 'field'")
            self.inference_rules.append(
                InferenceRule(
                    source_id=normalize_source_id(source_id),
                    field=rule["field"],
                    min_length=int(rule.get("min_length", 0)),
                )
            )

    def lookup(self, source_id: Optional[str]) -> SourceEntry:
        """Resolve a source id. Never fails: unknown ids get the default entry."""
        key = normalize_source_id(source_id)
        entry = self._entries.get(key)
        if entry is not None:
            return entry
        logger.debug(f"Unknown source '{source_id}', using default tier {self.default_tier}")
        return SourceEntry(source_id=key, tier=self.default_tier, weight=self.default_weight, known=False)

    def tier_of(self, source_id: Optional[str]) -> int:
        return self.lookup(source_id).tier

    def weight_of(self, source_id: Optional[str]) -> float:
        return self.lookup(source_id).weight

    def __contains__(self, source_id: str) -> bool:
        return normalize_source_id(source_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_dict(cls, raw: dict) -> "SourceRegistry":
        """Build a registry from the parsed YAML structure."""
        default = raw.get("default_source") or {}
        sources = {}
        for source_id, data in (raw.get("sources") or {}).items():
            if not isinstance(data, dict) or "tier" not in data or "weight" not in data:
                raise ValueError(f"Source {source_id} must define tier and weight")
            sources[source_id] = (data["tier"], data["weight"])
        return cls(
            sources=sources,
            default_tier=default.get("tier", constants.DEFAULT_SOURCE_TIER),
            default_weight=default.get("weight", constants.DEFAULT_SOURCE_WEIGHT),
            inferred_sources=raw.get("inferred_sources") or {},
        )


def _validate_entry(source_id: str, tier, weight) -> None:
    """Validate a tier/weight pair."""
    if tier not in VALID_TIERS:
        raise ValueError(f"Source {source_id} has invalid tier {tier!r}, expected one of {VALID_TIERS}")
    if not isinstance(weight, (int, float)) or not 0.0 <= weight <= 1.0:
        raise ValueError(f"Source {source_id} has invalid weight {weight!r}, expected 0.0-1.0")


def build_default_registry() -> SourceRegistry:
    """Fallback registry matching the shipped YAML."""
    return SourceRegistry(sources=dict(DEFAULT_SOURCES), inferred_sources=dict(DEFAULT_INFERRED_SOURCES))


# Module-level cache keyed by config path
_registry_cache: dict[Path, SourceRegistry] = {}


def _get_config_path() -> Path:
    return get_config_dir() / "source_registry.yaml"


def get_source_registry(path: Optional[Path] = None) -> SourceRegistry:
    """Load and cache the source registry from YAML."""
    config_path = Path(path) if path else _get_config_path()
    cached = _registry_cache.get(config_path)
    if cached is not None:
        return cached

    if not config_path.exists():
        logger.warning(f"Source registry config not found at {config_path}, using defaults")
        registry = build_default_registry()
    else:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        registry = SourceRegistry.from_dict(raw)
        logger.info(
            f"Loaded {len(registry)} sources, {len(registry.inference_rules)} inference rules from {config_path}"
        )

    _registry_cache[config_path] = registry
    return registry


def clear_cache() -> None:
    """Clear the module-level cache (for testing)."""
    _registry_cache.clear()
