"""Canonical catalog subject and its field projections.

Every component reads subjects through this one type. The field lists below
are the single authoritative schema partition: the completeness evaluator,
the consensus deriver and the repository all project from them instead of
keeping their own column subsets.
"""

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

# Identity fields - a subject with all of these earns the strong baseline
CORE_FIELDS = ["title_en", "release_year", "director", "hero"]

# Important fields - add incrementally
IMPORTANT_FIELDS = ["synopsis", "poster_url", "genres", "heroine"]

# Extended fields - nice to have
EXTENDED_FIELDS = [
    "runtime_minutes",
    "tmdb_id",
    "imdb_id",
    "music_director",
    "tagline",
    "age_rating",
    "mood_tags",
    "audience_fit",
]

# Free-text fields get a length-based quality gate
FREE_TEXT_FIELDS = {"synopsis", "tagline"}

# Categorical fields the consensus deriver may fill
CATEGORICAL_FIELDS = ["primary_genre", "age_rating"]

# Fields stored as JSON in the record store
JSON_FIELDS = {
    "genres",
    "mood_tags",
    "audience_fit",
    "data_sources",
    "external_ratings",
    "confidence_breakdown",
    "classification_meta",
}

# Fields owned by the trust engine
OUTPUT_FIELDS = ["confidence_score", "confidence_breakdown", "trust_badge"]


def is_populated(value: Any) -> bool:
    """Check whether a field value counts as present.

    None, blank strings and empty collections are absent.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a store timestamp into a timezone-aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Naive timestamps from the store are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_json(value: Any) -> Any:
    """Deserialize a JSON column, passing through values the driver already parsed."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value) if value.strip() else None
    return value


@dataclass
class Subject:
    """A catalog record (a movie) as scored by the trust engine."""

    id: str
    # Identity
    title_en: str | None = None
    release_year: int | None = None
    director: str | None = None
    hero: str | None = None
    # Important
    synopsis: str | None = None
    poster_url: str | None = None
    genres: list[str] | None = None
    heroine: str | None = None
    # Extended
    runtime_minutes: int | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    music_director: str | None = None
    tagline: str | None = None
    age_rating: str | None = None
    mood_tags: list[str] | None = None
    audience_fit: dict | list | None = None
    # Provenance
    data_sources: list[str] | None = None
    wikidata_id: str | None = None
    # Numeric evaluations: avg_rating is 0-10, external_ratings are [{source, value, scale}]
    avg_rating: float | None = None
    external_ratings: list[dict] | None = None
    # Categorical fields filled by consensus, with per-field {tier, sources}
    primary_genre: str | None = None
    classification_meta: dict | None = None
    # Engine outputs
    confidence_score: float | None = None
    confidence_breakdown: dict | None = None
    trust_badge: str | None = None
    # Filters
    language: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Subject":
        """Build a subject from a record store row, ignoring unknown columns."""
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        if data.get("id") is None:
            raise ValueError("Subject row is missing an id")
        data["id"] = str(data["id"])
        for name in JSON_FIELDS & data.keys():
            data[name] = _parse_json(data[name])
        data["updated_at"] = _parse_timestamp(data.get("updated_at"))
        return cls(**data)

    def value_of(self, field_name: str) -> Any:
        """Project a single field by name."""
        return getattr(self, field_name)

    def field_tier(self, field_name: str) -> str | None:
        """Recorded confidence tier for a categorical field, if any."""
        meta = (self.classification_meta or {}).get(field_name) or {}
        return meta.get("tier")

    @property
    def label(self) -> str:
        """Short human-readable label for logs and reports."""
        title = self.title_en or self.id
        return f"{title} ({self.release_year})" if self.release_year else title


STORE_COLUMNS = [f.name for f in fields(Subject)]
