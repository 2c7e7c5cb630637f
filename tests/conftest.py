"""Shared fixtures for trust engine tests.

No test needs a live database or network: the record store is replaced by
an in-memory repository and HTTP by httpx.MockTransport.
"""

import copy
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Make score_phase importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_trust.config import load_engine_config
from catalog_trust.errors import RecordStoreUnavailableError, StoreIOError
from catalog_trust.models.subject import Subject
from catalog_trust.scorers.source_registry import clear_cache, get_source_registry

CONFIG_DIR = Path(__file__).parent.parent / "config"

AS_OF = datetime(2026, 1, 15, tzinfo=timezone.utc)


class InMemorySubjectRepository:
    """Record store double with the SubjectRepository interface."""

    def __init__(self, subjects=None, signals=None, rescore_below: float = 0.60):
        self.subjects: dict[str, Subject] = {s.id: s for s in (subjects or [])}
        self.signals = signals or {}
        self.rescore_below = rescore_below
        self.available = True
        self.fail_reads = False
        self.fail_writes_for: set[str] = set()
        self.writes: list[tuple[str, dict]] = []

    def check_connection(self) -> None:
        if not self.available:
            raise RecordStoreUnavailableError("store is down")

    def _needs_work(self, subject: Subject, fields: list[str]) -> bool:
        if subject.confidence_score is None or subject.confidence_score < self.rescore_below:
            return True
        return any(subject.value_of(name) is None for name in fields)

    def fetch_batch(self, limit, fields, filters=None, include_all=False) -> list[Subject]:
        if self.fail_reads:
            raise StoreIOError("batch read failed")
        selected = [s for s in self.subjects.values() if include_all or self._needs_work(s, fields)]
        if filters is not None:
            if filters.decade is not None:
                selected = [
                    s for s in selected if s.release_year and filters.decade <= s.release_year <= filters.decade + 9
                ]
            if filters.director:
                selected = [s for s in selected if s.director == filters.director]
            if filters.actor:
                selected = [s for s in selected if s.hero and filters.actor in s.hero]
            if filters.language:
                selected = [s for s in selected if s.language == filters.language]
        selected.sort(key=lambda s: (-(s.release_year or 0), s.id))
        return [copy.deepcopy(s) for s in selected[:limit]]

    def fetch_signals(self, subject_ids, fields):
        return {
            sid: [sig for sig in self.signals.get(sid, []) if sig.field in fields]
            for sid in subject_ids
            if sid in self.signals
        }

    def apply_update(self, subject_id: str, updates: dict) -> None:
        if subject_id in self.fail_writes_for:
            raise StoreIOError(f"write failed for {subject_id}", subject_id=subject_id)
        self.writes.append((subject_id, copy.deepcopy(updates)))
        self.subjects[subject_id] = replace(self.subjects[subject_id], **copy.deepcopy(updates))


@pytest.fixture(autouse=True)
def _fresh_registry_cache():
    """Registry cache must not leak between tests."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def as_of():
    """Fixed run clock."""
    return AS_OF


@pytest.fixture
def registry():
    """Source registry built from the shipped YAML."""
    return get_source_registry(CONFIG_DIR / "source_registry.yaml")


@pytest.fixture
def engine_config():
    """Engine configuration from the shipped YAML."""
    return load_engine_config(CONFIG_DIR / "trust_engine.yaml")


@pytest.fixture
def make_store():
    """Factory for in-memory record stores."""

    def _make(subjects=None, signals=None):
        return InMemorySubjectRepository(subjects=subjects, signals=signals)

    return _make
