"""Tests for the run coordinator against an in-memory record store."""

from datetime import datetime, timezone

import pytest
from catalog_trust.db import BatchFilter
from catalog_trust.errors import RecordStoreUnavailableError
from catalog_trust.models.outcomes import ConfidenceTier, OutcomeKind, Signal
from catalog_trust.models.subject import Subject
from catalog_trust.services.trust_coordinator import TrustRunCoordinator

FRESH = datetime(2026, 1, 10, tzinfo=timezone.utc)

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _signal(value, source, weight, field="primary_genre") -> Signal:
    return Signal(field=field, candidate_value=value, source_id=source, weight=weight)


def _subjects() -> list[Subject]:
    """A corroborated genre, an ambiguous genre, and a bare record."""
    return [
        Subject(
            id="m1",
            title_en="Sivaji",
            release_year=2007,
            director="Shankar",
            hero="Rajinikanth",
            synopsis="A" * 150,
            data_sources=["tmdb", "wikipedia"],
            updated_at=FRESH,
        ),
        Subject(
            id="m2",
            title_en="Nayakan",
            release_year=1987,
            director="Mani Ratnam",
            hero="Kamal Haasan",
            data_sources=["omdb"],
            updated_at=FRESH,
        ),
        Subject(id="m3", title_en="Unknown Film", release_year=1975, updated_at=FRESH),
    ]


def _subjects_with_poster(poster: str) -> list[Subject]:
    subjects = _subjects()
    subjects[1].poster_url = poster
    return subjects


def _signals() -> dict[str, list[Signal]]:
    return {
        "m1": [_signal("Action", "tmdb", 0.50), _signal("Action", "omdb", 0.20)],
        "m2": [_signal("Action", "omdb", 0.40), _signal("Drama", "archive_org", 0.35)],
    }


@pytest.fixture
def store(make_store):
    return make_store(_subjects(), _signals())


@pytest.fixture
def coordinator_for(registry, engine_config, as_of):
    """Factory for a coordinator bound to the shared registry, config and clock."""

    def _make(repository, **kwargs):
        return TrustRunCoordinator(
            repository=repository, registry=registry, config=engine_config, as_of=as_of, **kwargs
        )

    return _make


class _StaticProbe:
    """Stands in for ImageProbe with fixed reachability."""

    def __init__(self, results):
        self.results = results
        self.probed = []

    def probe_subjects(self, subjects):
        self.probed.extend(s.id for s in subjects)
        return self.results


# ─── Runs ─────────────────────────────────────────────────────────────────────


class TestRun:
    """End-to-end runs over the in-memory store."""

    def test_full_run(self, store, coordinator_for):
        result = coordinator_for(store).run()
        stats = result.stats

        assert stats.total == 3
        assert stats.scored == 3
        assert stats.written == 3
        assert stats.filled_high == 1
        assert stats.skipped_ambiguous == 1
        assert stats.skipped_insufficient_evidence == 4
        assert stats.failed_io == 0
        assert sum(stats.badge_distribution.values()) == 3

        m1 = store.subjects["m1"]
        assert m1.primary_genre == "Action"
        assert m1.classification_meta == {"primary_genre": {"tier": "high", "sources": ["omdb", "tmdb"]}}
        assert m1.trust_badge == "verified"
        assert m1.updated_at == FRESH

        m2 = store.subjects["m2"]
        assert m2.primary_genre is None
        assert m2.confidence_score is not None

        assert store.subjects["m3"].confidence_score == 0.15
        assert store.subjects["m3"].trust_badge == "unverified"

    def test_ambiguous_field_is_listed_for_review(self, store, coordinator_for):
        result = coordinator_for(store).run()
        assert result.manual_review_count == 1
        (case,) = result.review_cases
        assert (case.subject_id, case.field, case.outcome) == ("m2", "primary_genre", OutcomeKind.AMBIGUOUS)
        assert [c.value for c in case.candidates] == ["Action", "Drama"]

    def test_filled_values_are_collected(self, store, coordinator_for):
        result = coordinator_for(store).run()
        (filled,) = result.filled
        assert (filled.subject_id, filled.value, filled.tier) == ("m1", "Action", ConfidenceTier.HIGH)

    def test_dry_run_makes_same_decisions_without_writing(self, make_store, coordinator_for):
        real_store = make_store(_subjects(), _signals())
        dry_store = make_store(_subjects(), _signals())

        real = coordinator_for(real_store).run()
        dry = coordinator_for(dry_store, dry_run=True).run()

        assert dry_store.writes == []
        assert dry.stats.written == 0
        assert dry.stats.summary_rows() == real.stats.summary_rows()
        assert dry.stats.badge_distribution == real.stats.badge_distribution
        assert [c.to_dict() for c in dry.review_cases] == [c.to_dict() for c in real.review_cases]
        assert dry_store.subjects["m1"].primary_genre is None

    def test_write_failure_is_isolated(self, store, coordinator_for):
        store.fail_writes_for = {"m2"}
        result = coordinator_for(store).run()

        assert result.stats.failed_io == 1
        assert result.stats.written == 2
        assert result.stats.scored == 2
        assert store.subjects["m1"].primary_genre == "Action"
        assert store.subjects["m2"].confidence_score is None

    def test_unreachable_store_aborts_before_work(self, store, coordinator_for):
        store.available = False
        with pytest.raises(RecordStoreUnavailableError):
            coordinator_for(store).run()
        assert store.writes == []

    def test_failed_initial_read_aborts(self, store, coordinator_for):
        store.fail_reads = True
        with pytest.raises(RecordStoreUnavailableError, match="Initial read failed"):
            coordinator_for(store).run()

    def test_rerun_is_idempotent(self, store, coordinator_for):
        coordinator_for(store).run()
        writes_after_first = len(store.writes)

        second = coordinator_for(store).run(include_all=True)

        assert second.stats.unchanged == 3
        assert second.stats.written == 0
        assert len(store.writes) == writes_after_first
        assert store.subjects["m1"].primary_genre == "Action"

    def test_evaluation_error_counts_and_continues(self, store, coordinator_for):
        coordinator = coordinator_for(store)
        original = coordinator.composer.compose

        def flaky(subject, as_of, image_reachable=None):
            if subject.id == "m3":
                raise RuntimeError("boom")
            return original(subject, as_of, image_reachable)

        coordinator.composer.compose = flaky
        result = coordinator.run()

        assert result.stats.errors == 1
        assert result.stats.scored == 2
        assert store.subjects["m3"].confidence_score is None

    def test_limit_and_filters(self, store, coordinator_for):
        result = coordinator_for(store).run(limit=5, filters=BatchFilter(decade=1980))
        assert result.stats.total == 1
        assert [sid for sid, _ in store.writes] == ["m2"]

    def test_field_selection(self, store, coordinator_for):
        result = coordinator_for(store, fields=["age_rating"]).run()
        assert result.fields == ["age_rating"]
        assert result.stats.filled_high == 0
        assert store.subjects["m1"].primary_genre is None

    def test_unknown_field_rejected(self, store, coordinator_for):
        with pytest.raises(ValueError, match="Unknown categorical fields"):
            coordinator_for(store, fields=["mood"])

    def test_probe_results_reach_scoring(self, make_store, coordinator_for):
        poster = "https://image.tmdb.org/t/p/w500/poster.jpg"
        reachable_store = make_store(_subjects_with_poster(poster), _signals())
        unreachable_store = make_store(_subjects_with_poster(poster), _signals())
        probe = _StaticProbe({"m2": False})

        coordinator_for(reachable_store, image_probe=_StaticProbe({"m2": True})).run()
        coordinator_for(unreachable_store, image_probe=probe).run()

        assert "m2" in probe.probed
        assert (
            unreachable_store.subjects["m2"].confidence_score < reachable_store.subjects["m2"].confidence_score
        )


class TestExistingValues:
    """Persisted categorical values and the update policy."""

    def test_untracked_value_is_authoritative(self, make_store, coordinator_for):
        subject = _subjects()[0]
        subject.primary_genre = "Drama"
        store = make_store([subject], _signals())

        result = coordinator_for(store).run()

        assert result.stats.skipped_already_authoritative == 1
        assert store.subjects["m1"].primary_genre == "Drama"
        _, updates = store.writes[0]
        assert "primary_genre" not in updates

    def test_higher_tier_upgrades_medium_value(self, make_store, coordinator_for):
        subject = _subjects()[0]
        subject.primary_genre = "Drama"
        subject.classification_meta = {"primary_genre": {"tier": "medium", "sources": ["wikipedia"]}}
        store = make_store([subject], _signals())

        result = coordinator_for(store).run()

        assert result.stats.filled_high == 1
        assert store.subjects["m1"].primary_genre == "Action"
        assert store.subjects["m1"].classification_meta["primary_genre"]["tier"] == "high"

    def test_equal_tier_conflict_keeps_existing(self, make_store, coordinator_for):
        subject = _subjects()[0]
        subject.primary_genre = "Drama"
        subject.classification_meta = {"primary_genre": {"tier": "medium", "sources": ["omdb", "archive_org"]}}
        store = make_store([subject], {"m1": [_signal("Action", "wikipedia", 0.80)]})

        result = coordinator_for(store).run()

        assert result.stats.filled_medium == 0
        assert result.stats.skipped_already_authoritative == 1
        assert store.subjects["m1"].primary_genre == "Drama"

    def test_age_rating_not_downgraded(self, make_store, coordinator_for):
        subject = _subjects()[0]
        subject.age_rating = "A"
        subject.classification_meta = {"age_rating": {"tier": "medium", "sources": ["omdb"]}}
        signals = {
            "m1": [_signal("U/A", "tmdb", 0.5, field="age_rating"), _signal("U/A", "imdb", 0.4, field="age_rating")]
        }
        store = make_store([subject], signals)

        coordinator_for(store).run()

        assert store.subjects["m1"].age_rating == "A"

    def test_evaluate_subject_is_pure(self, store, coordinator_for):
        coordinator = coordinator_for(store)
        subject = store.subjects["m1"]
        evaluation = coordinator.evaluate_subject(subject, _signals()["m1"])

        assert evaluation.updates["primary_genre"] == "Action"
        assert subject.primary_genre is None
        assert store.writes == []
        assert coordinator.stats.scored == 0

    def test_ambiguous_rederivation_keeps_medium_value(self, make_store, coordinator_for):
        subject = _subjects()[0]
        subject.primary_genre = "Action"
        subject.classification_meta = {"primary_genre": {"tier": "medium", "sources": ["wikipedia"]}}
        signals = {"m1": [_signal("Action", "omdb", 0.40), _signal("Drama", "archive_org", 0.38)]}
        store = make_store([subject], signals)

        result = coordinator_for(store).run()

        assert result.review_cases == []
        assert result.stats.skipped_ambiguous == 0
        assert result.stats.skipped_already_authoritative == 1
        assert store.subjects["m1"].primary_genre == "Action"
