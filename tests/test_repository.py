"""Tests for the subject model and the record store repository (no live database)."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pymysql
import pytest
from catalog_trust.db import BatchFilter, SubjectRepository
from catalog_trust.db import client as db_client
from catalog_trust.db.repository import WRITABLE_COLUMNS
from catalog_trust.errors import RecordStoreUnavailableError, StoreIOError
from catalog_trust.models.subject import CATEGORICAL_FIELDS, OUTPUT_FIELDS, Subject


class _FakeQuery:
    """Records execute_query calls and returns canned rows."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    def __call__(self, sql, params=None, fetch="all"):
        self.calls.append((sql, params, fetch))
        if self.error is not None:
            raise self.error
        return self.rows


def _signal_row(subject_id, field, value, source, weight) -> dict:
    return {"subject_id": subject_id, "field": field, "candidate_value": value, "source_id": source, "weight": weight}


@pytest.fixture
def fake_query(monkeypatch):
    def _install(rows=None, error=None):
        fake = _FakeQuery(rows, error)
        monkeypatch.setattr(db_client, "execute_query", fake)
        return fake

    return _install


class TestSubjectFromRow:
    def test_parses_json_and_timestamps(self):
        subject = Subject.from_row(
            {
                "id": 42,
                "title_en": "Sivaji",
                "genres": '["Action", "Drama"]',
                "data_sources": b'["tmdb"]',
                "classification_meta": None,
                "updated_at": "2026-01-10T08:00:00Z",
                "unrelated_column": "ignored",
            }
        )
        assert subject.id == "42"
        assert subject.genres == ["Action", "Drama"]
        assert subject.data_sources == ["tmdb"]
        assert subject.updated_at == datetime(2026, 1, 10, 8, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self):
        subject = Subject.from_row({"id": "m1", "updated_at": datetime(2026, 1, 10)})
        assert subject.updated_at.tzinfo == timezone.utc

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError, match="missing an id"):
            Subject.from_row({"title_en": "No id"})

    def test_field_tier(self):
        subject = Subject(id="m1", classification_meta={"primary_genre": {"tier": "medium"}})
        assert subject.field_tier("primary_genre") == "medium"
        assert subject.field_tier("age_rating") is None

    def test_label(self):
        assert Subject(id="m1", title_en="Sivaji", release_year=2007).label == "Sivaji (2007)"
        assert Subject(id="m1").label == "m1"


class TestBatchQuery:
    def test_needs_work_filter(self):
        sql, params = SubjectRepository(rescore_below=0.6)._build_batch_query(100, ["primary_genre"], None, False)
        assert "confidence_score IS NULL OR confidence_score < %s OR `primary_genre` IS NULL" in sql
        assert sql.endswith("ORDER BY release_year DESC, id ASC LIMIT %s")
        assert params == (0.6, 100)

    def test_include_all_skips_needs_work(self):
        sql, params = SubjectRepository()._build_batch_query(10, ["primary_genre"], None, True)
        assert "WHERE" not in sql
        assert params == (10,)

    def test_filters(self):
        filters = BatchFilter(decade=1990, director="Mani Ratnam", actor="Kamal", language="ta")
        sql, params = SubjectRepository()._build_batch_query(5, [], filters, True)
        assert "release_year BETWEEN %s AND %s" in sql
        assert params == (1990, 1999, "Mani Ratnam", "%Kamal%", "ta", 5)

    def test_describe_filters(self):
        assert BatchFilter().describe() == "none"
        assert BatchFilter(decade=1990, language="ta").describe() == "decade=1990, language=ta"


class TestRepositoryIO:
    def test_fetch_batch_skips_unreadable_rows(self, fake_query):
        fake_query(rows=[{"id": "m1", "title_en": "Sivaji"}, {"title_en": "No id"}])
        subjects = SubjectRepository().fetch_batch(10, ["primary_genre"])
        assert [s.id for s in subjects] == ["m1"]

    def test_fetch_batch_error(self, fake_query):
        fake_query(error=pymysql.OperationalError(2013, "Lost connection"))
        with pytest.raises(StoreIOError, match="Batch read failed"):
            SubjectRepository().fetch_batch(10, ["primary_genre"])

    def test_fetch_signals_groups_by_subject(self, fake_query):
        fake = fake_query(
            rows=[
                _signal_row(1, "primary_genre", "Action", "tmdb", Decimal("0.5")),
                _signal_row(1, "primary_genre", "Drama", "omdb", "bad"),
                _signal_row(2, "age_rating", "U", "imdb", 0.4),
            ]
        )
        signals = SubjectRepository().fetch_signals(["1", "2"], ["primary_genre", "age_rating"])
        assert [s.candidate_value for s in signals["1"]] == ["Action"]
        assert signals["2"][0].weight == 0.4
        assert fake.calls[0][1] == ("1", "2", "primary_genre", "age_rating")

    def test_fetch_signals_without_ids(self, fake_query):
        fake = fake_query()
        assert SubjectRepository().fetch_signals([], ["primary_genre"]) == {}
        assert fake.calls == []

    def test_apply_update_single_statement(self, fake_query):
        fake = fake_query()
        SubjectRepository().apply_update(
            "m1",
            {
                "confidence_score": 0.83,
                "confidence_breakdown": {"source_count": 2, "explanation": "x"},
                "primary_genre": "Action",
            },
        )
        ((sql, params, fetch),) = fake.calls
        assert sql.startswith("UPDATE movies SET `confidence_score` = %s")
        assert "updated_at = updated_at" in sql
        assert sql.endswith("WHERE id = %s")
        assert params[0] == 0.83
        assert json.loads(params[1]) == {"source_count": 2, "explanation": "x"}
        assert params[-1] == "m1"
        assert fetch == "none"

    def test_apply_update_refuses_other_columns(self, fake_query):
        fake = fake_query()
        with pytest.raises(ValueError, match="non-engine columns"):
            SubjectRepository().apply_update("m1", {"title_en": "Renamed"})
        assert fake.calls == []

    def test_apply_update_error(self, fake_query):
        fake_query(error=pymysql.OperationalError(1205, "Lock wait timeout"))
        with pytest.raises(StoreIOError) as exc_info:
            SubjectRepository().apply_update("m1", {"confidence_score": 0.5})
        assert exc_info.value.subject_id == "m1"

    def test_check_connection_failure(self, fake_query):
        fake_query(error=pymysql.OperationalError(2003, "Can't connect"))
        with pytest.raises(RecordStoreUnavailableError, match="unreachable"):
            SubjectRepository().check_connection()

    def test_writable_columns_follow_subject_schema(self):
        assert WRITABLE_COLUMNS == set(OUTPUT_FIELDS) | set(CATEGORICAL_FIELDS) | {"classification_meta"}

    def test_apply_update_accepts_every_categorical_field(self, fake_query):
        fake = fake_query()
        SubjectRepository().apply_update("m1", {name: "x" for name in CATEGORICAL_FIELDS})
        assert len(fake.calls) == 1
