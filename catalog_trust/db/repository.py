"""Record store repository for catalog subjects and classification signals.

Reads go through one canonical column list (STORE_COLUMNS). Writes touch
only engine-owned outputs and the categorical fields, in a single UPDATE per
subject so a subject is never left half-written.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import pymysql

from ..errors import StoreIOError
from ..models.outcomes import Signal
from ..models.subject import CATEGORICAL_FIELDS, JSON_FIELDS, OUTPUT_FIELDS, STORE_COLUMNS, Subject
from . import client

logger = logging.getLogger(__name__)

SUBJECT_TABLE = "movies"
SIGNAL_TABLE = "classification_signals"

# Columns the engine may write
WRITABLE_COLUMNS = set(OUTPUT_FIELDS + CATEGORICAL_FIELDS + ["classification_meta"])


def _json_default(obj: Any) -> Any:
    """Handle non-serializable objects for JSON encoding."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _serialize_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=_json_default, sort_keys=True)


@dataclass
class BatchFilter:
    """Optional narrowing of the batch read."""

    decade: Optional[int] = None  # e.g. 1990 selects 1990-1999
    director: Optional[str] = None
    actor: Optional[str] = None  # substring of the lead actor
    language: Optional[str] = None

    def describe(self) -> str:
        parts = [f"{k}={v}" for k, v in self.__dict__.items() if v is not None]
        return ", ".join(parts) or "none"


class SubjectRepository:
    """Batch reads and atomic per-subject writes against the catalog database."""

    def __init__(self, rescore_below: float = 0.60):
        self.rescore_below = rescore_below

    def check_connection(self) -> None:
        """Raise RecordStoreUnavailableError if the store cannot be reached."""
        client.check_connection()

    def _build_batch_query(
        self, limit: int, fields: list[str], filters: Optional[BatchFilter], include_all: bool
    ) -> tuple[str, tuple]:
        where: list[str] = []
        params: list[Any] = []

        if not include_all:
            needs_work = ["confidence_score IS NULL", "confidence_score < %s"]
            params.append(self.rescore_below)
            needs_work.extend(f"`{name}` IS NULL" for name in fields if name in WRITABLE_COLUMNS)
            where.append(f"({' OR '.join(needs_work)})")

        if filters:
            if filters.decade is not None:
                where.append("release_year BETWEEN %s AND %s")
                params.extend([filters.decade, filters.decade + 9])
            if filters.director:
                where.append("director = %s")
                params.append(filters.director)
            if filters.actor:
                where.append("hero LIKE %s")
                params.append(f"%{filters.actor}%")
            if filters.language:
                where.append("language = %s")
                params.append(filters.language)

        columns = ", ".join(f"`{c}`" for c in STORE_COLUMNS)
        sql = f"SELECT {columns} FROM {SUBJECT_TABLE}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY release_year DESC, id ASC LIMIT %s"
        params.append(limit)
        return sql, tuple(params)

    def fetch_batch(
        self,
        limit: int,
        fields: list[str],
        filters: Optional[BatchFilter] = None,
        include_all: bool = False,
    ) -> list[Subject]:
        """
        Read the working set for a run.

        Args:
            limit: Maximum subjects to read
            fields: Categorical fields selected for the run
            filters: Optional decade/director/actor/language filters
            include_all: Skip the "needs work" filter

        Returns:
            List of subjects (rows that cannot be parsed are logged and skipped)

        Raises:
            StoreIOError: If the read fails
        """
        sql, params = self._build_batch_query(limit, fields, filters, include_all)
        try:
            rows = client.execute_query(sql, params) or []
        except pymysql.Error as e:
            raise StoreIOError(f"Batch read failed: {e}") from e

        subjects = []
        for row in rows:
            try:
                subjects.append(Subject.from_row(row))
            except ValueError as e:
                logger.error(f"Skipping unreadable subject row {row.get('id')}: {e}")
        return subjects

    def fetch_signals(self, subject_ids: list[str], fields: list[str]) -> dict[str, list[Signal]]:
        """Read signals for the given subjects and fields, grouped by subject id."""
        if not subject_ids or not fields:
            return {}
        id_marks = ", ".join(["%s"] * len(subject_ids))
        field_marks = ", ".join(["%s"] * len(fields))
        sql = (
            f"SELECT subject_id, field, candidate_value, source_id, weight FROM {SIGNAL_TABLE} "
            f"WHERE subject_id IN ({id_marks}) AND field IN ({field_marks})"
        )
        try:
            rows = client.execute_query(sql, tuple(subject_ids) + tuple(fields)) or []
        except pymysql.Error as e:
            raise StoreIOError(f"Signal read failed: {e}") from e

        signals: dict[str, list[Signal]] = {}
        for row in rows:
            try:
                signal = Signal(
                    field=row["field"],
                    candidate_value=str(row["candidate_value"]),
                    source_id=str(row["source_id"]),
                    weight=float(row["weight"]),
                )
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed signal for subject {row.get('subject_id')}: {e}")
                continue
            signals.setdefault(str(row["subject_id"]), []).append(signal)
        return signals

    def apply_update(self, subject_id: str, updates: dict[str, Any]) -> None:
        """
        Write engine outputs for one subject in a single statement.

        updated_at is assigned to itself so the write does not refresh the
        subject's age.

        Raises:
            StoreIOError: If the write fails
        """
        unknown = set(updates) - WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Refusing to write non-engine columns: {sorted(unknown)}")
        data = dict(updates)
        if not data:
            return

        parts = [f"`{col}` = %s" for col in data]
        values = [_serialize_json(v) if col in JSON_FIELDS else v for col, v in data.items()]
        parts.append("updated_at = updated_at")
        values.append(subject_id)

        sql = f"UPDATE {SUBJECT_TABLE} SET {', '.join(parts)} WHERE id = %s"
        try:
            client.execute_query(sql, tuple(values), fetch="none")
        except pymysql.Error as e:
            raise StoreIOError(f"Write failed for subject {subject_id}: {e}", subject_id=subject_id) from e
