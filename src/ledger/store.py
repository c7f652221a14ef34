"""SQLite persistence for versioned prediction records.

Every regeneration of a subject's prediction is a new row at
reprediction_index = latest + 1. Rows are never updated or deleted.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import structlog

from db import DEFAULT_BUSY_TIMEOUT, wal_connect
from shared_types import SubjectKind

from .errors import ConcurrencyConflict, store_errors
from .models import (
    CostBucket,
    LatestPrediction,
    PredictionMetadata,
    PredictionRecord,
    SubjectKey,
    to_utc,
    utcnow,
)
from .retry import conflict_retry

logger = structlog.get_logger()

DEFAULT_MAX_CONFLICT_ATTEMPTS = 5

_SUBJECT_WHERE = "kind = ? AND community_context = ? AND model = ? AND entity_id = ?"


def _subject_params(subject: SubjectKey) -> tuple:
    return (str(subject.kind), subject.community_context, subject.model, subject.entity_id)


class PredictionStore:
    """Append-only prediction history per (entity, model, community context)."""

    def __init__(
        self,
        db_path: Path,
        max_conflict_attempts: int = DEFAULT_MAX_CONFLICT_ATTEMPTS,
        timeout: float = DEFAULT_BUSY_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_conflict_attempts = max(1, max_conflict_attempts)
        self.timeout = timeout
        self._clock = clock
        self._init_tables()

    def _connect(self) -> sqlite3.Connection:
        return wal_connect(self.db_path, row_factory=True, timeout=self.timeout)

    def _init_tables(self):
        with store_errors("init_predictions"), self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS predictions (
                    kind TEXT NOT NULL CHECK(kind IN ('match','bonus')),
                    community_context TEXT NOT NULL,
                    model TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    reprediction_index INTEGER NOT NULL CHECK(reprediction_index >= 0),
                    value TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    dependency_document_names TEXT NOT NULL DEFAULT '[]',
                    cost REAL NOT NULL DEFAULT 0 CHECK(cost >= 0),
                    token_usage TEXT NOT NULL DEFAULT '',
                    grp TEXT,
                    PRIMARY KEY (kind, community_context, model, entity_id, reprediction_index)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_pred_scope ON predictions(model, community_context, kind)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_pred_group ON predictions(grp)")

    # --- reads ---

    def get_latest_index(self, subject: SubjectKey) -> int:
        """Highest reprediction index for the subject, -1 if never predicted."""
        with store_errors("get_latest_index", entity_id=subject.entity_id), self._connect() as conn:
            row = conn.execute(
                f"SELECT MAX(reprediction_index) AS idx FROM predictions WHERE {_SUBJECT_WHERE}",
                _subject_params(subject),
            ).fetchone()
        return row["idx"] if row and row["idx"] is not None else -1

    def get_latest(self, subject: SubjectKey) -> Optional[LatestPrediction]:
        with store_errors("get_latest_prediction", entity_id=subject.entity_id), self._connect() as conn:
            row = conn.execute(
                f"""SELECT value, reprediction_index FROM predictions
                WHERE {_SUBJECT_WHERE}
                ORDER BY reprediction_index DESC LIMIT 1""",
                _subject_params(subject),
            ).fetchone()
        if row is None:
            return None
        return LatestPrediction(value=json.loads(row["value"]), index=row["reprediction_index"])

    def get_metadata(self, subject: SubjectKey) -> Optional[PredictionMetadata]:
        """Creation time and dependency names of the latest record.

        Does not read the prediction value. Malformed metadata is reported as
        absent.
        """
        with store_errors("get_prediction_metadata", entity_id=subject.entity_id), self._connect() as conn:
            row = conn.execute(
                f"""SELECT created_at, dependency_document_names FROM predictions
                WHERE {_SUBJECT_WHERE}
                ORDER BY reprediction_index DESC LIMIT 1""",
                _subject_params(subject),
            ).fetchone()
        if row is None:
            return None
        try:
            names = json.loads(row["dependency_document_names"] or "[]")
            if not isinstance(names, list):
                raise ValueError("dependency_document_names is not a list")
            return PredictionMetadata(
                created_at=datetime.fromisoformat(row["created_at"]),
                dependency_document_names=[str(n) for n in names],
            )
        except (TypeError, ValueError) as e:
            logger.warning(
                "prediction_metadata_invalid",
                entity_id=subject.entity_id,
                model=subject.model,
                error=str(e),
            )
            return None

    def get_record(self, subject: SubjectKey, index: int) -> Optional[PredictionRecord]:
        with store_errors("get_prediction_record", entity_id=subject.entity_id), self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM predictions WHERE {_SUBJECT_WHERE} AND reprediction_index = ?",
                (*_subject_params(subject), index),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def history(self, subject: SubjectKey) -> list[PredictionRecord]:
        """All records for the subject, oldest first."""
        with store_errors("get_prediction_history", entity_id=subject.entity_id), self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM predictions WHERE {_SUBJECT_WHERE} ORDER BY reprediction_index",
                _subject_params(subject),
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    # --- writes ---

    def save_next(
        self,
        subject: SubjectKey,
        value: Any,
        dependency_document_names: Iterable[str],
        cost: float,
        token_usage: Any,
        group: str | int | None = None,
    ) -> int:
        """Append a record at latest index + 1 and return that index.

        The insert only succeeds if the slot is still empty. A concurrent
        writer taking the slot triggers a re-read and another attempt; after
        max_conflict_attempts the ConcurrencyConflict is raised.
        """
        names = list(dependency_document_names)

        @conflict_retry(max_attempts=self.max_conflict_attempts, exceptions=(ConcurrencyConflict,))
        def _attempt() -> int:
            index = self.get_latest_index(subject) + 1
            self._insert(subject, index, value, names, cost, token_usage, group)
            return index

        return _attempt()

    def save_at(
        self,
        subject: SubjectKey,
        value: Any,
        dependency_document_names: Iterable[str],
        cost: float,
        token_usage: Any,
        index: int,
        group: str | int | None = None,
    ) -> int:
        """Write a record at a caller-resolved index. No retry on conflict."""
        if index < 0:
            raise ValueError(f"reprediction index must be >= 0, got {index}")
        self._insert(subject, index, value, list(dependency_document_names), cost, token_usage, group)
        return index

    def _insert(
        self,
        subject: SubjectKey,
        index: int,
        value: Any,
        names: list[str],
        cost: float,
        token_usage: Any,
        group: str | int | None,
    ) -> None:
        if cost < 0:
            raise ValueError(f"cost must be non-negative, got {cost}")
        usage = token_usage if isinstance(token_usage, str) else json.dumps(token_usage)
        created_at = to_utc(self._clock())
        try:
            with store_errors("save_prediction", entity_id=subject.entity_id), self._connect() as conn:
                conn.execute(
                    """INSERT INTO predictions
                    (kind, community_context, model, entity_id, reprediction_index,
                     value, created_at, dependency_document_names, cost, token_usage, grp)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        *_subject_params(subject),
                        index,
                        json.dumps(value),
                        created_at.isoformat(),
                        json.dumps(names),
                        float(cost),
                        usage,
                        str(group) if group is not None else None,
                    ),
                )
        except sqlite3.IntegrityError as e:
            logger.info(
                "index_conflict",
                entity_id=subject.entity_id,
                model=subject.model,
                index=index,
            )
            raise ConcurrencyConflict(
                f"Reprediction index {index} for {subject.entity_id} is already taken",
                index=index,
            ) from e

        logger.info(
            "prediction_saved",
            entity_id=subject.entity_id,
            model=subject.model,
            community_context=subject.community_context,
            kind=str(subject.kind),
            index=index,
            cost=cost,
        )

    # --- aggregation & discovery ---

    def costs_by_index(
        self,
        model: str,
        community_context: str,
        kind: SubjectKind = SubjectKind.MATCH,
        groups: Optional[Iterable[str | int]] = None,
    ) -> dict[int, CostBucket]:
        """Total cost and record count per reprediction index.

        Only indices that have at least one record appear in the result.
        """
        query = """SELECT reprediction_index AS idx, SUM(cost) AS cost, COUNT(*) AS count
            FROM predictions WHERE model = ? AND community_context = ? AND kind = ?"""
        params: list = [model, community_context, str(kind)]
        if groups is not None:
            group_list = [str(g) for g in groups]
            if not group_list:
                return {}
            query += f" AND grp IN ({','.join('?' * len(group_list))})"
            params.extend(group_list)
        query += " GROUP BY reprediction_index ORDER BY reprediction_index"

        with store_errors("costs_by_index", model=model), self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return {r["idx"]: CostBucket(cost=r["cost"] or 0.0, count=r["count"]) for r in rows}

    def list_subjects(
        self,
        model: str,
        community_context: str,
        kind: SubjectKind = SubjectKind.MATCH,
    ) -> list[SubjectKey]:
        with store_errors("list_subjects", model=model), self._connect() as conn:
            rows = conn.execute(
                """SELECT DISTINCT entity_id FROM predictions
                WHERE model = ? AND community_context = ? AND kind = ?
                ORDER BY entity_id""",
                (model, community_context, str(kind)),
            ).fetchall()
        return [SubjectKey(r["entity_id"], model, community_context, kind) for r in rows]

    def list_models(self) -> list[str]:
        return self._distinct("model")

    def list_community_contexts(self) -> list[str]:
        return self._distinct("community_context")

    def list_groups(self, kind: SubjectKind = SubjectKind.MATCH) -> list[str]:
        with store_errors("list_groups"), self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT grp FROM predictions WHERE kind = ? AND grp IS NOT NULL",
                (str(kind),),
            ).fetchall()
        # Matchday labels sort numerically when they are numbers.
        return sorted((r["grp"] for r in rows), key=lambda g: (not g.isdigit(), int(g) if g.isdigit() else 0, g))

    def _distinct(self, column: str) -> list[str]:
        with store_errors(f"list_{column}"), self._connect() as conn:
            rows = conn.execute(
                f"SELECT DISTINCT {column} AS v FROM predictions WHERE {column} != '' ORDER BY {column}"
            ).fetchall()
        return [r["v"] for r in rows]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> PredictionRecord:
        return PredictionRecord(
            subject=SubjectKey(
                entity_id=row["entity_id"],
                model=row["model"],
                community_context=row["community_context"],
                kind=SubjectKind(row["kind"]),
            ),
            reprediction_index=row["reprediction_index"],
            value=json.loads(row["value"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            dependency_document_names=json.loads(row["dependency_document_names"] or "[]"),
            cost=row["cost"],
            token_usage=row["token_usage"],
            group=row["grp"],
        )
