"""SQLite persistence for versioned context documents."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import structlog

from db import DEFAULT_BUSY_TIMEOUT, wal_connect

from .errors import ConcurrencyConflict, store_errors
from .models import ContextDocument, to_utc, utcnow

logger = structlog.get_logger()


class DocumentStore:
    """Named, community-scoped documents with content-change versioning.

    A save writes a new version only when the content differs from the
    latest stored version. Versions start at 1.
    """

    def __init__(
        self,
        db_path: Path,
        timeout: float = DEFAULT_BUSY_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        self._clock = clock
        self._init_tables()

    def _connect(self) -> sqlite3.Connection:
        return wal_connect(self.db_path, row_factory=True, timeout=self.timeout)

    def _init_tables(self):
        with store_errors("init_context_documents"), self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS context_documents (
                    community_context TEXT NOT NULL,
                    name TEXT NOT NULL,
                    version INTEGER NOT NULL CHECK(version >= 1),
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (community_context, name, version)
                )
            """)

    def get_latest(self, name: str, community_context: str) -> Optional[ContextDocument]:
        """Latest version of a document, or None."""
        with store_errors("get_latest_document", document=name), self._connect() as conn:
            row = conn.execute(
                """SELECT * FROM context_documents
                WHERE community_context = ? AND name = ?
                ORDER BY version DESC LIMIT 1""",
                (community_context, name),
            ).fetchone()
        return self._row_to_document(row) if row else None

    def get_version(self, name: str, version: int, community_context: str) -> Optional[ContextDocument]:
        with store_errors("get_document_version", document=name), self._connect() as conn:
            row = conn.execute(
                """SELECT * FROM context_documents
                WHERE community_context = ? AND name = ? AND version = ?""",
                (community_context, name, version),
            ).fetchone()
        return self._row_to_document(row) if row else None

    def list_names(self, community_context: str) -> list[str]:
        with store_errors("list_document_names"), self._connect() as conn:
            rows = conn.execute(
                """SELECT DISTINCT name FROM context_documents
                WHERE community_context = ? ORDER BY name""",
                (community_context,),
            ).fetchall()
        return [r["name"] for r in rows]

    def list_versions(self, name: str, community_context: str) -> list[ContextDocument]:
        with store_errors("list_document_versions", document=name), self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM context_documents
                WHERE community_context = ? AND name = ?
                ORDER BY version ASC""",
                (community_context, name),
            ).fetchall()
        return [self._row_to_document(r) for r in rows]

    def save(self, name: str, content: str, community_context: str) -> Optional[int]:
        """Store content as a new version.

        Returns the new version number, or None when the content equals the
        latest stored version (nothing is written).
        """
        latest = self.get_latest(name, community_context)
        if latest is not None and latest.content == content:
            logger.info("context_document_unchanged", document=name, version=latest.version)
            return None

        next_version = latest.version + 1 if latest else 1
        created_at = to_utc(self._clock())
        try:
            with store_errors("save_document", document=name), self._connect() as conn:
                conn.execute(
                    """INSERT INTO context_documents
                    (community_context, name, version, content, created_at)
                    VALUES (?, ?, ?, ?, ?)""",
                    (community_context, name, next_version, content, created_at.isoformat()),
                )
        except sqlite3.IntegrityError:
            # Someone else wrote this version first; same content is a no-op.
            winner = self.get_latest(name, community_context)
            if winner is not None and winner.content == content:
                return None
            raise ConcurrencyConflict(
                f"Version {next_version} of {name} was written concurrently",
                index=next_version,
            )

        logger.info(
            "context_document_saved",
            document=name,
            version=next_version,
            community_context=community_context,
        )
        return next_version

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> ContextDocument:
        return ContextDocument(
            name=row["name"],
            content=row["content"],
            version=row["version"],
            created_at=datetime.fromisoformat(row["created_at"]),
            community_context=row["community_context"],
        )
