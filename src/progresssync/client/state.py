"""Local state management for sync client.

This module provides:
- LocalCache: SQLite-backed durable copy of each owner's document
- CachedDocument: one cached row

The cache is written on every local edit, before any network round
trip, so edits survive a crash or restart. It is also what an offline
session boots from.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from progresssync.core.document import (
    DaySnapshot,
    ProgressDocument,
    days_from_json,
    days_to_json,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass
class CachedDocument:
    """A locally cached document.

    Attributes:
        owner_id: Owner the document belongs to.
        days: Local content, including unsynced edits.
        version: Server version the content is based on.
        last_updated: Server timestamp the content is based on.
        pending_changes: True if local edits have not been accepted yet.
        saved_at: Unix time of the last local save.
    """

    owner_id: str
    days: list[DaySnapshot]
    version: int
    last_updated: datetime
    pending_changes: bool
    saved_at: float

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CachedDocument:
        """Create CachedDocument from database row."""
        return cls(
            owner_id=row["owner_id"],
            days=days_from_json(json.loads(row["data"])),
            version=row["version"],
            last_updated=parse_timestamp(row["last_updated"]),
            pending_changes=bool(row["pending_changes"]),
            saved_at=row["saved_at"],
        )

    def to_document(self) -> ProgressDocument:
        """Convert to a ProgressDocument."""
        return ProgressDocument(
            owner_id=self.owner_id,
            days=self.days,
            version=self.version,
            last_updated=self.last_updated,
        )


class LocalCache:
    """SQLite-based durable document cache keyed by owner."""

    def __init__(self, db_path: Path) -> None:
        """Initialize local cache database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                owner_id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                version INTEGER NOT NULL,
                last_updated TEXT NOT NULL,
                pending_changes INTEGER NOT NULL DEFAULT 0,
                saved_at REAL NOT NULL
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def load(self, owner_id: str) -> CachedDocument | None:
        """Load the cached document of an owner.

        Args:
            owner_id: Owner identifier.

        Returns:
            CachedDocument if present, None otherwise.
        """
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM documents WHERE owner_id = ?",
                (owner_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return CachedDocument.from_row(row)

    def save(
        self,
        document: ProgressDocument,
        pending_changes: bool,
    ) -> None:
        """Persist a document and its pending flag.

        Args:
            document: Document to cache.
            pending_changes: Whether it carries unsynced edits.
        """
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO documents
                    (owner_id, data, version, last_updated, pending_changes, saved_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    data = excluded.data,
                    version = excluded.version,
                    last_updated = excluded.last_updated,
                    pending_changes = excluded.pending_changes,
                    saved_at = excluded.saved_at
                """,
                (
                    document.owner_id,
                    json.dumps(days_to_json(document.days)),
                    document.version,
                    format_timestamp(document.last_updated),
                    int(pending_changes),
                    time.time(),
                ),
            )

    def delete(self, owner_id: str) -> None:
        """Drop the cached document of an owner."""
        with self._lock:
            self._conn.execute("DELETE FROM documents WHERE owner_id = ?", (owner_id,))

    def list_owners(self) -> list[str]:
        """List owners with a cached document."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT owner_id FROM documents ORDER BY owner_id"
            ).fetchall()
        return [row["owner_id"] for row in rows]
