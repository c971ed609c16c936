"""Server database using SQLAlchemy with SQLite.

This module provides:
- Token-based owner authentication
- Progress document storage (the DocumentStore implementation)
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from progresssync.core.document import (
    DaySnapshot,
    days_from_json,
    days_to_json,
    default_days,
)
from progresssync.server.models import Base, ProgressDocumentRecord, Token
from progresssync.server.store import StaleWriteError, StoredDocument

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: Raw token string.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_stored(record: ProgressDocumentRecord) -> StoredDocument:
    return StoredDocument(
        owner_id=record.owner_id,
        days=days_from_json(record.data),
        version=record.version,
        last_updated=_as_utc(record.last_updated),
    )


class Database:
    """SQLAlchemy database for owner tokens and progress documents.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(
        self,
        db_path: Path,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
            clock: Source of "now" for seeded documents (defaults to UTC now).
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or _utcnow

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Token operations ===

    def create_token(
        self,
        owner_id: str,
        expires_in: timedelta | None = None,
    ) -> tuple[str, Token]:
        """Create a new authentication token for an owner.

        Args:
            owner_id: Owner the token authenticates.
            expires_in: Optional expiration duration.

        Returns:
            Tuple of (raw_token, Token object).
        """
        raw_token = "ps_" + secrets.token_urlsafe(32)
        now = datetime.now(UTC)
        expires_at = (now + expires_in) if expires_in else None

        with self._session() as session:
            token = Token(
                owner_id=owner_id,
                token_hash=hash_token(raw_token),
                created_at=now,
                expires_at=expires_at,
            )
            session.add(token)
            session.commit()
            session.refresh(token)
            session.expunge(token)
            return raw_token, token

    def validate_token(self, raw_token: str) -> Token | None:
        """Validate a token and return it if valid.

        Args:
            raw_token: Raw token string.

        Returns:
            Token if valid, None otherwise.
        """
        with self._session() as session:
            stmt = select(Token).where(
                Token.token_hash == hash_token(raw_token),
                Token.revoked == False,  # noqa: E712
            )
            token = session.execute(stmt).scalar_one_or_none()

            if token is None:
                return None

            if token.expires_at and _as_utc(token.expires_at) < datetime.now(UTC):
                return None

            session.expunge(token)
            return token

    def revoke_token(self, token_id: int) -> None:
        """Revoke a token.

        Args:
            token_id: Token ID to revoke.
        """
        with self._session() as session:
            token = session.get(Token, token_id)
            if token:
                token.revoked = True
                session.commit()

    # === Document operations ===

    def get_document(self, owner_id: str) -> StoredDocument:
        """Get an owner's document, creating the seeded default on first access.

        Args:
            owner_id: Owner identifier.

        Returns:
            The stored document.
        """
        with self._session() as session:
            stmt = select(ProgressDocumentRecord).where(
                ProgressDocumentRecord.owner_id == owner_id
            )
            record = session.execute(stmt).scalar_one_or_none()
            if record is not None:
                return _to_stored(record)

            now = self._clock()
            record = ProgressDocumentRecord(
                owner_id=owner_id,
                data=days_to_json(default_days(now.date())),
                version=1,
                last_updated=now,
                created_at=now,
            )
            session.add(record)
            try:
                session.commit()
            except IntegrityError:
                # Another request created it first
                session.rollback()
                record = session.execute(stmt).scalar_one()
                return _to_stored(record)

            logger.info("Created seeded document for %s", owner_id)
            session.refresh(record)
            return _to_stored(record)

    def put_document(
        self,
        owner_id: str,
        days: list[DaySnapshot],
        version: int,
        last_updated: datetime,
        expected_version: int | None = None,
    ) -> StoredDocument:
        """Persist content, version and timestamp in one statement.

        Args:
            owner_id: Owner identifier.
            days: New content.
            version: New version.
            last_updated: New timestamp.
            expected_version: If given, the write only happens when the
                stored version still equals it.

        Returns:
            The stored document.

        Raises:
            StaleWriteError: If expected_version does not match.
        """
        data = days_to_json(days)
        with self._session() as session:
            stmt = update(ProgressDocumentRecord).where(
                ProgressDocumentRecord.owner_id == owner_id
            )
            if expected_version is not None:
                stmt = stmt.where(ProgressDocumentRecord.version == expected_version)
            result = session.execute(
                stmt.values(data=data, version=version, last_updated=last_updated)
            )

            if result.rowcount == 0:
                current = session.execute(
                    select(ProgressDocumentRecord).where(
                        ProgressDocumentRecord.owner_id == owner_id
                    )
                ).scalar_one_or_none()
                if current is not None:
                    raise StaleWriteError(owner_id, expected_version or 0, current.version)
                if expected_version is not None:
                    raise StaleWriteError(owner_id, expected_version, 0)
                session.add(
                    ProgressDocumentRecord(
                        owner_id=owner_id,
                        data=data,
                        version=version,
                        last_updated=last_updated,
                        created_at=last_updated,
                    )
                )

            session.commit()

        return StoredDocument(
            owner_id=owner_id,
            days=days_from_json(data),
            version=version,
            last_updated=_as_utc(last_updated),
        )
