"""Server-side reconciliation of document submissions.

This module provides:
- SyncCoordinator: applies the version/timestamp protocol to a submission
- SyncConflict / DocumentConflict: the payload returned when the user must decide
- MalformedSubmissionError, ConcurrentWriteError

Protocol for ``submit``:
1. Load (or lazily create) the stored document.
2. No client version or timestamp: accept the client snapshot.
3. Stored timestamp ahead of the client's by more than the grace window
   and client version behind: classify. Compatible snapshots are merged,
   incompatible ones raise DocumentConflict without writing.
4. Anything else is the same client editing quickly, or a client that is
   current: accept the client snapshot.

Every accepted write stores ``version + 1`` and a fresh timestamp together.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from progresssync.core.compat import are_changes_compatible
from progresssync.core.config import SyncTunables
from progresssync.core.document import (
    DaySnapshot,
    DocumentValidationError,
    clone_days,
    validate_days,
)
from progresssync.core.merge import merge_snapshots
from progresssync.server.store import StaleWriteError

if TYPE_CHECKING:
    from progresssync.server.store import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3


class MalformedSubmissionError(ValueError):
    """Raised when submitted content is missing or invalid."""


class ConcurrentWriteError(Exception):
    """Raised when a write keeps losing the compare-and-set race."""


class SubmitPath(str, Enum):
    """Which branch of the protocol accepted a submission."""

    FIRST_SYNC = "first_sync"
    OUTRIGHT = "outright"
    MERGED = "merged"
    OVERRIDE = "override"


@dataclass
class SyncConflict:
    """Server state handed back when a submission cannot be auto-merged."""

    server_days: list[DaySnapshot]
    server_version: int
    server_last_updated: datetime
    reason: str = "incompatible"
    requires_user_resolution: bool = True

    @property
    def message(self) -> str:
        """Human-readable explanation."""
        if self.reason == "merge_failed":
            return "CONFLICT: Automatic merge failed"
        return "CONFLICT: Significant changes detected"


class DocumentConflict(Exception):
    """Raised by submit() when the user has to resolve a divergence."""

    def __init__(self, conflict: SyncConflict) -> None:
        super().__init__(conflict.message)
        self.conflict = conflict


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncCoordinator:
    """Applies the sync protocol on top of a DocumentStore.

    Writes for one owner are serialised inside this process; across
    processes the store's compare-and-set on version is relied on, and a
    lost race is retried from a fresh read.
    """

    def __init__(
        self,
        store: DocumentStore,
        tunables: SyncTunables | None = None,
        clock: Callable[[], datetime] | None = None,
        classifier: Callable[..., bool] = are_changes_compatible,
        merger: Callable[
            [list[DaySnapshot], list[DaySnapshot]], list[DaySnapshot]
        ] = merge_snapshots,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Document persistence.
            tunables: Grace window and classifier thresholds.
            clock: Source of "now" for accepted writes.
            classifier: Compatibility check (server_days, client_days, ...).
            merger: Merge function (server_days, client_days).
        """
        self._store = store
        self._tunables = tunables or SyncTunables()
        self._clock = clock or _utcnow
        self._classifier = classifier
        self._merger = merger
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def tunables(self) -> SyncTunables:
        """Active thresholds."""
        return self._tunables

    def _owner_lock(self, owner_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[owner_id] = lock
            return lock

    # === Reads ===

    def load(self, owner_id: str) -> StoredDocument:
        """Return the authoritative document, creating it on first access."""
        return self._store.get_document(owner_id)

    def force_sync(self, owner_id: str) -> StoredDocument:
        """Return the authoritative document without any comparison."""
        document = self._store.get_document(owner_id)
        logger.info("Force sync for %s at version %d", owner_id, document.version)
        return document

    # === Writes ===

    def submit(
        self,
        owner_id: str,
        days: list[DaySnapshot] | None,
        client_version: int | None = None,
        client_last_updated: datetime | None = None,
    ) -> StoredDocument:
        """Reconcile a client submission with the stored document.

        Args:
            owner_id: Verified owner identity.
            days: Client snapshot.
            client_version: Version the client last saw, if known.
            client_last_updated: Timestamp the client last saw, if known.

        Returns:
            The newly stored document.

        Raises:
            MalformedSubmissionError: If content is missing or invalid.
            DocumentConflict: If the divergence needs a user decision.
            ConcurrentWriteError: If the write kept racing another writer.
        """
        client_days = self._checked(days)
        return self._write(
            owner_id,
            lambda current: self._reconcile(
                current, client_days, client_version, client_last_updated
            ),
        )

    def override(self, owner_id: str, days: list[DaySnapshot] | None) -> StoredDocument:
        """Replace the stored content unconditionally.

        This is the user-initiated "keep my version" path. Version still
        advances by exactly one.

        Raises:
            MalformedSubmissionError: If content is missing or invalid.
            ConcurrentWriteError: If the write kept racing another writer.
        """
        client_days = self._checked(days)
        return self._write(
            owner_id, lambda current: (clone_days(client_days), SubmitPath.OVERRIDE)
        )

    def _checked(self, days: list[DaySnapshot] | None) -> list[DaySnapshot]:
        if days is None:
            raise MalformedSubmissionError("Data is required")
        try:
            validate_days(days)
        except DocumentValidationError as e:
            raise MalformedSubmissionError(str(e)) from e
        return days

    def _write(
        self,
        owner_id: str,
        decide: Callable[[StoredDocument], tuple[list[DaySnapshot], SubmitPath]],
    ) -> StoredDocument:
        with self._owner_lock(owner_id):
            for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
                current = self._store.get_document(owner_id)
                new_days, path = decide(current)
                try:
                    stored = self._store.put_document(
                        owner_id,
                        new_days,
                        version=current.version + 1,
                        last_updated=self._clock(),
                        expected_version=current.version,
                    )
                except StaleWriteError as e:
                    logger.warning(
                        "Write for %s lost a race (attempt %d/%d): %s",
                        owner_id,
                        attempt,
                        MAX_WRITE_ATTEMPTS,
                        e,
                    )
                    continue

                logger.info(
                    "Accepted %s write for %s: version %d -> %d",
                    path.value,
                    owner_id,
                    current.version,
                    stored.version,
                )
                return stored

        raise ConcurrentWriteError(
            f"Could not write document for {owner_id} after {MAX_WRITE_ATTEMPTS} attempts"
        )

    def _reconcile(
        self,
        current: StoredDocument,
        client_days: list[DaySnapshot],
        client_version: int | None,
        client_last_updated: datetime | None,
    ) -> tuple[list[DaySnapshot], SubmitPath]:
        if client_version is None or client_last_updated is None:
            return clone_days(client_days), SubmitPath.FIRST_SYNC

        client_ts = client_last_updated
        if client_ts.tzinfo is None:
            client_ts = client_ts.replace(tzinfo=UTC)
        delta_ms = (current.last_updated - client_ts).total_seconds() * 1000

        if delta_ms <= self._tunables.grace_window_ms or client_version >= current.version:
            return clone_days(client_days), SubmitPath.OUTRIGHT

        logger.info(
            "Divergence for %s: client v%d is %.0fms behind server v%d",
            current.owner_id,
            client_version,
            delta_ms,
            current.version,
        )
        try:
            compatible = self._classifier(
                current.days,
                client_days,
                max_day_delta=self._tunables.max_day_delta,
                max_item_delta=self._tunables.max_item_delta,
            )
            merged = self._merger(current.days, client_days) if compatible else None
        except Exception:
            logger.exception("Merge failed for %s, keeping server document", current.owner_id)
            raise DocumentConflict(self._conflict(current, "merge_failed")) from None

        if merged is None:
            logger.info("Incompatible changes for %s, user resolution required", current.owner_id)
            raise DocumentConflict(self._conflict(current, "incompatible"))

        return merged, SubmitPath.MERGED

    @staticmethod
    def _conflict(current: StoredDocument, reason: str) -> SyncConflict:
        return SyncConflict(
            server_days=current.days,
            server_version=current.version,
            server_last_updated=current.last_updated,
            reason=reason,
        )
