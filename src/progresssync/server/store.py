"""Persistence seam for progress documents.

The coordinator only talks to a DocumentStore. An implementation must
make ``put_document`` atomic for one owner and honour ``expected_version``
as a compare-and-set: this is what serialises concurrent writers, the
coordinator itself holds no cross-process lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from progresssync.core.document import DaySnapshot


class StaleWriteError(Exception):
    """Raised when the stored version no longer matches the expected one."""

    def __init__(self, owner_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Stale write for {owner_id}: expected version {expected}, "
            f"but current version is {actual}"
        )
        self.owner_id = owner_id
        self.expected = expected
        self.actual = actual


@dataclass
class StoredDocument:
    """An owner's document as held by the store."""

    owner_id: str
    days: list[DaySnapshot]
    version: int
    last_updated: datetime


class DocumentStore(Protocol):
    """Protocol for per-owner document persistence."""

    def get_document(self, owner_id: str) -> StoredDocument:
        """Return the owner's document, creating the seeded default if absent."""
        ...

    def put_document(
        self,
        owner_id: str,
        days: list[DaySnapshot],
        version: int,
        last_updated: datetime,
        expected_version: int | None = None,
    ) -> StoredDocument:
        """Persist content, version and timestamp together.

        Raises:
            StaleWriteError: If expected_version is given and differs
                from the stored version.
        """
        ...
