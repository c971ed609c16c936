"""Core module - Shared document model, classifier, merge engine and config."""

from progresssync.core.compat import are_changes_compatible
from progresssync.core.config import ServerConfig, SyncTunables
from progresssync.core.document import (
    DaySnapshot,
    Difficulty,
    DocumentValidationError,
    Item,
    Link,
    ProgressDocument,
    Tag,
    days_from_json,
    days_to_json,
    default_days,
    document_stats,
    validate_days,
)
from progresssync.core.merge import merge_snapshots
from progresssync.core.types import Resolution, SyncState

__all__ = [
    # Classifier / merge
    "are_changes_compatible",
    "merge_snapshots",
    # Config
    "ServerConfig",
    "SyncTunables",
    # Document model
    "DaySnapshot",
    "Difficulty",
    "DocumentValidationError",
    "Item",
    "Link",
    "ProgressDocument",
    "Tag",
    "days_from_json",
    "days_to_json",
    "default_days",
    "document_stats",
    "validate_days",
    # Types
    "Resolution",
    "SyncState",
]
