"""Shared types for progresssync.

This module defines types and enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Sync state of a client session.

    Reported by ClientSyncAgent through its status callback and
    displayed by the CLI.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    UP_TO_DATE = "up_to_date"
    OFFLINE = "offline"
    CONFLICT = "conflict"
    ERROR = "error"


class Resolution(str, Enum):
    """User choice for resolving a sync conflict."""

    USE_SERVER = "use_server"
    KEEP_LOCAL = "keep_local"
