"""Shared configuration classes for progresssync.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

# Reconciliation tunables, overridable through SyncTunables.from_env()
DEFAULT_GRACE_WINDOW_MS = 2000
DEFAULT_MAX_DAY_DELTA = 3
DEFAULT_MAX_ITEM_DELTA = 2


@dataclass
class ServerConfig:
    """Configuration for connecting to a ProgressSync server.

    Attributes:
        server_url: Base URL of the server (e.g., "https://sync.example.com").
        token: Authentication token for the owner.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")


@dataclass(frozen=True)
class SyncTunables:
    """Thresholds used by the coordinator and the compatibility classifier.

    Attributes:
        grace_window_ms: Submissions whose timestamp lags the server's by no
            more than this are treated as the same logical update.
        max_day_delta: Largest accepted difference in day count.
        max_item_delta: Largest accepted difference in item count per day.
    """

    grace_window_ms: int = DEFAULT_GRACE_WINDOW_MS
    max_day_delta: int = DEFAULT_MAX_DAY_DELTA
    max_item_delta: int = DEFAULT_MAX_ITEM_DELTA

    @classmethod
    def from_env(cls) -> SyncTunables:
        """Build tunables from PROGRESSSYNC_* environment variables."""
        return cls(
            grace_window_ms=int(
                os.environ.get("PROGRESSSYNC_GRACE_WINDOW_MS", DEFAULT_GRACE_WINDOW_MS)
            ),
            max_day_delta=int(
                os.environ.get("PROGRESSSYNC_MAX_DAY_DELTA", DEFAULT_MAX_DAY_DELTA)
            ),
            max_item_delta=int(
                os.environ.get("PROGRESSSYNC_MAX_ITEM_DELTA", DEFAULT_MAX_ITEM_DELTA)
            ),
        )
