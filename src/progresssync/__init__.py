"""ProgressSync - Offline-tolerant progress document synchronization."""

__version__ = "0.1.0"
