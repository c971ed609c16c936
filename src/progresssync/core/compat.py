"""Compatibility classification for divergent snapshots.

Decides whether a stale client snapshot can be merged into the server's
snapshot without asking the user. This is a shape heuristic, not a diff:
small edits (a toggled checkbox, one added tag, one or two added items)
keep the day and item counts close, while a stale or damaged client that
lost whole days does not.

Days are compared by position. Day reordering is not supported, so a
position whose day numbers differ means the snapshots are not comparable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from progresssync.core.config import DEFAULT_MAX_DAY_DELTA, DEFAULT_MAX_ITEM_DELTA

if TYPE_CHECKING:
    from progresssync.core.document import DaySnapshot


def are_changes_compatible(
    server_days: list[DaySnapshot],
    client_days: list[DaySnapshot],
    max_day_delta: int = DEFAULT_MAX_DAY_DELTA,
    max_item_delta: int = DEFAULT_MAX_ITEM_DELTA,
) -> bool:
    """Check whether two snapshots are close enough to auto-merge.

    Args:
        server_days: Authoritative snapshot.
        client_days: Candidate snapshot from a client.
        max_day_delta: Largest allowed difference in day count.
        max_item_delta: Largest allowed difference in item count for a
            day present at the same position on both sides.

    Returns:
        True if the divergence is safe to merge.
    """
    if abs(len(server_days) - len(client_days)) > max_day_delta:
        return False

    for server_day, client_day in zip(server_days, client_days):
        if server_day.day_number != client_day.day_number:
            return False
        if abs(len(server_day.items) - len(client_day.items)) > max_item_delta:
            return False

    return True
