"""Field-wise merge of a compatible server/client snapshot pair.

Merge policy:
- The server snapshot is the structural base: its days, items and item
  fields are kept.
- For items present at the same position on both sides, ``completed``
  comes from the client.
- Tags are unioned by text and links by URL, server entries first.
  Removals are not propagated, so a tag deleted on the server comes back
  if a stale client still carries it.
- Client days beyond the server's length are appended as-is.

The result never shares objects with either input and depends only on
the inputs.
"""

from __future__ import annotations

import copy
from dataclasses import replace

from progresssync.core.document import DaySnapshot, Item, Link, Tag


def merge_items(server_items: list[Item], client_items: list[Item]) -> list[Item]:
    """Take server items, overwriting completion from the client by position."""
    merged: list[Item] = []
    for index, server_item in enumerate(server_items):
        if index < len(client_items):
            merged.append(replace(server_item, completed=client_items[index].completed))
        else:
            merged.append(replace(server_item))
    return merged


def merge_tags(server_tags: list[Tag], client_tags: list[Tag]) -> list[Tag]:
    """Union tags by text."""
    merged = [replace(tag) for tag in server_tags]
    known = {tag.text for tag in merged}
    for tag in client_tags:
        if tag.text not in known:
            merged.append(replace(tag))
            known.add(tag.text)
    return merged


def merge_links(server_links: list[Link], client_links: list[Link]) -> list[Link]:
    """Union links by URL."""
    merged = [replace(link) for link in server_links]
    known = {link.url for link in merged}
    for link in client_links:
        if link.url not in known:
            merged.append(replace(link))
            known.add(link.url)
    return merged


def merge_day(server_day: DaySnapshot, client_day: DaySnapshot) -> DaySnapshot:
    """Merge two days found at the same position."""
    return DaySnapshot(
        day_number=server_day.day_number,
        date=server_day.date,
        items=merge_items(server_day.items, client_day.items),
        tags=merge_tags(server_day.tags, client_day.tags),
        links=merge_links(server_day.links, client_day.links),
    )


def merge_snapshots(
    server_days: list[DaySnapshot],
    client_days: list[DaySnapshot],
) -> list[DaySnapshot]:
    """Reconcile a compatible server/client pair into one snapshot.

    Args:
        server_days: Authoritative snapshot (structural base).
        client_days: Stale client snapshot.

    Returns:
        A new merged day list.
    """
    merged: list[DaySnapshot] = []
    for index, server_day in enumerate(server_days):
        if index < len(client_days):
            merged.append(merge_day(server_day, client_days[index]))
        else:
            merged.append(copy.deepcopy(server_day))

    for client_day in client_days[len(server_days):]:
        merged.append(copy.deepcopy(client_day))

    return merged
