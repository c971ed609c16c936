"""Local edits applied through ClientSyncAgent.mutate().

Each function returns an Edit: a callable that modifies a day list in
place. The agent hands it a private copy and only commits the copy if
the edit returns without raising.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from progresssync.core.document import DaySnapshot, Difficulty, Item, Link, Tag

Edit = Callable[[list[DaySnapshot]], None]


class EditError(ValueError):
    """Raised when an edit does not apply to the document."""


def _day(days: list[DaySnapshot], day_number: int) -> DaySnapshot:
    for day in days:
        if day.day_number == day_number:
            return day
    raise EditError(f"Day {day_number} not found")


def _item(day: DaySnapshot, item_id: str) -> Item:
    item = day.find_item(item_id)
    if item is None:
        raise EditError(f"Item {item_id} not found in day {day.day_number}")
    return item


def toggle_item(day_number: int, item_id: str, completed: bool | None = None) -> Edit:
    """Flip (or set) an item's completion flag."""

    def apply(days: list[DaySnapshot]) -> None:
        item = _item(_day(days, day_number), item_id)
        item.completed = (not item.completed) if completed is None else completed

    return apply


def add_item(
    day_number: int,
    text: str,
    link: str = "",
    difficulty: Difficulty = Difficulty.MEDIUM,
) -> Edit:
    """Append a new item to a day."""
    if not text.strip():
        raise EditError("Item text cannot be empty")
    new_item = Item(text=text, link=link, difficulty=difficulty)

    def apply(days: list[DaySnapshot]) -> None:
        _day(days, day_number).items.append(replace(new_item))

    return apply


def remove_item(day_number: int, item_id: str) -> Edit:
    """Remove an item from a day."""

    def apply(days: list[DaySnapshot]) -> None:
        day = _day(days, day_number)
        day.items.remove(_item(day, item_id))

    return apply


def add_tag(day_number: int, text: str, color: str = "") -> Edit:
    """Add a tag to a day; a tag with the same text is left as is."""

    def apply(days: list[DaySnapshot]) -> None:
        day = _day(days, day_number)
        if all(tag.text != text for tag in day.tags):
            day.tags.append(Tag(text=text, color=color))

    return apply


def remove_tag(day_number: int, text: str) -> Edit:
    """Remove a tag from a day by text."""

    def apply(days: list[DaySnapshot]) -> None:
        day = _day(days, day_number)
        day.tags = [tag for tag in day.tags if tag.text != text]

    return apply


def add_link(day_number: int, url: str, display_text: str = "") -> Edit:
    """Add a link to a day; a link with the same URL is left as is."""

    def apply(days: list[DaySnapshot]) -> None:
        day = _day(days, day_number)
        if all(link.url != url for link in day.links):
            day.links.append(Link(url=url, display_text=display_text or url))

    return apply


def remove_link(day_number: int, url: str) -> Edit:
    """Remove a link from a day by URL."""

    def apply(days: list[DaySnapshot]) -> None:
        day = _day(days, day_number)
        day.links = [link for link in day.links if link.url != url]

    return apply


def add_day(date: str | None = None) -> Edit:
    """Append an empty day numbered after the current last one."""

    def apply(days: list[DaySnapshot]) -> None:
        next_number = max((day.day_number for day in days), default=0) + 1
        days.append(
            DaySnapshot(
                day_number=next_number,
                date=date or datetime.now(UTC).date().isoformat(),
            )
        )

    return apply
