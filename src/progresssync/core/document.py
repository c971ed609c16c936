"""Progress document data model.

This module provides:
- Item, Tag, Link, DaySnapshot, ProgressDocument: typed document tree
- days_from_json / days_to_json: camelCase wire conversion
- validate_days: structural checks applied before a submission is stored
- default_days: the seeded content of a freshly created document
- document_stats: completed-item counts by difficulty

A document is an ordered list of days. Tags are unique by text and
links are unique by URL within a day; both keep insertion order.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

MAX_ITEM_TEXT_LENGTH = 500


class DocumentValidationError(ValueError):
    """Raised when document content is malformed."""


class Difficulty(str, Enum):
    """Item difficulty."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: str | None) -> Difficulty:
        """Parse a difficulty, reading missing values as Medium.

        Legacy documents predate the difficulty field, so an absent or
        empty value is not an error.

        Raises:
            DocumentValidationError: If the value is not a known difficulty.
        """
        if not value:
            return cls.MEDIUM
        try:
            return cls(value)
        except ValueError as e:
            raise DocumentValidationError(
                "Difficulty must be Easy, Medium, or Hard"
            ) from e


def new_item_id() -> str:
    """Generate a random item identifier."""
    return uuid.uuid4().hex[:24]


@dataclass
class Item:
    """A checklist item within a day."""

    text: str
    id: str = field(default_factory=new_item_id)
    link: str = ""
    completed: bool = False
    difficulty: Difficulty = Difficulty.MEDIUM

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        """Create from wire dictionary."""
        return cls(
            id=str(data.get("id") or new_item_id()),
            text=data["text"],
            link=data.get("link") or "",
            completed=bool(data.get("completed", False)),
            difficulty=Difficulty.parse(data.get("difficulty")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "link": self.link,
            "completed": self.completed,
            "difficulty": self.difficulty.value,
        }


@dataclass
class Tag:
    """A day tag, identified by its text."""

    text: str
    color: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tag:
        """Create from wire dictionary."""
        return cls(text=data["text"], color=data.get("color") or "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return {"text": self.text, "color": self.color}


@dataclass
class Link:
    """A day link, identified by its URL."""

    url: str
    display_text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Link:
        """Create from wire dictionary."""
        return cls(url=data["url"], display_text=data.get("displayText") or "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return {"url": self.url, "displayText": self.display_text}


@dataclass
class DaySnapshot:
    """One day record of the progress document."""

    day_number: int
    date: str
    items: list[Item] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DaySnapshot:
        """Create from wire dictionary."""
        return cls(
            day_number=int(data["dayNumber"]),
            date=str(data["date"]),
            items=[Item.from_dict(i) for i in data.get("items") or []],
            tags=[Tag.from_dict(t) for t in data.get("tags") or []],
            links=[Link.from_dict(lk) for lk in data.get("links") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire dictionary."""
        return {
            "dayNumber": self.day_number,
            "date": self.date,
            "items": [i.to_dict() for i in self.items],
            "tags": [t.to_dict() for t in self.tags],
            "links": [lk.to_dict() for lk in self.links],
        }

    def find_item(self, item_id: str) -> Item | None:
        """Return the item with the given id, if present."""
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass
class ProgressDocument:
    """A client-side copy of an owner's document with its sync stamp."""

    owner_id: str
    days: list[DaySnapshot]
    version: int
    last_updated: datetime

    def copy_days(self) -> list[DaySnapshot]:
        """Return a deep copy of the day list."""
        return clone_days(self.days)

    def find_day(self, day_number: int) -> DaySnapshot | None:
        """Return the day with the given number, if present."""
        for day in self.days:
            if day.day_number == day_number:
                return day
        return None


# === Conversion ===


def days_from_json(data: Any) -> list[DaySnapshot]:
    """Parse a wire day list.

    Raises:
        DocumentValidationError: If the payload is not a list of days.
    """
    if not isinstance(data, list):
        raise DocumentValidationError("Data must be a list of days")
    try:
        return [DaySnapshot.from_dict(day) for day in data]
    except DocumentValidationError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DocumentValidationError(f"Malformed day data: {e}") from e


def days_to_json(days: list[DaySnapshot]) -> list[dict[str, Any]]:
    """Convert days to their wire representation."""
    return [day.to_dict() for day in days]


def clone_days(days: list[DaySnapshot]) -> list[DaySnapshot]:
    """Deep copy a day list."""
    return copy.deepcopy(days)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a timestamp for the wire."""
    return parse_timestamp(value).isoformat()


# === Validation ===


def validate_days(days: list[DaySnapshot]) -> None:
    """Check structural invariants of submitted content.

    Raises:
        DocumentValidationError: Listing every problem found.
    """
    if not days:
        raise DocumentValidationError("Data must be a non-empty list of days")

    errors: list[str] = []
    seen: set[int] = set()
    for day in days:
        if day.day_number < 1:
            errors.append(f"Day number must be positive (got {day.day_number})")
        if day.day_number in seen:
            errors.append(f"Duplicate day number {day.day_number}")
        seen.add(day.day_number)
        for item in day.items:
            if not item.text.strip():
                errors.append(f"Item text cannot be empty (day {day.day_number})")
            elif len(item.text) > MAX_ITEM_TEXT_LENGTH:
                errors.append(
                    f"Item text must be less than {MAX_ITEM_TEXT_LENGTH} characters "
                    f"(day {day.day_number})"
                )

    if errors:
        raise DocumentValidationError(", ".join(errors))


# === Defaults ===

DEFAULT_ITEMS: tuple[tuple[str, str, Difficulty], ...] = (
    ("Two Sum", "https://leetcode.com/problems/two-sum/", Difficulty.EASY),
    (
        "Reverse a Linked List",
        "https://leetcode.com/problems/reverse-linked-list/",
        Difficulty.MEDIUM,
    ),
    ("Binary Search", "https://leetcode.com/problems/binary-search/", Difficulty.MEDIUM),
)


def default_days(today: date | None = None) -> list[DaySnapshot]:
    """Build the seeded content for a new document: one day, three items."""
    today = today or datetime.now(UTC).date()
    return [
        DaySnapshot(
            day_number=1,
            date=today.isoformat(),
            items=[
                Item(text=text, link=link, difficulty=difficulty)
                for text, link, difficulty in DEFAULT_ITEMS
            ],
        )
    ]


# === Statistics ===


def document_stats(days: list[DaySnapshot]) -> dict[str, int]:
    """Count completed items overall and per difficulty."""
    stats = {"total": 0, "easy": 0, "medium": 0, "hard": 0}
    for day in days:
        for item in day.items:
            if item.completed:
                stats["total"] += 1
                stats[item.difficulty.value.lower()] += 1
    return stats
