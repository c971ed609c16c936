"""Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from progresssync.core.document import DaySnapshot, days_from_json, days_to_json
from progresssync.server.coordinator import SyncConflict
from progresssync.server.store import StoredDocument


class WireModel(BaseModel):
    """Base model using camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Document content ===


class ItemModel(WireModel):
    """Checklist item."""

    id: str | None = None
    text: str
    link: str = ""
    completed: bool = False
    difficulty: str | None = None  # missing reads as Medium


class TagModel(WireModel):
    """Day tag."""

    text: str
    color: str = ""


class LinkModel(WireModel):
    """Day link."""

    url: str
    display_text: str = ""


class DayModel(WireModel):
    """One day of the document."""

    day_number: int
    date: str
    items: list[ItemModel] = []
    tags: list[TagModel] = []
    links: list[LinkModel] = []


# === Requests ===


class DocumentSubmitRequest(WireModel):
    """Request body for POST /api/document."""

    data: list[DayModel] | None = None
    client_version: int | None = None
    last_updated: datetime | None = None


class DocumentOverrideRequest(WireModel):
    """Request body for POST /api/document/override."""

    data: list[DayModel] | None = None


# === Responses ===


class DocumentResponse(WireModel):
    """Authoritative document state."""

    data: list[DayModel]
    version: int
    last_updated: datetime


class ConflictResponse(WireModel):
    """Body of a 409 response."""

    error: str
    message: str
    reason: str
    server_data: list[DayModel]
    server_version: int
    server_last_updated: datetime
    requires_user_resolution: bool = True


class StatsResponse(BaseModel):
    """Completed item counts."""

    total: int
    easy: int
    medium: int
    hard: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def days_from_models(models: list[DayModel] | None) -> list[DaySnapshot] | None:
    """Convert request days to domain days.

    Raises:
        DocumentValidationError: If an item carries an unknown difficulty.
    """
    if models is None:
        return None
    return days_from_json([m.model_dump(by_alias=True) for m in models])


def days_to_models(days: list[DaySnapshot]) -> list[DayModel]:
    """Convert domain days to response models."""
    return [DayModel.model_validate(d) for d in days_to_json(days)]


def document_to_response(document: StoredDocument) -> DocumentResponse:
    """Convert a stored document to response model."""
    return DocumentResponse(
        data=days_to_models(document.days),
        version=document.version,
        last_updated=document.last_updated,
    )


def conflict_to_response(conflict: SyncConflict) -> ConflictResponse:
    """Convert a conflict to response model."""
    return ConflictResponse(
        error=conflict.message,
        message="Significant changes detected. Please review and resolve.",
        reason=conflict.reason,
        server_data=days_to_models(conflict.server_days),
        server_version=conflict.server_version,
        server_last_updated=conflict.server_last_updated,
        requires_user_resolution=conflict.requires_user_resolution,
    )
