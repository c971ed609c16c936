"""HTTP client for ProgressSync server API.

This module provides:
- HTTPClient: async HTTP client for the document endpoints
- ServerDocument / ServerConflict: parsed responses
- APIError hierarchy mapping HTTP failures to exceptions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from progresssync.core.config import ServerConfig
from progresssync.core.document import (
    DaySnapshot,
    days_from_json,
    days_to_json,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class ValidationError(APIError):
    """Submitted content was rejected."""


class ServerUnavailableError(APIError):
    """Server failed or asked us to retry later."""


class NetworkError(APIError):
    """Server could not be reached or did not answer in time."""


@dataclass
class ServerDocument:
    """Authoritative document state from server."""

    days: list[DaySnapshot]
    version: int
    last_updated: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerDocument:
        """Create from API response dictionary."""
        return cls(
            days=days_from_json(data["data"]),
            version=data["version"],
            last_updated=parse_timestamp(data["lastUpdated"]),
        )


@dataclass
class ServerConflict:
    """Conflict payload from a 409 response."""

    server_days: list[DaySnapshot]
    server_version: int
    server_last_updated: datetime
    reason: str = "incompatible"
    message: str = ""
    requires_user_resolution: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerConflict:
        """Create from API response dictionary."""
        return cls(
            server_days=days_from_json(data["serverData"]),
            server_version=data["serverVersion"],
            server_last_updated=parse_timestamp(data["serverLastUpdated"]),
            reason=data.get("reason", "incompatible"),
            message=data.get("error", ""),
            requires_user_resolution=data.get("requiresUserResolution", True),
        )


class ConflictError(APIError):
    """Submission diverged too far from the server to auto-merge."""

    def __init__(self, conflict: ServerConflict) -> None:
        super().__init__(conflict.message or "Conflict", 409)
        self.conflict = conflict


def _detail(response: httpx.Response, default: str) -> str:
    try:
        return str(response.json().get("detail", default))
    except ValueError:
        return default


class HTTPClient:
    """Async HTTP client for ProgressSync server API."""

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the client.

        Args:
            config: Server URL, token and timeout.
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
        )

    @property
    def has_token(self) -> bool:
        """Whether a session identity is configured."""
        return bool(self._config.token)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request failed: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if response.status_code == 409:
            raise ConflictError(ServerConflict.from_dict(response.json()))
        if response.status_code in (400, 422):
            raise ValidationError(
                _detail(response, "Invalid document"), response.status_code
            )
        if response.status_code >= 500:
            raise ServerUnavailableError(
                _detail(response, "Server error"), response.status_code
            )
        if response.status_code >= 400:
            raise APIError(_detail(response, "Unknown error"), response.status_code)
        return response

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Document operations ===

    async def get_document(self) -> ServerDocument:
        """Fetch the authoritative document.

        Returns:
            Current server document (seeded on first call).
        """
        response = await self._request("GET", "/api/document")
        return ServerDocument.from_dict(response.json())

    async def submit_document(
        self,
        days: list[DaySnapshot],
        version: int | None,
        last_updated: datetime | None,
    ) -> ServerDocument:
        """Submit local content with the version/timestamp it is based on.

        Args:
            days: Local snapshot.
            version: Version last received from server.
            last_updated: Timestamp last received from server.

        Returns:
            The newly stored document.

        Raises:
            ConflictError: If the server requires user resolution.
            NetworkError: If the server is unreachable.
        """
        response = await self._request(
            "POST",
            "/api/document",
            json={
                "data": days_to_json(days),
                "clientVersion": version,
                "lastUpdated": format_timestamp(last_updated) if last_updated else None,
            },
        )
        return ServerDocument.from_dict(response.json())

    async def override_document(self, days: list[DaySnapshot]) -> ServerDocument:
        """Replace the server document with local content.

        Args:
            days: Local snapshot to keep.

        Returns:
            The newly stored document.
        """
        response = await self._request(
            "POST",
            "/api/document/override",
            json={"data": days_to_json(days)},
        )
        return ServerDocument.from_dict(response.json())

    async def force_sync(self) -> ServerDocument:
        """Fetch the authoritative document without any comparison."""
        response = await self._request("POST", "/api/document/force-sync")
        return ServerDocument.from_dict(response.json())

    async def get_stats(self) -> dict[str, int]:
        """Get completed item counts by difficulty."""
        response = await self._request("GET", "/api/document/stats")
        result: dict[str, int] = response.json()
        return result
