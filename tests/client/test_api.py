"""Tests for the ProgressSync HTTP client."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from progresssync.client.api import (
    APIError,
    AuthenticationError,
    ConflictError,
    HTTPClient,
    NetworkError,
    ServerConflict,
    ServerDocument,
    ServerUnavailableError,
    ValidationError,
)
from progresssync.core.config import ServerConfig
from progresssync.core.document import DaySnapshot, Item

WIRE_DAYS: list[dict[str, Any]] = [
    {
        "dayNumber": 1,
        "date": "2025-03-01",
        "items": [
            {
                "id": "a",
                "text": "Two Sum",
                "link": "",
                "completed": True,
                "difficulty": "Easy",
            }
        ],
        "tags": [],
        "links": [],
    }
]


def make_config(
    server_url: str = "http://test", token: str = "token123"
) -> ServerConfig:
    """Create a ServerConfig for testing."""
    return ServerConfig(server_url=server_url, token=token)


def document_body(version: int = 2) -> dict[str, Any]:
    """Build a document response body."""
    return {"data": WIRE_DAYS, "version": version, "lastUpdated": "2025-03-01T10:00:05Z"}


class TestServerDocument:
    """Tests for ServerDocument dataclass."""

    def test_from_dict(self) -> None:
        """Should parse a document response."""
        document = ServerDocument.from_dict(document_body(4))

        assert document.version == 4
        assert document.last_updated == datetime(2025, 3, 1, 10, 0, 5, tzinfo=UTC)
        assert document.days[0].items[0].completed is True


class TestServerConflict:
    """Tests for ServerConflict dataclass."""

    def test_from_dict(self) -> None:
        """Should parse a 409 body."""
        conflict = ServerConflict.from_dict(
            {
                "error": "CONFLICT: Significant changes detected",
                "message": "Significant changes detected. Please review and resolve.",
                "reason": "incompatible",
                "serverData": WIRE_DAYS,
                "serverVersion": 7,
                "serverLastUpdated": "2025-03-01T10:00:05Z",
                "requiresUserResolution": True,
            }
        )

        assert conflict.server_version == 7
        assert conflict.reason == "incompatible"
        assert conflict.message == "CONFLICT: Significant changes detected"
        assert conflict.requires_user_resolution is True
        assert len(conflict.server_days) == 1


class TestHTTPClient:
    """Tests for HTTPClient."""

    @pytest.mark.asyncio
    async def test_health_check_success(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return True when server is healthy."""
        httpx_mock.add_response(url="http://test/health", json={"status": "ok"})

        async with HTTPClient(make_config()) as client:
            assert await client.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_down(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return False when the server cannot be reached."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))

        async with HTTPClient(make_config()) as client:
            assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_get_document(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should fetch the document with the bearer token."""
        httpx_mock.add_response(
            method="GET", url="http://test/api/document", json=document_body(1)
        )

        async with HTTPClient(make_config()) as client:
            document = await client.get_document()

        assert document.version == 1
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer token123"

    @pytest.mark.asyncio
    async def test_submit_document(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should post content with the version and timestamp it is based on."""
        httpx_mock.add_response(
            method="POST", url="http://test/api/document", json=document_body(3)
        )
        days = [DaySnapshot(day_number=1, date="2025-03-01", items=[Item(id="a", text="x")])]

        async with HTTPClient(make_config()) as client:
            document = await client.submit_document(
                days, 2, datetime(2025, 3, 1, 10, 0, 0, tzinfo=UTC)
            )

        assert document.version == 3
        body = json.loads(httpx_mock.get_request().content)
        assert body["clientVersion"] == 2
        assert body["lastUpdated"] == "2025-03-01T10:00:00+00:00"
        assert body["data"][0]["dayNumber"] == 1
        assert body["data"][0]["items"][0]["id"] == "a"

    @pytest.mark.asyncio
    async def test_submit_first_sync(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should send null version and timestamp when none is known."""
        httpx_mock.add_response(
            method="POST", url="http://test/api/document", json=document_body(2)
        )

        async with HTTPClient(make_config()) as client:
            await client.submit_document([DaySnapshot(day_number=1, date="2025-03-01")], None, None)

        body = json.loads(httpx_mock.get_request().content)
        assert body["clientVersion"] is None
        assert body["lastUpdated"] is None

    @pytest.mark.asyncio
    async def test_submit_conflict(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should raise ConflictError carrying the server state."""
        httpx_mock.add_response(
            method="POST",
            url="http://test/api/document",
            status_code=409,
            json={
                "error": "CONFLICT: Significant changes detected",
                "message": "Significant changes detected. Please review and resolve.",
                "reason": "incompatible",
                "serverData": WIRE_DAYS,
                "serverVersion": 5,
                "serverLastUpdated": "2025-03-01T10:00:05Z",
                "requiresUserResolution": True,
            },
        )

        async with HTTPClient(make_config()) as client:
            with pytest.raises(ConflictError) as exc_info:
                await client.submit_document(
                    [DaySnapshot(day_number=1, date="2025-03-01")], 1, None
                )

        assert exc_info.value.status_code == 409
        assert exc_info.value.conflict.server_version == 5

    @pytest.mark.asyncio
    async def test_override_document(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should post content to the override endpoint."""
        httpx_mock.add_response(
            method="POST", url="http://test/api/document/override", json=document_body(6)
        )

        async with HTTPClient(make_config()) as client:
            document = await client.override_document(
                [DaySnapshot(day_number=1, date="2025-03-01")]
            )

        assert document.version == 6
        body = json.loads(httpx_mock.get_request().content)
        assert set(body) == {"data"}

    @pytest.mark.asyncio
    async def test_force_sync(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should fetch the document from the force-sync endpoint."""
        httpx_mock.add_response(
            method="POST", url="http://test/api/document/force-sync", json=document_body(9)
        )

        async with HTTPClient(make_config()) as client:
            assert (await client.force_sync()).version == 9

    @pytest.mark.asyncio
    async def test_get_stats(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the stats body."""
        stats = {"total": 3, "easy": 1, "medium": 2, "hard": 0}
        httpx_mock.add_response(url="http://test/api/document/stats", json=stats)

        async with HTTPClient(make_config()) as client:
            assert await client.get_stats() == stats

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "error_type"),
        [
            (401, AuthenticationError),
            (400, ValidationError),
            (422, ValidationError),
            (500, ServerUnavailableError),
            (503, ServerUnavailableError),
            (404, APIError),
        ],
    )
    async def test_error_mapping(
        self,
        httpx_mock,  # type: ignore[no-untyped-def]
        status_code: int,
        error_type: type[APIError],
    ) -> None:
        """Should map status codes to exceptions."""
        httpx_mock.add_response(
            url="http://test/api/document", status_code=status_code, json={"detail": "nope"}
        )

        async with HTTPClient(make_config()) as client:
            with pytest.raises(error_type) as exc_info:
                await client.get_document()

        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should raise NetworkError when the server is unreachable."""
        httpx_mock.add_exception(httpx.ConnectError("refused"))

        async with HTTPClient(make_config()) as client:
            with pytest.raises(NetworkError):
                await client.get_document()

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should raise NetworkError on timeout."""
        httpx_mock.add_exception(httpx.ReadTimeout("slow"))

        async with HTTPClient(make_config()) as client:
            with pytest.raises(NetworkError, match="timed out"):
                await client.get_document()

    def test_has_token(self) -> None:
        """Should report whether a token is configured."""
        assert HTTPClient(make_config()).has_token is True
        assert HTTPClient(make_config(token="")).has_token is False
