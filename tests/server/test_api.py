"""Tests for FastAPI server endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

from progresssync.server.app import create_app
from progresssync.server.coordinator import SyncCoordinator
from progresssync.server.database import Database
from progresssync.server.store import StaleWriteError, StoredDocument
from tests.conftest import FakeClock


class AlwaysStaleStore:
    """Store whose conditional writes always lose the race."""

    def __init__(self, inner: Database) -> None:
        self.inner = inner

    def get_document(self, owner_id: str) -> StoredDocument:
        return self.inner.get_document(owner_id)

    def put_document(
        self,
        owner_id: str,
        days: Any,
        version: int,
        last_updated: datetime,
        expected_version: int | None = None,
    ) -> StoredDocument:
        raise StaleWriteError(owner_id, expected_version or 0, version)


@pytest.fixture
def client(db: Database, coordinator: SyncCoordinator) -> TestClient:
    """Create a test client with the app."""
    app = create_app(db, coordinator)
    return TestClient(app)


@pytest.fixture
def auth_headers(db: Database) -> dict[str, str]:
    """Create auth headers with a valid token for alice."""
    raw_token, _ = db.create_token("alice")
    return {"Authorization": f"Bearer {raw_token}"}


def extra_days(data: list[dict[str, Any]], count: int) -> list[dict[str, Any]]:
    """Append ``count`` empty wire days."""
    last = max(day["dayNumber"] for day in data)
    return data + [
        {"dayNumber": last + n, "date": "2025-03-02", "items": [], "tags": [], "links": []}
        for n in range(1, count + 1)
    ]


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK without auth."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAuthentication:
    """Tests for bearer token checks."""

    def test_missing_token(self, client: TestClient) -> None:
        """Should reject requests without a token."""
        response = client.get("/api/document")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient) -> None:
        """Should reject unknown tokens."""
        response = client.get(
            "/api/document", headers={"Authorization": "Bearer ps_invalid"}
        )
        assert response.status_code == 401

    def test_revoked_token(self, client: TestClient, db: Database) -> None:
        """Should reject revoked tokens."""
        raw_token, token = db.create_token("alice")
        db.revoke_token(token.id)

        response = client.post(
            "/api/document/force-sync", headers={"Authorization": f"Bearer {raw_token}"}
        )
        assert response.status_code == 401

    def test_owner_comes_from_token(self, client: TestClient, db: Database) -> None:
        """Each token should only reach its own owner's document."""
        alice_token, _ = db.create_token("alice")
        bob_token, _ = db.create_token("bob")
        alice = {"Authorization": f"Bearer {alice_token}"}
        bob = {"Authorization": f"Bearer {bob_token}"}

        data = client.get("/api/document", headers=alice).json()["data"]
        client.post("/api/document", headers=alice, json={"data": extra_days(data, 1)})

        assert client.get("/api/document", headers=alice).json()["version"] == 2
        assert client.get("/api/document", headers=bob).json()["version"] == 1


class TestGetDocument:
    """Tests for GET /api/document."""

    def test_creates_seeded_document(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        """First read should return the seeded document in camelCase."""
        response = client.get("/api/document", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["version"] == 1
        assert body["lastUpdated"].startswith("2025-03-01T10:00:00")
        day = body["data"][0]
        assert day["dayNumber"] == 1
        assert [i["difficulty"] for i in day["items"]] == ["Easy", "Medium", "Medium"]
        assert day["tags"] == []
        assert day["links"] == []


class TestSubmitDocument:
    """Tests for POST /api/document."""

    def test_first_sync(
        self, client: TestClient, auth_headers: dict[str, str], clock: FakeClock
    ) -> None:
        """A submission without version should be accepted."""
        data = client.get("/api/document", headers=auth_headers).json()["data"]
        data[0]["items"][0]["completed"] = True
        clock.advance(100)

        response = client.post("/api/document", headers=auth_headers, json={"data": data})

        assert response.status_code == 200
        body = response.json()
        assert body["version"] == 2
        assert body["data"][0]["items"][0]["completed"] is True
        assert body["lastUpdated"].startswith("2025-03-01T10:00:00.1")

    def test_current_client_accepted(
        self, client: TestClient, auth_headers: dict[str, str], clock: FakeClock
    ) -> None:
        """A client echoing the stored version should be accepted."""
        current = client.get("/api/document", headers=auth_headers).json()
        clock.advance(10_000)

        response = client.post(
            "/api/document",
            headers=auth_headers,
            json={
                "data": extra_days(current["data"], 5),
                "clientVersion": current["version"],
                "lastUpdated": current["lastUpdated"],
            },
        )

        assert response.status_code == 200
        assert len(response.json()["data"]) == 6

    def test_missing_difficulty_defaults_to_medium(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        """Items without difficulty should be stored as Medium."""
        response = client.post(
            "/api/document",
            headers=auth_headers,
            json={"data": [{"dayNumber": 1, "date": "2025-03-01", "items": [{"text": "Old"}]}]},
        )

        assert response.status_code == 200
        item = response.json()["data"][0]["items"][0]
        assert item["difficulty"] == "Medium"
        assert item["id"]

    def test_compatible_stale_submission_merged(
        self, client: TestClient, auth_headers: dict[str, str], clock: FakeClock
    ) -> None:
        """A stale but compatible submission should be merged."""
        base = client.get("/api/document", headers=auth_headers).json()
        tagged = [dict(base["data"][0], tags=[{"text": "phone", "color": ""}])]
        clock.advance(5000)
        client.post(
            "/api/document",
            headers=auth_headers,
            json={"data": tagged, "clientVersion": 1, "lastUpdated": base["lastUpdated"]},
        )

        toggled = base["data"]
        toggled[0]["items"][2]["completed"] = True
        response = client.post(
            "/api/document",
            headers=auth_headers,
            json={"data": toggled, "clientVersion": 1, "lastUpdated": base["lastUpdated"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["version"] == 3
        assert body["data"][0]["items"][2]["completed"] is True
        assert body["data"][0]["tags"] == [{"text": "phone", "color": ""}]

    def test_incompatible_submission_conflict(
        self, client: TestClient, auth_headers: dict[str, str], clock: FakeClock
    ) -> None:
        """An incompatible stale submission should get a 409 with server state."""
        base = client.get("/api/document", headers=auth_headers).json()
        clock.advance(5000)
        accepted = client.post(
            "/api/document",
            headers=auth_headers,
            json={"data": base["data"], "clientVersion": 1, "lastUpdated": base["lastUpdated"]},
        ).json()

        response = client.post(
            "/api/document",
            headers=auth_headers,
            json={
                "data": extra_days(base["data"], 4),
                "clientVersion": 1,
                "lastUpdated": base["lastUpdated"],
            },
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "CONFLICT: Significant changes detected"
        assert body["reason"] == "incompatible"
        assert body["requiresUserResolution"] is True
        assert body["serverVersion"] == 2
        assert body["serverData"] == accepted["data"]
        assert body["serverLastUpdated"] == accepted["lastUpdated"]
        assert client.get("/api/document", headers=auth_headers).json()["version"] == 2

    def test_missing_data(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """Missing data should return 400."""
        response = client.post("/api/document", headers=auth_headers, json={"clientVersion": 1})
        assert response.status_code == 400
        assert response.json()["detail"] == "Data is required"

    def test_empty_data(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """An empty document should return 400."""
        response = client.post("/api/document", headers=auth_headers, json={"data": []})
        assert response.status_code == 400

    def test_unknown_difficulty(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """An unknown difficulty should return 400."""
        response = client.post(
            "/api/document",
            headers=auth_headers,
            json={
                "data": [
                    {
                        "dayNumber": 1,
                        "date": "2025-03-01",
                        "items": [{"text": "x", "difficulty": "Impossible"}],
                    }
                ]
            },
        )
        assert response.status_code == 400
        assert "Easy, Medium, or Hard" in response.json()["detail"]

    def test_wrong_shape(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """A payload of the wrong type should fail request validation."""
        response = client.post("/api/document", headers=auth_headers, json={"data": "nope"})
        assert response.status_code == 422

    def test_persistent_write_race(self, db: Database, clock: FakeClock) -> None:
        """A write that keeps losing the race should return 503."""
        coordinator = SyncCoordinator(AlwaysStaleStore(db), clock=clock)
        client = TestClient(create_app(db, coordinator))
        raw_token, _ = db.create_token("alice")

        response = client.post(
            "/api/document",
            headers={"Authorization": f"Bearer {raw_token}"},
            json={"data": [{"dayNumber": 1, "date": "2025-03-01", "items": []}]},
        )

        assert response.status_code == 503


class TestOverrideDocument:
    """Tests for POST /api/document/override."""

    def test_override(
        self, client: TestClient, auth_headers: dict[str, str], clock: FakeClock
    ) -> None:
        """Override should replace the stored content at version + 1."""
        base = client.get("/api/document", headers=auth_headers).json()
        clock.advance(5000)
        client.post(
            "/api/document",
            headers=auth_headers,
            json={"data": base["data"], "clientVersion": 1, "lastUpdated": base["lastUpdated"]},
        )
        local = extra_days(base["data"], 4)

        response = client.post(
            "/api/document/override", headers=auth_headers, json={"data": local}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["version"] == 3
        assert [d["dayNumber"] for d in body["data"]] == [1, 2, 3, 4, 5]

    def test_override_requires_data(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        """Override without data should return 400."""
        response = client.post("/api/document/override", headers=auth_headers, json={})
        assert response.status_code == 400


class TestForceSync:
    """Tests for POST /api/document/force-sync."""

    def test_force_sync(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """Force sync should return the stored document without writing."""
        first = client.post("/api/document/force-sync", headers=auth_headers)
        second = client.post("/api/document/force-sync", headers=auth_headers)

        assert first.status_code == 200
        assert first.json() == second.json()
        assert first.json()["version"] == 1


class TestStats:
    """Tests for GET /api/document/stats."""

    def test_stats(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """Should count completed items by difficulty."""
        data = client.get("/api/document", headers=auth_headers).json()["data"]
        data[0]["items"][0]["completed"] = True
        data[0]["items"][1]["completed"] = True
        client.post("/api/document", headers=auth_headers, json={"data": data})

        response = client.get("/api/document/stats", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"total": 2, "easy": 1, "medium": 1, "hard": 0}
