"""
Unit tests for API endpoints.

Tests endpoint behavior using FastAPI TestClient against an in-memory
database.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from letsmeet.api.main import create_app
from letsmeet.services.notifier import InMemoryNotifier


@pytest.fixture
def api_notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def client(engine, api_notifier):
    """Test client for an app bound to the test engine."""
    app = create_app(engine=engine, notifier=api_notifier)
    with TestClient(app) as client:
        yield client


def create_user(client: TestClient, name: str) -> str:
    response = client.post("/api/users", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def submit(client: TestClient, user_id: str, **overrides):
    body = {"userId": user_id, "date": "2024-06-01", "time": "10:00", "activity": "Coffee"}
    body.update(overrides)
    return client.post("/api/events", json=body)


class TestHealthEndpoint:
    """Test /health endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["databaseConnected"] is True

    def test_health_check_has_request_id(self, client):
        """Test health check includes request ID header."""
        response = client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 8


class TestUserEndpoints:
    """Test /api/users endpoints."""

    def test_create_user(self, client):
        response = client.post(
            "/api/users",
            json={"name": "Alice", "email": "alice@example.com", "city": "Toronto"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Alice"
        assert data["city"] == "Toronto"
        assert "createdAt" in data

    def test_get_user(self, client):
        user_id = create_user(client, "Alice")

        response = client.get(f"/api/users/{user_id}")

        assert response.status_code == 200
        assert response.json()["id"] == user_id

    def test_get_unknown_user(self, client):
        response = client.get(f"/api/users/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    def test_duplicate_email(self, client):
        """An email already in use is a 400 on the email field."""
        client.post("/api/users", json={"name": "Alice", "email": "alice@example.com"})

        response = client.post("/api/users", json={"name": "Alicia", "email": "alice@example.com"})

        assert response.status_code == 400
        data = response.json()
        assert data["details"] == {"field": "email"}
        assert "Email already exists" in data["message"]

    def test_get_user_includes_events_and_matches(self, client):
        alice = create_user(client, "Alice")
        bob = create_user(client, "Bob")
        submit(client, alice)
        match_id = submit(client, bob).json()["match"]["id"]

        data = client.get(f"/api/users/{alice}").json()

        assert [e["userId"] for e in data["events"]] == [alice]
        assert [m["id"] for m in data["matches"]] == [match_id]

    def test_login(self, client):
        """Login by name returns the user with their events."""
        alice = create_user(client, "Alice")
        submit(client, alice)

        response = client.post("/api/users/login", json={"name": "Alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == alice
        assert len(data["events"]) == 1
        assert data["matches"] == []

    def test_login_check_only(self, client):
        """checkOnly returns just id, name and city."""
        response = client.post("/api/users", json={"name": "Alice", "city": "Toronto"})
        alice = response.json()["id"]

        response = client.post("/api/users/login", json={"name": "Alice", "checkOnly": True})

        assert response.json() == {"id": alice, "name": "Alice", "city": "Toronto"}

    def test_login_unknown_name(self, client):
        response = client.post("/api/users/login", json={"name": "Zed"})

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"

    def test_login_without_name(self, client):
        response = client.post("/api/users/login", json={})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "name"

    def test_update_location(self, client):
        alice = create_user(client, "Alice")

        response = client.put(f"/api/users/{alice}", json={"city": "Ottawa", "latitude": 45.42, "longitude": -75.7})

        assert response.status_code == 200
        assert response.json()["city"] == "Ottawa"
        assert client.get(f"/api/users/{alice}").json()["longitude"] == -75.7

    def test_update_location_out_of_range(self, client):
        alice = create_user(client, "Alice")

        response = client.put(f"/api/users/{alice}", json={"latitude": 120})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "latitude"

    def test_create_user_without_name(self, client):
        """A missing name is a 400 validation error."""
        response = client.post("/api/users", json={"email": "x@example.com"})

        assert response.status_code == 400
        data = response.json()
        assert data["error_type"] == "validation_error"
        assert data["details"]["field"] == "name"


class TestSubmitEvent:
    """Test POST /api/events."""

    def test_submit_without_match(self, client):
        alice = create_user(client, "Alice")

        response = submit(client, alice)

        assert response.status_code == 200
        data = response.json()
        assert data["event"]["userId"] == alice
        assert data["event"]["date"] == "2024-06-01"
        assert data["event"]["isMatched"] is False
        assert data["match"] is None
        assert data["recurringEvents"] == 0

    def test_submit_creates_match(self, client):
        alice = create_user(client, "Alice")
        bob = create_user(client, "Bob")
        submit(client, alice)

        response = submit(client, bob)

        data = response.json()
        assert data["event"]["isMatched"] is True
        match = data["match"]
        assert set(match["participants"]) == {alice, bob}
        assert [s["response"] for s in match["status"]] == ["pending", "pending"]
        assert match["isConfirmed"] is False
        assert match["activity"] == "Coffee"

    def test_submit_recurring(self, client):
        alice = create_user(client, "Alice")

        response = submit(client, alice, date="2024-06-03", time="14:00", activity="Lunch", recurrencePattern="Weekly")

        data = response.json()
        assert data["recurringEvents"] == 9
        assert data["event"]["recurrencePattern"] == "Weekly"

    def test_submit_accepts_timestamp_and_snake_case(self, client):
        """Full ISO timestamps and snake_case keys are accepted."""
        alice = create_user(client, "Alice")

        response = client.post(
            "/api/events",
            json={
                "user_id": alice,
                "date": "2024-06-01T00:00:00.000Z",
                "time": "10:00",
                "activity": "Coffee",
                "recurrence_pattern": "None",
            },
        )

        assert response.status_code == 200
        assert response.json()["event"]["date"] == "2024-06-01"

    def test_submit_missing_field(self, client):
        alice = create_user(client, "Alice")

        response = client.post("/api/events", json={"userId": alice, "date": "2024-06-01", "time": "10:00"})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "activity"

    def test_submit_bad_date(self, client):
        alice = create_user(client, "Alice")

        response = submit(client, alice, date="not a date")

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "date"

    def test_submit_unknown_activity(self, client):
        alice = create_user(client, "Alice")

        response = submit(client, alice, activity="Karaoke")

        assert response.status_code == 400
        data = response.json()
        assert data["error_type"] == "validation_error"
        assert data["retryable"] is False
        assert data["details"] == {"field": "activity"}

    def test_submit_unknown_user(self, client):
        response = submit(client, str(uuid.uuid4()))

        assert response.status_code == 404


class TestEventQueries:
    """Test event listing and discovery endpoints."""

    def test_list_user_events(self, client):
        alice = create_user(client, "Alice")
        submit(client, alice, date="2024-06-05")
        submit(client, alice, date="2024-06-02")

        response = client.get(f"/api/events/user/{alice}")

        assert response.status_code == 200
        data = response.json()
        assert [e["date"] for e in data] == ["2024-06-02", "2024-06-05"]
        assert data[0]["user"]["name"] == "Alice"

    def test_available_users(self, client):
        alice = create_user(client, "Alice")
        create_user(client, "Bob")
        submit(client, alice, activity="Sports")

        response = client.get(
            "/api/events/available-users",
            params={"date": "2024-06-01", "time": "10:00", "activity": "Sports"},
        )

        assert response.status_code == 200
        assert response.json() == [{"id": alice, "name": "Alice"}]

    def test_available_users_requires_date(self, client):
        response = client.get("/api/events/available-users", params={"time": "10:00", "activity": "Sports"})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "date"

    def test_events_on_date(self, client):
        alice = create_user(client, "Alice")
        bob = create_user(client, "Bob")
        submit(client, alice)
        submit(client, bob, date="2024-06-02")

        response = client.get("/api/events/date", params={"date": "2024-06-01"})

        assert [e["userId"] for e in response.json()] == [alice]

    def test_get_event(self, client):
        alice = create_user(client, "Alice")
        event_id = submit(client, alice).json()["event"]["id"]

        response = client.get(f"/api/events/{event_id}")

        assert response.status_code == 200
        assert response.json()["id"] == event_id

    def test_malformed_event_id(self, client):
        """A path id that is not a UUID is a validation error."""
        response = client.get("/api/events/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"


class TestEventUpdatesAndDeletes:
    """Test PUT and DELETE on events."""

    def test_update_pattern(self, client):
        alice = create_user(client, "Alice")
        event_id = submit(client, alice).json()["event"]["id"]

        response = client.put(f"/api/events/{event_id}", json={"recurrencePattern": "Daily"})

        assert response.status_code == 200
        data = response.json()
        assert data["recurringEvents"] == 9
        assert data["event"]["recurrencePattern"] == "Daily"

    def test_update_pattern_missing(self, client):
        alice = create_user(client, "Alice")
        event_id = submit(client, alice).json()["event"]["id"]

        response = client.put(f"/api/events/{event_id}", json={})

        assert response.status_code == 400

    def test_update_pattern_unknown_event(self, client):
        response = client.put(f"/api/events/{uuid.uuid4()}", json={"recurrencePattern": "Daily"})

        assert response.status_code == 404

    def test_delete_event(self, client):
        alice = create_user(client, "Alice")
        event_id = submit(client, alice).json()["event"]["id"]

        response = client.delete(f"/api/events/{event_id}")

        assert response.status_code == 200
        assert response.json() == {"msg": "Event removed"}
        assert client.get(f"/api/events/{event_id}").status_code == 404

    def test_delete_series(self, client):
        alice = create_user(client, "Alice")
        submit(client, alice, recurrencePattern="Weekly")
        member_id = client.get(f"/api/events/user/{alice}").json()[4]["id"]

        response = client.delete(f"/api/events/series/{member_id}")

        assert response.status_code == 200
        assert response.json()["count"] == 10
        assert client.get(f"/api/events/user/{alice}").json() == []


class TestMatchEndpoints:
    """Test /api/matches endpoints."""

    @pytest.fixture
    def matched(self, client):
        """(alice, bob, match id) after Alice then Bob publish the same slot."""
        alice = create_user(client, "Alice")
        bob = create_user(client, "Bob")
        submit(client, alice)
        match_id = submit(client, bob).json()["match"]["id"]
        return alice, bob, match_id

    def test_get_match(self, client, matched):
        _, _, match_id = matched

        response = client.get(f"/api/matches/{match_id}")

        assert response.status_code == 200
        assert len(response.json()["events"]) == 2

    def test_list_user_matches(self, client, matched):
        alice, _, match_id = matched

        response = client.get(f"/api/matches/user/{alice}")

        assert [m["id"] for m in response.json()] == [match_id]

    def test_both_accept_confirms(self, client, api_notifier, matched):
        alice, bob, match_id = matched

        client.put(f"/api/matches/{match_id}/respond", json={"userId": alice, "response": "accepted"})
        response = client.put(f"/api/matches/{match_id}/respond", json={"userId": bob, "response": "accepted"})

        assert response.status_code == 200
        assert response.json()["isConfirmed"] is True
        payload = api_notifier.sent_to(uuid.UUID(alice))[-1].to_payload()
        assert payload == {"matchId": match_id, "userId": bob, "response": "accepted", "isConfirmed": True}

    def test_invalid_response(self, client, matched):
        alice, _, match_id = matched

        response = client.put(f"/api/matches/{match_id}/respond", json={"userId": alice, "response": "maybe"})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "response"

    def test_non_participant(self, client, matched):
        _, _, match_id = matched
        carol = create_user(client, "Carol")

        response = client.put(f"/api/matches/{match_id}/respond", json={"userId": carol, "response": "accepted"})

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_participant"

    def test_unknown_match(self, client, matched):
        alice, _, _ = matched

        response = client.put(f"/api/matches/{uuid.uuid4()}/respond", json={"userId": alice, "response": "accepted"})

        assert response.status_code == 404

    def test_delete_match(self, client, matched):
        alice, _, match_id = matched

        response = client.delete(f"/api/matches/{match_id}")

        assert response.status_code == 200
        assert len(response.json()["releasedEvents"]) == 2
        assert client.get(f"/api/matches/{match_id}").status_code == 404
        assert all(not e["isMatched"] for e in client.get(f"/api/events/user/{alice}").json())

    def test_deleting_matched_events_removes_match(self, client, matched):
        alice, bob, match_id = matched
        for user_id in (alice, bob):
            event_id = client.get(f"/api/events/user/{user_id}").json()[0]["id"]
            client.delete(f"/api/events/{event_id}")

        assert client.get(f"/api/matches/{match_id}").status_code == 404
