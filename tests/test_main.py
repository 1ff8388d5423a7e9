"""
Unit tests for main application endpoints and the shared error envelope.
"""
from conftest import get_auth_header


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test the health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Service is healthy",
            "data": {"status": "ok"},
        }


class TestApplicationSetup:
    """Tests for application configuration."""

    def test_app_title(self, client):
        """Test that the app has correct title."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert "Tranquility Inn" in response.json()["info"]["title"]

    def test_docs_endpoint_exists(self, client):
        response = client.get("/docs")
        assert response.status_code == 200

    def test_versioned_routes(self, client, sample_room):
        """Every router is also mounted under /api/v1."""
        response = client.get(f"/api/v1/rooms/{sample_room.id}")
        assert response.status_code == 200
        assert response.json()["data"]["room_number"] == "101"


class TestErrorEnvelope:
    """Failures are answered with {success, message, data, errors}."""

    def test_not_found_envelope(self, client):
        response = client.get("/rooms/9999")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["errors"] == {"type": "NotFound"}
        assert body["message"] == "Room not found or not available"

    def test_request_validation_is_400(self, client, guest_token):
        response = client.post(
            "/bookings/",
            json={"room_id": "abc", "check_in": "not-a-date"},
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Invalid input data"
        assert "body.check_in" in body["errors"]

    def test_missing_token_is_auth_error(self, client):
        response = client.get("/users/me")
        assert response.status_code == 401
        assert response.json()["errors"]["type"] == "AuthError"

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/no-such-route")
        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["errors"]["type"] == "NotFound"
