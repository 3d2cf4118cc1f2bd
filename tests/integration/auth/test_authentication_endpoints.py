"""
Integration tests for the /auth endpoints.

Tests request validation, response shapes and bearer authentication using
FastAPI TestClient against the mock provider.
"""

import json
from pathlib import Path
from typing import Any, Dict

from fastapi.testclient import TestClient

from src.simple_todo.config import AuditSettings, Settings
from src.simple_todo.core.exceptions import ProviderError
from src.simple_todo.core.provider import MockAuthProvider, ProviderUser
from src.simple_todo.main import create_app


class TestAuthHealth:
    """Test the auth service health endpoint."""

    def test_auth_health(self, test_client: TestClient) -> None:
        response = test_client.get("/auth/health")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Authentication service is healthy"
        assert data["environment"] == "test"
        assert "timestamp" in data


class TestRegisterEndpoint:
    """Test POST /auth/register."""

    def test_register_success(self, test_client: TestClient, registration_payload: Dict[str, Any]) -> None:
        """A valid registration returns 201 with camelCase user and session."""
        response = test_client.post("/auth/register", json=registration_payload)

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "User registered successfully"

        user = data["data"]["user"]
        assert user["email"] == "jane.doe@example.com"
        assert user["name"] == "Jane Doe"
        assert user["avatar"] is None
        assert "createdAt" in user and "updatedAt" in user

        session = data["data"]["session"]
        assert session["accessToken"].startswith("mock-access-token-")
        assert session["refreshToken"].startswith("mock-refresh-token-")
        assert session["expiresAt"] > 0

    def test_register_trims_input(self, test_client: TestClient, registration_payload: Dict[str, Any]) -> None:
        registration_payload["email"] = "   jane@example.com  "
        registration_payload["name"] = "  Jane   Doe "

        response = test_client.post("/auth/register", json=registration_payload)

        assert response.status_code == 201
        assert response.json()["data"]["user"]["email"] == "jane@example.com"
        assert response.json()["data"]["user"]["name"] == "Jane Doe"

    def test_register_duplicate(self, test_client: TestClient, registration_payload: Dict[str, Any]) -> None:
        assert test_client.post("/auth/register", json=registration_payload).status_code == 201

        response = test_client.post("/auth/register", json=registration_payload)

        assert response.status_code == 409
        assert response.json()["code"] == "USER_ALREADY_EXISTS"

    def test_register_validation_errors(self, test_client: TestClient) -> None:
        """All field errors are reported together."""
        response = test_client.post(
            "/auth/register",
            json={"email": "not-an-email", "password": "weak", "name": "J"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert body["code"] == "VALIDATION_ERROR"
        errors = body["details"]["errors"]
        assert "Invalid email format" in errors
        assert "Password must be at least 8 characters long" in errors
        assert "Name must be at least 2 characters long" in errors

    def test_register_malformed_json(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/auth/register",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_register_non_object_body(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/register", json=["jane@example.com"])

        assert response.status_code == 400
        assert response.json()["details"]["errors"] == ["Request body must be a JSON object"]

    def test_register_empty_body(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/register")

        assert response.status_code == 400
        errors = response.json()["details"]["errors"]
        assert "Email is required" in errors
        assert "Password is required" in errors
        assert "Name is required" in errors


class TestLoginEndpoint:
    """Test POST /auth/login."""

    def test_login_success(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/login", json={"email": "jane@example.com", "password": "anything"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Login successful"
        assert data["data"]["user"]["email"] == "jane@example.com"
        assert data["data"]["session"]["accessToken"]

    def test_login_invalid_credentials(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/login", json={"email": "fail@test.com", "password": "Wr0ng!pass"})

        assert response.status_code == 401
        assert response.json() == {
            "message": "Invalid credentials",
            "code": "INVALID_CREDENTIALS",
            "details": {},
        }

    def test_login_missing_password(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/login", json={"email": "jane@example.com"})

        assert response.status_code == 400
        assert response.json()["details"]["errors"] == ["Password is required"]


class TestPasswordRecoveryEndpoints:
    """Test POST /auth/recover and POST /auth/reset."""

    def test_recover_sends_email(self, test_client: TestClient, mock_provider: MockAuthProvider) -> None:
        response = test_client.post("/auth/recover", json={"email": "Jane@Example.com"})

        assert response.status_code == 200
        assert response.json() == {"message": "If the email exists, a password recovery link has been sent"}
        assert mock_provider.recovery_emails == ["jane@example.com"]

    def test_recover_hides_provider_failure(self, test_settings: Settings) -> None:
        """The response does not reveal whether recovery succeeded."""

        class FailingRecoveryProvider(MockAuthProvider):
            async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
                raise ProviderError("User not found", provider_status=404)

        app = create_app(test_settings, provider=FailingRecoveryProvider())
        with TestClient(app) as client:
            response = client.post("/auth/recover", json={"email": "nobody@example.com"})

        assert response.status_code == 200
        assert response.json()["message"] == "If the email exists, a password recovery link has been sent"

    def test_recover_invalid_email(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/recover", json={"email": "nope"})

        assert response.status_code == 400
        assert response.json()["details"]["errors"] == ["Invalid email format"]

    def test_reset_success(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/auth/reset",
            json={"token": "recovery-token-123", "password": "N3w!Passw0rd"},
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Password reset successful"}

    def test_reset_invalid_token_and_password(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/reset", json={"token": "short", "password": "weak"})

        assert response.status_code == 400
        errors = response.json()["details"]["errors"]
        assert "Invalid reset token" in errors
        assert "Password must be at least 8 characters long" in errors


class TestAuthenticatedEndpoints:
    """Test bearer authentication on /auth/logout and /auth/profile."""

    def test_profile(self, test_client: TestClient, auth_headers: Dict[str, str]) -> None:
        response = test_client.get("/auth/profile", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Profile retrieved successfully"
        assert data["data"]["user"]["id"] == "mock-user-id"
        assert data["data"]["user"]["email"] == "dev@example.com"
        assert data["data"]["user"]["name"] == "Dev User"

    def test_missing_token(self, test_client: TestClient) -> None:
        response = test_client.get("/auth/profile")

        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_TOKEN"
        assert response.json()["message"] == "Authorization token required"

    def test_non_bearer_scheme(self, test_client: TestClient) -> None:
        response = test_client.get("/auth/profile", headers={"Authorization": "Basic amFuZTpwYXNz"})

        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_TOKEN"

    def test_short_token(self, test_client: TestClient) -> None:
        response = test_client.get("/auth/profile", headers={"Authorization": "Bearer abc"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_invalid_session(self, test_settings: Settings, auth_headers: Dict[str, str]) -> None:
        class ExpiredSessionProvider(MockAuthProvider):
            async def get_user(self, access_token: str) -> ProviderUser:
                raise ProviderError("invalid JWT: token is expired", provider_status=401)

        app = create_app(test_settings, provider=ExpiredSessionProvider())
        with TestClient(app) as client:
            response = client.get("/auth/profile", headers=auth_headers)

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_SESSION"

    def test_logout(
        self,
        test_client: TestClient,
        mock_provider: MockAuthProvider,
        auth_headers: Dict[str, str],
    ) -> None:
        response = test_client.post("/auth/logout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Logout successful"}
        assert mock_provider.signed_out == [auth_headers["Authorization"].split(" ", 1)[1]]

    def test_logout_requires_token(self, test_client: TestClient) -> None:
        response = test_client.post("/auth/logout")

        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_TOKEN"


class TestAuditTrail:
    """Test audit entries produced through the API."""

    def test_actions_written_to_file_sink(self, test_settings: Settings, tmp_path: Path) -> None:
        audit_file = tmp_path / "trail" / "audit.log"
        settings = test_settings.model_copy(update={"audit": AuditSettings(sink="file", file_path=audit_file)})

        app = create_app(settings, provider=MockAuthProvider())
        with TestClient(app, headers={"User-Agent": "pytest-client"}) as client:
            client.post(
                "/auth/register",
                json={"email": "jane@example.com", "password": "Str0ng!Pass", "name": "Jane Doe"},
                headers={"X-Forwarded-For": "203.0.113.7"},
            )
            client.post("/auth/login", json={"email": "fail@test.com", "password": "x"})

        entries = [json.loads(line) for line in audit_file.read_text().splitlines()]
        assert [entry["action"] for entry in entries] == ["USER_REGISTER", "USER_LOGIN"]
        assert entries[0]["ip_address"] == "203.0.113.7"
        assert entries[0]["user_agent"] == "pytest-client"
        assert entries[1]["user_id"] == "unknown"
        assert entries[1]["details"]["success"] is False
