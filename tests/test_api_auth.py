"""End-to-end tests for registration, login, the access guard and error bodies."""

import pytest

from api_helpers import (
    PASSWORD,
    auth_header,
    create_agent,
    login,
    register_admin,
)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "up"}

    def test_mounted_under_api(self, client):
        assert client.get("/api/health").status_code == 200


class TestRegister:
    """Tests for POST /auth/register."""

    def test_register_admin(self, client):
        body = register_admin(client, email="Boss@Example.com")

        assert body["email"] == "boss@example.com"
        assert body["role"] == "admin"
        assert "password_hash" not in body
        assert "password" not in body

    def test_duplicate_email(self, client):
        register_admin(client)
        response = client.post(
            "/auth/register",
            json={"name": "Again", "email": "admin@example.com", "password": PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Admin already exists"

    def test_invalid_email_is_400(self, client):
        response = client.post(
            "/auth/register",
            json={"name": "X", "email": "not-an-email", "password": PASSWORD},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["message"].startswith("Invalid request")
        assert body["code"] == "VALIDATION_ERROR"


class TestLogin:
    """Tests for POST /auth/login."""

    def test_login_returns_token_and_user(self, client):
        admin = register_admin(client)
        response = client.post(
            "/auth/login",
            json={"email": "admin@example.com", "password": PASSWORD, "role": "admin"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 24 * 3600
        assert body["user"] == {
            "id": admin["id"],
            "email": "admin@example.com",
            "name": "Admin",
            "role": "admin",
        }

    def test_missing_role(self, client):
        register_admin(client)
        response = client.post(
            "/auth/login",
            json={"email": "admin@example.com", "password": PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Role is required"

    def test_invalid_role(self, client):
        register_admin(client)
        response = client.post(
            "/auth/login",
            json={"email": "admin@example.com", "password": PASSWORD, "role": "root"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid role specified"

    @pytest.mark.parametrize("email,password", [
        ("admin@example.com", "wrong-password"),
        ("ghost@example.com", PASSWORD),
    ])
    def test_bad_credentials_are_indistinguishable(self, client, email, password):
        register_admin(client)
        response = client.post(
            "/auth/login",
            json={"email": email, "password": password, "role": "admin"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_role_selects_namespace(self, client):
        register_admin(client)
        response = client.post(
            "/auth/login",
            json={"email": "admin@example.com", "password": PASSWORD, "role": "agent"},
        )
        assert response.status_code == 401

    def test_agent_login(self, client, admin_token):
        agent = create_agent(client, admin_token, "Ann")
        token = login(client, "ann@example.com", "agent")

        me = client.get("/auth/me", headers=auth_header(token))
        assert me.status_code == 200
        assert me.json()["id"] == agent["id"]
        assert me.json()["role"] == "agent"
        assert me.json()["mobile"] == "+15550100"


class TestAccessGuard:
    """Tests for the bearer token checks on protected routes."""

    def test_no_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["message"] == "No token, access denied"

    def test_invalid_token(self, client):
        response = client.get("/auth/me", headers=auth_header("not-a-token"))
        assert response.status_code == 401
        assert response.json()["message"] == "Token is not valid"

    def test_wrong_role(self, client, admin_token):
        create_agent(client, admin_token, "Ann")
        agent_token = login(client, "ann@example.com", "agent")

        response = client.get("/agents", headers=auth_header(agent_token))
        assert response.status_code == 403
        assert response.json()["message"] == (
            "Access denied. Required role: admin. Your role: agent"
        )


class TestErrorEnvelope:
    """Tests for the error body and request id propagation."""

    def test_request_id_generated(self, client):
        response = client.get("/auth/me")
        request_id = response.headers["X-Request-ID"]
        assert request_id
        assert response.json()["request_id"] == request_id

    def test_request_id_propagated(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-abc-123"})
        assert response.headers["X-Request-ID"] == "trace-abc-123"

    def test_unknown_route(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert "message" in response.json()
