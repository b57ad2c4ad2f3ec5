"""
API tests for authentication, the current user and the app-level endpoints.
"""

from unittest.mock import Mock

import scriber.main


class TestAuthEndpoints:
    def test_register_login_refresh(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "password123", "name": "New"},
        )
        assert response.status_code == 201
        assert response.json()["user"]["email"] == "new@example.com"

        login = client.post(
            "/api/auth/login", json={"email": "new@example.com", "password": "password123"}
        )
        assert login.status_code == 200
        tokens = login.json()

        refreshed = client.post(
            "/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refreshed.status_code == 200
        assert refreshed.json()["access_token"]

    def test_duplicate_registration(self, client, user):
        response = client.post(
            "/api/auth/register",
            json={"email": "owner@example.com", "password": "password123"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "CONFLICT"

    def test_short_password_is_a_validation_error(self, client):
        response = client.post(
            "/api/auth/register", json={"email": "a@example.com", "password": "short"}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]["errors"]

    def test_bad_credentials(self, client, user):
        response = client.post(
            "/api/auth/login", json={"email": "owner@example.com", "password": "wrong-pass"}
        )
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_ERROR"

    def test_invalid_token(self, client):
        response = client.get("/api/users/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestUserEndpoints:
    def test_profile(self, client, auth_headers):
        response = client.get("/api/users/me", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "owner@example.com"
        assert body["subscription"]["plan"]["name"] == "Free"
        assert "password_hash" not in body

    def test_update_profile(self, client, auth_headers):
        response = client.patch("/api/users/me", json={"name": " Renamed "}, headers=auth_headers)
        assert response.json()["name"] == "Renamed"

        response = client.patch("/api/users/me", json={"name": "  "}, headers=auth_headers)
        assert response.status_code == 400

    def test_notification_preferences(self, client, auth_headers):
        response = client.put(
            "/api/users/me/notification-preferences",
            json={"email": False},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["email"] is False

        current = client.get("/api/users/me/notification-preferences", headers=auth_headers)
        assert current.json()["email"] is False
        assert current.json()["push"] is True

    def test_device_token(self, client, auth_headers):
        response = client.put(
            "/api/users/me/device-token",
            json={"device_token": "ExponentPushToken[abc123]"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["has_device_token"] is True


class TestAppEndpoints:
    def test_health(self, client, monkeypatch):
        manager = Mock()
        manager.health_check.return_value = True
        monkeypatch.setattr(scriber.main, "get_database_manager", lambda: manager)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_when_database_is_down(self, client, monkeypatch):
        manager = Mock()
        manager.health_check.return_value = False
        monkeypatch.setattr(scriber.main, "get_database_manager", lambda: manager)

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["error"] == "HTTP_ERROR"

    def test_info(self, client):
        body = client.get("/info").json()
        assert body["name"] == "Scriber"
        assert "vtt" in body["export_formats"]
