"""
Tests for authentication endpoints.
"""
from cse_reviewer.core.security import create_access_token

AUTH_URL = "/api/v1/auth"


class TestRegister:
    def test_register(self, client):
        response = client.post(
            f"{AUTH_URL}/register",
            json={"email": "ana@example.com", "username": "ana", "full_name": "Ana Santos", "password": "secret123"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "ana@example.com"
        assert data["role"] == "student"
        assert "hashed_password" not in data

    def test_duplicate_email(self, client, test_user):
        response = client.post(
            f"{AUTH_URL}/register",
            json={"email": test_user.email, "full_name": "Someone", "password": "secret123"},
        )
        assert response.status_code == 400

    def test_short_password(self, client):
        response = client.post(
            f"{AUTH_URL}/register",
            json={"email": "short@example.com", "full_name": "Short", "password": "abc"},
        )
        assert response.status_code == 422


class TestLogin:
    def test_login_by_email_and_username(self, client, test_user):
        for username in (test_user.email, test_user.username):
            response = client.post(
                f"{AUTH_URL}/login", data={"username": username, "password": "testpassword123"}
            )

            assert response.status_code == 200
            token = response.json()
            assert token["token_type"] == "bearer"
            assert token["expires_in"] > 0
            assert token["access_token"]

    def test_wrong_password(self, client, test_user):
        response = client.post(f"{AUTH_URL}/login", data={"username": test_user.email, "password": "nope"})
        assert response.status_code == 401

    def test_inactive_user(self, client, db_session, test_user):
        test_user.is_active = False
        db_session.commit()

        response = client.post(
            f"{AUTH_URL}/login", data={"username": test_user.email, "password": "testpassword123"}
        )
        assert response.status_code == 400


class TestMe:
    def test_me(self, client, auth_headers, test_user):
        response = client.get(f"{AUTH_URL}/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == test_user.id

    def test_bad_token(self, client):
        response = client.get(f"{AUTH_URL}/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_refresh_type_token_rejected(self, client, test_user):
        token = create_access_token(subject=str(test_user.id), extra_claims={"type": "refresh"})
        response = client.get(f"{AUTH_URL}/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
