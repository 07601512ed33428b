"""
Authentication and session tests.

SECURITY: covers token issue and revocation, idle timeout, deactivated
accounts and admin-only user management.
"""

from datetime import timedelta

import pytest

from onestop.errors import ConflictError, ValidationError
from onestop.extensions import db
from onestop.models import SessionToken, User
from onestop.services import auth_service, session_service
from onestop.time_utils import utcnow


class TestLogin:
    def test_login_issues_working_token(self, client, user_a, password):
        response = client.post("/api/auth/login", json={"username": "user_a", "password": password})
        assert response.status_code == 200
        body = response.get_json()
        assert body["user"]["username"] == "user_a"
        assert "password_hash" not in body["user"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == user_a.id

    def test_token_is_stored_hashed(self, client, user_a, password):
        token = client.post("/api/auth/login", json={"username": "user_a", "password": password}).get_json()["token"]
        stored = db.session.query(SessionToken).filter_by(user_id=user_a.id).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token

    def test_wrong_password_is_401(self, client, user_a):
        response = client.post("/api/auth/login", json={"username": "user_a", "password": "wrong-one"})
        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid credentials"}

    def test_missing_fields_is_400(self, client, db_session):
        response = client.post("/api/auth/login", json={"username": "user_a"})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, client, inactive_user, password):
        response = client.post("/api/auth/login", json={"username": "retired", "password": password})
        assert response.status_code == 401


class TestSessions:
    def test_logout_revokes_token(self, client, headers_a):
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 200
        assert client.get("/api/auth/me", headers=headers_a).status_code == 401

    def test_idle_session_is_rejected(self, client, user_a, headers_a):
        session = db.session.query(SessionToken).filter_by(user_id=user_a.id).one()
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        response = client.get("/api/auth/me", headers=headers_a)
        assert response.status_code == 401

        db.session.expire_all()
        session = db.session.query(SessionToken).filter_by(user_id=user_a.id).one()
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_expired_session_is_rejected(self, client, user_a, headers_a):
        session = db.session.query(SessionToken).filter_by(user_id=user_a.id).one()
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert client.get("/api/auth/me", headers=headers_a).status_code == 401

    def test_deactivated_user_token_is_rejected(self, client, user_a, headers_a):
        user = db.session.get(User, user_a.id)
        user.is_active = False
        db.session.commit()

        assert client.get("/api/products", headers=headers_a).status_code == 401

    def test_change_password_requires_current_password(self, client, headers_a):
        response = client.put(
            "/api/auth/change-password",
            json={"currentPassword": "not-it", "newPassword": "brand-new-pass"},
            headers=headers_a,
        )
        assert response.status_code == 401


class TestUserAdministration:
    def test_non_admin_cannot_register_users(self, client, headers_a):
        response = client.post(
            "/api/auth/register",
            json={"username": "kasiyer", "email": "k@onestop.test", "password": "secret1", "full_name": "Kasiyer"},
            headers=headers_a,
        )
        assert response.status_code == 403
        assert response.get_json() == {"error": "Admin access required"}

    def test_admin_registers_user(self, client, admin_headers):
        response = client.post(
            "/api/auth/register",
            json={"username": "kasiyer", "email": "k@onestop.test", "password": "secret1", "full_name": "Kasiyer"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["user"]["role"] == "user"

    def test_duplicate_username_conflicts(self, user_a):
        with pytest.raises(ConflictError):
            auth_service.create_user("user_a", "other@onestop.test", "secret1", "Other")

    def test_short_password_rejected(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("new_user", "new@onestop.test", "123", "New User")

    def test_admin_cannot_delete_self(self, client, admin_user, admin_headers):
        response = client.delete(f"/api/auth/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400
