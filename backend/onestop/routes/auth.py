# Overview: Flask API routes for auth operations; login, logout and user administration.

"""
Authentication API routes

- POST /login issues a bearer token (stored server side as a SHA-256 hash)
- Self-registration is closed: admins create users via POST /register or
  the `flask users create` CLI
- Deleting a user deactivates it and revokes its sessions
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError, error_response
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, require_admin


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    try:
        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed login for %s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token, reason="User logout")
    return jsonify({"message": "Logged out successfully"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    """Change own password; every other session of the user is revoked."""
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(
            g.current_user,
            data.get("currentPassword") or data.get("current_password"),
            data.get("newPassword") or data.get("new_password"),
        )
    except ServiceError as e:
        return error_response(e)

    session_service.revoke_all_user_sessions(
        g.current_user.id,
        reason="Password changed",
        keep_session_id=g.session_context.session.id,
    )
    return jsonify({"message": "Password changed successfully"})


@auth_bp.post("/register")
@require_auth
@require_admin
def register_route():
    """Create a user (admin only)."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            role=data.get("role") or "user",
        )
    except ServiceError as e:
        return error_response(e)

    current_app.logger.info("User %s created by %s", user.username, g.current_user.username)
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in auth_service.list_users()]})


@auth_bp.get("/users/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"user": user.to_dict()})


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(user_id, data)
    except ServiceError as e:
        return error_response(e)

    if user.is_active is False:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return jsonify({"message": "User updated successfully", "user": user.to_dict()})


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        user = auth_service.deactivate_user(user_id, acting_user_id=g.current_user.id)
    except ServiceError as e:
        return error_response(e)

    session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return jsonify({"message": "User deleted successfully"})
