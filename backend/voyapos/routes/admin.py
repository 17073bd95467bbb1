# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/voyapos/routes/admin.py
"""
Admin routes for user management.

Provides endpoints for:
- Listing and reading users
- Creating users (cashiers need a store)
- Updating email, role, store assignment and active flag
- Deactivating users (revokes their sessions)

All endpoints require an admin session.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_CASHIER
from ..services import auth_service
from ..services.errors import PosError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    """
    List users.

    Query params:
    - include_inactive: bool (default false) - include deactivated users
    - store_id: int - filter by assigned store
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    store_id = request.args.get("store_id", type=int)

    users = auth_service.list_users(include_inactive=include_inactive, store_id=store_id)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"user": user.to_dict()})


@admin_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Create a new user.

    Request body:
    - username: str (required)
    - email: str (required)
    - password: str (required)
    - role: str (optional, default cashier)
    - store_id: int (required for cashiers)
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")

        if not all([username, email, password]):
            return jsonify({"error": "username, email, and password required"}), 400

        user = auth_service.create_user(
            username,
            email,
            password,
            role=data.get("role") or ROLE_CASHIER,
            store_id=data.get("store_id"),
        )
        current_app.logger.info("User %s created by %s", user.id, g.current_user.id)
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    """
    Update user details.

    Request body (all optional): email, role, store_id, is_active.
    Passwords cannot be changed through this endpoint.
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_user(user_id, data, actor=g.current_user)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"user": user.to_dict(), "message": "User updated successfully"})


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_user_route(user_id: int):
    """
    Deactivate a user account.

    The user's sessions are revoked, so they are logged out at once and
    cannot log back in. Admins cannot deactivate themselves.
    """
    try:
        revoked = auth_service.deactivate_user(user_id, actor=g.current_user)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"message": "User deactivated", "sessions_revoked": revoked})
