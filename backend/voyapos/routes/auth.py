# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/voyapos/routes/auth.py
"""
Authentication API routes

- Token-based sessions (see session_service.py)
- A successful login may start a background inventory sync when the last
  one is older than SYNC_MIN_INTERVAL_SECONDS (forced if none has run yet)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service
from ..services.reconcile_service import refresh_all
from ..services.sync_state import sync_state, trigger_background_sync


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _commerce_configured(config) -> bool:
    return bool(config.get("COMMERCE_SHOP_DOMAIN") and config.get("COMMERCE_ACCESS_TOKEN"))


def _maybe_start_login_sync() -> bool:
    """Kick off a background refresh after login; True if a thread started."""
    config = current_app.config
    if not config.get("SYNC_ON_LOGIN") or not _commerce_configured(config):
        return False

    never_synced = sync_state.status()["last_success_at"] is None
    thread = trigger_background_sync(
        current_app._get_current_object(),
        refresh_all,
        force=never_synced,
    )
    return thread is not None


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)
        sync_started = _maybe_start_login_sync()

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "sync_started": sync_started,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the caller's session token."""
    session_service.revoke_session(g.auth_token)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
