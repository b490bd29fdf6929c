"""
Auth Blueprint — session-cookie authentication endpoints.

Endpoints:
  POST /api/v1/auth/register                    — Accept invite → create user → log in
  POST /api/v1/auth/login                       — Username + password → session cookie
  POST /api/v1/auth/logout                      — End the current session
  GET  /api/v1/auth/me                          — Current user profile
  PUT  /api/v1/auth/me                          — Update own profile
  POST /api/v1/auth/change-password             — Change own password
  POST /api/v1/auth/forgot-password             — Email a reset link (always 200)
  GET  /api/v1/auth/verify-reset-token/<token>  — {valid}
  POST /api/v1/auth/reset-password              — Token + new password
"""

import logging

from flask import Blueprint, g, jsonify, request, session

from app.auth import SESSION_KEY
from app.services import user_service
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def _login(user):
    row = user_service.start_session(
        user,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent", ""),
    )
    session.clear()
    session[SESSION_KEY] = row.id
    session.permanent = True
    return row


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body: { "username", "password", "email", "invite_token",
            "first_name"?, "last_name"?, "company"? }
    """
    data = request.get_json(silent=True) or {}
    user = user_service.register_user(data)
    _login(user)
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    user = user_service.authenticate(data.get("username", ""), data.get("password", ""))
    if user is None:
        logger.info("Failed login for username=%r from %s", data.get("username"), request.remote_addr)
        return api_error(E.UNAUTHENTICATED, "Invalid username or password")
    _login(user)
    return jsonify(user.to_dict()), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    user_service.end_session(session.get(SESSION_KEY))
    session.clear()
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.route("/me", methods=["GET"])
def me():
    return jsonify(g.current_user.to_dict()), 200


@auth_bp.route("/me", methods=["PUT"])
def update_me():
    data = request.get_json(silent=True) or {}
    user = user_service.update_profile(g.current_user, data)
    return jsonify(user.to_dict()), 200


@auth_bp.route("/change-password", methods=["POST"])
def change_password():
    data = request.get_json(silent=True) or {}
    user_service.change_password(
        g.current_user, data.get("current_password", ""), data.get("new_password", ""),
    )
    return jsonify({"message": "Password changed successfully"}), 200


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = request.get_json(silent=True) or {}
    user_service.request_password_reset((data.get("email") or "").strip())
    return jsonify({
        "message": "If an account exists for this email, a password reset link has been sent"
    }), 200


@auth_bp.route("/verify-reset-token/<token>", methods=["GET"])
def verify_reset_token(token):
    return jsonify({"valid": user_service.verify_reset_token(token)}), 200


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = request.get_json(silent=True) or {}
    user_service.reset_password(data.get("token", ""), data.get("password", ""))
    return jsonify({"message": "Password has been reset successfully"}), 200
