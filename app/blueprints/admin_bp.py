"""
Admin Blueprint — user management, invites and application settings.

Endpoints:
  GET    /api/v1/admin/users              — List users
  GET    /api/v1/admin/users/<id>         — User detail
  PUT    /api/v1/admin/users/<id>         — Update profile / role
  DELETE /api/v1/admin/users/<id>         — Delete (not yourself)
  GET    /api/v1/admin/email-log          — Outbound email audit (?status, ?category)
  GET    /api/v1/admin/ai-usage           — LLM calls and per-provider totals

  POST   /api/v1/invites                  — Invite a new user by email
  GET    /api/v1/invites                  — List invites
  GET    /api/v1/invites/<token>/verify   — Public: {valid, email?}

  GET    /api/v1/settings                 — Current application settings
  PUT    /api/v1/settings                 — Update settings (admin)
  POST   /api/v1/settings/reset           — Drop all overrides (admin)
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.auth import require_role
from app.services import audit_service, invite_service, settings_service, user_service

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")
invite_bp = Blueprint("invite", __name__, url_prefix="/api/v1/invites")
settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════

@admin_bp.route("/users", methods=["GET"])
@require_role("admin")
def list_users():
    users = user_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)}), 200


@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@require_role("admin")
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict()), 200


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@require_role("admin")
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    user = user_service.admin_update_user(user_id, data)
    logger.info("User %s updated by admin %s", user_id, g.current_user.id)
    return jsonify(user.to_dict()), 200


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@require_role("admin")
def delete_user(user_id):
    user_service.delete_user(user_id, g.current_user)
    return jsonify({"message": "User deleted successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# Audit
# ═══════════════════════════════════════════════════════════════

@admin_bp.route("/email-log", methods=["GET"])
@require_role("admin")
def email_log():
    return jsonify(audit_service.list_email_log(
        status=request.args.get("status"),
        category=request.args.get("category"),
        limit=request.args.get("limit", 50, type=int),
        offset=request.args.get("offset", 0, type=int),
    ))


@admin_bp.route("/ai-usage", methods=["GET"])
@require_role("admin")
def ai_usage():
    return jsonify(audit_service.ai_usage(
        provider=request.args.get("provider"),
        project_id=request.args.get("project_id", type=int),
        limit=request.args.get("limit", 50, type=int),
        offset=request.args.get("offset", 0, type=int),
    ))


# ═══════════════════════════════════════════════════════════════
# Invites
# ═══════════════════════════════════════════════════════════════

@invite_bp.route("", methods=["POST"])
@require_role("admin")
def create_invite():
    data = request.get_json(silent=True) or {}
    invite = invite_service.create_invite((data.get("email") or "").strip(), g.current_user)
    return jsonify(invite.to_dict(include_token=True)), 201


@invite_bp.route("", methods=["GET"])
@require_role("admin")
def list_invites():
    return jsonify([i.to_dict() for i in invite_service.list_invites()]), 200


@invite_bp.route("/<token>/verify", methods=["GET"])
def verify_invite(token):
    invite = invite_service.verify_invite(token)
    if invite is None:
        return jsonify({"valid": False}), 200
    return jsonify({"valid": True, "email": invite.email}), 200


# ═══════════════════════════════════════════════════════════════
# Application settings
# ═══════════════════════════════════════════════════════════════

@settings_bp.route("", methods=["GET"])
def get_settings():
    return jsonify(settings_service.get_settings()), 200


@settings_bp.route("", methods=["PUT"])
@require_role("admin")
def update_settings():
    data = request.get_json(silent=True) or {}
    payload = data.get("settings", data)
    if isinstance(payload, dict):
        payload = {k: v for k, v in payload.items() if k != "description"}
    result = settings_service.update_settings(
        payload, user_id=g.current_user.id, description=data.get("description"),
    )
    return jsonify(result), 200


@settings_bp.route("/reset", methods=["POST"])
@require_role("admin")
def reset_settings():
    return jsonify(settings_service.reset_settings(user_id=g.current_user.id)), 200
