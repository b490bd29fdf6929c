"""
Activity Blueprint — recent activity feeds.

Endpoints:
  GET /api/v1/activities?limit=10
  GET /api/v1/projects/<pid>/activities?limit=10
"""

from flask import Blueprint, g, jsonify, request

from app.services import activity_service, project_service
from app.utils.helpers import parse_limit

activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1")


@activity_bp.route("/activities", methods=["GET"])
def recent_activities():
    limit = parse_limit(request.args.get("limit"))
    items = activity_service.recent_activities(g.current_user, limit)
    return jsonify([a.to_dict() for a in items]), 200


@activity_bp.route("/projects/<int:pid>/activities", methods=["GET"])
def project_activities(pid):
    project_service.get_project(pid, g.current_user)
    limit = parse_limit(request.args.get("limit"))
    return jsonify([a.to_dict() for a in activity_service.project_activities(pid, limit)]), 200
