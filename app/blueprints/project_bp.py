"""
Project Blueprint — project CRUD, search, recent list and export.

Endpoints:
  GET/POST       /api/v1/projects
  GET            /api/v1/projects/search?query=
  GET            /api/v1/projects/recent?limit=10
  GET/PUT/DELETE /api/v1/projects/<id>
  GET            /api/v1/projects/<id>/export?format=json|xlsx|csv
  GET            /api/v1/projects/<id>/tasks
"""

import io
import logging
import re

from flask import Blueprint, g, jsonify, request, send_file

from app.models import utcnow
from app.services import project_service, task_service
from app.utils.errors import E, api_error
from app.utils.helpers import parse_limit

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1/projects")


def _export_name(project, ext):
    slug = re.sub(r"[^A-Za-z0-9]+", "_", project.name).strip("_") or f"project_{project.id}"
    return f"{slug}_requirements_{utcnow().strftime('%Y%m%d')}.{ext}"


@project_bp.route("", methods=["GET"])
def list_projects():
    return jsonify([p.to_dict() for p in project_service.list_projects(g.current_user)]), 200


@project_bp.route("", methods=["POST"])
def create_project():
    data = request.get_json(silent=True) or {}
    project = project_service.create_project(data, g.current_user)
    return jsonify(project.to_dict()), 201


@project_bp.route("/search", methods=["GET"])
def search_projects():
    projects = project_service.search_projects(g.current_user, request.args.get("query"))
    return jsonify([p.to_dict() for p in projects]), 200


@project_bp.route("/recent", methods=["GET"])
def recent_projects():
    limit = parse_limit(request.args.get("limit"))
    projects = project_service.recent_projects(g.current_user, limit)
    return jsonify([p.to_dict() for p in projects]), 200


@project_bp.route("/<int:pid>", methods=["GET"])
def get_project(pid):
    return jsonify(project_service.get_project(pid, g.current_user).to_dict()), 200


@project_bp.route("/<int:pid>", methods=["PUT"])
def update_project(pid):
    project = project_service.get_project(pid, g.current_user)
    data = request.get_json(silent=True) or {}
    data.pop("user_id", None)
    project = project_service.update_project(project, data)
    return jsonify(project.to_dict()), 200


@project_bp.route("/<int:pid>", methods=["DELETE"])
def delete_project(pid):
    project = project_service.get_project(pid, g.current_user)
    project_service.delete_project(project)
    return jsonify({"message": "Project deleted successfully"}), 200


@project_bp.route("/<int:pid>/export", methods=["GET"])
def export_project(pid):
    project = project_service.get_project(pid, g.current_user)
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in project_service.EXPORT_FORMATS:
        return api_error(E.VALIDATION, f"Unsupported export format: {fmt}")

    if fmt == "xlsx":
        return send_file(
            project_service.export_xlsx(project),
            as_attachment=True,
            download_name=_export_name(project, "xlsx"),
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    if fmt == "csv":
        return send_file(
            io.BytesIO(project_service.export_csv(project).encode("utf-8")),
            as_attachment=True,
            download_name=_export_name(project, "csv"),
            mimetype="text/csv",
        )
    return jsonify(project_service.export_data(project)), 200


@project_bp.route("/<int:pid>/tasks", methods=["GET"])
def project_tasks(pid):
    project_service.get_project(pid, g.current_user)
    return jsonify([t.to_dict() for t in task_service.list_project_tasks(pid)]), 200
