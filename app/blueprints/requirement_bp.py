"""
Requirement Blueprint — requirement CRUD and AI generation.

Endpoints:
  GET/POST       /api/v1/projects/<pid>/requirements          (?category=&priority=)
  GET            /api/v1/projects/<pid>/requirements/high-priority?limit=
  GET            /api/v1/projects/<pid>/requirements/category/<category>
  PUT/DELETE     /api/v1/projects/<pid>/requirements/<id>
  GET/PUT/DELETE /api/v1/requirements/<id>
  POST           /api/v1/requirements/<id>/acceptance-criteria — Gherkin scenarios (LLM)
  POST           /api/v1/requirements/<id>/generate-tasks      — ?mode=ai|rules
"""

from flask import Blueprint, g, jsonify, request

from app.services import project_service, requirement_service, task_service
from app.utils.helpers import parse_limit

requirement_bp = Blueprint("requirement", __name__, url_prefix="/api/v1")


# ── Project-scoped ───────────────────────────────────────────────────────────

@requirement_bp.route("/projects/<int:pid>/requirements", methods=["GET"])
def list_requirements(pid):
    project_service.get_project(pid, g.current_user)
    reqs = requirement_service.list_requirements(
        pid,
        category=request.args.get("category"),
        priority=request.args.get("priority"),
    )
    return jsonify([r.to_dict() for r in reqs]), 200


@requirement_bp.route("/projects/<int:pid>/requirements", methods=["POST"])
def create_requirement(pid):
    project = project_service.get_project(pid, g.current_user)
    req = requirement_service.create_requirement(project, request.get_json(silent=True) or {})
    return jsonify(req.to_dict()), 201


@requirement_bp.route("/projects/<int:pid>/requirements/high-priority", methods=["GET"])
def high_priority_requirements(pid):
    project_service.get_project(pid, g.current_user)
    limit = parse_limit(request.args.get("limit"))
    reqs = requirement_service.high_priority_requirements(pid, limit)
    return jsonify([r.to_dict() for r in reqs]), 200


@requirement_bp.route("/projects/<int:pid>/requirements/category/<category>", methods=["GET"])
def requirements_by_category(pid, category):
    project_service.get_project(pid, g.current_user)
    reqs = requirement_service.list_requirements(pid, category=category)
    return jsonify([r.to_dict() for r in reqs]), 200


@requirement_bp.route("/projects/<int:pid>/requirements/<int:rid>", methods=["PUT"])
def update_project_requirement(pid, rid):
    req = requirement_service.get_project_requirement(pid, rid, g.current_user)
    req = requirement_service.update_requirement(req, request.get_json(silent=True) or {})
    return jsonify(req.to_dict()), 200


@requirement_bp.route("/projects/<int:pid>/requirements/<int:rid>", methods=["DELETE"])
def delete_project_requirement(pid, rid):
    req = requirement_service.get_project_requirement(pid, rid, g.current_user)
    requirement_service.delete_requirement(req)
    return jsonify({"message": "Requirement deleted successfully"}), 200


# ── By id ────────────────────────────────────────────────────────────────────

@requirement_bp.route("/requirements/<int:rid>", methods=["GET"])
def get_requirement(rid):
    return jsonify(requirement_service.get_requirement(rid, g.current_user).to_dict()), 200


@requirement_bp.route("/requirements/<int:rid>", methods=["PUT"])
def update_requirement(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    req = requirement_service.update_requirement(req, request.get_json(silent=True) or {})
    return jsonify(req.to_dict()), 200


@requirement_bp.route("/requirements/<int:rid>", methods=["DELETE"])
def delete_requirement(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    requirement_service.delete_requirement(req)
    return jsonify({"message": "Requirement deleted successfully"}), 200


# ── AI generation ────────────────────────────────────────────────────────────

@requirement_bp.route("/requirements/<int:rid>/acceptance-criteria", methods=["POST"])
def generate_acceptance_criteria(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    criteria = requirement_service.generate_acceptance_criteria(req)
    return jsonify({"requirement_id": req.id, "acceptance_criteria": criteria}), 200


@requirement_bp.route("/requirements/<int:rid>/generate-tasks", methods=["POST"])
def generate_tasks(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    tasks, engine = task_service.generate_tasks(req, request.args.get("mode", "ai"))
    return jsonify({
        "requirement_id": req.id,
        "engine": engine,
        "tasks": [t.to_dict() for t in tasks],
    }), 201
