"""
Analysis Blueprint — requirement contradiction detection and quality checks.

Endpoints:
  POST /api/v1/projects/<pid>/analyze-contradictions
       body: {requirement_ids?, similarity_threshold?, nli_threshold?}
  GET  /api/v1/projects/<pid>/quality-check
"""

from flask import Blueprint, g, jsonify, request

from app.services import analysis_service, project_service

analysis_bp = Blueprint("analysis", __name__, url_prefix="/api/v1")


@analysis_bp.route("/projects/<int:pid>/analyze-contradictions", methods=["POST"])
def analyze_contradictions(pid):
    project = project_service.get_project(pid, g.current_user)
    data = request.get_json(silent=True) or {}
    result = analysis_service.analyze_contradictions(
        project,
        requirement_ids=data.get("requirement_ids"),
        similarity_threshold=data.get("similarity_threshold"),
        nli_threshold=data.get("nli_threshold"),
    )
    return jsonify(result), 200


@analysis_bp.route("/projects/<int:pid>/quality-check", methods=["GET"])
def quality_check(pid):
    project = project_service.get_project(pid, g.current_user)
    return jsonify(analysis_service.quality_check(project)), 200
