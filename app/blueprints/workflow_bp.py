"""
Workflow Blueprint — node/edge diagrams and AI workflow generation.

Endpoints:
  GET/POST       /api/v1/projects/<pid>/workflows
  POST           /api/v1/projects/<pid>/workflows/generate   — {requirement_ids?, name?}
  GET/PUT/DELETE /api/v1/workflows/<id>
"""

from flask import Blueprint, g, jsonify, request

from app.services import project_service, workflow_service

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1")


@workflow_bp.route("/projects/<int:pid>/workflows", methods=["GET"])
def list_workflows(pid):
    project_service.get_project(pid, g.current_user)
    return jsonify([w.to_dict() for w in workflow_service.list_workflows(pid)]), 200


@workflow_bp.route("/projects/<int:pid>/workflows", methods=["POST"])
def create_workflow(pid):
    project = project_service.get_project(pid, g.current_user)
    wf = workflow_service.create_workflow(project, request.get_json(silent=True) or {})
    return jsonify(wf.to_dict()), 201


@workflow_bp.route("/projects/<int:pid>/workflows/generate", methods=["POST"])
def generate_workflow(pid):
    project = project_service.get_project(pid, g.current_user)
    data = request.get_json(silent=True) or {}
    wf, requirements = workflow_service.generate_workflow(
        project, data.get("requirement_ids"), data.get("name"),
    )
    return jsonify({
        **wf.to_dict(),
        "generated_from": [{"id": r.id, "code_id": r.code_id, "title": r.title}
                           for r in requirements],
    }), 201


@workflow_bp.route("/workflows/<int:wid>", methods=["GET"])
def get_workflow(wid):
    return jsonify(workflow_service.get_workflow(wid, g.current_user).to_dict()), 200


@workflow_bp.route("/workflows/<int:wid>", methods=["PUT"])
def update_workflow(wid):
    wf = workflow_service.get_workflow(wid, g.current_user)
    wf = workflow_service.update_workflow(wf, request.get_json(silent=True) or {})
    return jsonify(wf.to_dict()), 200


@workflow_bp.route("/workflows/<int:wid>", methods=["DELETE"])
def delete_workflow(wid):
    wf = workflow_service.get_workflow(wid, g.current_user)
    workflow_service.delete_workflow(wf)
    return jsonify({"message": "Workflow deleted successfully"}), 200
