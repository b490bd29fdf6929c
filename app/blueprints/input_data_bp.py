"""
Input Data Blueprint — uploaded source material and its AI processing.

Endpoints:
  GET    /api/v1/projects/<pid>/input-data         — List uploads
  POST   /api/v1/projects/<pid>/input-data         — Upload (multipart "file")
  GET    /api/v1/input-data/<id>                   — Detail (?include_text=1)
  DELETE /api/v1/input-data/<id>                   — Delete record + stored file
  POST   /api/v1/input-data/<id>/process           — Extract requirements (LLM)
  POST   /api/v1/input-data/<id>/expert-review     — Expert review (LLM)
  POST   /api/v1/input-data/<id>/pdf-summary       — Summarise a PDF (LLM)
"""

from flask import Blueprint, g, jsonify, request

from app.services import input_data_service, project_service

input_data_bp = Blueprint("input_data", __name__, url_prefix="/api/v1")


@input_data_bp.route("/projects/<int:pid>/input-data", methods=["GET"])
def list_input_data(pid):
    project_service.get_project(pid, g.current_user)
    items = input_data_service.list_input_data(pid)
    return jsonify([i.to_dict() for i in items]), 200


@input_data_bp.route("/projects/<int:pid>/input-data", methods=["POST"])
def upload_input_data(pid):
    project = project_service.get_project(pid, g.current_user)
    item = input_data_service.upload(
        project, request.files.get("file"), request.form.get("content_type"),
    )
    return jsonify(item.to_dict()), 201


@input_data_bp.route("/input-data/<int:input_id>", methods=["GET"])
def get_input_data(input_id):
    item = input_data_service.get_input_data(input_id, g.current_user)
    include_text = request.args.get("include_text", "").lower() in ("1", "true", "yes")
    return jsonify(item.to_dict(include_text=include_text)), 200


@input_data_bp.route("/input-data/<int:input_id>", methods=["DELETE"])
def delete_input_data(input_id):
    item = input_data_service.get_input_data(input_id, g.current_user)
    input_data_service.delete_input_data(item)
    return jsonify({"message": "Input data deleted successfully"}), 200


@input_data_bp.route("/input-data/<int:input_id>/process", methods=["POST"])
def process_input_data(input_id):
    item = input_data_service.get_input_data(input_id, g.current_user)
    requirements = input_data_service.generate_requirements(item)
    return jsonify({
        "message": f"Generated {len(requirements)} requirements",
        "input_data": item.to_dict(),
        "requirements": [r.to_dict() for r in requirements],
    }), 201


@input_data_bp.route("/input-data/<int:input_id>/expert-review", methods=["POST"])
def expert_review(input_id):
    item = input_data_service.get_input_data(input_id, g.current_user)
    review = input_data_service.expert_review(item)
    return jsonify({"input_data_id": item.id, "review": review}), 200


@input_data_bp.route("/input-data/<int:input_id>/pdf-summary", methods=["POST"])
def pdf_summary(input_id):
    item = input_data_service.get_input_data(input_id, g.current_user)
    summary = input_data_service.pdf_summary(item)
    return jsonify({"input_data_id": item.id, "summary": summary}), 200
