"""
Implementation Task Blueprint.

Endpoints:
  GET/POST       /api/v1/requirements/<rid>/tasks
  GET/PUT/DELETE /api/v1/tasks/<id>
"""

from flask import Blueprint, g, jsonify, request

from app.services import requirement_service, task_service

task_bp = Blueprint("task", __name__, url_prefix="/api/v1")


@task_bp.route("/requirements/<int:rid>/tasks", methods=["GET"])
def list_tasks(rid):
    requirement_service.get_requirement(rid, g.current_user)
    return jsonify([t.to_dict() for t in task_service.list_tasks(rid)]), 200


@task_bp.route("/requirements/<int:rid>/tasks", methods=["POST"])
def create_task(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    task = task_service.create_task(req, request.get_json(silent=True) or {})
    return jsonify(task.to_dict()), 201


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    return jsonify(task_service.get_task(task_id, g.current_user).to_dict()), 200


@task_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    task = task_service.get_task(task_id, g.current_user)
    task = task_service.update_task(task, request.get_json(silent=True) or {})
    return jsonify(task.to_dict()), 200


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task = task_service.get_task(task_id, g.current_user)
    task_service.delete_task(task)
    return jsonify({"message": "Task deleted successfully"}), 200
