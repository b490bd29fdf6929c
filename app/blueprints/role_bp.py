"""
Role Effort Blueprint — project roles, role templates and effort estimates.

Endpoints:
  ROLES      /api/v1/projects/<pid>/roles                                GET, POST
             /api/v1/projects/<pid>/roles/<role_id>                      GET, PUT, DELETE
             /api/v1/projects/<pid>/roles/from-template/<template_id>    POST

  TEMPLATES  /api/v1/role-templates                                      GET, POST
             /api/v1/role-templates/<id>                                 DELETE

  EFFORTS    /api/v1/requirements/<rid>/role-efforts                     GET, POST
             /api/v1/requirements/<rid>/role-efforts/<effort_id>         DELETE
             /api/v1/tasks/<tid>/role-efforts                            GET, POST
             /api/v1/tasks/<tid>/role-efforts/<effort_id>                DELETE

  SUMMARY    /api/v1/projects/<pid>/effort-summary                       GET
"""

from flask import Blueprint, g, jsonify, request

from app.services import project_service, requirement_service, role_service, task_service

role_bp = Blueprint("role", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT ROLES
# ═══════════════════════════════════════════════════════════════════════════

@role_bp.route("/projects/<int:pid>/roles", methods=["GET"])
def list_roles(pid):
    project_service.get_project(pid, g.current_user)
    return jsonify([r.to_dict() for r in role_service.list_roles(pid)]), 200


@role_bp.route("/projects/<int:pid>/roles", methods=["POST"])
def create_role(pid):
    project = project_service.get_project(pid, g.current_user)
    role = role_service.create_role(project, request.get_json(silent=True) or {})
    return jsonify(role.to_dict()), 201


@role_bp.route("/projects/<int:pid>/roles/<int:role_id>", methods=["GET"])
def get_role(pid, role_id):
    project_service.get_project(pid, g.current_user)
    return jsonify(role_service.get_role(pid, role_id).to_dict()), 200


@role_bp.route("/projects/<int:pid>/roles/<int:role_id>", methods=["PUT"])
def update_role(pid, role_id):
    project_service.get_project(pid, g.current_user)
    role = role_service.update_role(
        role_service.get_role(pid, role_id), request.get_json(silent=True) or {},
    )
    return jsonify(role.to_dict()), 200


@role_bp.route("/projects/<int:pid>/roles/<int:role_id>", methods=["DELETE"])
def delete_role(pid, role_id):
    project_service.get_project(pid, g.current_user)
    role_service.delete_role(role_service.get_role(pid, role_id))
    return jsonify({"message": "Role deleted successfully"}), 200


@role_bp.route("/projects/<int:pid>/roles/from-template/<int:template_id>", methods=["POST"])
def role_from_template(pid, template_id):
    project = project_service.get_project(pid, g.current_user)
    role = role_service.role_from_template(project, template_id)
    return jsonify(role.to_dict()), 201


# ═══════════════════════════════════════════════════════════════════════════
#  ROLE TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════

@role_bp.route("/role-templates", methods=["GET"])
def list_role_templates():
    return jsonify([t.to_dict() for t in role_service.list_templates()]), 200


@role_bp.route("/role-templates", methods=["POST"])
def create_role_template():
    tpl = role_service.create_template(request.get_json(silent=True) or {})
    return jsonify(tpl.to_dict()), 201


@role_bp.route("/role-templates/<int:template_id>", methods=["DELETE"])
def delete_role_template(template_id):
    role_service.delete_template(template_id)
    return jsonify({"message": "Role template deleted successfully"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  EFFORTS
# ═══════════════════════════════════════════════════════════════════════════

@role_bp.route("/requirements/<int:rid>/role-efforts", methods=["GET"])
def list_requirement_efforts(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    return jsonify([e.to_dict() for e in role_service.list_requirement_efforts(req)]), 200


@role_bp.route("/requirements/<int:rid>/role-efforts", methods=["POST"])
def add_requirement_effort(rid):
    req = requirement_service.get_requirement(rid, g.current_user)
    effort = role_service.add_requirement_effort(req, request.get_json(silent=True) or {})
    return jsonify(effort.to_dict()), 201


@role_bp.route("/requirements/<int:rid>/role-efforts/<int:effort_id>", methods=["DELETE"])
def delete_requirement_effort(rid, effort_id):
    req = requirement_service.get_requirement(rid, g.current_user)
    role_service.delete_requirement_effort(req, effort_id)
    return jsonify({"message": "Role effort deleted successfully"}), 200


@role_bp.route("/tasks/<int:task_id>/role-efforts", methods=["GET"])
def list_task_efforts(task_id):
    task = task_service.get_task(task_id, g.current_user)
    return jsonify([e.to_dict() for e in role_service.list_task_efforts(task)]), 200


@role_bp.route("/tasks/<int:task_id>/role-efforts", methods=["POST"])
def add_task_effort(task_id):
    task = task_service.get_task(task_id, g.current_user)
    effort = role_service.add_task_effort(task, request.get_json(silent=True) or {})
    return jsonify(effort.to_dict()), 201


@role_bp.route("/tasks/<int:task_id>/role-efforts/<int:effort_id>", methods=["DELETE"])
def delete_task_effort(task_id, effort_id):
    task = task_service.get_task(task_id, g.current_user)
    role_service.delete_task_effort(task, effort_id)
    return jsonify({"message": "Role effort deleted successfully"}), 200


@role_bp.route("/projects/<int:pid>/effort-summary", methods=["GET"])
def effort_summary(pid):
    project = project_service.get_project(pid, g.current_user)
    return jsonify(role_service.effort_summary(project)), 200
