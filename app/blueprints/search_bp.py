"""
Search Blueprint.

Endpoints:
  GET /api/v1/search/advanced?q=&project_id=&entity_types=requirements,tasks
"""

from flask import Blueprint, g, jsonify, request

from app.services import search_service
from app.utils.errors import E, api_error

search_bp = Blueprint("search", __name__, url_prefix="/api/v1/search")


@search_bp.route("/advanced", methods=["GET"])
def advanced_search():
    project_id = request.args.get("project_id")
    if project_id:
        try:
            project_id = int(project_id)
        except ValueError:
            return api_error(E.VALIDATION, "Invalid project_id")
    else:
        project_id = None

    result = search_service.advanced_search(
        g.current_user,
        request.args.get("q"),
        project_id=project_id,
        entity_types=search_service.parse_entity_types(request.args.get("entity_types")),
    )
    return jsonify(result), 200
