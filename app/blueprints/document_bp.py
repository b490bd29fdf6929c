"""
Document Blueprints — templates, field mappings, schema and rendered documents.

Endpoints:
  TEMPLATES  /api/v1/document-templates                                POST
             /api/v1/document-templates/global                         GET
             /api/v1/document-templates/project/<pid>                  GET   (project + global)
             /api/v1/document-templates/<id>                           GET, PUT, DELETE

  MAPPINGS   /api/v1/document-templates/<tid>/field-mappings           GET, POST, DELETE (all)
             /api/v1/document-templates/field-mappings/<id>            PUT, DELETE

  SCHEMA     /api/v1/database-schema                                   GET

  DOCUMENTS  /api/v1/documents                                         POST
             /api/v1/documents/project/<pid>                           GET
             /api/v1/documents/<id>                                    GET, PUT, DELETE
             /api/v1/documents/<id>/pdf                                GET   (file download)
             /api/v1/documents/generate-data/<template_id>             POST  {project_id}
"""

import logging

from flask import Blueprint, g, jsonify, request, send_file

from app.services import document_service, project_service, schema_service, template_service

logger = logging.getLogger(__name__)

document_template_bp = Blueprint(
    "document_template", __name__, url_prefix="/api/v1/document-templates"
)
document_bp = Blueprint("document", __name__, url_prefix="/api/v1/documents")
schema_bp = Blueprint("schema", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════

@document_template_bp.route("/global", methods=["GET"])
def list_global_templates():
    return jsonify([t.to_dict() for t in template_service.list_global_templates()]), 200


@document_template_bp.route("/project/<int:pid>", methods=["GET"])
def list_project_templates(pid):
    project_service.get_project(pid, g.current_user)
    return jsonify([t.to_dict() for t in template_service.list_project_templates(pid)]), 200


@document_template_bp.route("", methods=["POST"])
def create_template():
    tpl = template_service.create_template(request.get_json(silent=True) or {}, g.current_user)
    return jsonify(tpl.to_dict()), 201


@document_template_bp.route("/<int:tid>", methods=["GET"])
def get_template(tid):
    tpl = template_service.get_template(tid, g.current_user)
    return jsonify(tpl.to_dict(include_mappings=True)), 200


@document_template_bp.route("/<int:tid>", methods=["PUT"])
def update_template(tid):
    tpl = template_service.update_template(tid, request.get_json(silent=True) or {}, g.current_user)
    return jsonify(tpl.to_dict()), 200


@document_template_bp.route("/<int:tid>", methods=["DELETE"])
def delete_template(tid):
    template_service.delete_template(tid, g.current_user)
    return jsonify({"message": "Template deleted successfully"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  FIELD MAPPINGS
# ═══════════════════════════════════════════════════════════════════════════

@document_template_bp.route("/<int:tid>/field-mappings", methods=["GET"])
def list_field_mappings(tid):
    return jsonify([m.to_dict() for m in template_service.list_mappings(tid, g.current_user)]), 200


@document_template_bp.route("/<int:tid>/field-mappings", methods=["POST"])
def create_field_mapping(tid):
    mapping = template_service.create_mapping(tid, request.get_json(silent=True) or {}, g.current_user)
    return jsonify(mapping.to_dict()), 201


@document_template_bp.route("/<int:tid>/field-mappings", methods=["DELETE"])
def delete_field_mappings(tid):
    template_service.delete_all_mappings(tid, g.current_user)
    return jsonify({"message": "All field mappings deleted successfully"}), 200


@document_template_bp.route("/field-mappings/<int:mapping_id>", methods=["PUT"])
def update_field_mapping(mapping_id):
    mapping = template_service.update_mapping(
        mapping_id, request.get_json(silent=True) or {}, g.current_user)
    return jsonify(mapping.to_dict()), 200


@document_template_bp.route("/field-mappings/<int:mapping_id>", methods=["DELETE"])
def delete_field_mapping(mapping_id):
    template_service.delete_mapping(mapping_id, g.current_user)
    return jsonify({"message": "Field mapping deleted successfully"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEMA
# ═══════════════════════════════════════════════════════════════════════════

@schema_bp.route("/database-schema", methods=["GET"])
def database_schema():
    return jsonify(schema_service.describe_tables()), 200


# ═══════════════════════════════════════════════════════════════════════════
#  DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════

@document_bp.route("/project/<int:pid>", methods=["GET"])
def list_documents(pid):
    project_service.get_project(pid, g.current_user)
    return jsonify([d.to_dict() for d in document_service.list_documents(pid)]), 200


@document_bp.route("", methods=["POST"])
def create_document():
    doc = document_service.create_document(request.get_json(silent=True) or {}, g.current_user)
    return jsonify(doc.to_dict()), 201


@document_bp.route("/<int:doc_id>", methods=["GET"])
def get_document(doc_id):
    return jsonify(document_service.get_document(doc_id, g.current_user).to_dict()), 200


@document_bp.route("/<int:doc_id>", methods=["PUT"])
def update_document(doc_id):
    doc = document_service.get_document(doc_id, g.current_user)
    data = request.get_json(silent=True) or {}
    data.pop("project_id", None)
    doc = document_service.update_document(doc, data, g.current_user)
    return jsonify(doc.to_dict()), 200


@document_bp.route("/<int:doc_id>", methods=["DELETE"])
def delete_document(doc_id):
    doc = document_service.get_document(doc_id, g.current_user)
    document_service.delete_document(doc)
    return jsonify({"message": "Document deleted successfully"}), 200


@document_bp.route("/<int:doc_id>/pdf", methods=["GET"])
def download_pdf(doc_id):
    doc = document_service.get_document(doc_id, g.current_user)
    return send_file(
        document_service.pdf_path(doc),
        mimetype="application/pdf",
        as_attachment=request.args.get("download", "").lower() in ("1", "true"),
        download_name=f"{doc.name}.pdf",
    )


@document_bp.route("/generate-data/<int:template_id>", methods=["POST"])
def generate_data(template_id):
    data = request.get_json(silent=True) or {}
    result = document_service.generate_data(template_id, data.get("project_id"), g.current_user)
    return jsonify({"data": result}), 200
