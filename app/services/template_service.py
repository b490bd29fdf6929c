"""Document template service — PDF layouts and their field mappings.

Global templates (``is_global``) are offered to every project; a
project-scoped template is listed only for its project.

Access follows the project: a project-scoped template can be read and
changed by whoever may access its project. Global templates are readable
by everyone and changeable only by their creator or an admin.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db, utcnow
from app.models.auth import User
from app.models.document import (
    DATA_SOURCES,
    MAPPING_TYPES,
    SELECTION_MODES,
    DocumentTemplate,
    FieldMapping,
)
from app.services import project_service
from app.utils.helpers import parse_id

logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = ("name", "description", "category", "is_global", "project_id",
                    "template", "schema", "thumbnail")
_MAPPING_FIELDS = ("name", "description", "type", "field_key", "data_source", "data_path",
                   "column_field", "prompt", "default_value", "selection_mode", "record_id",
                   "selection_filter", "include_project", "include_requirements",
                   "include_tasks", "include_customer")


# ── Templates ────────────────────────────────────────────────────────────────

def list_global_templates() -> list[DocumentTemplate]:
    return (
        DocumentTemplate.query.filter(DocumentTemplate.is_global.is_(True))
        .order_by(DocumentTemplate.updated_at.desc(), DocumentTemplate.id.desc())
        .all()
    )


def list_project_templates(project_id: int) -> list[DocumentTemplate]:
    return (
        DocumentTemplate.query.filter(or_(
            DocumentTemplate.project_id == project_id,
            DocumentTemplate.is_global.is_(True),
        ))
        .order_by(DocumentTemplate.updated_at.desc(), DocumentTemplate.id.desc())
        .all()
    )


def _project_scoped(tpl: DocumentTemplate) -> bool:
    return not tpl.is_global and tpl.project_id is not None


def get_template(template_id: int, user: User | None = None) -> DocumentTemplate:
    """Load a template; with ``user``, a project-scoped one needs project access.

    Raises:
        NotFoundError: no such template.
        PermissionDeniedError: the user may not access the template's project.
    """
    tpl = db.session.get(DocumentTemplate, template_id)
    if tpl is None:
        raise NotFoundError("Template", template_id)
    if user is not None and _project_scoped(tpl):
        project_service.get_project(tpl.project_id, user)
    return tpl


def get_template_for_change(template_id: int, user: User) -> DocumentTemplate:
    tpl = get_template(template_id, user)
    if not _project_scoped(tpl) and not user.is_admin and tpl.user_id != user.id:
        raise PermissionDeniedError("Only the creator or an admin can change a global template")
    return tpl


def template_for_project(template_id: int, project_id: int, user: User) -> DocumentTemplate:
    """A template usable for documents of ``project_id``."""
    tpl = get_template(template_id, user)
    if _project_scoped(tpl) and tpl.project_id != project_id:
        raise ValidationError("Template does not belong to this project",
                              details={"template_id": "belongs to another project"})
    return tpl


def _check_layout(data: dict) -> None:
    for field in ("template", "schema"):
        if field in data and data[field] is not None and not isinstance(data[field], dict):
            raise ValidationError(f"Template {field} must be an object",
                                  details={field: "must be an object"})


def _check_project(data: dict, user: User) -> None:
    """Normalise ``project_id`` in ``data`` and require access to that project."""
    if data.get("project_id") in (None, ""):
        if "project_id" in data:
            data["project_id"] = None
        return
    data["project_id"] = parse_id(data["project_id"], "project_id")
    project_service.get_project(data["project_id"], user)


def create_template(data: dict, user: User) -> DocumentTemplate:
    if not str(data.get("name") or "").strip() or not str(data.get("category") or "").strip():
        raise ValidationError("Name and category are required")
    _check_layout(data)
    _check_project(data, user)
    values = {f: data[f] for f in _TEMPLATE_FIELDS if f in data}
    values.setdefault("template", {})
    values.setdefault("schema", {})
    tpl = DocumentTemplate(user_id=user.id, **values)
    db.session.add(tpl)
    db.session.commit()
    logger.info("Document template %s created", tpl.id)
    return tpl


def update_template(template_id: int, data: dict, user: User) -> DocumentTemplate:
    tpl = get_template_for_change(template_id, user)
    for field in ("name", "category"):
        if field in data and not str(data[field] or "").strip():
            raise ValidationError("Name and category are required")
    _check_layout(data)
    _check_project(data, user)
    for field in _TEMPLATE_FIELDS:
        if field in data:
            setattr(tpl, field, data[field])
    tpl.updated_at = utcnow()
    db.session.commit()
    return tpl


def delete_template(template_id: int, user: User) -> None:
    tpl = get_template_for_change(template_id, user)
    FieldMapping.query.filter_by(template_id=tpl.id).delete(synchronize_session=False)
    db.session.delete(tpl)
    db.session.commit()
    logger.info("Document template %s deleted", template_id)


# ── Field mappings ───────────────────────────────────────────────────────────

def list_mappings(template_id: int, user: User | None = None) -> list[FieldMapping]:
    get_template(template_id, user)
    return FieldMapping.query.filter_by(template_id=template_id).order_by(FieldMapping.id).all()


def get_mapping_for_change(mapping_id: int, user: User) -> FieldMapping:
    mapping = db.session.get(FieldMapping, mapping_id)
    if mapping is None:
        raise NotFoundError("Field mapping", mapping_id)
    get_template_for_change(mapping.template_id, user)
    return mapping


def _validate_mapping(data: dict) -> None:
    errors = {}
    if data.get("type") and data["type"] not in MAPPING_TYPES:
        errors["type"] = f"must be one of {', '.join(MAPPING_TYPES)}"
    if data.get("selection_mode") and data["selection_mode"] not in SELECTION_MODES:
        errors["selection_mode"] = f"must be one of {', '.join(SELECTION_MODES)}"
    if data.get("data_source") and data["data_source"] not in DATA_SOURCES:
        errors["data_source"] = f"must be one of {', '.join(DATA_SOURCES)}"
    if data.get("record_id") not in (None, ""):
        try:
            int(data["record_id"])
        except (TypeError, ValueError):
            errors["record_id"] = "must be an integer"
    if errors:
        raise ValidationError("Invalid field mapping", details=errors)


def _mapping_values(data: dict) -> dict:
    values = {f: data[f] for f in _MAPPING_FIELDS if f in data}
    if "record_id" in values:
        values["record_id"] = int(values["record_id"]) if values["record_id"] not in (None, "") else None
    return values


def create_mapping(template_id: int, data: dict, user: User) -> FieldMapping:
    get_template_for_change(template_id, user)
    if not all(str(data.get(f) or "").strip() for f in ("field_key", "name", "type")):
        raise ValidationError("Field key, name, and type are required")
    _validate_mapping(data)
    mapping = FieldMapping(template_id=template_id, **_mapping_values(data))
    db.session.add(mapping)
    db.session.commit()
    return mapping


def update_mapping(mapping_id: int, data: dict, user: User) -> FieldMapping:
    mapping = get_mapping_for_change(mapping_id, user)
    _validate_mapping(data)
    for field, value in _mapping_values(data).items():
        setattr(mapping, field, value)
    mapping.updated_at = utcnow()
    db.session.commit()
    return mapping


def delete_mapping(mapping_id: int, user: User) -> None:
    db.session.delete(get_mapping_for_change(mapping_id, user))
    db.session.commit()


def delete_all_mappings(template_id: int, user: User) -> int:
    get_template_for_change(template_id, user)
    count = FieldMapping.query.filter_by(template_id=template_id).delete(synchronize_session=False)
    db.session.commit()
    return count
