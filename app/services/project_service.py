"""Project service — ownership, CRUD, ordered cascade delete and export.

Rules:
  - A project is visible to its owner and to admins only.
  - Deletion removes children in a fixed order (no DB-level cascades):
      role efforts → tasks → requirements → input data → workflows →
      documents → activities → project roles → project
  - Uploaded files and rendered PDFs of deleted children are removed from disk.
"""

from __future__ import annotations

import csv
import io
import logging
import os

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import or_

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models import db, utcnow
from app.models.activity import Activity, write_activity
from app.models.auth import User
from app.models.customer import Customer
from app.models.document import Document, DocumentTemplate
from app.models.project import PROJECT_STAGES, InputData, Project
from app.models.requirement import ImplementationTask, Requirement
from app.models.roles import ProjectRole, RequirementRoleEffort, TaskRoleEffort
from app.models.workflow import Workflow

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "description", "type", "stage", "customer_id", "customer",
              "source_system", "target_system")

EXPORT_FORMATS = ("json", "xlsx", "csv")
_EXPORT_COLUMNS = ("id", "title", "text", "category", "priority", "source")


# ── Access ───────────────────────────────────────────────────────────────────

def can_access(user: User | None, project: Project) -> bool:
    return user is not None and (user.is_admin or project.user_id == user.id)


def get_project(project_id: int, user: User | None = None) -> Project:
    """Load a project, enforcing access when ``user`` is given.

    Raises:
        NotFoundError: no such project ("Project not found").
        PermissionDeniedError: user is neither owner nor admin.
    """
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    if user is not None and not can_access(user, project):
        raise PermissionDeniedError("You do not have access to this project")
    return project


def accessible_projects_query(user: User):
    q = Project.query
    if not user.is_admin:
        q = q.filter(Project.user_id == user.id)
    return q


def accessible_project_ids(user: User) -> list[int]:
    return [pid for (pid,) in accessible_projects_query(user).with_entities(Project.id)]


# ── CRUD ─────────────────────────────────────────────────────────────────────

def list_projects(user: User) -> list[Project]:
    return accessible_projects_query(user).order_by(Project.updated_at.desc()).all()


def _validate(data: dict, *, partial: bool) -> None:
    errors = {}
    for field in ("name", "type"):
        if field in data or not partial:
            if not str(data.get(field) or "").strip():
                errors[field] = "required"
    if data.get("stage") and data["stage"] not in PROJECT_STAGES:
        errors["stage"] = f"must be one of {', '.join(PROJECT_STAGES)}"
    if data.get("customer_id") is not None and db.session.get(Customer, data["customer_id"]) is None:
        errors["customer_id"] = "Customer not found"
    if errors:
        missing = [k for k, v in errors.items() if v == "required"]
        message = (
            f"Missing required fields: {', '.join(missing)}" if missing else "Invalid project data"
        )
        raise ValidationError(message, details=errors)


def create_project(data: dict, user: User) -> Project:
    _validate(data, partial=False)
    project = Project(
        name=data["name"].strip(),
        description=data.get("description"),
        type=data["type"],
        stage=data.get("stage") or "discovery",
        user_id=user.id,
        customer_id=data.get("customer_id"),
        customer=data.get("customer"),
        source_system=data.get("source_system"),
        target_system=data.get("target_system"),
    )
    db.session.add(project)
    db.session.flush()
    write_activity(
        type="created_project",
        description=f'Created project "{project.name}"',
        user_id=user.id,
        project_id=project.id,
        related_entity_id=project.id,
    )
    db.session.commit()
    logger.info("Project %s created", project.id, extra={"project_id": project.id})
    return project


def update_project(project: Project, data: dict) -> Project:
    _validate(data, partial=True)
    for field in _UPDATABLE:
        if field in data:
            setattr(project, field, data[field])
    project.updated_at = utcnow()
    write_activity(
        type="updated_project",
        description=f'Updated project "{project.name}"',
        project_id=project.id,
        related_entity_id=project.id,
    )
    db.session.commit()
    return project


def _remove_file(path: str | None) -> None:
    if path and os.path.isfile(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)


def delete_project(project: Project) -> None:
    """Delete a project and all of its children in dependency order; commits."""
    pid = project.id
    req_ids = [rid for (rid,) in db.session.query(Requirement.id).filter_by(project_id=pid)]
    task_ids = []
    if req_ids:
        task_ids = [
            tid for (tid,) in db.session.query(ImplementationTask.id)
            .filter(ImplementationTask.requirement_id.in_(req_ids))
        ]

    if task_ids:
        TaskRoleEffort.query.filter(TaskRoleEffort.task_id.in_(task_ids)).delete(
            synchronize_session=False)
    if req_ids:
        RequirementRoleEffort.query.filter(RequirementRoleEffort.requirement_id.in_(req_ids)).delete(
            synchronize_session=False)
    if task_ids:
        ImplementationTask.query.filter(ImplementationTask.id.in_(task_ids)).delete(
            synchronize_session=False)
    Requirement.query.filter_by(project_id=pid).delete(synchronize_session=False)

    for item in InputData.query.filter_by(project_id=pid):
        _remove_file(item.file_path)
    InputData.query.filter_by(project_id=pid).delete(synchronize_session=False)

    Workflow.query.filter_by(project_id=pid).delete(synchronize_session=False)

    for doc in Document.query.filter_by(project_id=pid):
        _remove_file(doc.pdf_path)
    Document.query.filter_by(project_id=pid).delete(synchronize_session=False)
    for template in DocumentTemplate.query.filter_by(project_id=pid, is_global=False):
        db.session.delete(template)
    DocumentTemplate.query.filter_by(project_id=pid).update(
        {"project_id": None}, synchronize_session=False)

    Activity.query.filter_by(project_id=pid).delete(synchronize_session=False)
    ProjectRole.query.filter_by(project_id=pid).delete(synchronize_session=False)

    name = project.name
    db.session.delete(project)
    write_activity(type="deleted_project", description=f'Deleted project "{name}"')
    db.session.commit()
    logger.info("Project %s deleted with %d requirements and %d tasks",
                pid, len(req_ids), len(task_ids), extra={"project_id": pid})


# ── Listing helpers ──────────────────────────────────────────────────────────

def search_projects(user: User, query: str | None) -> list[Project]:
    if not query or not query.strip():
        raise ValidationError("Search query is required")
    pattern = f"%{query.strip()}%"
    return (
        accessible_projects_query(user)
        .filter(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))
        .order_by(Project.updated_at.desc())
        .all()
    )


def recent_projects(user: User, limit: int) -> list[Project]:
    return (
        accessible_projects_query(user)
        .order_by(Project.updated_at.desc(), Project.id.desc())
        .limit(limit)
        .all()
    )


# ── Export ───────────────────────────────────────────────────────────────────

def export_data(project: Project) -> dict:
    requirements = (
        Requirement.query.filter_by(project_id=project.id).order_by(Requirement.code_id).all()
    )
    return {
        "project": {
            "name": project.name,
            "description": project.description,
            "type": project.type,
            "export_date": utcnow().isoformat(),
        },
        "requirements": [
            {
                "id": r.code_id,
                "title": r.title,
                "text": r.description or r.title,
                "category": r.category,
                "priority": r.priority,
                "source": r.source,
            }
            for r in requirements
        ],
    }


def export_csv(project: Project) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(export_data(project)["requirements"])
    return buf.getvalue()


def export_xlsx(project: Project) -> io.BytesIO:
    data = export_data(project)
    wb = Workbook()
    ws = wb.active
    ws.title = "Requirements"
    ws.append([c.title() for c in _EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in data["requirements"]:
        ws.append([row.get(c) for c in _EXPORT_COLUMNS])
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 80

    info = wb.create_sheet("Project")
    for key, value in data["project"].items():
        info.append([key, value])

    out = io.BytesIO()
    wb.save(out)
    out.seek(0)
    return out
