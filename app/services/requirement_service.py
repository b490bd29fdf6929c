"""Requirement service — per-project requirement CRUD and AI acceptance criteria.

Rules:
  - code_id is ``REQ-{n:03d}`` with n = current count + 1, bumped past
    any code already taken in the project.
  - Titles are unique within a project (case-insensitive).
  - Deleting a requirement deletes its tasks and all role efforts on both.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from app.ai.assistants import AcceptanceCriteriaGenerator, build_assistant
from app.core.exceptions import AIServiceError, NotFoundError, ValidationError
from app.models import db, utcnow
from app.models.activity import write_activity
from app.models.auth import User
from app.models.project import InputData, Project
from app.models.requirement import PRIORITIES, ImplementationTask, Requirement
from app.models.roles import RequirementRoleEffort, TaskRoleEffort
from app.services import project_service, settings_service
from app.utils.helpers import parse_id

logger = logging.getLogger(__name__)

_UPDATABLE = ("title", "description", "category", "priority", "source",
              "acceptance_criteria", "video_scenes", "text_references",
              "audio_timestamps", "expert_review")
_JSON_LISTS = ("acceptance_criteria", "video_scenes", "text_references", "audio_timestamps")

HIGH_PRIORITIES = ("high", "critical")


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_requirement(requirement_id: int, user: User | None = None) -> Requirement:
    req = db.session.get(Requirement, requirement_id)
    if req is None:
        raise NotFoundError("Requirement", requirement_id)
    if user is not None:
        project_service.get_project(req.project_id, user)
    return req


def get_project_requirement(project_id: int, requirement_id: int, user: User | None = None) -> Requirement:
    project_service.get_project(project_id, user)
    req = db.session.get(Requirement, requirement_id)
    if req is None:
        raise NotFoundError("Requirement", requirement_id)
    if req.project_id != project_id:
        raise NotFoundError("Requirement", requirement_id,
                            message="Requirement does not belong to this project")
    return req


def list_requirements(project_id: int, *, category: str | None = None,
                      priority: str | None = None) -> list[Requirement]:
    q = Requirement.query.filter_by(project_id=project_id)
    if category:
        q = q.filter(func.lower(Requirement.category) == category.lower())
    if priority:
        q = q.filter(func.lower(Requirement.priority) == priority.lower())
    return q.order_by(Requirement.code_id).all()


def high_priority_requirements(project_id: int, limit: int) -> list[Requirement]:
    return (
        Requirement.query
        .filter(Requirement.project_id == project_id, Requirement.priority.in_(HIGH_PRIORITIES))
        .order_by(Requirement.updated_at.desc(), Requirement.id.desc())
        .limit(limit)
        .all()
    )


# ── Create / update / delete ─────────────────────────────────────────────────

def next_code_id(project_id: int) -> str:
    """Next free ``REQ-NNN`` code for the project (flushes pending rows first)."""
    db.session.flush()
    n = Requirement.query.filter_by(project_id=project_id).count() + 1
    taken = {c for (c,) in db.session.query(Requirement.code_id).filter_by(project_id=project_id)}
    code = f"REQ-{n:03d}"
    while code in taken:
        n += 1
        code = f"REQ-{n:03d}"
    return code


def _title_taken(project_id: int, title: str, exclude_id: int | None = None) -> bool:
    q = Requirement.query.filter(
        Requirement.project_id == project_id,
        func.lower(Requirement.title) == title.strip().lower(),
    )
    if exclude_id is not None:
        q = q.filter(Requirement.id != exclude_id)
    return db.session.query(q.exists()).scalar()


def _check_fields(data: dict) -> None:
    if data.get("priority") and data["priority"] not in PRIORITIES:
        raise ValidationError(
            "Invalid priority",
            details={"priority": f"must be one of {', '.join(PRIORITIES)}"},
        )
    for field in _JSON_LISTS:
        if field in data and data[field] is not None and not isinstance(data[field], list):
            raise ValidationError(f"{field} must be a list", details={field: "must be a list"})
    for item in data.get("acceptance_criteria") or []:
        if not isinstance(item, dict) or not str(item.get("description") or "").strip():
            raise ValidationError(
                "Invalid acceptance criteria",
                details={"acceptance_criteria": "each item must be an object with a description"},
            )


def _check_input_data(project_id: int, data: dict) -> int | None:
    """The ``input_data_id`` of ``data``, which must be an upload of the same project."""
    if data.get("input_data_id") in (None, ""):
        return None
    item_id = parse_id(data["input_data_id"], "input_data_id")
    item = db.session.get(InputData, item_id)
    if item is None or item.project_id != project_id:
        raise ValidationError("Input data does not belong to this project",
                              details={"input_data_id": "not an upload of this project"})
    return item_id


def build_requirement(project: Project, data: dict) -> Requirement:
    """Validate and add (flush) a requirement without committing or logging."""
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required", details={"title": "required"})
    _check_fields(data)
    input_data_id = _check_input_data(project.id, data)
    if _title_taken(project.id, title):
        raise ValidationError(f'A requirement with title "{title}" already exists in this project')

    req = Requirement(
        project_id=project.id,
        code_id=next_code_id(project.id),
        title=title,
        description=data.get("description") or "",
        category=data.get("category") or "functional",
        priority=data.get("priority") or settings_service.get_value(
            "requirements.default_priority", "medium"),
        source=data.get("source"),
        input_data_id=input_data_id,
        acceptance_criteria=data.get("acceptance_criteria") or [],
        video_scenes=data.get("video_scenes") or [],
        text_references=data.get("text_references") or [],
        audio_timestamps=data.get("audio_timestamps") or [],
    )
    db.session.add(req)
    db.session.flush()
    return req


def create_requirement(project: Project, data: dict) -> Requirement:
    req = build_requirement(project, data)
    write_activity(
        type="created_requirement",
        description=f'Created requirement {req.code_id} "{req.title}"',
        project_id=project.id,
        related_entity_id=req.id,
    )
    project.updated_at = utcnow()
    db.session.commit()
    return req


def update_requirement(req: Requirement, data: dict) -> Requirement:
    _check_fields(data)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty", details={"title": "required"})
        if _title_taken(req.project_id, title, exclude_id=req.id):
            raise ValidationError(f'A requirement with title "{title}" already exists in this project')
        data = {**data, "title": title}

    for field in _UPDATABLE:
        if field in data:
            setattr(req, field, data[field])
    req.updated_at = utcnow()
    write_activity(
        type="updated_requirement",
        description=f'Updated requirement {req.code_id} "{req.title}"',
        project_id=req.project_id,
        related_entity_id=req.id,
    )
    db.session.commit()
    return req


def delete_requirement(req: Requirement) -> None:
    task_ids = [t.id for t in req.tasks]
    if task_ids:
        TaskRoleEffort.query.filter(TaskRoleEffort.task_id.in_(task_ids)).delete(
            synchronize_session=False)
        ImplementationTask.query.filter(ImplementationTask.id.in_(task_ids)).delete(
            synchronize_session=False)
    RequirementRoleEffort.query.filter_by(requirement_id=req.id).delete(synchronize_session=False)

    write_activity(
        type="deleted_requirement",
        description=f'Deleted requirement {req.code_id} "{req.title}"',
        project_id=req.project_id,
        related_entity_id=req.id,
    )
    db.session.delete(req)
    db.session.commit()


# ── AI ───────────────────────────────────────────────────────────────────────

def generate_acceptance_criteria(req: Requirement) -> list[dict]:
    """Replace the requirement's criteria with freshly generated Gherkin scenarios."""
    project = project_service.get_project(req.project_id)
    generator = build_assistant(AcceptanceCriteriaGenerator, "ai.criteria_model")
    criteria = generator.generate(req, project)
    if not criteria:
        db.session.commit()  # keep the usage log
        raise AIServiceError("Failed to generate acceptance criteria",
                             detail="AI response contained no scenarios")

    req.acceptance_criteria = criteria
    req.updated_at = utcnow()
    write_activity(
        type="generated_acceptance_criteria",
        description=f"Generated {len(criteria)} acceptance criteria for {req.code_id}",
        project_id=req.project_id,
        related_entity_id=req.id,
    )
    db.session.commit()
    return criteria
