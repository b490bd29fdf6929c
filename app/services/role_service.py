"""Role-effort service — project roles, role templates and effort estimates.

Rules:
  - An effort may only reference a role of the project that owns the
    requirement/task (400 otherwise).
  - Effort and cost values are stored as typed text; the effort summary
    parses them (``"2-3"`` counts as its upper bound, unparseable as 0).
  - Effort is normalised to hours for totals: 1 day = 8 h, 1 week = 40 h.
"""

from __future__ import annotations

import logging
import re

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db, utcnow
from app.models.activity import write_activity
from app.models.project import Project
from app.models.requirement import ImplementationTask, Requirement
from app.models.roles import (
    COST_UNITS,
    EFFORT_UNITS,
    LOCATION_TYPES,
    ROLE_TYPES,
    SENIORITY_LEVELS,
    ProjectRole,
    ProjectRoleTemplate,
    RequirementRoleEffort,
    TaskRoleEffort,
)

logger = logging.getLogger(__name__)

_ROLE_FIELDS = ("name", "role_type", "location_type", "seniority_level", "description",
                "cost_rate", "cost_unit", "currency", "is_active")
_REQUIRED = ("name", "role_type", "location_type", "seniority_level", "cost_rate")
_CHOICES = {
    "role_type": ROLE_TYPES,
    "location_type": LOCATION_TYPES,
    "seniority_level": SENIORITY_LEVELS,
    "cost_unit": COST_UNITS,
}

HOURS_PER_UNIT = {"hours": 1, "days": 8, "weeks": 40}
_COST_UNIT_HOURS = {"hour": 1, "day": 8, "week": 40, "month": 160}
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_amount(value) -> float:
    """Largest number in a free-text amount; 0.0 when there is none."""
    numbers = _NUMBER_RE.findall(str(value or ""))
    return max((float(n) for n in numbers), default=0.0)


def _validate_role(data: dict, *, partial: bool) -> None:
    errors = {}
    for field in _REQUIRED:
        if (not partial or field in data) and not str(data.get(field) or "").strip():
            errors[field] = "required"
    for field, allowed in _CHOICES.items():
        if data.get(field) and data[field] not in allowed:
            errors[field] = f"must be one of {', '.join(allowed)}"
    if errors:
        raise ValidationError("Invalid role data", details=errors)


def _role_values(data: dict) -> dict:
    return {f: data[f] for f in _ROLE_FIELDS if f in data}


# ── Project roles ────────────────────────────────────────────────────────────

def list_roles(project_id: int) -> list[ProjectRole]:
    return ProjectRole.query.filter_by(project_id=project_id).order_by(ProjectRole.name).all()


def get_role(project_id: int, role_id: int) -> ProjectRole:
    role = db.session.get(ProjectRole, role_id)
    if role is None or role.project_id != project_id:
        raise NotFoundError("Role", role_id)
    return role


def create_role(project: Project, data: dict) -> ProjectRole:
    _validate_role(data, partial=False)
    role = ProjectRole(project_id=project.id, **_role_values(data))
    db.session.add(role)
    db.session.flush()
    write_activity(
        type="created_role",
        description=f'Added role "{role.name}"',
        project_id=project.id,
        related_entity_id=role.id,
    )
    db.session.commit()
    return role


def update_role(role: ProjectRole, data: dict) -> ProjectRole:
    _validate_role(data, partial=True)
    for field, value in _role_values(data).items():
        setattr(role, field, value)
    role.updated_at = utcnow()
    db.session.commit()
    return role


def delete_role(role: ProjectRole) -> None:
    RequirementRoleEffort.query.filter_by(role_id=role.id).delete(synchronize_session=False)
    TaskRoleEffort.query.filter_by(role_id=role.id).delete(synchronize_session=False)
    write_activity(
        type="deleted_role",
        description=f'Removed role "{role.name}"',
        project_id=role.project_id,
        related_entity_id=role.id,
    )
    db.session.delete(role)
    db.session.commit()


# ── Role templates ───────────────────────────────────────────────────────────

def list_templates() -> list[ProjectRoleTemplate]:
    return ProjectRoleTemplate.query.order_by(ProjectRoleTemplate.name).all()


def get_template(template_id: int) -> ProjectRoleTemplate:
    tpl = db.session.get(ProjectRoleTemplate, template_id)
    if tpl is None:
        raise NotFoundError("Role template", template_id)
    return tpl


def create_template(data: dict) -> ProjectRoleTemplate:
    _validate_role(data, partial=False)
    tpl = ProjectRoleTemplate(**_role_values(data))
    db.session.add(tpl)
    db.session.commit()
    return tpl


def delete_template(template_id: int) -> None:
    db.session.delete(get_template(template_id))
    db.session.commit()


def role_from_template(project: Project, template_id: int) -> ProjectRole:
    tpl = get_template(template_id)
    values = {f: getattr(tpl, f) for f in _ROLE_FIELDS}
    return create_role(project, values)


# ── Efforts ──────────────────────────────────────────────────────────────────

def _check_effort(project_id: int, data: dict) -> ProjectRole:
    errors = {}
    if not data.get("role_id"):
        errors["role_id"] = "required"
    if not str(data.get("estimated_effort") or "").strip():
        errors["estimated_effort"] = "required"
    if data.get("effort_unit") and data["effort_unit"] not in EFFORT_UNITS:
        errors["effort_unit"] = f"must be one of {', '.join(EFFORT_UNITS)}"
    if errors:
        raise ValidationError("Invalid effort data", details=errors)

    role = db.session.get(ProjectRole, data["role_id"])
    if role is None:
        raise NotFoundError("Role", data["role_id"])
    if role.project_id != project_id:
        raise ValidationError("Role does not belong to the specified project")
    return role


def list_requirement_efforts(requirement: Requirement) -> list[RequirementRoleEffort]:
    return (
        RequirementRoleEffort.query.filter_by(requirement_id=requirement.id)
        .order_by(RequirementRoleEffort.id)
        .all()
    )


def add_requirement_effort(requirement: Requirement, data: dict) -> RequirementRoleEffort:
    role = _check_effort(requirement.project_id, data)
    effort = RequirementRoleEffort(
        requirement_id=requirement.id,
        role_id=role.id,
        estimated_effort=str(data["estimated_effort"]),
        effort_unit=data.get("effort_unit") or "hours",
    )
    db.session.add(effort)
    db.session.commit()
    return effort


def delete_requirement_effort(requirement: Requirement, effort_id: int) -> None:
    effort = db.session.get(RequirementRoleEffort, effort_id)
    if effort is None or effort.requirement_id != requirement.id:
        raise NotFoundError("Role effort", effort_id)
    db.session.delete(effort)
    db.session.commit()


def list_task_efforts(task: ImplementationTask) -> list[TaskRoleEffort]:
    return TaskRoleEffort.query.filter_by(task_id=task.id).order_by(TaskRoleEffort.id).all()


def add_task_effort(task: ImplementationTask, data: dict) -> TaskRoleEffort:
    role = _check_effort(task.requirement.project_id, data)
    effort = TaskRoleEffort(
        task_id=task.id,
        role_id=role.id,
        estimated_effort=str(data["estimated_effort"]),
        effort_unit=data.get("effort_unit") or "hours",
    )
    db.session.add(effort)
    db.session.commit()
    return effort


def delete_task_effort(task: ImplementationTask, effort_id: int) -> None:
    effort = db.session.get(TaskRoleEffort, effort_id)
    if effort is None or effort.task_id != task.id:
        raise NotFoundError("Role effort", effort_id)
    db.session.delete(effort)
    db.session.commit()


# ── Summary ──────────────────────────────────────────────────────────────────

def effort_summary(project: Project) -> dict:
    """Total estimated hours and cost per role across requirements and tasks."""
    roles = {r.id: r for r in list_roles(project.id)}
    totals = {
        rid: {"role": r.to_dict(), "requirement_hours": 0.0, "task_hours": 0.0}
        for rid, r in roles.items()
    }

    req_efforts = (
        RequirementRoleEffort.query.join(Requirement)
        .filter(Requirement.project_id == project.id)
        .all()
    )
    task_efforts = (
        TaskRoleEffort.query.join(ImplementationTask).join(Requirement)
        .filter(Requirement.project_id == project.id)
        .all()
    )
    for bucket, efforts in (("requirement_hours", req_efforts), ("task_hours", task_efforts)):
        for effort in efforts:
            if effort.role_id in totals:
                hours = parse_amount(effort.estimated_effort) * HOURS_PER_UNIT.get(effort.effort_unit, 1)
                totals[effort.role_id][bucket] += hours

    rows = []
    for rid, entry in totals.items():
        role = roles[rid]
        total_hours = entry["requirement_hours"] + entry["task_hours"]
        hourly = parse_amount(role.cost_rate) / _COST_UNIT_HOURS.get(role.cost_unit, 8)
        rows.append({
            **entry,
            "total_hours": round(total_hours, 2),
            "estimated_cost": round(total_hours * hourly, 2),
            "currency": role.currency,
        })
    rows.sort(key=lambda r: r["total_hours"], reverse=True)
    return {
        "project_id": project.id,
        "roles": rows,
        "total_hours": round(sum(r["total_hours"] for r in rows), 2),
    }
