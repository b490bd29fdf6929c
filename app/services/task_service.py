"""Implementation task service — CRUD and task generation for requirements.

Task generation has two engines:
  - ``ai``    (default) the ImplementationTaskGenerator assistant
  - ``rules`` keyword rules over the requirement text; also used when the
              AI answer contains no usable tasks
"""

from __future__ import annotations

import logging

from app.ai.assistants import ImplementationTaskGenerator, build_assistant
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db, utcnow
from app.models.activity import write_activity
from app.models.auth import User
from app.models.project import Project
from app.models.requirement import (
    COMPLEXITIES,
    PRIORITIES,
    TASK_STATUSES,
    TASK_SYSTEMS,
    ImplementationTask,
    Requirement,
)
from app.models.roles import TaskRoleEffort
from app.services import project_service

logger = logging.getLogger(__name__)

_UPDATABLE = ("title", "description", "status", "priority", "system", "estimated_hours",
              "complexity", "assignee", "task_type", "sf_documentation_links",
              "implementation_steps", "overall_documentation_links")

GENERATION_MODES = ("ai", "rules")


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_task(task_id: int, user: User | None = None) -> ImplementationTask:
    task = db.session.get(ImplementationTask, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    if user is not None:
        project_service.get_project(task.requirement.project_id, user)
    return task


def list_tasks(requirement_id: int) -> list[ImplementationTask]:
    return (
        ImplementationTask.query.filter_by(requirement_id=requirement_id)
        .order_by(ImplementationTask.id)
        .all()
    )


def list_project_tasks(project_id: int) -> list[ImplementationTask]:
    return (
        ImplementationTask.query.join(Requirement)
        .filter(Requirement.project_id == project_id)
        .order_by(Requirement.code_id, ImplementationTask.id)
        .all()
    )


# ── CRUD ─────────────────────────────────────────────────────────────────────

def _validate(data: dict, *, partial: bool) -> None:
    errors = {}
    if not partial or "title" in data:
        if not str(data.get("title") or "").strip():
            errors["title"] = "required"
    if not partial or "system" in data:
        if data.get("system") not in TASK_SYSTEMS:
            errors["system"] = f"must be one of {', '.join(TASK_SYSTEMS)}"
    for field, allowed in (("status", TASK_STATUSES), ("priority", PRIORITIES),
                           ("complexity", COMPLEXITIES)):
        if data.get(field) and data[field] not in allowed:
            errors[field] = f"must be one of {', '.join(allowed)}"
    if data.get("estimated_hours") is not None:
        try:
            float(data["estimated_hours"])
        except (TypeError, ValueError):
            errors["estimated_hours"] = "must be a number"
    if errors:
        raise ValidationError("Invalid task data", details=errors)


def _new_task(requirement: Requirement, data: dict) -> ImplementationTask:
    task = ImplementationTask(
        requirement_id=requirement.id,
        title=data["title"].strip(),
        description=data.get("description") or "",
        status=data.get("status") or "pending",
        priority=data.get("priority") or requirement.priority or "medium",
        system=data["system"],
        estimated_hours=data.get("estimated_hours"),
        complexity=data.get("complexity") or "medium",
        assignee=data.get("assignee"),
        task_type=data.get("task_type"),
        sf_documentation_links=data.get("sf_documentation_links") or [],
        implementation_steps=data.get("implementation_steps") or [],
        overall_documentation_links=data.get("overall_documentation_links") or [],
    )
    db.session.add(task)
    return task


def create_task(requirement: Requirement, data: dict) -> ImplementationTask:
    _validate(data, partial=False)
    task = _new_task(requirement, data)
    db.session.flush()
    write_activity(
        type="created_task",
        description=f'Created task "{task.title}" for {requirement.code_id}',
        project_id=requirement.project_id,
        related_entity_id=task.id,
    )
    db.session.commit()
    return task


def update_task(task: ImplementationTask, data: dict) -> ImplementationTask:
    _validate(data, partial=True)
    for field in _UPDATABLE:
        if field in data:
            setattr(task, field, data[field])
    task.updated_at = utcnow()
    write_activity(
        type="updated_task",
        description=f'Updated task "{task.title}"',
        project_id=task.requirement.project_id,
        related_entity_id=task.id,
    )
    db.session.commit()
    return task


def delete_task(task: ImplementationTask) -> None:
    TaskRoleEffort.query.filter_by(task_id=task.id).delete(synchronize_session=False)
    write_activity(
        type="deleted_task",
        description=f'Deleted task "{task.title}"',
        project_id=task.requirement.project_id,
        related_entity_id=task.id,
    )
    db.session.delete(task)
    db.session.commit()


# ── Rule engine ──────────────────────────────────────────────────────────────

# topic → keywords matched against the lower-cased requirement text
_TOPICS = {
    "ui": ("ui", "interface", "screen", "dashboard", "portal", "console"),
    "workflow": ("workflow", "process", "flow", "procedure"),
    "integration": ("integration", "connect", "api", "middleware", "sync", "data exchange"),
    "reporting": ("report", "dashboard", "analytics", "metrics", "kpi"),
    "security": ("security", "authentication", "authorization", "permission", "role",
                 "access control"),
    "performance": ("performance", "speed", "scalability", "load"),
    "case": ("case", "ticket", "service request", "incident"),
    "customer": ("customer", "contact", "account", "client"),
    "sla": ("sla", "service level", "agreement", "response time"),
}

# (topic, title, description prefix, hours, complexity)
_SOURCE_RULES = (
    ("customer", "Map customer data fields in {src}",
     "Identify and document customer profile attributes, history records and relationships "
     "in {src} needed for migration of", 6, "high"),
    ("workflow", "Document {src} workflow states and transitions",
     "Create flow diagrams of the existing workflows in {src}, capturing triggers, conditions, "
     "actions and state transitions for", 8, "high"),
    ("case", "Document case routing and assignment rules in {src}",
     "Extract and document the rules that govern case assignment, prioritization, queueing "
     "and routing in {src} for", 5, "medium"),
    ("integration", "Map integration touchpoints in {src}",
     "Identify all external systems, API endpoints, data formats and integration patterns "
     "currently used in {src} for", 7, "high"),
    ("reporting", "Extract report definitions and data sources from {src}",
     "Document existing reports, dashboards, metric calculations and data sources in {src} "
     "to support", 5, "medium"),
    ("sla", "Document SLA configuration in {src}",
     "Extract SLA definitions, calculation rules, escalation paths and notification triggers "
     "from {src} for", 4, "medium"),
)

_TARGET_RULES = (
    ("ui", "Design user interface components in {tgt}",
     "Design and build the screens and components in {tgt} required for", 8, "medium"),
    ("workflow", "Configure workflow states and transitions in {tgt}",
     "Configure the workflow states, transitions and automation in {tgt} for", 10, "high"),
    ("case", "Implement case routing and assignment logic in {tgt}",
     "Implement assignment rules, queues and escalation in {tgt} for", 12, "high"),
    ("integration", "Develop integration interfaces in {tgt}",
     "Build and test the integration endpoints and data mappings in {tgt} for", 10, "high"),
    ("reporting", "Implement reporting and analytics in {tgt}",
     "Build the reports and dashboards in {tgt} required by", 8, "medium"),
    ("security", "Implement security controls in {tgt}",
     "Configure profiles, permission sets and sharing rules in {tgt} for", 8, "high"),
    ("performance", "Implement performance optimizations in {tgt}",
     "Tune queries, indexes and caching in {tgt} to meet the performance needs of", 6, "high"),
    ("sla", "Configure SLA tracking in {tgt}",
     "Configure entitlements, milestones and SLA notifications in {tgt} for", 6, "medium"),
)


def _detect_topics(text: str) -> set[str]:
    text = text.lower()
    return {topic for topic, words in _TOPICS.items() if any(w in text for w in words)}


def rule_based_tasks(requirement: Requirement, project: Project) -> list[dict]:
    """Derive source and target tasks from keywords in the requirement text."""
    if not project.source_system or not project.target_system:
        raise ValidationError(
            "Source or target system not defined for this project. "
            "Please update the project with these details first."
        )
    src, tgt = project.source_system, project.target_system
    text = f"{requirement.title} {requirement.description or ''}"
    topics = _detect_topics(text)
    summary = requirement.title
    priority = requirement.priority or "medium"

    def make(rule, system):
        _, title, desc, hours, complexity = rule
        return {
            "title": title.format(src=src, tgt=tgt),
            "description": f"{desc.format(src=src, tgt=tgt)}: {summary}",
            "system": system,
            "priority": priority,
            "estimated_hours": hours,
            "complexity": complexity,
        }

    tasks = [make(r, "source") for r in _SOURCE_RULES if r[0] in topics]
    if not tasks:
        tasks.append(make((None, "Extract key data structures from {src}",
                           "Identify and document the primary data objects, fields, "
                           "relationships and business rules in {src} needed to implement",
                           6, "high"), "source"))
    tasks.append(make((None, "Create migration test dataset from {src}",
                       "Prepare a representative, anonymised dataset from {src} to validate", 4,
                       "medium"), "source"))

    target = [make(r, "target") for r in _TARGET_RULES if r[0] in topics]
    if not target:
        target.append(make((None, "Implement core functionality in {tgt}",
                            "Configure and develop the core objects and logic in {tgt} for",
                            10, "high" if priority in ("high", "critical") else "medium"),
                           "target"))
    tasks.extend(target)
    tasks.append(make((None, "Develop data migration scripts for {tgt}",
                       "Write and verify the load scripts that move data into {tgt} for",
                       8, "high"), "target"))
    tasks.append(make((None, "Create automated tests for {tgt}",
                       "Create automated tests in {tgt} that verify", 6, "medium"), "target"))
    return tasks


# ── Generation ───────────────────────────────────────────────────────────────

def generate_tasks(requirement: Requirement, mode: str = "ai") -> tuple[list[ImplementationTask], str]:
    """Create tasks for ``requirement``; returns ``(tasks, engine_used)``."""
    if mode not in GENERATION_MODES:
        raise ValidationError(f"Invalid mode: {mode}",
                              details={"mode": f"must be one of {', '.join(GENERATION_MODES)}"})
    project = project_service.get_project(requirement.project_id)

    drafts: list[dict] = []
    engine = mode
    if mode == "ai":
        generator = build_assistant(ImplementationTaskGenerator, "ai.tasks_model")
        drafts = generator.generate(requirement, project)
        if not drafts:
            logger.info("AI returned no tasks for %s; falling back to rules", requirement.code_id)
            engine = "rules"
    if engine == "rules":
        drafts = rule_based_tasks(requirement, project)

    tasks = [_new_task(requirement, draft) for draft in drafts]
    db.session.flush()
    write_activity(
        type="generated_tasks",
        description=f"Generated {len(tasks)} implementation tasks for {requirement.code_id}",
        project_id=requirement.project_id,
        related_entity_id=requirement.id,
    )
    db.session.commit()
    return tasks, engine
