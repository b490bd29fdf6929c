"""Workflow service — stored node/edge diagrams and AI workflow generation.

Layout (``layout_nodes``), breadth-first levelling:
  - roots are nodes without incoming edges (the first node when every node
    has one, i.e. a pure cycle)
  - level(v) = max(level(u) + 1) over edges u → v, propagated breadth-first
    and capped at the node count so cycles terminate
  - nodes never reached from a root stay on level 0
  - column = order of appearance within the level
  - position x = column * 200, y = level * 150
"""

from __future__ import annotations

import logging
from collections import deque

from sqlalchemy import func

from app.ai.assistants import WorkflowDesigner, build_assistant
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db, utcnow
from app.models.activity import write_activity
from app.models.auth import User
from app.models.project import Project
from app.models.requirement import Requirement
from app.models.workflow import Workflow
from app.services import project_service

logger = logging.getLogger(__name__)

X_SPACING = 200
Y_SPACING = 150

_UPDATABLE = ("name", "description", "status", "nodes", "edges")
WORKFLOW_STATUSES = ("draft", "published", "archived")


# ── Layout ───────────────────────────────────────────────────────────────────

def compute_levels(node_ids: list[str], edges: list[dict]) -> dict[str, int]:
    """Assign a layer to every node id; see module docstring."""
    if not node_ids:
        return {}
    known = set(node_ids)
    children: dict[str, list[str]] = {n: [] for n in node_ids}
    has_incoming: set[str] = set()
    for edge in edges:
        src, tgt = edge.get("source"), edge.get("target")
        if src in known and tgt in known:
            children[src].append(tgt)
            has_incoming.add(tgt)

    roots = [n for n in node_ids if n not in has_incoming] or [node_ids[0]]
    cap = len(node_ids)
    levels = {n: 0 for n in roots}
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        next_level = levels[current] + 1
        if next_level > cap:
            continue
        for child in children[current]:
            if child not in levels or levels[child] < next_level:
                levels[child] = next_level
                queue.append(child)

    for n in node_ids:
        levels.setdefault(n, 0)
    return levels


def layout_nodes(nodes: list[dict], edges: list[dict]) -> list[dict]:
    """Return copies of ``nodes`` with BFS-levelled positions."""
    node_ids = [str(n["id"]) for n in nodes]
    levels = compute_levels(node_ids, edges)
    columns: dict[int, int] = {}
    placed = []
    for node in nodes:
        level = levels[str(node["id"])]
        col = columns.get(level, 0)
        columns[level] = col + 1
        placed.append({**node, "position": {"x": col * X_SPACING, "y": level * Y_SPACING}})
    return placed


# ── CRUD ─────────────────────────────────────────────────────────────────────

def get_workflow(workflow_id: int, user: User | None = None) -> Workflow:
    wf = db.session.get(Workflow, workflow_id)
    if wf is None:
        raise NotFoundError("Workflow", workflow_id)
    if user is not None:
        project_service.get_project(wf.project_id, user)
    return wf


def list_workflows(project_id: int) -> list[Workflow]:
    return (
        Workflow.query.filter_by(project_id=project_id)
        .order_by(Workflow.updated_at.desc(), Workflow.id.desc())
        .all()
    )


def _validate(data: dict, *, partial: bool) -> None:
    errors = {}
    if not partial or "name" in data:
        if not str(data.get("name") or "").strip():
            errors["name"] = "required"
    for field in ("nodes", "edges"):
        if field in data and not isinstance(data[field], list):
            errors[field] = "must be a list"
    if data.get("status") and data["status"] not in WORKFLOW_STATUSES:
        errors["status"] = f"must be one of {', '.join(WORKFLOW_STATUSES)}"
    if errors:
        raise ValidationError("Invalid workflow data", details=errors)


def create_workflow(project: Project, data: dict) -> Workflow:
    _validate(data, partial=False)
    wf = Workflow(
        project_id=project.id,
        name=data["name"].strip(),
        description=data.get("description"),
        status=data.get("status") or "draft",
        nodes=data.get("nodes") or [],
        edges=data.get("edges") or [],
    )
    db.session.add(wf)
    db.session.flush()
    write_activity(
        type="created_workflow",
        description=f'Created workflow "{wf.name}"',
        project_id=project.id,
        related_entity_id=wf.id,
    )
    db.session.commit()
    return wf


def update_workflow(wf: Workflow, data: dict) -> Workflow:
    _validate(data, partial=True)
    for field in _UPDATABLE:
        if field in data:
            setattr(wf, field, data[field])
    if "nodes" in data or "edges" in data:
        wf.version = (wf.version or 1) + 1
    wf.updated_at = utcnow()
    write_activity(
        type="updated_workflow",
        description=f'Updated workflow "{wf.name}"',
        project_id=wf.project_id,
        related_entity_id=wf.id,
    )
    db.session.commit()
    return wf


def delete_workflow(wf: Workflow) -> None:
    write_activity(
        type="deleted_workflow",
        description=f'Deleted workflow "{wf.name}"',
        project_id=wf.project_id,
        related_entity_id=wf.id,
    )
    db.session.delete(wf)
    db.session.commit()


# ── Generation ───────────────────────────────────────────────────────────────

def _source_requirements(project: Project, requirement_ids: list | None) -> list[Requirement]:
    if requirement_ids:
        reqs = (
            Requirement.query.filter(Requirement.id.in_(requirement_ids))
            .order_by(Requirement.code_id)
            .all()
        )
        if any(r.project_id != project.id for r in reqs):
            raise ValidationError("Requirement does not belong to this project")
    else:
        reqs = (
            Requirement.query
            .filter(Requirement.project_id == project.id,
                    func.lower(Requirement.category) == "workflow")
            .order_by(Requirement.code_id)
            .all()
        )
    if not reqs:
        raise NotFoundError("Requirement", message="No workflow requirements found")
    return reqs


def generate_workflow(project: Project, requirement_ids: list | None = None,
                      name: str | None = None) -> tuple[Workflow, list[Requirement]]:
    """Design a workflow with the LLM, lay it out and store it; commits."""
    requirements = _source_requirements(project, requirement_ids)
    designer = build_assistant(WorkflowDesigner, "ai.workflow_model")
    try:
        diagram = designer.design(requirements, project)
    finally:
        db.session.commit()  # keep the usage log either way

    primary = requirements[0]
    wf = Workflow(
        project_id=project.id,
        name=name or f"{primary.title} Workflow",
        description=f"Auto-generated workflow for requirement: {primary.title}",
        status="draft",
        nodes=layout_nodes(diagram["nodes"], diagram["edges"]),
        edges=diagram["edges"],
    )
    db.session.add(wf)
    db.session.flush()
    write_activity(
        type="generated_workflow",
        description=f'Generated workflow "{wf.name}" from {len(requirements)} requirement(s)',
        project_id=project.id,
        related_entity_id=wf.id,
    )
    db.session.commit()
    logger.info("Workflow %s generated with %d nodes", wf.id, len(wf.nodes),
                extra={"project_id": project.id})
    return wf, requirements
