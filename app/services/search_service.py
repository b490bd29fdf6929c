"""Cross-entity search.

One case-insensitive ``LIKE %q%`` query per entity type, restricted to the
projects the user can see, concatenated into a single response:

    {query, project_id, results: {requirements, tasks, input_data, projects},
     total_results}

Each hit carries ``entity_type`` and the client ``url`` it links to.
"""

from __future__ import annotations

import logging

from sqlalchemy import String, cast, or_

from app.core.exceptions import ValidationError
from app.models.auth import User
from app.models.project import InputData, Project
from app.models.requirement import ImplementationTask, Requirement
from app.services import project_service

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("requirements", "tasks", "input_data", "projects")
MIN_QUERY_LENGTH = 2
RESULT_LIMIT = 50


def parse_entity_types(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ENTITY_TYPES
    wanted = tuple(t.strip() for t in raw.split(",") if t.strip())
    unknown = [t for t in wanted if t not in ENTITY_TYPES]
    if unknown:
        raise ValidationError(
            f"Invalid entity types: {', '.join(unknown)}",
            details={"entity_types": f"allowed: {', '.join(ENTITY_TYPES)}"},
        )
    return wanted or ENTITY_TYPES


def _search_projects(pattern, project_ids):
    rows = (
        Project.query.filter(Project.id.in_(project_ids))
        .filter(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))
        .order_by(Project.updated_at.desc())
        .limit(RESULT_LIMIT)
        .all()
    )
    return [
        {**p.to_dict(), "entity_type": "project", "url": f"/projects/{p.id}"}
        for p in rows
    ]


def _search_requirements(pattern, project_ids):
    rows = (
        Requirement.query.filter(Requirement.project_id.in_(project_ids))
        .filter(or_(
            Requirement.title.ilike(pattern),
            Requirement.description.ilike(pattern),
            Requirement.code_id.ilike(pattern),
        ))
        .order_by(Requirement.project_id, Requirement.code_id)
        .limit(RESULT_LIMIT)
        .all()
    )
    return [
        {**r.to_dict(), "entity_type": "requirement",
         "url": f"/projects/{r.project_id}/requirements/{r.id}"}
        for r in rows
    ]


def _search_tasks(pattern, project_ids):
    rows = (
        ImplementationTask.query.join(Requirement)
        .filter(Requirement.project_id.in_(project_ids))
        .filter(or_(
            ImplementationTask.title.ilike(pattern),
            ImplementationTask.description.ilike(pattern),
        ))
        .order_by(ImplementationTask.id)
        .limit(RESULT_LIMIT)
        .all()
    )
    return [
        {**t.to_dict(), "entity_type": "task", "url": f"/tasks/{t.id}"}
        for t in rows
    ]


def _search_input_data(pattern, project_ids):
    rows = (
        InputData.query.filter(InputData.project_id.in_(project_ids))
        .filter(or_(InputData.name.ilike(pattern), cast(InputData.meta, String).ilike(pattern)))
        .order_by(InputData.created_at.desc())
        .limit(RESULT_LIMIT)
        .all()
    )
    return [
        {**i.to_dict(), "entity_type": "input_data",
         "url": f"/projects/{i.project_id}/input-data/{i.id}"}
        for i in rows
    ]


_SEARCHERS = {
    "projects": _search_projects,
    "requirements": _search_requirements,
    "tasks": _search_tasks,
    "input_data": _search_input_data,
}


def advanced_search(user: User, query: str | None, *, project_id: int | None = None,
                    entity_types: tuple[str, ...] = ENTITY_TYPES) -> dict:
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise ValidationError("Invalid search query")

    if project_id is not None:
        project_service.get_project(project_id, user)
        project_ids = [project_id]
    else:
        project_ids = project_service.accessible_project_ids(user)

    pattern = f"%{query}%"
    results = {
        kind: (_SEARCHERS[kind](pattern, project_ids) if kind in entity_types else [])
        for kind in ENTITY_TYPES
    }
    total = sum(len(v) for v in results.values())
    logger.debug("Search %r over %d projects: %d hits", query, len(project_ids), total)
    return {
        "query": query,
        "project_id": project_id,
        "results": results,
        "total_results": total,
    }
