"""Document service — rendered template instances and field-data resolution.

``generate_data`` fills a template's field mappings for one project:

  database mappings, by data source and selection mode
    projects      single (record_id or current) · all (same customer, ", ")
    customers     single (record_id or the project's customer) · all (", ")
    requirements  single (record_id) · all · custom (category) · count
    acceptance_criteria   Gherkin blocks across the project's requirements
    tasks         single (record_id) · all · custom (system:/priority:/status:) · count
  ai-generated mappings
    ``{{project.name}}``-style paths are substituted into the prompt and the
    answer comes from the document model; on AI failure the default value
    is used.

A resolved value that is empty falls back to the mapping's default value.
"""

from __future__ import annotations

import json
import logging
import os
import re
import uuid

from flask import current_app

from app.ai.assistants import DocumentWriter, build_assistant
from app.core.exceptions import AIServiceError, NotFoundError, ValidationError
from app.models import db, utcnow
from app.models.activity import write_activity
from app.models.auth import User
from app.models.customer import Customer
from app.models.document import Document, FieldMapping
from app.models.project import Project
from app.models.requirement import ImplementationTask, Requirement
from app.services import project_service, template_service
from app.services.pdf_service import render_pdf
from app.utils.helpers import parse_id

logger = logging.getLogger(__name__)

_UPDATABLE = ("name", "description", "status", "data", "template_id")
DOCUMENT_STATUSES = ("draft", "final")
_VARIABLE_RE = re.compile(r"\{\{([^}]+)\}\}")


# ── Files ────────────────────────────────────────────────────────────────────

def _documents_dir() -> str:
    path = os.path.join(current_app.config["UPLOAD_FOLDER"], "documents")
    os.makedirs(path, exist_ok=True)
    return path


def _write_pdf(doc: Document, template) -> None:
    pdf_bytes = render_pdf(template.template, doc.data, title=doc.name)
    path = os.path.join(_documents_dir(), f"document-{uuid.uuid4().hex[:12]}.pdf")
    with open(path, "wb") as fh:
        fh.write(pdf_bytes)
    _remove_file(doc.pdf_path)
    doc.pdf_path = path


def _remove_file(path: str | None) -> None:
    if path and os.path.isfile(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)


# ── CRUD ─────────────────────────────────────────────────────────────────────

def list_documents(project_id: int) -> list[Document]:
    return (
        Document.query.filter_by(project_id=project_id)
        .order_by(Document.updated_at.desc(), Document.id.desc())
        .all()
    )


def get_document(document_id: int, user: User | None = None) -> Document:
    doc = db.session.get(Document, document_id)
    if doc is None:
        raise NotFoundError("Document", document_id)
    if user is not None:
        project_service.get_project(doc.project_id, user)
    return doc


def _check_data(data) -> None:
    if data is not None and not isinstance(data, dict):
        raise ValidationError("Document data must be an object", details={"data": "must be an object"})


def create_document(data: dict, user: User) -> Document:
    """Render and store a document; commits."""
    if not data.get("name") or not data.get("template_id") or not data.get("project_id"):
        raise ValidationError("Name, template ID, and project ID are required")
    _check_data(data.get("data"))
    if data.get("status") and data["status"] not in DOCUMENT_STATUSES:
        raise ValidationError("Invalid document status",
                              details={"status": f"must be one of {', '.join(DOCUMENT_STATUSES)}"})
    project = project_service.get_project(parse_id(data["project_id"], "project_id"), user)
    template = template_service.template_for_project(
        parse_id(data["template_id"], "template_id"), project.id, user)

    doc = Document(
        name=data["name"],
        description=data.get("description"),
        template_id=template.id,
        project_id=project.id,
        user_id=user.id,
        data=data.get("data") or {},
        status=data.get("status") or "draft",
    )
    _write_pdf(doc, template)
    db.session.add(doc)
    db.session.flush()
    write_activity(
        type="created_document",
        description=f'Generated document "{doc.name}"',
        user_id=user.id,
        project_id=project.id,
        related_entity_id=doc.id,
    )
    db.session.commit()
    logger.info("Document %s rendered to %s", doc.id, doc.pdf_path,
                extra={"project_id": project.id})
    return doc


def update_document(doc: Document, data: dict, user: User) -> Document:
    """Partial update; re-renders the PDF when both template and data are sent."""
    _check_data(data.get("data"))
    if data.get("status") and data["status"] not in DOCUMENT_STATUSES:
        raise ValidationError("Invalid document status",
                              details={"status": f"must be one of {', '.join(DOCUMENT_STATUSES)}"})
    template = None
    if data.get("template_id"):
        template = template_service.template_for_project(
            parse_id(data["template_id"], "template_id"), doc.project_id, user)
        data["template_id"] = template.id
    elif "template_id" in data:
        data.pop("template_id")

    for field in _UPDATABLE:
        if field in data:
            setattr(doc, field, data[field])
    if template is not None and "data" in data:
        doc.data = data["data"] or {}
        _write_pdf(doc, template)
        doc.version = (doc.version or 1) + 1
    doc.updated_at = utcnow()
    db.session.commit()
    return doc


def delete_document(doc: Document) -> None:
    _remove_file(doc.pdf_path)
    write_activity(
        type="deleted_document",
        description=f'Deleted document "{doc.name}"',
        project_id=doc.project_id,
        related_entity_id=doc.id,
    )
    db.session.delete(doc)
    db.session.commit()


def pdf_path(doc: Document) -> str:
    if not doc.pdf_path or not os.path.isfile(doc.pdf_path):
        raise NotFoundError("PDF", doc.id, message="PDF not available for this document")
    return doc.pdf_path


# ── Field data resolution ────────────────────────────────────────────────────

def get_path(obj, path: str | None):
    """Walk a dotted path through nested dicts/lists; None when any step is missing."""
    value = obj
    for part in (path or "").split("."):
        if not part:
            continue
        if isinstance(value, dict):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return None
        if value is None:
            return None
    return value


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value) if value else ""
    return str(value)


def substitute_variables(prompt: str, context: dict) -> str:
    """Replace ``{{a.b}}`` placeholders with values from ``context`` ('' when missing)."""
    return _VARIABLE_RE.sub(lambda m: _text(get_path(context, m.group(1).strip())), prompt)


def _code(req: Requirement) -> str:
    return req.code_id or f"REQ-{req.id}"


def _requirement_blocks(requirements) -> str:
    return "\n\n".join(
        f"{i}. {_code(r)}: {r.title}\n   {r.description or ''}"
        for i, r in enumerate(requirements, 1)
    )


def _task_blocks(tasks) -> str:
    return "\n\n".join(
        f"{i}. {t.title} ({t.task_type or 'General'})\n   {t.description or ''}"
        for i, t in enumerate(tasks, 1)
    )


class _Resolver:
    """Resolve the field mappings of one template against one project."""

    def __init__(self, project: Project, user: User):
        self.project = project
        self.user = user
        self.requirements = (
            Requirement.query.filter_by(project_id=project.id).order_by(Requirement.id).all()
        )
        self.tasks = (
            ImplementationTask.query.join(Requirement)
            .filter(Requirement.project_id == project.id)
            .order_by(ImplementationTask.id)
            .all()
        )
        self._writer = None

    # -- database sources --

    def projects(self, m: FieldMapping) -> str:
        mode = m.selection_mode or "single"
        if mode == "single" and m.record_id and m.record_id != self.project.id:
            other = db.session.get(Project, m.record_id)
            if other is None or not project_service.can_access(self.user, other):
                return ""
            return _text(get_path(other.to_dict(), m.column_field))
        if mode == "all":
            q = project_service.accessible_projects_query(self.user)
            if self.project.customer_id:
                q = q.filter(Project.customer_id == self.project.customer_id)
            values = [_text(get_path(p.to_dict(), m.column_field)) for p in q.order_by(Project.id)]
            return ", ".join(v for v in values if v)
        return _text(get_path(self.project.to_dict(), m.column_field))

    def customers(self, m: FieldMapping) -> str:
        customer = self.project.customer_ref
        if customer is None:
            return ""
        mode = m.selection_mode or "single"
        if mode == "single" and m.record_id and m.record_id != customer.id:
            other = db.session.get(Customer, m.record_id)
            return _text(get_path(other.to_dict(), m.column_field)) if other else ""
        if mode == "all":
            values = [_text(get_path(c.to_dict(), m.column_field))
                      for c in Customer.query.order_by(Customer.id)]
            return ", ".join(v for v in values if v)
        return _text(get_path(customer.to_dict(), m.column_field))

    def requirements_(self, m: FieldMapping) -> str:
        mode = m.selection_mode or "single"
        if mode == "single" and m.record_id:
            req = next((r for r in self.requirements if r.id == m.record_id), None)
            return _text(get_path(req.to_dict(), m.column_field)) if req else ""
        if mode == "all":
            if m.column_field:
                values = [_text(get_path(r.to_dict(), m.column_field)) for r in self.requirements]
                return "\n".join(f"{i}. {v}" for i, v in enumerate(filter(None, values), 1))
            return _requirement_blocks(self.requirements)
        if mode == "custom" and m.selection_filter:
            wanted = m.selection_filter.strip().lower()
            return _requirement_blocks(
                [r for r in self.requirements if (r.category or "").lower() == wanted])
        return f"{len(self.requirements)} requirements"

    def acceptance_criteria(self, m: FieldMapping) -> str:
        if not self.requirements:
            return ""
        blocks = []
        for req in self.requirements:
            for ac in req.acceptance_criteria or []:
                if not isinstance(ac, dict):
                    continue
                gherkin = ac.get("gherkin") or {}
                blocks.append(
                    f"{_code(req)} - Scenario: {gherkin.get('title') or 'Scenario'}\n"
                    f"  Given {gherkin.get('given') or ''}\n"
                    f"  When {gherkin.get('when') or ''}\n"
                    f"  Then {gherkin.get('then') or ''}"
                )
        return "\n\n".join(blocks) or m.default_value or "No acceptance criteria defined"

    def tasks_(self, m: FieldMapping) -> str:
        if not self.tasks:
            return ""
        mode = m.selection_mode or "single"
        if mode == "single" and m.record_id:
            task = next((t for t in self.tasks if t.id == m.record_id), None)
            return _text(get_path(task.to_dict(), m.column_field)) if task else ""
        if mode == "all":
            if m.column_field:
                values = [_text(get_path(t.to_dict(), m.column_field)) for t in self.tasks]
                return "\n\n".join(f"{i}. {v}" for i, v in enumerate(values, 1) if v)
            return _task_blocks(self.tasks)
        if mode == "custom" and m.selection_filter:
            parts = m.selection_filter.split(":")
            if len(parts) != 2 or parts[0] not in ("system", "priority", "status"):
                return ""
            field, wanted = parts[0], parts[1].strip().lower()
            return _task_blocks(
                [t for t in self.tasks if (getattr(t, field) or "").lower() == wanted])
        return f"{len(self.tasks)} implementation tasks"

    # -- ai --

    def _context(self) -> dict:
        return {
            "project": self.project.to_dict(),
            "requirements": [r.to_dict() for r in self.requirements],
        }

    def _summary(self) -> str:
        lines = [
            f"Project: {self.project.name}",
            f"Description: {self.project.description or ''}",
            f"Source system: {self.project.source_system or 'n/a'}",
            f"Target system: {self.project.target_system or 'n/a'}",
            "Requirements:",
        ]
        lines += [f"- {_code(r)}: {r.title}" for r in self.requirements[:50]]
        return "\n".join(lines)

    def ai(self, m: FieldMapping) -> str:
        if self._writer is None:
            self._writer = build_assistant(DocumentWriter, "ai.document_model")
        prompt = substitute_variables(m.prompt, self._context())
        try:
            return self._writer.generate_field(prompt, self._summary(), project_id=self.project.id)
        except AIServiceError as e:
            logger.warning("AI field %r fell back to its default: %s", m.field_key, e,
                           extra={"project_id": self.project.id})
            return ""

    def resolve(self, m: FieldMapping) -> str:
        if m.type == "database":
            source = {
                "projects": self.projects,
                "customers": self.customers,
                "requirements": self.requirements_,
                "acceptance_criteria": self.acceptance_criteria,
                "tasks": self.tasks_,
            }.get(m.data_source)
            value = source(m) if source else ""
        elif m.type == "ai-generated" and m.prompt:
            value = self.ai(m)
        else:
            value = ""
        return value or m.default_value or ""


def generate_data(template_id: int, project_id, user: User) -> dict[str, str]:
    """Resolve every field mapping of a template for a project."""
    if not project_id:
        raise ValidationError("Project ID is required")
    project = project_service.get_project(parse_id(project_id, "project_id"), user)
    template = template_service.template_for_project(template_id, project.id, user)

    resolver = _Resolver(project, user)
    data = {m.field_key: resolver.resolve(m) for m in template_service.list_mappings(template.id)}
    db.session.commit()  # usage logs of ai-generated fields
    return data
