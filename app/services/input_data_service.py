"""Input data service — uploads, text extraction and AI processing of sources.

Status lifecycle:
    processing → processed → requirements_generated
                           → review_generated
                           → summary_generated
    processing → error                  (text extraction failed)

Extraction:
    pdf       pypdf.PdfReader, page text joined with blank lines
    document  python-docx paragraphs (.docx; legacy .doc is stored without text)
    text      utf-8 decode
    video     no text; a short description stands in for the transcript
"""

from __future__ import annotations

import logging
import os
import uuid
import zipfile

import docx
from docx.opc.exceptions import PackageNotFoundError
from flask import current_app
from pypdf import PdfReader
from pypdf.errors import PdfReadError
from werkzeug.utils import secure_filename

from app.ai.assistants import (
    DocumentWriter,
    ExpertReviewer,
    RequirementExtractor,
    build_assistant,
)
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.activity import write_activity
from app.models.auth import User
from app.models.project import InputData, Project
from app.models.requirement import Requirement
from app.services import project_service, requirement_service, settings_service

logger = logging.getLogger(__name__)

EXTENSION_TYPES = {
    ".pdf": "pdf",
    ".docx": "document",
    ".doc": "document",
    ".txt": "text",
    ".md": "text",
    ".mp4": "video",
    ".mov": "video",
    ".webm": "video",
}


def get_input_data(input_id: int, user: User | None = None) -> InputData:
    item = db.session.get(InputData, input_id)
    if item is None:
        raise NotFoundError("Input data", input_id)
    if user is not None:
        project_service.get_project(item.project_id, user)
    return item


def list_input_data(project_id: int) -> list[InputData]:
    return (
        InputData.query.filter_by(project_id=project_id)
        .order_by(InputData.created_at.desc(), InputData.id.desc())
        .all()
    )


# ── Upload & extraction ──────────────────────────────────────────────────────

def classify_extension(filename: str) -> tuple[str, str]:
    """Return ``(extension, input type)`` or raise for unsupported files."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in EXTENSION_TYPES:
        raise ValidationError(
            f"Unsupported file type: {ext or filename}. "
            "Supported types include PDF, DOCX, TXT, and video formats."
        )
    return ext, EXTENSION_TYPES[ext]


def extract_text(path: str, input_type: str, ext: str) -> tuple[str, dict]:
    """Extract plain text from a stored upload; returns ``(text, extra metadata)``."""
    if input_type == "pdf":
        reader = PdfReader(path)
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n\n".join(p.strip() for p in pages if p.strip()), {"page_count": len(pages)}
    if input_type == "document":
        if ext == ".doc":
            return "", {"note": "Legacy .doc files are stored without text extraction"}
        document = docx.Document(path)
        paragraphs = [p.text for p in document.paragraphs if p.text.strip()]
        return "\n".join(paragraphs), {"paragraph_count": len(paragraphs)}
    if input_type == "text":
        with open(path, encoding="utf-8", errors="replace") as fh:
            return fh.read(), {}
    return "", {}


def _upload_dir(project_id: int) -> str:
    path = os.path.join(current_app.config["UPLOAD_FOLDER"], f"project_{project_id}")
    os.makedirs(path, exist_ok=True)
    return path


def upload(project: Project, file_storage, content_type: str | None = None) -> InputData:
    """Store an uploaded file, extract its text and record it; commits."""
    if file_storage is None or not file_storage.filename:
        raise ValidationError("No file uploaded")
    ext, input_type = classify_extension(file_storage.filename)

    safe_name = secure_filename(file_storage.filename) or f"upload{ext}"
    path = os.path.join(_upload_dir(project.id), f"{uuid.uuid4().hex[:12]}_{safe_name}")
    file_storage.save(path)

    item = InputData(
        name=file_storage.filename,
        type=input_type,
        content_type=content_type or "general",
        size=os.path.getsize(path),
        project_id=project.id,
        status="processing",
        file_path=path,
        file_type=ext.lstrip("."),
        meta={"original_filename": file_storage.filename, "content_type": content_type or "general"},
    )
    db.session.add(item)
    db.session.flush()

    try:
        text, extra = extract_text(path, input_type, ext)
    except (PdfReadError, PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        logger.warning("Text extraction failed for input %s: %s", item.id, e,
                       extra={"project_id": project.id})
        item.status = "error"
        item.processing_error = f"Text extraction failed: {e}"
    else:
        item.meta = {**item.meta, **extra, "extracted_text": text, "text_length": len(text)}
        item.status = "processed"
        item.processed = True

    write_activity(
        type="upload_input_data",
        description=f'Uploaded "{item.name}"',
        project_id=project.id,
        related_entity_id=item.id,
    )
    db.session.commit()
    return item


def delete_input_data(item: InputData) -> None:
    if item.file_path and os.path.isfile(item.file_path):
        try:
            os.remove(item.file_path)
        except OSError as e:
            logger.warning("Could not remove %s: %s", item.file_path, e)
    Requirement.query.filter_by(input_data_id=item.id).update(
        {"input_data_id": None}, synchronize_session=False)
    write_activity(
        type="deleted_input_data",
        description=f'Deleted "{item.name}"',
        project_id=item.project_id,
        related_entity_id=item.id,
    )
    db.session.delete(item)
    db.session.commit()


def source_text(item: InputData) -> str:
    text = (item.meta or {}).get("extracted_text") or ""
    if text.strip():
        return text
    return (f'{item.type.title()} file "{item.name}" ({item.size} bytes, content type '
            f"{item.content_type}). No transcript or text content is available.")


# ── AI processing ────────────────────────────────────────────────────────────

def generate_requirements(item: InputData) -> list[Requirement]:
    """Extract requirements from processed input data; commits."""
    if item.status != "processed":
        raise ValidationError("Input data must be processed before generating requirements")
    project = project_service.get_project(item.project_id)

    extractor = build_assistant(
        RequirementExtractor, "ai.extraction_model",
        min_requirements=settings_service.get_value("requirements.min_generated", 5),
    )
    candidates = extractor.extract(item, project, source_text(item))
    if not candidates:
        db.session.commit()
        raise ValidationError("Could not generate requirements from this file")

    created = []
    for candidate in candidates:
        try:
            req = requirement_service.build_requirement(
                project, {**candidate, "input_data_id": item.id})
        except ValidationError as e:
            logger.info("Skipping extracted requirement: %s", e.message)
            continue
        created.append(req)

    item.status = "requirements_generated"
    write_activity(
        type="generate_requirements",
        description=f'Generated {len(created)} requirements from "{item.name}"',
        project_id=project.id,
        related_entity_id=item.id,
    )
    db.session.commit()
    return created


def expert_review(item: InputData) -> dict:
    if item.status not in ("processed", "requirements_generated"):
        raise ValidationError(
            "Input data must be processed before requesting an expert review")
    requirements = (
        Requirement.query.filter_by(input_data_id=item.id).order_by(Requirement.code_id).all()
    )
    reviewer = build_assistant(ExpertReviewer, "ai.review_model")
    review = reviewer.review(item, requirements, source_text(item))

    by_id = {r.id: r for r in requirements}
    for rv in review["requirement_reviews"]:
        by_id[rv["requirement_id"]].expert_review = rv

    item.meta = {**(item.meta or {}), "expert_review": review}
    item.status = "review_generated"
    write_activity(
        type="expert_review",
        description=f'Generated expert review for "{item.name}"',
        project_id=item.project_id,
        related_entity_id=item.id,
    )
    db.session.commit()
    return review


def pdf_summary(item: InputData) -> str:
    if item.type != "pdf":
        raise ValidationError("Only PDF files can be summarized")
    writer = build_assistant(DocumentWriter, "ai.document_model")
    summary = writer.summarize_pdf(item, source_text(item))

    item.meta = {**(item.meta or {}), "summary": summary}
    item.status = "summary_generated"
    write_activity(
        type="pdf_summary",
        description=f'Summarized "{item.name}"',
        project_id=item.project_id,
        related_entity_id=item.id,
    )
    db.session.commit()
    return summary
