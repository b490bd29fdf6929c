"""
Project & InputData models.

Project is the root of ownership: requirements, input data, workflows,
documents, roles and activities all hang off ``projects.id``. Deletion of
the children is done by ``project_service.delete_project`` in a fixed order
rather than by database cascades.
"""

from app.models import db, iso, utcnow

PROJECT_STAGES = ("discovery", "planning", "design", "build", "test", "deploy", "closed")

INPUT_DATA_TYPES = ("pdf", "document", "text", "video")

INPUT_DATA_STATUSES = (
    "uploaded",
    "processing",
    "processed",
    "requirements_generated",
    "review_generated",
    "summary_generated",
    "error",
)


class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(db.String(100), nullable=False)
    stage = db.Column(db.String(50), default="discovery")
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), index=True)
    customer = db.Column(db.String(200))  # legacy free-text customer name
    source_system = db.Column(db.String(200))
    target_system = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User")
    customer_ref = db.relationship("Customer", back_populates="projects")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "stage": self.stage,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "customer": self.customer_ref.name if self.customer_ref else self.customer,
            "source_system": self.source_system,
            "target_system": self.target_system,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class InputData(db.Model):
    """An uploaded source artefact (document, transcript, video) of a project."""

    __tablename__ = "input_data"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(300), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    content_type = db.Column(db.String(50), default="general")
    size = db.Column(db.Integer, nullable=False, default=0)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    status = db.Column(db.String(40), default="processing")
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, default=dict)
    processed = db.Column(db.Boolean, default=False)
    file_path = db.Column(db.String(500))
    file_type = db.Column(db.String(20))
    processing_error = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self, include_text=False):
        meta = dict(self.meta or {})
        if not include_text:
            meta.pop("extracted_text", None)
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "content_type": self.content_type,
            "size": self.size,
            "project_id": self.project_id,
            "status": self.status,
            "metadata": meta,
            "processed": self.processed,
            "file_type": self.file_type,
            "processing_error": self.processing_error,
            "created_at": iso(self.created_at),
        }
