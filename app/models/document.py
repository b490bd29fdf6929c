"""
Document generation models.

DocumentTemplate  — a PDF layout (pdfme-style ``{"schemas": [{field_key: {...}}]}``)
FieldMapping      — binds one template field to a database column or an AI prompt
Document          — a rendered instance of a template for a project
"""

from app.models import db, iso, utcnow

MAPPING_TYPES = ("database", "ai-generated")
SELECTION_MODES = ("single", "all", "custom")
DATA_SOURCES = ("projects", "customers", "requirements", "acceptance_criteria", "tasks")


class DocumentTemplate(db.Model):
    __tablename__ = "document_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100), nullable=False)
    is_global = db.Column(db.Boolean, default=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), index=True)
    template = db.Column(db.JSON, nullable=False, default=dict)
    schema = db.Column(db.JSON, nullable=False, default=dict)
    thumbnail = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    field_mappings = db.relationship(
        "FieldMapping", back_populates="template", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_mappings=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "is_global": self.is_global,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "template": self.template or {},
            "schema": self.schema or {},
            "thumbnail": self.thumbnail,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_mappings:
            d["field_mappings"] = [m.to_dict() for m in self.field_mappings.order_by(FieldMapping.id)]
        return d


class FieldMapping(db.Model):
    __tablename__ = "field_mappings"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(db.String(20), nullable=False)  # database, ai-generated
    template_id = db.Column(
        db.Integer, db.ForeignKey("document_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    field_key = db.Column(db.String(200), nullable=False)
    data_source = db.Column(db.String(50))
    data_path = db.Column(db.String(300))
    column_field = db.Column(db.String(100))
    prompt = db.Column(db.Text)
    default_value = db.Column(db.Text)
    selection_mode = db.Column(db.String(20), default="single")
    record_id = db.Column(db.Integer)
    selection_filter = db.Column(db.String(200))
    include_project = db.Column(db.Boolean, default=True)
    include_requirements = db.Column(db.Boolean, default=True)
    include_tasks = db.Column(db.Boolean, default=True)
    include_customer = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    template = db.relationship("DocumentTemplate", back_populates="field_mappings")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "template_id": self.template_id,
            "field_key": self.field_key,
            "data_source": self.data_source,
            "data_path": self.data_path,
            "column_field": self.column_field,
            "prompt": self.prompt,
            "default_value": self.default_value,
            "selection_mode": self.selection_mode,
            "record_id": self.record_id,
            "selection_filter": self.selection_filter,
            "include_project": self.include_project,
            "include_requirements": self.include_requirements,
            "include_tasks": self.include_tasks,
            "include_customer": self.include_customer,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    template_id = db.Column(db.Integer, db.ForeignKey("document_templates.id"), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    data = db.Column(db.JSON, nullable=False, default=dict)
    pdf_path = db.Column(db.String(500))
    status = db.Column(db.String(20), default="draft")  # draft, final
    version = db.Column(db.Integer, default=1)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    template = db.relationship("DocumentTemplate")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "template_id": self.template_id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "data": self.data or {},
            "pdf_path": self.pdf_path,
            "status": self.status,
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
