"""
Requirement & ImplementationTask models.

Acceptance criteria are stored inline as a JSON array on the requirement:

    {"id": "ac-1", "description": "...", "status": "pending",
     "notes": "...", "gherkin": {"title", "given", "when", "and": [],
                                 "then", "and_then": []}}
"""

from app.models import db, iso, utcnow

PRIORITIES = ("low", "medium", "high", "critical")
TASK_STATUSES = ("pending", "in_progress", "completed", "blocked")
TASK_SYSTEMS = ("source", "target", "both")
COMPLEXITIES = ("low", "medium", "high")


class Requirement(db.Model):
    __tablename__ = "requirements"

    id = db.Column(db.Integer, primary_key=True)
    code_id = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(100), default="functional")
    priority = db.Column(db.String(20), default="medium")
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    input_data_id = db.Column(db.Integer, db.ForeignKey("input_data.id", ondelete="SET NULL"))
    source = db.Column(db.String(200))
    acceptance_criteria = db.Column(db.JSON, default=list)
    video_scenes = db.Column(db.JSON, default=list)
    text_references = db.Column(db.JSON, default=list)
    audio_timestamps = db.Column(db.JSON, default=list)
    expert_review = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("project_id", "code_id", name="uq_requirement_project_code"),
    )

    tasks = db.relationship("ImplementationTask", back_populates="requirement", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "code_id": self.code_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "project_id": self.project_id,
            "input_data_id": self.input_data_id,
            "source": self.source,
            "acceptance_criteria": self.acceptance_criteria or [],
            "video_scenes": self.video_scenes or [],
            "text_references": self.text_references or [],
            "audio_timestamps": self.audio_timestamps or [],
            "expert_review": self.expert_review,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class ImplementationTask(db.Model):
    __tablename__ = "implementation_tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(30), default="pending")
    priority = db.Column(db.String(20), default="medium")
    system = db.Column(db.String(20), nullable=False)  # source, target, both
    requirement_id = db.Column(
        db.Integer, db.ForeignKey("requirements.id"), nullable=False, index=True
    )
    estimated_hours = db.Column(db.Float)
    complexity = db.Column(db.String(20), default="medium")
    assignee = db.Column(db.String(200))
    task_type = db.Column(db.String(50))
    sf_documentation_links = db.Column(db.JSON, default=list)
    implementation_steps = db.Column(db.JSON, default=list)
    overall_documentation_links = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    requirement = db.relationship("Requirement", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "system": self.system,
            "requirement_id": self.requirement_id,
            "project_id": self.requirement.project_id if self.requirement else None,
            "estimated_hours": self.estimated_hours,
            "complexity": self.complexity,
            "assignee": self.assignee,
            "task_type": self.task_type,
            "sf_documentation_links": self.sf_documentation_links or [],
            "implementation_steps": self.implementation_steps or [],
            "overall_documentation_links": self.overall_documentation_links or [],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
