"""Workflow model — a stored BPMN-like node/edge diagram of a project."""

from app.models import db, iso, utcnow

NODE_TYPES = (
    "start", "end", "task", "subprocess", "decision", "parallel",
    "userTask", "wait", "message", "error", "annotation",
)


class Workflow(db.Model):
    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    version = db.Column(db.Integer, default=1, nullable=False)
    status = db.Column(db.String(20), default="draft")  # draft, published, archived
    nodes = db.Column(db.JSON, default=list)
    edges = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "project_id": self.project_id,
            "version": self.version,
            "status": self.status,
            "nodes": self.nodes or [],
            "edges": self.edges or [],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
