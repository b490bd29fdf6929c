"""
Application-wide settings, stored as a single versioned JSON row.

``DEFAULT_SETTINGS`` is the schema: unknown keys are rejected by
``settings_service.update_settings`` and stored values are merged over
these defaults on read.
"""

from app.models import db, iso, utcnow

DEFAULT_SETTINGS = {
    "contradiction": {
        "similarity_threshold": 0.6,
        "nli_threshold": 0.55,
        "max_pairs": 30,
        "min_text_length": 10,
    },
    "ai": {
        "criteria_model": "claude-3-5-sonnet-20241022",
        "tasks_model": "claude-3-5-sonnet-20241022",
        "workflow_model": "claude-3-5-sonnet-20241022",
        "extraction_model": "gemini-2.5-flash",
        "review_model": "gemini-2.5-flash",
        "document_model": "claude-3-5-haiku-20241022",
    },
    "requirements": {
        "min_generated": 5,
        "default_priority": "medium",
    },
}


class ApplicationSettings(db.Model):
    __tablename__ = "application_settings"

    id = db.Column(db.Integer, primary_key=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    version = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "settings": self.settings or {},
            "version": self.version,
            "description": self.description,
            "updated_by": self.updated_by,
            "updated_at": iso(self.updated_at),
        }
