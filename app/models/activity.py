"""
Activity log — the per-project timeline shown on dashboards.

Rows are written through ``write_activity`` by services after a mutation;
the helper only flushes, the caller's commit persists it together with the
change it describes.
"""

from app.models import db, iso, utcnow


class Activity(db.Model):
    __tablename__ = "activities"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), index=True)
    related_entity_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "project_id": self.project_id,
            "related_entity_id": self.related_entity_id,
            "created_at": iso(self.created_at),
        }


def write_activity(
    *,
    type: str,
    description: str,
    user_id: int | None = None,
    project_id: int | None = None,
    related_entity_id: int | None = None,
) -> Activity:
    """
    Append a single activity row. Uses ``flush`` so callers keep
    transaction control.

    When ``user_id`` is omitted the logged-in user of the current request
    (``g.current_user``) is used.
    """
    if user_id is None:
        from flask import g, has_request_context
        if has_request_context():
            user = getattr(g, "current_user", None)
            user_id = user.id if user is not None else None

    activity = Activity(
        type=type,
        description=description,
        user_id=user_id,
        project_id=project_id,
        related_entity_id=related_entity_id,
    )
    db.session.add(activity)
    db.session.flush()
    return activity
