"""Activity queries. Rows are written by other services via ``write_activity``."""

from app.models.activity import Activity
from app.models.auth import User
from app.services import project_service


def recent_activities(user: User, limit: int) -> list[Activity]:
    """Newest activities across the user's projects plus the user's own entries."""
    q = Activity.query
    if not user.is_admin:
        project_ids = project_service.accessible_project_ids(user)
        q = q.filter(
            Activity.project_id.in_(project_ids) | (Activity.user_id == user.id)
        )
    return q.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit).all()


def project_activities(project_id: int, limit: int) -> list[Activity]:
    return (
        Activity.query.filter_by(project_id=project_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )
