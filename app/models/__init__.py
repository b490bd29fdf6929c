"""
ReqBridge
SQLAlchemy models package.

``db`` is the shared Flask-SQLAlchemy extension instance; model modules
import it from here and app/__init__.py binds it in ``create_app``.

Model modules:
    - auth:       User, Session, Invite
    - customer:   Customer
    - project:    Project, InputData
    - requirement: Requirement, ImplementationTask
    - activity:   Activity
    - workflow:   Workflow
    - roles:      ProjectRole, ProjectRoleTemplate, RequirementRoleEffort, TaskRoleEffort
    - document:   DocumentTemplate, FieldMapping, Document
    - settings:   ApplicationSettings
    - ai:         AIUsageLog
    - email:      EmailLog
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Timezone-aware UTC timestamp used as column default."""
    return datetime.now(timezone.utc)


def as_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iso(value):
    return value.isoformat() if value else None
