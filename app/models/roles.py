"""
Role-effort models.

ProjectRole           — a costed role staffed on a project (e.g. "Senior Developer, offshore")
ProjectRoleTemplate   — reusable role definition copied into projects
RequirementRoleEffort — estimated effort of a role on a requirement
TaskRoleEffort        — estimated effort of a role on an implementation task

Effort and cost rate are kept as text to preserve what the estimator typed
("3.5", "2-3"); ``role_service.effort_summary`` parses them numerically.
"""

from app.models import db, iso, utcnow

ROLE_TYPES = ("developer", "architect", "analyst", "tester", "project_manager", "consultant", "other")
LOCATION_TYPES = ("onsite", "offshore", "nearshore", "remote")
SENIORITY_LEVELS = ("junior", "mid", "senior", "lead", "principal")
EFFORT_UNITS = ("hours", "days", "weeks")
COST_UNITS = ("hour", "day", "week", "month")


class _RoleColumns:
    name = db.Column(db.String(200), nullable=False)
    role_type = db.Column(db.String(50), nullable=False)
    location_type = db.Column(db.String(50), nullable=False)
    seniority_level = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text)
    cost_rate = db.Column(db.String(50), nullable=False)
    cost_unit = db.Column(db.String(20), nullable=False, default="day")
    currency = db.Column(db.String(10), nullable=False, default="USD")
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def _role_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "role_type": self.role_type,
            "location_type": self.location_type,
            "seniority_level": self.seniority_level,
            "description": self.description,
            "cost_rate": self.cost_rate,
            "cost_unit": self.cost_unit,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class ProjectRole(_RoleColumns, db.Model):
    __tablename__ = "project_roles"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)

    def to_dict(self):
        d = self._role_dict()
        d["project_id"] = self.project_id
        return d


class ProjectRoleTemplate(_RoleColumns, db.Model):
    __tablename__ = "project_role_templates"

    id = db.Column(db.Integer, primary_key=True)

    def to_dict(self):
        return self._role_dict()


class RequirementRoleEffort(db.Model):
    __tablename__ = "requirement_role_efforts"

    id = db.Column(db.Integer, primary_key=True)
    requirement_id = db.Column(
        db.Integer, db.ForeignKey("requirements.id"), nullable=False, index=True
    )
    role_id = db.Column(db.Integer, db.ForeignKey("project_roles.id"), nullable=False, index=True)
    estimated_effort = db.Column(db.String(50), nullable=False)
    effort_unit = db.Column(db.String(20), nullable=False, default="hours")
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    role = db.relationship("ProjectRole")

    def to_dict(self):
        return {
            "id": self.id,
            "requirement_id": self.requirement_id,
            "role_id": self.role_id,
            "role": self.role.to_dict() if self.role else None,
            "estimated_effort": self.estimated_effort,
            "effort_unit": self.effort_unit,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class TaskRoleEffort(db.Model):
    __tablename__ = "task_role_efforts"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("implementation_tasks.id"), nullable=False, index=True
    )
    role_id = db.Column(db.Integer, db.ForeignKey("project_roles.id"), nullable=False, index=True)
    estimated_effort = db.Column(db.String(50), nullable=False)
    effort_unit = db.Column(db.String(20), nullable=False, default="hours")
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    role = db.relationship("ProjectRole")

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "role_id": self.role_id,
            "role": self.role.to_dict() if self.role else None,
            "estimated_effort": self.estimated_effort,
            "effort_unit": self.effort_unit,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
