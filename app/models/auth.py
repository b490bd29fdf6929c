"""
Auth Models — users, server-side login sessions, registration invites.

A browser holds only a signed cookie with ``Session.id``; everything else
(user, expiry, active flag) lives in the ``sessions`` table so a login can
be revoked server-side. One active session per user is enforced by the
auth service, not by a constraint.
"""

import uuid

from app.models import as_utc, db, iso, utcnow

USER_ROLES = {"user", "admin"}


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password = db.Column(db.String(256), nullable=False)  # bcrypt hash
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    company = db.Column(db.String(200))
    avatar_url = db.Column(db.String(500))
    role = db.Column(db.String(20), nullable=False, default="user")  # user, admin
    invited_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    reset_token = db.Column(db.String(128), index=True)  # sha256 of the emailed token
    reset_token_expires = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    sessions = db.relationship("Session", back_populates="user", lazy="dynamic",
                               cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "company": self.company,
            "avatar_url": self.avatar_url,
            "role": self.role,
            "invited_by": self.invited_by,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


# ═══════════════════════════════════════════════════════════════
# 2. SESSIONS
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", back_populates="sessions")

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()


# ═══════════════════════════════════════════════════════════════
# 3. INVITES
# ═══════════════════════════════════════════════════════════════
class Invite(db.Model):
    __tablename__ = "invites"

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    email = db.Column(db.String(200), nullable=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()

    @property
    def is_valid(self) -> bool:
        return not self.used and not self.is_expired

    def to_dict(self, include_token=False):
        d = {
            "id": self.id,
            "email": self.email,
            "created_by_id": self.created_by_id,
            "expires_at": iso(self.expires_at),
            "used": self.used,
            "created_at": iso(self.created_at),
        }
        if include_token:
            d["token"] = self.token
        return d
