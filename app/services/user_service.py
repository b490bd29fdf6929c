"""
User Service — registration, login sessions, profile, password reset and
admin user management.

Rules:
  - Registration needs a valid invite whose email matches (case-insensitive).
  - One active Session per user: a new login deactivates older sessions.
  - Reset tokens are emailed in clear and stored as SHA-256 digests.
"""

import logging
from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import func

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import as_utc, db, utcnow
from app.models.auth import USER_ROLES, Invite, Session, User
from app.models.project import Project
from app.services.email_service import EmailService
from app.utils.crypto import (
    BCRYPT_MAX_BYTES, generate_token, hash_password, hash_token, verify_password,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

_PROFILE_FIELDS = ("first_name", "last_name", "email", "company", "avatar_url")


def normalize_email(email: str) -> str:
    """Validate syntax and return the normalized address."""
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}")


def _check_password(password: str | None, field: str = "password") -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={field: "too short"},
        )
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {BCRYPT_MAX_BYTES} bytes",
            details={field: "too long"},
        )


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    q = User.query.filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return db.session.query(q.exists()).scalar()


# ═══════════════════════════════════════════════════════════════
# Registration & login
# ═══════════════════════════════════════════════════════════════

def register_user(data: dict) -> User:
    """Create a user from an invite. Marks the invite used; commits."""
    username = (data.get("username") or "").strip()
    password = data.get("password")
    missing = [f for f in ("username", "password", "email", "invite_token")
               if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            "Missing required fields",
            details={f: "required" for f in missing},
        )
    _check_password(password)
    email = normalize_email(data["email"])

    invite = Invite.query.filter_by(token=data["invite_token"]).first()
    if invite is None or not invite.is_valid or invite.email.lower() != email.lower():
        raise ValidationError("Invalid or expired invite")

    if User.query.filter_by(username=username).first():
        raise ValidationError("Username already exists")
    if _email_taken(email):
        raise ValidationError("Email already registered")

    user = User(
        username=username,
        password=hash_password(password),
        email=email,
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        company=data.get("company"),
        role="user",
        invited_by=invite.created_by_id,
    )
    invite.used = True
    db.session.add(user)
    db.session.commit()
    logger.info("User registered: %s (invite %s)", username, invite.id)
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the user when the credentials match, else None."""
    if not username or not password:
        return None
    user = User.query.filter_by(username=username.strip()).first()
    if user is None or not verify_password(password, user.password):
        return None
    return user


def start_session(user: User, *, ip_address: str | None = None,
                  user_agent: str | None = None) -> Session:
    """Deactivate the user's earlier sessions and open a new one; commits."""
    Session.query.filter_by(user_id=user.id, is_active=True).update(
        {"is_active": False}, synchronize_session=False,
    )
    hours = current_app.config.get("SESSION_LIFETIME_HOURS", 24)
    row = Session(
        user_id=user.id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        expires_at=utcnow() + timedelta(hours=hours),
    )
    db.session.add(row)
    db.session.commit()
    logger.info("Session opened for user_id=%s", user.id, extra={"user_id": user.id})
    return row


def end_session(session_id: str | None) -> None:
    if not session_id:
        return
    row = db.session.get(Session, session_id)
    if row is not None and row.is_active:
        row.is_active = False
        db.session.commit()


# ═══════════════════════════════════════════════════════════════
# Profile & passwords
# ═══════════════════════════════════════════════════════════════

def update_profile(user: User, data: dict) -> User:
    for field in _PROFILE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "email":
            value = normalize_email(value)
            if _email_taken(value, exclude_id=user.id):
                raise ValidationError("Email already registered")
        setattr(user, field, value)
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password or "", user.password):
        raise ValidationError("Current password is incorrect")
    _check_password(new_password, "new_password")
    user.password = hash_password(new_password)
    db.session.commit()


def request_password_reset(email: str) -> None:
    """Issue and email a reset token when ``email`` belongs to a user.

    Silent when it does not, so the endpoint cannot be used to probe accounts.
    """
    if not email:
        return
    user = User.query.filter(func.lower(User.email) == email.strip().lower()).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return

    token = generate_token()
    minutes = current_app.config.get("RESET_TOKEN_EXPIRY_MINUTES", 60)
    user.reset_token = hash_token(token)
    user.reset_token_expires = utcnow() + timedelta(minutes=minutes)
    EmailService.send_password_reset(user, token)
    db.session.commit()


def _user_for_reset_token(token: str | None) -> User | None:
    if not token:
        return None
    user = User.query.filter_by(reset_token=hash_token(token)).first()
    if user is None or user.reset_token_expires is None:
        return None
    if as_utc(user.reset_token_expires) <= utcnow():
        return None
    return user


def verify_reset_token(token: str) -> bool:
    return _user_for_reset_token(token) is not None


def reset_password(token: str, password: str) -> User:
    user = _user_for_reset_token(token)
    if user is None:
        raise ValidationError("Invalid or expired reset token")
    _check_password(password)
    user.password = hash_password(password)
    user.reset_token = None
    user.reset_token_expires = None
    Session.query.filter_by(user_id=user.id, is_active=True).update(
        {"is_active": False}, synchronize_session=False,
    )
    db.session.commit()
    logger.info("Password reset for user_id=%s", user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Admin user management
# ═══════════════════════════════════════════════════════════════

def list_users() -> list[User]:
    return User.query.order_by(User.username).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def create_user(username: str, password: str, email: str, *, role: str = "user", **profile) -> User:
    """Create a user directly (CLI bootstrap). No invite required."""
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required", details={"username": "required"})
    _check_password(password)
    email = normalize_email(email)
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role: {role}")
    if User.query.filter_by(username=username).first():
        raise ValidationError("Username already exists")
    if _email_taken(email):
        raise ValidationError("Email already registered")
    user = User(username=username, password=hash_password(password), email=email,
                role=role, **profile)
    db.session.add(user)
    db.session.commit()
    return user


def admin_update_user(user_id: int, data: dict) -> User:
    user = get_user(user_id)
    if "role" in data:
        if data["role"] not in USER_ROLES:
            raise ValidationError(
                f"Invalid role: {data['role']}",
                details={"role": f"must be one of {sorted(USER_ROLES)}"},
            )
        user.role = data["role"]
    if "username" in data and data["username"] != user.username:
        if User.query.filter_by(username=data["username"]).first():
            raise ValidationError("Username already exists")
        user.username = data["username"]
    return update_profile(user, data)


def delete_user(user_id: int, acting_user: User) -> None:
    user = get_user(user_id)
    if user.id == acting_user.id:
        raise ValidationError("You cannot delete your own account")
    if Project.query.filter_by(user_id=user.id).count():
        raise ConflictError("User owns projects and cannot be deleted")
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted by %s", user_id, acting_user.id)
