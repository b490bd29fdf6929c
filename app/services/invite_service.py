"""Invite service — admin-issued registration invites."""

import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from app.core.exceptions import ValidationError
from app.models import db, utcnow
from app.models.auth import Invite, User
from app.services.email_service import EmailService
from app.services.user_service import normalize_email
from app.utils.crypto import generate_token

logger = logging.getLogger(__name__)


def create_invite(email: str, created_by: User) -> Invite:
    """Create an invite valid for INVITE_EXPIRY_DAYS and email it; commits."""
    if not email:
        raise ValidationError("Email is required")
    email = normalize_email(email)
    if User.query.filter(func.lower(User.email) == email.lower()).first():
        raise ValidationError("A user with this email already exists")

    days = current_app.config.get("INVITE_EXPIRY_DAYS", 7)
    invite = Invite(
        token=generate_token(),
        email=email,
        created_by_id=created_by.id,
        expires_at=utcnow() + timedelta(days=days),
    )
    db.session.add(invite)
    db.session.flush()
    EmailService.send_invite(invite, created_by.display_name)
    db.session.commit()
    logger.info("Invite %s created for %s by user_id=%s", invite.id, email, created_by.id)
    return invite


def list_invites() -> list[Invite]:
    return Invite.query.order_by(Invite.created_at.desc()).all()


def verify_invite(token: str) -> Invite | None:
    """Return the invite when it is unused and unexpired."""
    invite = Invite.query.filter_by(token=token).first()
    if invite is None or not invite.is_valid:
        return None
    return invite
