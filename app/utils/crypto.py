"""
Password hashing and one-time tokens.

Passwords are stored as bcrypt hashes; the cost factor comes from
BCRYPT_ROUNDS so the test configuration can use a cheap one. bcrypt only
looks at the first 72 bytes, which is why user_service rejects longer
passwords up front.

Invite, reset and session tokens are random URL-safe strings. Reset tokens
are stored only as their SHA-256 digest.
"""

import hashlib
import secrets

import bcrypt
from flask import current_app, has_app_context

BCRYPT_MAX_BYTES = 72


def hash_password(plain_password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12) if has_app_context() else 12
    digest = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=int(rounds)))
    return digest.decode("ascii")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """False for a missing hash or one that is not bcrypt."""
    if not password_hash or plain_password is None:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        return False


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
