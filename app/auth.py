"""
ReqBridge
Authentication & Authorization Middleware.

Provides:
    - Session-cookie authentication (signed Flask cookie → server-side Session row)
    - Role-based access control (RBAC) decorator
    - CSRF protection for state-changing requests (non-GET/HEAD/OPTIONS)

Security model:
    - All /api/v1/* endpoints require a logged-in user, except the public
      endpoints listed in PUBLIC_ENDPOINTS and the health checks
    - Admin-only endpoints (user management, invites, settings) require
      the 'admin' role
    - The cookie carries only the session id; expiry and revocation are
      checked against the ``sessions`` table on every request
"""

import functools
import logging

from flask import g, request, session

from app.models import as_utc, db, utcnow
from app.models.auth import Session
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

SESSION_KEY = "sid"

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "user"}

# Role hierarchy: admin > user
ROLE_HIERARCHY = {
    "admin": {"admin", "user"},
    "user": {"user"},
}

# Endpoints reachable without a session (blueprint.view_name)
PUBLIC_ENDPOINTS = frozenset({
    "auth.register",
    "auth.login",
    "auth.logout",
    "auth.forgot_password",
    "auth.verify_reset_token",
    "auth.reset_password",
    "invite.verify_invite",
    "health_check",
})

# Write last_used_at at most this often per session
_TOUCH_INTERVAL_SECONDS = 300


def load_session_user():
    """
    Resolve the current user from the session cookie.

    Sets ``g.current_user`` and ``g.user_id`` (None when anonymous).
    Inactive or expired sessions are cleared from the cookie.
    """
    g.current_user = None
    g.user_id = None

    sid = session.get(SESSION_KEY)
    if not sid:
        return None

    row = db.session.get(Session, sid)
    if row is None or not row.is_active or row.is_expired:
        session.pop(SESSION_KEY, None)
        return None

    now = utcnow()
    last = row.last_used_at
    if last is None or (now - as_utc(last)).total_seconds() > _TOUCH_INTERVAL_SECONDS:
        row.last_used_at = now
        db.session.commit()

    g.current_user = row.user
    g.user_id = row.user_id
    return row.user


# ── RBAC decorator ───────────────────────────────────────────────────────────

def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_role("admin")
        def list_users(): ...

    Role hierarchy: admin > user
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")

            allowed = ROLE_HIERARCHY.get(user.role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    user.role, minimum_role, request.path,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE) with a body, require
    Content-Type: application/json (or multipart/form-data for uploads).
    HTML forms cannot send application/json, and cross-site multipart posts
    still need the SameSite session cookie.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        allowed = "application/json" in ct or ct.startswith("multipart/form-data")
        if not allowed and request.content_length and request.content_length > 0:
            return api_error(E.UNSUPPORTED_MEDIA_TYPE,
                             "Content-Type must be application/json for state-changing requests")
    return None


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Attaches a before_request hook for API routes
    - Skips health checks, OPTIONS pre-flight and PUBLIC_ENDPOINTS
    """
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        user = load_session_user()

        if request.path == "/api/v1/health" or request.path.startswith("/api/v1/health/"):
            return None
        if request.endpoint in PUBLIC_ENDPOINTS:
            return None
        # Unknown routes fall through to the JSON 404 handler
        if request.endpoint is None:
            return None

        if user is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return None

    logger.info("Session auth middleware installed")
