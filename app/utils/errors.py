"""JSON error bodies for the ReqBridge API.

Every error response has the same shape::

    {"error": "Project not found", "code": "ERR_NOT_FOUND", "details": {...}}

``details`` is present only when there is something to report (field
errors from a ValidationError, a provider reason from an AI failure).
A few handlers add top-level keys of their own, e.g. ``path`` on 404s.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes, grouped by the status they default to."""

    # 400
    VALIDATION = "ERR_VALIDATION"
    # 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"
    # 404 / 405
    NOT_FOUND = "ERR_NOT_FOUND"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    # 409
    CONFLICT = "ERR_CONFLICT"
    # 413 / 415 / 429
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "ERR_UNSUPPORTED_MEDIA_TYPE"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    # 500
    DATABASE = "ERR_DATABASE"
    AI_PROVIDER = "ERR_AI_PROVIDER"
    INTERNAL = "ERR_INTERNAL"


_STATUS = {
    E.VALIDATION: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNSUPPORTED_MEDIA_TYPE: 415,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.AI_PROVIDER: 500,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, details: dict | list | str | None = None, **extra):
    """Build ``(response, status)`` for a view or error handler."""
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    body.update(extra)
    return jsonify(body), _STATUS.get(code, 400)
