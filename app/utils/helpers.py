"""Shared utility functions used across blueprints and services.

parse_limit:  bounded ?limit= query parameter parsing
parse_id:     integer ids taken from JSON bodies
"""

from app.core.exceptions import ValidationError


def parse_limit(raw, default=10, maximum=100, message="Invalid limit parameter"):
    """Parse a ``limit`` query parameter, raising ValidationError when out of range."""
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if value < 1 or value > maximum:
        raise ValidationError(message)
    return value


def parse_id(raw, field: str) -> int:
    """Positive integer id from a request body (``5`` or ``"5"``)."""
    if isinstance(raw, bool):
        raw = None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if value < 1:
        raise ValidationError(f"Invalid {field}", details={field: "must be a positive integer"})
    return value
