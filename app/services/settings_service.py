"""Application settings service.

A single ``application_settings`` row holds overrides of
``DEFAULT_SETTINGS``; reads always return the merged view.

Rules:
  - Only keys present in DEFAULT_SETTINGS may be stored.
  - Numeric settings are range-checked (see _RULES).
  - Every update bumps ``version``.
"""

from __future__ import annotations

import copy
import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.settings import DEFAULT_SETTINGS, ApplicationSettings

logger = logging.getLogger(__name__)

# "section.key" → (type, min, max)
_RULES = {
    "contradiction.similarity_threshold": (float, 0.0, 1.0),
    "contradiction.nli_threshold": (float, 0.0, 1.0),
    "contradiction.max_pairs": (int, 1, 500),
    "contradiction.min_text_length": (int, 1, 1000),
    "requirements.min_generated": (int, 1, 50),
}

_PRIORITIES = {"low", "medium", "high", "critical"}


def _row() -> ApplicationSettings | None:
    return ApplicationSettings.query.order_by(ApplicationSettings.id).first()


def _merge(base: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(base)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def get_settings() -> dict:
    """Return ``{settings, version, description, updated_by, updated_at}``."""
    row = _row()
    if row is None:
        return {
            "settings": copy.deepcopy(DEFAULT_SETTINGS),
            "version": 0,
            "description": None,
            "updated_by": None,
            "updated_at": None,
        }
    d = row.to_dict()
    d["settings"] = _merge(DEFAULT_SETTINGS, row.settings)
    return d


def get_value(path: str, default=None):
    """Look up one setting by dotted path, e.g. ``"ai.criteria_model"``."""
    section, _, key = path.partition(".")
    return get_settings()["settings"].get(section, {}).get(key, default)


def validate_settings(payload: dict) -> dict:
    """Validate a partial settings payload and return it with coerced values.

    Raises:
        ValidationError: unknown section/key or value out of range.
    """
    if not isinstance(payload, dict):
        raise ValidationError("settings must be an object")

    errors: dict[str, str] = {}
    clean: dict[str, dict] = {}
    for section, values in payload.items():
        if section not in DEFAULT_SETTINGS:
            errors[section] = "Unknown settings section"
            continue
        if not isinstance(values, dict):
            errors[section] = "Must be an object"
            continue
        for key, value in values.items():
            path = f"{section}.{key}"
            if key not in DEFAULT_SETTINGS[section]:
                errors[path] = "Unknown setting"
                continue
            rule = _RULES.get(path)
            if rule:
                kind, lo, hi = rule
                try:
                    if isinstance(value, bool):
                        raise TypeError
                    value = kind(value)
                except (TypeError, ValueError):
                    errors[path] = f"Must be a {kind.__name__}"
                    continue
                if not lo <= value <= hi:
                    errors[path] = f"Must be between {lo} and {hi}"
                    continue
            elif path == "requirements.default_priority":
                if value not in _PRIORITIES:
                    errors[path] = f"Must be one of: {', '.join(sorted(_PRIORITIES))}"
                    continue
            elif not isinstance(value, str) or not value.strip():
                errors[path] = "Must be a non-empty string"
                continue
            clean.setdefault(section, {})[key] = value

    if errors:
        raise ValidationError("Invalid settings", details=errors)
    return clean


def update_settings(payload: dict, *, user_id: int | None, description: str | None = None) -> dict:
    """Merge validated overrides into the stored settings and bump the version."""
    clean = validate_settings(payload)

    row = _row()
    if row is None:
        row = ApplicationSettings(settings={}, version=0)
        db.session.add(row)

    row.settings = _merge(row.settings or {}, clean)
    row.version = (row.version or 0) + 1
    row.updated_by = user_id
    if description is not None:
        row.description = description
    db.session.commit()

    logger.info("Application settings updated to version %s by user_id=%s", row.version, user_id)
    return get_settings()


def reset_settings(*, user_id: int | None) -> dict:
    """Drop all overrides (keeps the row so the version history continues)."""
    row = _row()
    if row is not None:
        row.settings = {}
        row.version = (row.version or 0) + 1
        row.updated_by = user_id
        db.session.commit()
    return get_settings()
