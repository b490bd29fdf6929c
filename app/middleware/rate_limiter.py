"""
Per-blueprint rate limits (Flask-Limiter, keyed by remote address).

The ``limiter`` itself is created in app/__init__.py without default
limits; this module attaches them once every blueprint is registered.
Limits can be overridden per category through RATELIMIT_<CATEGORY>
config keys, e.g. ``RATELIMIT_AI = "5/minute"``.
"""

import logging

logger = logging.getLogger(__name__)

# category -> (default limit, blueprints)
LIMITS = {
    # contradiction / quality analysis calls HuggingFace for every pair
    "ai": ("10/minute", ("analysis",)),
    "auth": ("20/minute", ("auth",)),
    "write": ("60/minute", (
        "project", "requirement", "task", "input_data", "workflow", "role",
        "document_template", "document", "customer", "invite", "admin", "settings",
    )),
    "read": ("200/minute", ("search", "activity", "schema")),
}


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        return

    applied = {}
    for category, (default, blueprint_names) in LIMITS.items():
        limit = app.config.get(f"RATELIMIT_{category.upper()}", default)
        for name in blueprint_names:
            bp = app.blueprints.get(name)
            if bp is not None:
                limiter.limit(limit)(bp)
        applied[category] = limit

    if "health" in app.blueprints:
        limiter.exempt(app.blueprints["health"])

    logger.info("Rate limits: %s", ", ".join(f"{k}={v}" for k, v in applied.items()))
