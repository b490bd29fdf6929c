"""
Read side of the two audit tables: outbound email and AI usage.

Both listings are newest first and paginated with ``limit``/``offset``
(limit capped at 200).
"""

from sqlalchemy import func

from app.core.exceptions import ValidationError
from app.models import db
from app.models.ai import AI_PROVIDERS, AIUsageLog
from app.models.email import EMAIL_CATEGORIES, EMAIL_STATUSES, EmailLog

MAX_PAGE = 200


def _page(limit, offset) -> tuple[int, int]:
    return max(1, min(limit or 50, MAX_PAGE)), max(0, offset or 0)


def _one_of(value, allowed, field):
    if value and value not in allowed:
        raise ValidationError(f"Invalid {field}", details={field: f"must be one of {', '.join(allowed)}"})


def list_email_log(*, status=None, category=None, limit=50, offset=0) -> dict:
    _one_of(status, EMAIL_STATUSES, "status")
    _one_of(category, EMAIL_CATEGORIES, "category")
    limit, offset = _page(limit, offset)

    q = EmailLog.query
    if status:
        q = q.filter_by(status=status)
    if category:
        q = q.filter_by(category=category)
    rows = q.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).offset(offset).limit(limit).all()
    return {"items": [r.to_dict() for r in rows], "total": q.count(), "limit": limit, "offset": offset}


def ai_usage(*, provider=None, project_id=None, limit=50, offset=0) -> dict:
    """Recent calls plus totals per provider for the same filter."""
    _one_of(provider, AI_PROVIDERS, "provider")
    limit, offset = _page(limit, offset)

    filters = []
    if provider:
        filters.append(AIUsageLog.provider == provider)
    if project_id is not None:
        filters.append(AIUsageLog.project_id == project_id)

    rows = (AIUsageLog.query.filter(*filters)
            .order_by(AIUsageLog.created_at.desc(), AIUsageLog.id.desc())
            .offset(offset).limit(limit).all())

    totals = (
        db.session.query(
            AIUsageLog.provider,
            func.count(AIUsageLog.id),
            func.coalesce(func.sum(AIUsageLog.prompt_tokens + AIUsageLog.completion_tokens), 0),
            func.coalesce(func.sum(AIUsageLog.cost_usd), 0.0),
        )
        .filter(*filters)
        .group_by(AIUsageLog.provider)
        .all()
    )
    return {
        "items": [r.to_dict() for r in rows],
        "totals": {
            name: {"calls": calls, "tokens": int(tokens), "cost_usd": round(float(cost), 6)}
            for name, calls, tokens, cost in totals
        },
        "limit": limit,
        "offset": offset,
    }
