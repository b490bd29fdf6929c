"""AI usage accounting: one ``AIUsageLog`` row per LLM call."""

from app.models import db, iso, utcnow

AI_PROVIDERS = ("anthropic", "openai", "gemini", "huggingface", "local")

# USD per 1M tokens as (input, output), matched by model-id prefix so dated
# releases ("claude-3-5-sonnet-20241022") share the family price.
# Longer prefixes first: "gpt-4o-mini" must win over "gpt-4o".
MODEL_PRICES = (
    ("claude-3-5-haiku", (0.80, 4.00)),
    ("claude-3-5-sonnet", (3.00, 15.00)),
    ("claude-3-7-sonnet", (3.00, 15.00)),
    ("claude-sonnet-4", (3.00, 15.00)),
    ("gpt-4o-mini", (0.15, 0.60)),
    ("gpt-4o", (2.50, 10.00)),
    ("gemini-2.0-flash", (0.10, 0.40)),
    ("gemini-2.5-flash", (0.30, 2.50)),
    ("gemini-2.5-pro", (1.25, 10.00)),
)


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """USD cost of one call; unknown models (and the local stub) are free."""
    for prefix, (per_in, per_out) in MODEL_PRICES:
        if model.startswith(prefix):
            return (prompt_tokens * per_in + completion_tokens * per_out) / 1_000_000
    return 0.0


class AIUsageLog(db.Model):
    __tablename__ = "ai_usage_logs"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(30), nullable=False)
    model = db.Column(db.String(80), nullable=False)
    purpose = db.Column(db.String(100), nullable=False, default="", index=True,
                        comment="assistant that made the call, e.g. acceptance_criteria")
    prompt_tokens = db.Column(db.Integer, nullable=False, default=0)
    completion_tokens = db.Column(db.Integer, nullable=False, default=0)
    cost_usd = db.Column(db.Float, nullable=False, default=0.0)
    latency_ms = db.Column(db.Integer, nullable=False, default=0)

    username = db.Column(db.String(150), nullable=False, default="system")
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"),
                           nullable=True, index=True)
    request_id = db.Column(db.String(64), nullable=True)

    success = db.Column(db.Boolean, nullable=False, default=True)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def total_tokens(self) -> int:
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "model": self.model,
            "purpose": self.purpose,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": round(self.cost_usd or 0.0, 6),
            "latency_ms": self.latency_ms,
            "username": self.username,
            "project_id": self.project_id,
            "request_id": self.request_id,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": iso(self.created_at),
        }
