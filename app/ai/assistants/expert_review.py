"""
ReqBridge
Expert Review Assistant.

Compares an uploaded source with the requirements generated from it and
returns an overall assessment plus per-requirement reviews.
"""

import logging

from app.ai.gateway import extract_json
from app.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)


class ExpertReviewer:
    PURPOSE = "expert_review"

    def __init__(self, gateway, prompt_registry, model: str | None = None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model

    def review(self, input_data, requirements: list, text: str) -> dict:
        lines = [
            f"[id={r.id}] {r.code_id}: {r.title} - {r.description or ''}".rstrip(" -")
            for r in requirements
        ]
        template = self.prompt_registry.get(self.PURPOSE)
        messages = self.prompt_registry.render(
            self.PURPOSE,
            file_name=input_data.name,
            context=text[:60_000],
            requirements="\n".join(lines) or "(none)",
        )
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=self.PURPOSE,
            project_id=input_data.project_id,
            **template.metadata,
        )
        try:
            review = extract_json(response["content"], expect=dict)
        except ValueError as e:
            raise AIServiceError("Failed to generate expert review", detail=str(e))

        known = {r.id for r in requirements}
        reviews = [
            rv for rv in review.get("requirementReviews") or []
            if isinstance(rv, dict) and rv.get("requirementId") in known
        ]
        return {
            "overall_assessment": review.get("overallAssessment", ""),
            "strengths": review.get("strengths") or [],
            "gaps": review.get("gaps") or [],
            "recommendations": review.get("recommendations") or [],
            "requirement_reviews": [
                {
                    "requirement_id": rv["requirementId"],
                    "assessment": rv.get("assessment", ""),
                    "comments": rv.get("comments", ""),
                    "suggested_improvements": rv.get("suggestedImprovements") or [],
                }
                for rv in reviews
            ],
            "model": response.get("model"),
        }
