"""
ReqBridge
Requirement Extractor Assistant.

Turns processed input data (extracted document text, transcripts, free
text) into candidate requirements.
"""

import logging

from app.ai.gateway import extract_json

logger = logging.getLogger(__name__)

CATEGORIES = ("functional", "non-functional", "security", "performance", "workflow")
_PRIORITIES = ("high", "medium", "low")

# Long-context models accept far more, but the prompt stays bounded.
MAX_CONTEXT_CHARS = 60_000


class RequirementExtractor:
    """Extract requirement candidates from processed source material."""

    PURPOSE = "requirement_extraction"

    def __init__(self, gateway, prompt_registry, model: str | None = None,
                 min_requirements: int = 5):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model
        self.min_requirements = min_requirements

    def extract(self, input_data, project, text: str) -> list[dict]:
        """
        Returns a list of ``{title, description, category, priority, source}``.
        Empty when the model answers without a usable JSON array.
        """
        template = self.prompt_registry.get(self.PURPOSE)
        messages = self.prompt_registry.render(
            self.PURPOSE,
            project_name=project.name,
            content_type=input_data.type,
            file_name=input_data.name,
            context=text[:MAX_CONTEXT_CHARS],
            min_requirements=self.min_requirements,
        )
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=self.PURPOSE,
            project_id=project.id,
            **template.metadata,
        )
        try:
            items = extract_json(response["content"], expect=list)
        except ValueError:
            logger.warning("Requirement extraction for input %s returned no JSON array", input_data.id)
            return []

        results = []
        for item in items:
            if not isinstance(item, dict) or not str(item.get("title") or "").strip():
                continue
            category = str(item.get("category") or "functional").lower()
            priority = str(item.get("priority") or "medium").lower()
            results.append({
                "title": str(item["title"]).strip()[:255],
                "description": str(item.get("description") or "").strip(),
                "category": category if category in CATEGORIES else "functional",
                "priority": priority if priority in _PRIORITIES else "medium",
                "source": item.get("source") or f"Generated from {input_data.name}",
            })
        return results
