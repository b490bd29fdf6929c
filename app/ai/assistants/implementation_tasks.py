"""
ReqBridge
Implementation Task Assistant.

Breaks a requirement (plus its acceptance criteria) into implementation
tasks for the project's target system and normalises the LLM output into
ImplementationTask column values.
"""

import logging

from app.ai.gateway import extract_json

logger = logging.getLogger(__name__)

_COMPLEXITY = {
    "simple": "low", "low": "low",
    "moderate": "medium", "medium": "medium",
    "complex": "high", "high": "high",
}
_PRIORITY = {"low", "medium", "high", "critical"}


def format_criteria(criteria: list[dict]) -> str:
    """Render stored criteria as numbered lines for the prompt."""
    if not criteria:
        return "No acceptance criteria defined."
    return "\n".join(
        f"Acceptance Criterion {i}: {c.get('description', '')}"
        for i, c in enumerate((c for c in criteria if isinstance(c, dict)), 1)
    )


class ImplementationTaskGenerator:
    """Generate implementation tasks for a requirement."""

    PURPOSE = "implementation_tasks"

    def __init__(self, gateway, prompt_registry, model: str | None = None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model

    def generate(self, requirement, project) -> list[dict]:
        template = self.prompt_registry.get(self.PURPOSE)
        messages = self.prompt_registry.render(
            self.PURPOSE,
            project_name=project.name,
            source_system=project.source_system or "Legacy system",
            target_system=project.target_system or "Target system",
            requirement_text=f"{requirement.title}\n\n{requirement.description or ''}".strip(),
            acceptance_criteria=format_criteria(requirement.acceptance_criteria or []),
        )
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=self.PURPOSE,
            project_id=project.id,
            **template.metadata,
        )
        try:
            raw_tasks = extract_json(response["content"], expect=list)
        except ValueError:
            logger.warning("Task generation returned no JSON for requirement %s", requirement.id)
            return []
        tasks = [self.normalise(t, project) for t in raw_tasks if isinstance(t, dict) and t.get("title")]
        logger.info("Generated %d implementation tasks for requirement %s", len(tasks), requirement.id)
        return tasks

    @staticmethod
    def normalise(raw: dict, project) -> dict:
        """Map an LLM task object onto ImplementationTask fields."""
        system = str(raw.get("system") or "target").lower()
        if system not in ("source", "target", "both"):
            source = (project.source_system or "").lower()
            system = "source" if source and source in system else "target"

        steps = []
        for n, step in enumerate(raw.get("implementationSteps") or [], 1):
            if isinstance(step, dict):
                steps.append({
                    "step_number": step.get("stepNumber", n),
                    "step_description": step.get("stepDescription") or step.get("description", ""),
                    "relevant_documentation_links": step.get("relevantDocumentationLinks") or [],
                })
            else:
                steps.append({
                    "step_number": n,
                    "step_description": str(step),
                    "relevant_documentation_links": [],
                })

        docs = []
        for doc in raw.get("relevantDocuments") or []:
            if isinstance(doc, dict) and doc.get("url"):
                docs.append({"title": doc.get("title") or doc["url"], "url": doc["url"]})
            elif isinstance(doc, str):
                docs.append({"title": doc, "url": doc})

        hours = raw.get("estimatedHours")
        try:
            hours = float(hours) if hours is not None else None
        except (TypeError, ValueError):
            hours = None

        description = raw.get("description") or ""
        dependencies = [d for d in raw.get("dependencies") or [] if d]
        if dependencies:
            description += "\n\nDependencies: " + ", ".join(str(d) for d in dependencies)

        priority = str(raw.get("priority") or "medium").lower()
        return {
            "title": str(raw["title"])[:500],
            "description": description,
            "system": system,
            "task_type": raw.get("taskType") or "development",
            "complexity": _COMPLEXITY.get(str(raw.get("complexity") or "").lower(), "medium"),
            "estimated_hours": hours,
            "priority": priority if priority in _PRIORITY else "medium",
            "implementation_steps": steps,
            "overall_documentation_links": docs,
            "sf_documentation_links": [d for d in docs if "salesforce.com" in d["url"]],
        }
