"""
ReqBridge
Acceptance Criteria Assistant.

Pipeline:
    1. Render the ``acceptance_criteria`` prompt with project + requirement text
    2. Call the LLM (Claude by default)
    3. Parse the JSON array of Gherkin scenarios, tolerating chatty answers
    4. Convert each scenario to a stored criterion with structured Gherkin fields
"""

import json
import logging
import re
import uuid

from app.ai.gateway import extract_json

logger = logging.getLogger(__name__)

_OBJECT_RE = re.compile(r"\{[^{}]*\"description\"[^{}]*\}", re.DOTALL)
_STEP_RE = re.compile(r"^\s*(Scenario|Given|When|Then|And|But)\s*:?\s*(.*)$", re.IGNORECASE)


def parse_gherkin(text: str, title: str = "") -> dict:
    """
    Split a Gherkin scenario into ``{title, given, when, and, then, and_then}``.

    ``And``/``But`` lines attach to the preceding When (``and``) or Then
    (``and_then``); an And after Given is folded into ``given``.
    """
    result = {"title": title, "given": "", "when": "", "and": [], "then": "", "and_then": []}
    last = None
    for line in (text or "").splitlines():
        m = _STEP_RE.match(line)
        if not m:
            continue
        keyword, body = m.group(1).lower(), m.group(2).strip()
        if keyword == "scenario":
            result["title"] = result["title"] or body
        elif keyword in ("given", "when", "then"):
            result[keyword] = body
            last = keyword
        elif last == "given":
            result["given"] = f"{result['given']} and {body}".strip()
        elif last == "then":
            result["and_then"].append(body)
        else:
            result["and"].append(body)
    return result


class AcceptanceCriteriaGenerator:
    """Generate Gherkin acceptance criteria for a requirement."""

    PURPOSE = "acceptance_criteria"

    def __init__(self, gateway, prompt_registry, model: str | None = None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model

    def generate(self, requirement, project) -> list[dict]:
        """
        Returns a list of criteria:
            {"id", "description", "status": "pending", "type", "gherkin": {...}}
        """
        template = self.prompt_registry.get(self.PURPOSE)
        messages = self.prompt_registry.render(
            self.PURPOSE,
            project_name=project.name,
            project_description=project.description or "",
            requirement_text=f"{requirement.title}\n\n{requirement.description or ''}".strip(),
        )
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=self.PURPOSE,
            project_id=project.id,
            **template.metadata,
        )
        scenarios = self.parse_response(response["content"])
        logger.info("Generated %d acceptance criteria for requirement %s",
                    len(scenarios), requirement.id)
        return [self._to_criterion(s) for s in scenarios]

    @staticmethod
    def parse_response(content: str) -> list[dict]:
        """Parse the scenario list; falls back to scraping individual objects."""
        try:
            items = extract_json(content, expect=list)
        except ValueError:
            items = []
            for match in _OBJECT_RE.finditer(content or ""):
                try:
                    items.append(json.loads(match.group(0)))
                except json.JSONDecodeError:
                    continue
        return [i for i in items if isinstance(i, dict) and (i.get("description") or i.get("title"))]

    @staticmethod
    def _to_criterion(scenario: dict) -> dict:
        title = (scenario.get("title") or "").strip()
        description = (scenario.get("description") or title).strip()
        return {
            "id": f"ac-{uuid.uuid4().hex[:8]}",
            "description": description,
            "status": "pending",
            "type": scenario.get("type") or "functional",
            "notes": "",
            "gherkin": parse_gherkin(description, title),
        }
