"""
Prompt templates for the AI assistants.

Every assistant has a built-in template below. A YAML file in
``app/ai/prompts/`` (or PROMPTS_DIR) with the same ``name`` and ``version``
replaces it, so prompt wording can be tuned without a code change:

    name: expert_review
    version: v1
    metadata: {max_tokens: 4000, temperature: 0.3}
    system: ...
    user: |-
      Review "{{file_name}}" ...

``metadata`` is passed to the gateway as call options. Placeholders are
``{{name}}``; unknown ones are left in the text as they are.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).with_name("prompts")

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _fill(text: str, values: dict) -> str:
    return _PLACEHOLDER.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), text)


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    system: str
    user: str
    version: str = "v1"
    description: str = ""
    metadata: dict = field(default_factory=dict)

    def render(self, **values) -> list[dict]:
        """Chat messages for the template; empty parts are dropped."""
        messages = []
        for role, text in (("system", self.system), ("user", self.user)):
            content = _fill(text, values)
            if content.strip():
                messages.append({"role": role, "content": content})
        return messages

    def summary(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "metadata": self.metadata,
            "placeholders": sorted(set(_PLACEHOLDER.findall(self.system + self.user))),
        }


def _read_yaml(path: Path) -> PromptTemplate | None:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Skipping prompt file %s: %s", path.name, exc)
        return None
    if not isinstance(data, dict) or not (data.get("system") or data.get("user")):
        logger.warning("Skipping prompt file %s: no system or user text", path.name)
        return None
    return PromptTemplate(
        name=str(data.get("name") or path.stem),
        version=str(data.get("version", "v1")),
        system=data.get("system") or "",
        user=data.get("user") or "",
        description=data.get("description", ""),
        metadata=data.get("metadata") or {},
    )


class PromptRegistry:

    def __init__(self, prompts_dir: str | None = None):
        self._templates: dict[tuple[str, str], PromptTemplate] = {
            (tpl.name, tpl.version): tpl for tpl in _DEFAULT_TEMPLATES
        }
        directory = Path(prompts_dir or os.getenv("PROMPTS_DIR") or DEFAULT_PROMPTS_DIR)
        if directory.is_dir():
            for path in sorted(directory.glob("*.yaml")):
                tpl = _read_yaml(path)
                if tpl is not None:
                    self._templates[(tpl.name, tpl.version)] = tpl
                    logger.debug("Prompt %s/%s loaded from %s", tpl.name, tpl.version, path.name)

    def get(self, name: str, version: str = "v1") -> PromptTemplate | None:
        return self._templates.get((name, version))

    def render(self, name: str, version: str = "v1", **values) -> list[dict]:
        """
        Raises:
            KeyError: no template registered under ``name``/``version``.
        """
        tpl = self.get(name, version)
        if tpl is None:
            raise KeyError(f"Prompt template not found: {name} {version}")
        return tpl.render(**values)

    def list_templates(self) -> list[dict]:
        return [tpl.summary() for tpl in self._templates.values()]


# ── Built-in Default Templates ────────────────────────────────────────────────

_WORKFLOW_SYSTEM = (
    "You are an expert business process analyst and workflow designer specializing "
    "in creating detailed process flows from requirements."
)

_WORKFLOW_USER = """You are an expert Workflow Designer AI. Your task is to analyze the provided software requirement (including its description and acceptance criteria) and design a conceptual workflow using a strictly defined set of node types. The output must be JSON objects representing the workflow's nodes and edges.

**1. Available Node Types:**

You MUST use *only* the following node types for `nodeType` in the node data:

| Node Type      | Purpose                                       |
| :------------- | :-------------------------------------------- |
| Start Event    | Single entry point of the workflow            |
| End Event      | Terminal state (at least one)                 |
| Task           | Automated system action                       |
| User Task      | Action that requires human interaction        |
| Subprocess     | Group of related activities                   |
| Decision       | Exclusive branch on a condition               |
| Parallel GW    | Activities that run in parallel               |
| Wait / Delay   | Timer or waiting state                        |
| Message Event  | Message sent to or received from a party      |
| Error Event    | Error or exception path                       |
| Annotation     | Explanatory note attached to the diagram      |

**2. Node shape:**

{"id": "node-1", "type": "default", "position": {"x": 0, "y": 0},
 "data": {"label": "short label", "nodeType": "<one of the types above>",
          "description": "longer purpose", "justification": "which part of the requirement this covers"}}

**3. Edge shape:**

{"id": "edge-1-2", "source": "node-1", "target": "node-2", "label": "Yes"}

**4. Structure rules:**

- Start with exactly one "Start Event" node and end with at least one "End Event" node
- Use "Decision" nodes for branching and label their outgoing edges
- Use "Task" for system actions and "User Task" for human actions
- Use "Parallel GW" when activities can happen in parallel

**5. Output:** a single JSON object {"nodes": [...], "edges": [...]}.

Requirement title: {{requirement_title}}
Requirement description: {{requirement_description}}

Acceptance criteria:
{{acceptance_criteria}}

Begin designing the workflow now based *only* on the requirement details above and return valid JSON."""

_DEFAULT_TEMPLATES = [
    PromptTemplate(
        name="acceptance_criteria",
        version="v1",
        description="Generate 3-5 Gherkin acceptance criteria for a requirement",
        system=(
            "You are an expert business analyst who writes precise, testable acceptance "
            "criteria in Gherkin format. Always answer with valid JSON only."
        ),
        user=(
            "You are a business analyst with expertise in software development projects. "
            "Your task is to create comprehensive acceptance criteria in Gherkin format for "
            "the following requirement.\n\n"
            "Project Name: {{project_name}}\n"
            "Project Description: {{project_description}}\n\n"
            "Requirement: {{requirement_text}}\n\n"
            "Create 3-5 acceptance criteria scenarios using the Gherkin format. Each scenario should include:\n"
            "1. A descriptive title in the \"Scenario: [title]\" format\n"
            "2. Given-When-Then steps that clearly define the expected behavior\n"
            "3. Example data or values where appropriate\n\n"
            "Focus on testable criteria that would allow stakeholders to verify the requirement "
            "has been implemented correctly. Cover normal operation, edge cases and error "
            "scenarios where relevant.\n\n"
            "Respond with a valid JSON array in this format:\n"
            "[\n"
            "  {\n"
            "    \"title\": \"Scenario title\",\n"
            "    \"description\": \"Complete Gherkin scenario including Given-When-Then\",\n"
            "    \"type\": \"functional|acceptance|error|edge case\"\n"
            "  }\n"
            "]"
        ),
        metadata={"max_tokens": 2000, "temperature": 0.4},
    ),
    PromptTemplate(
        name="implementation_tasks",
        version="v1",
        description="Break a requirement into target-system implementation tasks",
        system=(
            "You are an expert system architect. Always answer with a valid JSON array only."
        ),
        user=(
            "You are an expert system architect specializing in {{target_system}} implementation "
            "projects. Your task is to break down a software requirement into specific "
            "implementation tasks.\n\n"
            "Project: {{project_name}}\n"
            "Source System: {{source_system}}\n"
            "Target System: {{target_system}}\n"
            "Requirement: {{requirement_text}}\n\n"
            "Acceptance Criteria:\n{{acceptance_criteria}}\n\n"
            "Create 3-6 detailed implementation tasks that would be needed to fulfill this "
            "requirement in {{target_system}}. Each task should:\n"
            "1. Have a specific, action-oriented title\n"
            "2. Include comprehensive implementation details with technical specifics\n"
            "3. Specify the system or component where the work needs to be done\n"
            "4. Include complexity and estimated effort\n"
            "5. Specify dependencies or prerequisites where applicable\n"
            "6. List ordered implementation steps with relevant documentation links\n\n"
            "Respond with a valid JSON array in this format:\n"
            "[\n"
            "  {\n"
            "    \"title\": \"Task title\",\n"
            "    \"description\": \"Detailed task description with technical specifics\",\n"
            "    \"system\": \"source|target|both\",\n"
            "    \"taskType\": \"development|configuration|integration|data migration|testing\",\n"
            "    \"complexity\": \"low|medium|high\",\n"
            "    \"estimatedHours\": 8,\n"
            "    \"dependencies\": [\"Prerequisite tasks or components\"],\n"
            "    \"priority\": \"high|medium|low\",\n"
            "    \"implementationSteps\": [\"Step description\"],\n"
            "    \"relevantDocuments\": [{\"title\": \"Doc title\", \"url\": \"https://...\"}]\n"
            "  }\n"
            "]"
        ),
        metadata={"max_tokens": 3000, "temperature": 0.7},
    ),
    PromptTemplate(
        name="workflow_design",
        version="v1",
        description="Design a node/edge workflow for one or more requirements",
        system=_WORKFLOW_SYSTEM,
        user=_WORKFLOW_USER,
        metadata={"max_tokens": 4000, "temperature": 0.2},
    ),
    PromptTemplate(
        name="requirement_extraction",
        version="v1",
        description="Extract requirements from uploaded source material",
        system=(
            "You are a requirements analysis expert. Always answer with a valid JSON array only."
        ),
        user=(
            "You are a business analyst with expertise in software migration projects. Analyze "
            "the provided content and extract clear, detailed requirements for implementing the "
            "described functionality in a target system.\n\n"
            "Project: {{project_name}}\n"
            "Content Type: {{content_type}}\n"
            "File: {{file_name}}\n\n"
            "Content to analyze:\n{{context}}\n\n"
            "Extract at least {{min_requirements}} requirements from this content. For each requirement:\n"
            "1. Provide a concise title (3-10 words) that summarizes the requirement\n"
            "2. Provide a detailed, specific description that explains what needs to be implemented\n"
            "3. Classify it into one of these categories: 'functional', 'non-functional', "
            "'security', 'performance', 'workflow'\n"
            "4. Assign a priority level: 'high', 'medium', or 'low'\n\n"
            "Respond with a valid JSON array in this format:\n"
            "[\n"
            "  {\n"
            "    \"title\": \"Requirement title\",\n"
            "    \"description\": \"Detailed requirement description...\",\n"
            "    \"category\": \"functional|non-functional|security|performance|workflow\",\n"
            "    \"priority\": \"high|medium|low\",\n"
            "    \"source\": \"Generated from document analysis\"\n"
            "  }\n"
            "]"
        ),
        metadata={"max_tokens": 8000, "temperature": 0.3},
    ),
    PromptTemplate(
        name="pdf_summary",
        version="v1",
        description="Summarise an uploaded PDF",
        system="You are a precise technical writer who summarises business documents.",
        user=(
            "Summarise the following document \"{{file_name}}\" for a project team preparing a "
            "system migration. Cover its purpose, the business processes it describes, key "
            "rules and any data it references. Use short markdown sections.\n\n"
            "{{context}}"
        ),
        metadata={"max_tokens": 2000, "temperature": 0.3},
    ),
    PromptTemplate(
        name="document_field",
        version="v1",
        description="Generate one document field from a custom prompt and project context",
        system=(
            "You are an expert business and technical writer, specializing in clear, "
            "professional documentation."
        ),
        user=(
            "{{custom_prompt}}\n\n"
            "{{context}}\n\n"
            "Please provide a professional, well-structured response that addresses the request "
            "above. Use markdown formatting for better readability where appropriate."
        ),
        metadata={"max_tokens": 1000, "temperature": 0.7},
    ),
]
