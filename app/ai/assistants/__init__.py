"""
ReqBridge
AI Assistants package.

Assistants:
    - acceptance_criteria: Requirement → Gherkin acceptance criteria
    - implementation_tasks: Requirement → implementation tasks
    - workflow_designer: Requirements → workflow nodes/edges
    - requirement_extractor: Input data → requirement candidates
    - expert_review: Input data + derived requirements → review
    - document_writer: PDF summaries and AI document fields
"""

from app.ai.assistants.acceptance_criteria import AcceptanceCriteriaGenerator, parse_gherkin
from app.ai.assistants.document_writer import DocumentWriter
from app.ai.assistants.expert_review import ExpertReviewer
from app.ai.assistants.implementation_tasks import ImplementationTaskGenerator
from app.ai.assistants.requirement_extractor import RequirementExtractor
from app.ai.assistants.workflow_designer import WorkflowDesigner, map_node_type

__all__ = [
    "AcceptanceCriteriaGenerator",
    "ImplementationTaskGenerator",
    "WorkflowDesigner",
    "RequirementExtractor",
    "ExpertReviewer",
    "DocumentWriter",
    "build_assistant",
    "parse_gherkin",
    "map_node_type",
]


def build_assistant(cls, model_setting: str, **kwargs):
    """Instantiate an assistant wired to the app gateway and prompt registry.

    ``model_setting`` is a dotted application-settings path such as
    ``"ai.criteria_model"``.
    """
    from app.ai import get_prompt_registry
    from app.ai.gateway import get_gateway
    from app.services import settings_service

    return cls(
        get_gateway(),
        get_prompt_registry(),
        model=settings_service.get_value(model_setting),
        **kwargs,
    )
