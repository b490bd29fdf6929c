"""
ReqBridge
Document Writer Assistant.

Free-text generation: PDF summaries for uploaded input data and
``ai-generated`` field values for document templates.
"""

import logging

logger = logging.getLogger(__name__)


class DocumentWriter:
    """Generate prose for summaries and AI-backed document fields."""

    def __init__(self, gateway, prompt_registry, model: str | None = None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.model = model

    def _complete(self, purpose: str, project_id, **variables) -> str:
        template = self.prompt_registry.get(purpose)
        messages = self.prompt_registry.render(purpose, **variables)
        response = self.gateway.chat(
            messages,
            model=self.model,
            purpose=purpose,
            project_id=project_id,
            **template.metadata,
        )
        return (response["content"] or "").strip()

    def summarize_pdf(self, input_data, text: str) -> str:
        return self._complete(
            "pdf_summary", input_data.project_id,
            file_name=input_data.name, context=text[:60_000],
        )

    def generate_field(self, prompt: str, context: str, project_id=None) -> str:
        """Answer a template's custom prompt against the rendered project context."""
        return self._complete(
            "document_field", project_id,
            custom_prompt=prompt, context=context,
        )
