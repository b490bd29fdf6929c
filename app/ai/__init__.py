"""
ReqBridge
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, retry, cost tracking)
    - prompt_registry: YAML / built-in prompt templates
    - assistants: purpose-specific generators built on the gateway
"""

from flask import current_app


def get_prompt_registry():
    """Return the app-wide prompt registry, loaded once per app."""
    from app.ai.prompt_registry import PromptRegistry

    registry = current_app.extensions.get("prompt_registry")
    if registry is None:
        registry = PromptRegistry()
        current_app.extensions["prompt_registry"] = registry
    return registry
