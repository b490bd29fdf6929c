"""
ReqBridge
LLM Gateway.

Provider-agnostic LLM router with:
    - Multi-provider support (Anthropic Claude, Google Gemini, OpenAI, local stub)
    - Model routing by id prefix, retry with capped backoff
    - Usage rows (AIUsageLog) with tokens, cost and the calling request
    - Explicit "Missing API key" failure when a provider is not configured,
      or local-stub fallback when AI_STUB_FALLBACK is enabled (dev/test)

Usage:
    from app.ai.gateway import get_gateway
    gw = get_gateway()
    result = gw.chat(messages, model="claude-3-5-sonnet-20241022",
                     purpose="acceptance_criteria", project_id=3)
"""

import json
import logging
import re
import time
from abc import ABC, abstractmethod

from flask import current_app, g, has_request_context

from app.core.exceptions import AIServiceError, ProviderNotConfiguredError
from app.models import db
from app.models.ai import AIUsageLog, calculate_cost

logger = logging.getLogger(__name__)


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        """
        Send a chat completion request.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            model: Model identifier string.
            **kwargs: temperature, max_tokens, purpose.

        Returns:
            dict with keys: content, prompt_tokens, completion_tokens, model
        """
        ...


# ── Anthropic Provider ────────────────────────────────────────────────────────

class AnthropicProvider(LLMProvider):
    """Claude API (Anthropic) provider."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def chat(self, messages: list, model: str = "claude-3-5-sonnet-20241022", **kwargs) -> dict:
        client = self._get_client()

        # Separate system message
        system_msg = ""
        chat_messages = []
        for m in messages:
            if m["role"] == "system":
                system_msg = m["content"]
            else:
                chat_messages.append(m)

        params = {
            "model": model,
            "messages": chat_messages,
            "max_tokens": kwargs.get("max_tokens", 4096),
            "temperature": kwargs.get("temperature", 0.3),
        }
        if system_msg:
            params["system"] = system_msg

        response = client.messages.create(**params)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )

        return {
            "content": text,
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "model": model,
        }


# ── OpenAI Provider ───────────────────────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def chat(self, messages: list, model: str = "gpt-4o-mini", **kwargs) -> dict:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=kwargs.get("max_tokens", 4096),
            temperature=kwargs.get("temperature", 0.3),
        )
        choice = response.choices[0]
        return {
            "content": choice.message.content or "",
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "model": model,
        }


# ── Google Gemini Provider ───────────────────────────────────────────────────

class GeminiProvider(LLMProvider):
    """
    Google Gemini API provider.

    Used for long-context work (requirement extraction from uploads,
    expert review, PDF summaries).

    Environment:
        GEMINI_API_KEY — obtain at https://aistudio.google.com/apikey
    """

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def chat(self, messages: list, model: str = "gemini-2.5-flash", **kwargs) -> dict:
        client = self._get_client()
        from google.genai import types

        system_parts = []
        contents = []
        for m in messages:
            if m["role"] == "system":
                system_parts.append(m["content"])
            else:
                # Gemini uses "user" and "model" roles
                role = "model" if m["role"] == "assistant" else "user"
                contents.append(
                    types.Content(role=role, parts=[types.Part(text=m["content"])])
                )

        config = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.3),
            max_output_tokens=kwargs.get("max_tokens", 4096),
        )
        if system_parts:
            config.system_instruction = "\n\n".join(system_parts)

        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )

        prompt_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
        completion_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        return {
            "content": response.text or "",
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "model": model,
        }


# ── Local Stub Provider (for dev/test without API keys) ──────────────────────

class LocalStubProvider(LLMProvider):
    """
    Local stub that returns deterministic, purpose-shaped responses.
    No API key required.
    """

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        user_msg = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_msg = m["content"]
                break

        content = self._generate_stub_response(kwargs.get("purpose", ""), user_msg)

        return {
            "content": content,
            "prompt_tokens": len(user_msg.split()) * 2,  # rough estimate
            "completion_tokens": len(content.split()) * 2,
            "model": "local-stub",
        }

    @staticmethod
    def _generate_stub_response(purpose: str, user_msg: str) -> str:
        """Generate a response shaped like the real provider's answer for ``purpose``."""
        if purpose == "acceptance_criteria":
            return json.dumps([
                {
                    "title": "Successful submission",
                    "description": "Scenario: Successful submission\n"
                                   "Given a signed-in user with valid data\n"
                                   "When the user submits the form\n"
                                   "Then the record is saved and a confirmation is shown",
                    "type": "functional",
                },
                {
                    "title": "Missing mandatory field",
                    "description": "Scenario: Missing mandatory field\n"
                                   "Given a signed-in user\n"
                                   "When the user submits without the mandatory field\n"
                                   "Then a validation message is shown",
                    "type": "error",
                },
                {
                    "title": "Maximum length input",
                    "description": "Scenario: Maximum length input\n"
                                   "Given a value of exactly 255 characters\n"
                                   "When the user saves the record\n"
                                   "Then the value is stored without truncation",
                    "type": "edge case",
                },
            ])

        if purpose == "implementation_tasks":
            return json.dumps([
                {
                    "title": "Create data model in target system",
                    "description": "Define objects and fields that hold the migrated records.",
                    "system": "target",
                    "taskType": "configuration",
                    "complexity": "medium",
                    "estimatedHours": 8,
                    "dependencies": [],
                    "priority": "high",
                    "implementationSteps": [
                        "Create the custom object",
                        "Add fields and validation rules",
                    ],
                    "relevantDocuments": [
                        {"title": "Object reference", "url": "https://developer.salesforce.com/docs"},
                    ],
                },
                {
                    "title": "Extract records from source system",
                    "description": "Export the existing records and map them to the new model.",
                    "system": "source",
                    "taskType": "data migration",
                    "complexity": "high",
                    "estimatedHours": 16,
                    "dependencies": ["Create data model in target system"],
                    "priority": "medium",
                    "implementationSteps": ["Write the export query", "Validate record counts"],
                    "relevantDocuments": [],
                },
            ])

        if purpose == "workflow_design":
            workflow = {
                "nodes": [
                    {"id": "start", "data": {"label": "Start", "nodeType": "Start Event"}},
                    {"id": "submit", "data": {"label": "Submit request", "nodeType": "User Task",
                                              "justification": "User initiates the process"}},
                    {"id": "check", "data": {"label": "Approved?", "nodeType": "Decision"}},
                    {"id": "notify", "data": {"label": "Notify requester", "nodeType": "Message Event"}},
                    {"id": "end", "data": {"label": "End", "nodeType": "End Event"}},
                ],
                "edges": [
                    {"id": "e1", "source": "start", "target": "submit"},
                    {"id": "e2", "source": "submit", "target": "check", "type": "smoothstep"},
                    {"id": "e3", "source": "check", "target": "notify", "label": "Yes"},
                    {"id": "e4", "source": "check", "target": "end", "label": "No"},
                    {"id": "e5", "source": "notify", "target": "end"},
                ],
            }
            return "Here is the workflow:\n```json\n" + json.dumps(workflow, indent=2) + "\n```"

        if purpose == "requirement_extraction":
            return json.dumps([
                {"title": "User authentication", "category": "security", "priority": "high",
                 "description": "Users must sign in with their corporate credentials before "
                                "accessing any customer data.",
                 "source": "Generated from document analysis"},
                {"title": "Customer data export", "category": "functional", "priority": "medium",
                 "description": "Authorised users can export customer lists to a spreadsheet.",
                 "source": "Generated from document analysis"},
                {"title": "Order approval workflow", "category": "workflow", "priority": "medium",
                 "description": "Orders above the threshold are routed to a manager for approval.",
                 "source": "Generated from document analysis"},
            ])

        if purpose == "expert_review":
            ids = [int(i) for i in re.findall(r"\[id=(\d+)\]", user_msg)]
            return json.dumps({
                "overallAssessment": "The requirements cover the main processes of the source "
                                     "but leave reporting needs implicit.",
                "strengths": ["Clear separation of security and functional concerns"],
                "gaps": ["No requirement covers audit reporting"],
                "recommendations": ["Add a requirement for audit reporting"],
                "requirementReviews": [
                    {"requirementId": rid, "assessment": "needs_detail",
                     "comments": "Add measurable acceptance thresholds.",
                     "suggestedImprovements": ["Quantify expected volumes"]}
                    for rid in ids
                ],
            })

        if purpose == "pdf_summary":
            return ("## Summary\n\nThe document describes the current order handling process, "
                    "the approval rules applied to large orders and the customer data captured.")

        first_line = user_msg.strip().splitlines()[0] if user_msg.strip() else ""
        return f"Generated content for: {first_line[:200]}"


# ── LLM Gateway (Main Interface) ─────────────────────────────────────────────

class LLMGateway:
    """
    Routes chat calls to a provider by model-id prefix, retries failures
    and writes an ``AIUsageLog`` row for every call, successful or not.

    Usage:
        gw = LLMGateway.from_config(app.config)
        result = gw.chat(
            messages=[{"role": "user", "content": "..."}],
            purpose="acceptance_criteria",
            project_id=7,
        )
    """

    # First matching prefix wins; anything else is served by the local stub
    ROUTES = (
        ("claude", "anthropic"),
        ("gpt", "openai"),
        ("o1", "openai"),
        ("gemini", "gemini"),
    )

    def __init__(self, *, anthropic_api_key="", gemini_api_key="", openai_api_key="",
                 default_model="claude-3-5-sonnet-20241022", stub_fallback=False,
                 retry_backoff=True, sleep=time.sleep):
        self._providers: dict[str, LLMProvider] = {"local": LocalStubProvider()}
        for name, key, cls in (("anthropic", anthropic_api_key, AnthropicProvider),
                               ("gemini", gemini_api_key, GeminiProvider),
                               ("openai", openai_api_key, OpenAIProvider)):
            if key:
                self._providers[name] = cls(key)
        self.default_model = default_model
        self.stub_fallback = stub_fallback
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    @classmethod
    def from_config(cls, config) -> "LLMGateway":
        return cls(
            anthropic_api_key=config.get("ANTHROPIC_API_KEY", ""),
            gemini_api_key=config.get("GEMINI_API_KEY", ""),
            openai_api_key=config.get("OPENAI_API_KEY", ""),
            default_model=config.get("LLM_DEFAULT_MODEL", "claude-3-5-sonnet-20241022"),
            stub_fallback=bool(config.get("AI_STUB_FALLBACK", False)),
            retry_backoff=not config.get("TESTING", False),
        )

    def provider_name_for(self, model: str) -> str:
        return next((name for prefix, name in self.ROUTES if model.startswith(prefix)), "local")

    def _resolve(self, model: str) -> tuple[LLMProvider, str]:
        """
        Provider instance for ``model``.

        Raises:
            ProviderNotConfiguredError: no key for the provider and stub
                fallback is off.
        """
        name = self.provider_name_for(model)
        provider = self._providers.get(name)
        if provider is not None:
            return provider, name
        if not self.stub_fallback:
            raise ProviderNotConfiguredError(name)
        logger.warning("No %s key configured; serving %s from the local stub", name, model,
                       extra={"provider": name})
        return self._providers["local"], "local"

    def chat(
        self,
        messages: list,
        model: str | None = None,
        *,
        purpose: str = "",
        project_id: int | None = None,
        max_retries: int = 3,
        **kwargs,
    ) -> dict:
        """
        Run one chat completion.

        ``kwargs`` (temperature, max_tokens) are passed to the provider.
        Returns the provider result extended with ``cost_usd``,
        ``latency_ms`` and ``provider``.

        Raises:
            ProviderNotConfiguredError: provider key missing, no stub fallback.
            AIServiceError: every attempt failed.
        """
        model = model or self.default_model
        provider, provider_name = self._resolve(model)
        usage = {"provider": provider_name, "purpose": purpose, "project_id": project_id}

        last_error = None
        for attempt in range(max_retries):
            if attempt and self.retry_backoff:
                self._sleep(min(2 ** (attempt - 1), 4))
            started = time.perf_counter()
            try:
                result = provider.chat(messages, model, purpose=purpose, **kwargs)
            except Exception as exc:  # provider SDKs raise their own hierarchies
                last_error = exc
                logger.warning("%s call for %s failed (attempt %d/%d): %s",
                               provider_name, purpose or "chat", attempt + 1, max_retries, exc,
                               extra=usage)
                continue

            latency_ms = int((time.perf_counter() - started) * 1000)
            result["cost_usd"] = calculate_cost(
                result.get("model", model), result["prompt_tokens"], result["completion_tokens"])
            result["latency_ms"] = latency_ms
            result["provider"] = provider_name
            _record_usage(model=result.get("model", model), result=result, **usage)
            logger.info("%s answered %s in %dms", provider_name, purpose or "chat", latency_ms,
                        extra=usage)
            return result

        _record_usage(model=model, result=None, error=str(last_error), **usage)
        raise AIServiceError(
            "AI request failed",
            detail=f"{provider_name} call failed after {max_retries} attempts: {last_error}",
        )


def _record_usage(*, provider, model, purpose, project_id, result, error=None):
    """Add an AIUsageLog row to the caller's transaction (flushed, not committed)."""
    username, request_id = "system", None
    if has_request_context():
        user = g.get("current_user")
        if user is not None:
            username = user.username
        request_id = g.get("request_id")

    result = result or {}
    db.session.add(AIUsageLog(
        provider=provider,
        model=model,
        purpose=purpose,
        prompt_tokens=result.get("prompt_tokens", 0),
        completion_tokens=result.get("completion_tokens", 0),
        cost_usd=result.get("cost_usd", 0.0),
        latency_ms=result.get("latency_ms", 0),
        username=username,
        project_id=project_id,
        request_id=request_id,
        success=error is None,
        error_message=error,
    ))
    db.session.flush()


def get_gateway() -> LLMGateway:
    """Return the app-wide gateway, built lazily from the app config."""
    gw = current_app.extensions.get("llm_gateway")
    if gw is None:
        gw = LLMGateway.from_config(current_app.config)
        current_app.extensions["llm_gateway"] = gw
    return gw


# ── Response parsing helpers ─────────────────────────────────────────────────

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCED_ANY = re.compile(r"```\s*([\s\S]*?)\s*```")


def extract_json(content: str, *, expect: type = dict):
    """
    Pull a JSON value out of an LLM answer.

    Tries, in order: a ```json fenced block, any fenced block, the whole
    text, then the outermost ``{...}`` (or ``[...]`` when ``expect`` is list).

    Raises:
        ValueError: no parseable JSON of the expected type.
    """
    text = (content or "").strip()
    candidates = []
    for pattern in (_FENCED_JSON, _FENCED_ANY):
        m = pattern.search(text)
        if m:
            candidates.append(m.group(1))
    candidates.append(text)
    open_ch, close_ch = ("[", "]") if expect is list else ("{", "}")
    start, end = text.find(open_ch), text.rfind(close_ch)
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(value, expect):
            return value
    raise ValueError("No valid JSON found in AI response")
