"""
LLM gateway routing, retries and usage accounting.
"""

import pytest

from app.ai.gateway import LLMGateway, LLMProvider, extract_json
from app.core.exceptions import AIServiceError, ProviderNotConfiguredError
from app.models.ai import AIUsageLog, calculate_cost


class FlakyProvider(LLMProvider):
    """Fails ``failures`` times, then answers."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def chat(self, messages, model, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("upstream timeout")
        return {"content": "ok", "prompt_tokens": 1000, "completion_tokens": 500, "model": model}


def _gateway(provider, **kw):
    gw = LLMGateway(anthropic_api_key="sk-test", sleep=kw.pop("sleep", lambda s: None), **kw)
    gw._providers["anthropic"] = provider
    return gw


MESSAGES = [{"role": "user", "content": "Write criteria"}]


def test_routing_by_prefix():
    gw = LLMGateway()
    assert gw.provider_name_for("claude-3-5-sonnet-20241022") == "anthropic"
    assert gw.provider_name_for("gpt-4o-mini") == "openai"
    assert gw.provider_name_for("gemini-2.5-pro") == "gemini"
    assert gw.provider_name_for("local-stub") == "local"


def test_missing_key_without_fallback():
    with pytest.raises(ProviderNotConfiguredError):
        LLMGateway().chat(MESSAGES, "gpt-4o")
    assert AIUsageLog.query.count() == 0


def test_stub_fallback_logs_local_usage():
    result = LLMGateway(stub_fallback=True).chat(MESSAGES, "gpt-4o", purpose="document_field")
    assert result["provider"] == "local"
    assert result["cost_usd"] == 0.0
    row = AIUsageLog.query.one()
    assert row.provider == "local"
    assert row.username == "system"
    assert row.success is True


def test_retry_then_success():
    delays = []
    provider = FlakyProvider(failures=2)
    result = _gateway(provider, sleep=delays.append).chat(
        MESSAGES, "claude-3-5-sonnet-20241022", purpose="acceptance_criteria", project_id=None)

    assert provider.calls == 3
    assert delays == [1, 2]
    assert result["content"] == "ok"
    # 1000 * 3.00 + 500 * 15.00 per million
    assert result["cost_usd"] == pytest.approx(0.0105)
    row = AIUsageLog.query.one()
    assert row.total_tokens == 1500
    assert row.purpose == "acceptance_criteria"


def test_exhausted_retries_record_failure():
    provider = FlakyProvider(failures=5)
    with pytest.raises(AIServiceError):
        _gateway(provider).chat(MESSAGES, "claude-3-5-haiku-20241022", max_retries=2)
    assert provider.calls == 2
    row = AIUsageLog.query.one()
    assert row.success is False
    assert row.error_message == "upstream timeout"


def test_no_backoff_when_disabled():
    delays = []
    _gateway(FlakyProvider(failures=1), sleep=delays.append, retry_backoff=False).chat(
        MESSAGES, "claude-3-5-sonnet-20241022")
    assert delays == []


def test_cost_prefix_matching():
    assert calculate_cost("gpt-4o-mini-2024-07-18", 1_000_000, 0) == pytest.approx(0.15)
    assert calculate_cost("gpt-4o-2024-08-06", 1_000_000, 0) == pytest.approx(2.50)
    assert calculate_cost("local-stub", 10_000, 10_000) == 0.0


def test_extract_json_variants():
    assert extract_json('Sure:\n```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('noise [1, 2] tail', expect=list) == [1, 2]
    with pytest.raises(ValueError):
        extract_json("no json here")
