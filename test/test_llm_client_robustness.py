import json

import httpx
import pytest

from llm.errors import LLMUnavailableError
from llm.llm_client import LLMClient
from llm.providers.mock_provider import MockProvider
from llm.providers.openai_compatible import OpenAICompatibleProvider

def _provider(handler):
    return OpenAICompatibleProvider(transport=httpx.MockTransport(handler))

def test_chat_completion_payload_and_content():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]})

    out = _provider(handler).generate(user="Enhance this", temperature=0.5)

    assert out == "hello"
    assert seen["body"]["stream"] is False
    assert seen["body"]["temperature"] == 0.5
    assert seen["body"]["messages"] == [{"role": "user", "content": "Enhance this"}]

def test_upstream_error_status():
    provider = _provider(lambda request: httpx.Response(503, text="model not loaded"))
    with pytest.raises(LLMUnavailableError) as exc:
        provider.generate(user="x")
    assert exc.value.status_code == 503
    assert "503" in exc.value.message

def test_upstream_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LLMUnavailableError):
        _provider(handler).generate(user="x")

def test_missing_choices_is_empty_text():
    provider = _provider(lambda request: httpx.Response(200, json={"choices": []}))
    assert provider.generate(user="x") == ""

def test_mock_provider_answers_suggestion_prompts():
    from classification.task_suggester import build_prompt

    client = LLMClient(provider=MockProvider())
    out = client.complete_json(build_prompt("Go for a run", "30 minutes", [], []))
    assert out["category"] == "Health"
    assert set(out) == {"category", "priority", "deadline"}
