import json
import logging
import os
from typing import Any, Optional

from llm.errors import LLMEmptyResponseError, LLMOutputError
from llm.providers.base import LLMProvider

logger = logging.getLogger(__name__)


def extract_first_json_object(text: str) -> dict[str, Any]:
    """Pull the first balanced {...} block out of free model text and parse it.

    Models like to wrap their JSON in prose or code fences, so everything
    before the first "{" and after its matching "}" is ignored. Braces inside
    JSON strings do not count.
    """
    start = text.find("{")
    if start == -1:
        raise LLMOutputError("The model did not return a valid JSON object.")

    depth = 0
    in_string = False
    escaped = False
    end = -1
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                end = i
                break

    if end == -1:
        raise LLMOutputError("The model did not return a valid JSON object.")

    candidate = text[start : end + 1]
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise LLMOutputError(f"The model returned malformed JSON: {e.msg}") from e


def _default_provider() -> LLMProvider:
    name = os.getenv("LLM_PROVIDER", "openai_compatible").strip().lower()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider

        return MockProvider()

    from llm.providers.openai_compatible import OpenAICompatibleProvider

    return OpenAICompatibleProvider()


class LLMClient:
    """Thin wrapper over a provider that turns model text into JSON objects."""

    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider or _default_provider()

    def complete(self, prompt: str, temperature: float = 0.7) -> str:
        content = self.provider.generate(user=prompt, temperature=temperature)
        if not content or not content.strip():
            raise LLMEmptyResponseError()
        return content

    def complete_json(self, prompt: str, temperature: float = 0.7) -> dict[str, Any]:
        content = self.complete(prompt, temperature=temperature)
        try:
            return extract_first_json_object(content)
        except LLMOutputError:
            logger.warning(f"Unusable model output: {content[:200]!r}")
            raise
