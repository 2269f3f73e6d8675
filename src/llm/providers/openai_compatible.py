from __future__ import annotations
import logging
import os
import httpx
from llm.errors import LLMUnavailableError
from .base import LLMProvider

logger = logging.getLogger(__name__)

# Default endpoint of LM Studio's local server
LM_STUDIO_URL = "http://localhost:1234/v1/chat/completions"


class OpenAICompatibleProvider(LLMProvider):
    """Chat-completions endpoint such as LM Studio, llama.cpp server or OpenAI."""

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self.url = os.getenv("LM_STUDIO_URL", LM_STUDIO_URL).strip()
        # LM Studio ignores the model name
        self.model = os.getenv("LM_STUDIO_MODEL", "local-model").strip()
        self.api_key = os.getenv("LLM_API_KEY", "").strip()
        self.timeout_s = float(os.getenv("LLM_TIMEOUT_S", "60"))
        self._transport = transport

    def generate(self, *, user: str, temperature: float = 0.7) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "model": self.model,
            "messages": [
                # Instructions and data travel together in the user turn
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "stream": False,
        }

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(self.url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Local model unreachable at {self.url}: {e}")
            raise LLMUnavailableError(
                "Failed to connect to the local model. Make sure the inference server is running and the model is loaded."
            ) from e

        if r.is_error:
            logger.error(f"LLM API error {r.status_code}: {r.text}")
            raise LLMUnavailableError(
                f"Failed to connect to the local model. Status: {r.status_code}. Check server logs for details.",
                status_code=r.status_code,
            )

        data = r.json()
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""
