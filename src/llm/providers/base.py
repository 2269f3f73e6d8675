from __future__ import annotations
from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """One chat turn against a text model. Blocking; callers offload it to a thread."""

    @abstractmethod
    def generate(self, *, user: str, temperature: float = 0.7) -> str:
        """Raw model text. Locating and parsing JSON is LLMClient's job."""
        raise NotImplementedError
