from typing import Optional


class LLMError(Exception):
    """Base error for model calls. The message is safe to return to clients."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LLMUnavailableError(LLMError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMEmptyResponseError(LLMError):
    def __init__(self, message: str = "Received an empty response from the model."):
        super().__init__(message)


class LLMOutputError(LLMError):
    """The model answered, but not with a usable JSON object."""
