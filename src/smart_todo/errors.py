from __future__ import annotations

from typing import Optional


class TodoError(Exception):
    """Base error. The message is always safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(TodoError):
    pass


class ConfirmationRequired(ValidationFailed):
    pass


class UnauthenticatedError(TodoError):
    def __init__(self, message: str = "Not authenticated. Please sign in."):
        super().__init__(message)


class ApiError(TodoError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
