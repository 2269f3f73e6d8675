"""
HTTP client for the task/category/context backend.

Every call carries the current session's bearer token. Failures surface as a
single ApiError with a human-readable message; callers never look at raw
HTTP status codes.
"""

import logging
import os
from typing import Any, Optional

import httpx

from auth.session import Session
from smart_todo.errors import ApiError, UnauthenticatedError

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000").strip()
API_TIMEOUT_S = float(os.getenv("API_TIMEOUT_S", "30"))

ENDPOINTS = {
    "tasks": "/api/tasks/",
    "categories": "/api/categories/",
    "context_entries": "/api/context-entries/",
    "process_contexts": "/api/process-contexts/",
}


def error_message(response: httpx.Response) -> str:
    """Pick `detail` or `message` from the body, else the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("detail", "message"):
            value = body.get(key)
            if value:
                return str(value)

    return f"{response.status_code} {response.reason_phrase}".strip()


class BackendClient:
    def __init__(
        self,
        session: Optional[Session],
        base_url: str = API_BASE_URL,
        timeout_s: float = API_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> dict:
        if self.session is None or not self.session.access_token:
            raise UnauthenticatedError()
        return {
            "Authorization": f"Bearer {self.session.access_token}",
            "Content-Type": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        headers = self._headers()
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self._transport
            ) as client:
                response = await client.request(
                    method, url, headers=headers, json=json, params=params
                )
        except httpx.HTTPError as e:
            logger.error(f"API request {method} {url} failed: {e}")
            raise ApiError(str(e) or "Network error while contacting the API") from e

        if response.is_error:
            message = error_message(response)
            logger.error(
                f"API error {method} {url}: status={response.status_code} body={response.text[:500]}"
            )
            raise ApiError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
