import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from auth.session import Principal, Session

BACKEND_URL = "http://backend.test"


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.prompts = []

    def generate(self, *, user: str, temperature: float = 0.7) -> str:
        self.prompts.append(user)
        return self._response_text

@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def session():
    return Session(
        session_id="sid-1",
        access_token="tok-123",
        principal=Principal(id="user-1", email="ana@example.com", provider="email"),
    )


@pytest.fixture
def google_session():
    return Session(
        session_id="sid-2",
        access_token="tok-456",
        principal=Principal(id="user-2", email="bo@example.com", provider="google"),
        provider_token="g-token",
        provider_refresh_token="g-refresh",
    )


def task_json(task_id="1", title="Write report", status="Pending", priority="Medium",
              deadline=None, category_name=None, description="Quarterly numbers"):
    deadline = deadline or (datetime.now(timezone.utc) + timedelta(days=2))
    return {
        "id": task_id,
        "title": title,
        "description": description,
        "category": None,
        "category_name": category_name,
        "priority_score": 0.5,
        "priority_label": priority,
        "deadline": deadline.isoformat(),
        "status": status,
        "created_at": "2025-07-01T09:00:00Z",
        "updated_at": "2025-07-01T09:00:00Z",
    }


def page_json(results):
    return {"count": len(results), "next": None, "previous": None, "results": results}


class FakeBackend:
    """httpx.MockTransport keyed by (method, path); records every request."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"detail": "Not found."})
        answer = self.routes[key]
        if callable(answer):
            return answer(request)
        status, body = answer
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def fake_backend_factory():
    def _make(routes=None):
        return FakeBackend(routes)
    return _make
