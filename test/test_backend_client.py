import httpx
import pytest

from conftest import BACKEND_URL
from gateway.backend_client import BackendClient
from smart_todo.errors import ApiError, UnauthenticatedError

def _client(session, backend):
    return BackendClient(session, base_url=BACKEND_URL, transport=backend.transport)

@pytest.mark.asyncio
async def test_bearer_token_is_attached(session, fake_backend_factory):
    backend = fake_backend_factory({("GET", "/api/tasks/"): (200, {"results": []})})
    await _client(session, backend).get("/api/tasks/")

    sent = backend.requests[0]
    assert sent.headers["Authorization"] == "Bearer tok-123"
    assert sent.headers["Content-Type"] == "application/json"

@pytest.mark.asyncio
async def test_no_session_fails_before_any_request(fake_backend_factory):
    backend = fake_backend_factory({("GET", "/api/tasks/"): (200, {})})
    with pytest.raises(UnauthenticatedError) as exc:
        await _client(None, backend).get("/api/tasks/")
    assert exc.value.message == "Not authenticated. Please sign in."
    assert backend.requests == []

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,expected",
    [
        (400, {"detail": "Title too long"}, "Title too long"),
        (409, {"message": "Already exists"}, "Already exists"),
        (500, {"unexpected": True}, "500 Internal Server Error"),
    ],
)
async def test_error_message_selection(session, fake_backend_factory, status, body, expected):
    backend = fake_backend_factory({("POST", "/api/tasks/"): (status, body)})
    with pytest.raises(ApiError) as exc:
        await _client(session, backend).post("/api/tasks/", {"title": "x"})
    assert exc.value.message == expected
    assert exc.value.status_code == status

@pytest.mark.asyncio
async def test_network_failure_is_api_error(session):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = BackendClient(session, base_url=BACKEND_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(ApiError) as exc:
        await client.get("/api/tasks/")
    assert exc.value.status_code is None
    assert "connection refused" in exc.value.message

@pytest.mark.asyncio
async def test_no_content_returns_none(session, fake_backend_factory):
    backend = fake_backend_factory({("DELETE", "/api/tasks/9/"): (204, None)})
    assert await _client(session, backend).delete("/api/tasks/9/") is None
