import os
from typing import Optional

from fastapi import Depends, Request

from api import state
from auth.provider import AuthProvider
from auth.session import Session
from auth.session_provider import SessionProvider
from classification.task_suggester import TaskSuggester
from enhancement.description_enhancer import DescriptionEnhancer
from gateway.backend_client import BackendClient
from integration.calendar_integration import CalendarIntegration
from llm.llm_client import LLMClient
from repositories.contexts import ContextRepository
from repositories.tasks import TaskRepository
from smart_todo.errors import UnauthenticatedError
from storage.session_store import SessionStore

# Configuration
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "todo_session")
TIMEZONE_HEADER = "X-Timezone"

_auth_provider: Optional[AuthProvider] = None
_llm_client: Optional[LLMClient] = None


def get_session_store() -> SessionStore:
    return state.session_store or state.init_session_store()


def get_session_id(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> Optional[str]:
    return store.decode_session_id(request.cookies.get(SESSION_COOKIE))


def get_session(
    session_id: Optional[str] = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
) -> Optional[Session]:
    return store.get(session_id)


def require_session(session: Optional[Session] = Depends(get_session)) -> Session:
    if session is None:
        raise UnauthenticatedError("Unauthorized")
    return session


def get_auth_provider() -> AuthProvider:
    global _auth_provider
    if _auth_provider is None:
        _auth_provider = AuthProvider()
    return _auth_provider


def get_session_provider(
    session_id: Optional[str] = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
    auth: AuthProvider = Depends(get_auth_provider),
) -> SessionProvider:
    return SessionProvider(store, auth, session_id=session_id)


def get_backend_client(session: Optional[Session] = Depends(get_session)) -> BackendClient:
    return BackendClient(session)


def get_calendar_integration(
    request: Request,
    session: Optional[Session] = Depends(get_session),
) -> CalendarIntegration:
    return CalendarIntegration(session, time_zone=request.headers.get(TIMEZONE_HEADER))


def get_task_repository(
    client: BackendClient = Depends(get_backend_client),
    calendar: CalendarIntegration = Depends(get_calendar_integration),
) -> TaskRepository:
    return TaskRepository(client, calendar_notifier=calendar.create_event)


def get_context_repository(
    client: BackendClient = Depends(get_backend_client),
) -> ContextRepository:
    return ContextRepository(client)


def get_llm_client() -> LLMClient:
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


def get_description_enhancer(llm: LLMClient = Depends(get_llm_client)) -> DescriptionEnhancer:
    return DescriptionEnhancer(llm_client=llm)


def get_task_suggester(llm: LLMClient = Depends(get_llm_client)) -> TaskSuggester:
    return TaskSuggester(llm_client=llm)
