import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_context_repository, get_session_id, get_session_store
from repositories.contexts import ContextRepository
from smart_todo.models import ContextCreate, ContextUpdate
from storage.session_store import SessionStore

router = APIRouter(prefix="/contexts")
logger = logging.getLogger(__name__)


@router.get("")
async def list_contexts(contexts: ContextRepository = Depends(get_context_repository)) -> dict:
    page = await contexts.list()
    return page.model_dump(mode="json")


@router.post("", status_code=201)
async def create_context(
    payload: ContextCreate,
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    return (await contexts.create(payload)).model_dump(mode="json")


@router.post("/process", status_code=202)
async def process_contexts(
    session_id: Optional[str] = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    """Queue context-to-task conversion on the backend; tasks arrive later."""
    user_id = store.user_id(session_id)
    return await contexts.trigger_task_creation(user_id)


@router.patch("/{entry_id}")
async def update_context(
    entry_id: str,
    payload: ContextUpdate,
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    return (await contexts.update(entry_id, payload)).model_dump(mode="json")


@router.delete("/{entry_id}")
async def delete_context(
    entry_id: str,
    confirm: bool = False,
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    await contexts.delete(entry_id, confirmed=confirm)
    return {"status": "deleted", "id": entry_id}
