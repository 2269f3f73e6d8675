import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import (
    get_context_repository,
    get_description_enhancer,
    get_task_repository,
    get_task_suggester,
    require_session,
)
from api.metrics import LLM_REQUESTS_TOTAL
from auth.session import Session
from classification.task_suggester import TaskSuggester
from enhancement.description_enhancer import DescriptionEnhancer
from llm.errors import LLMError
from repositories.contexts import ContextRepository
from repositories.tasks import TaskRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class EnhanceIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class SuggestIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


@router.post("/enhance")
async def enhance_description(
    payload: EnhanceIn,
    enhancer: DescriptionEnhancer = Depends(get_description_enhancer),
) -> dict:
    """Rewrite a task description with the local model."""
    try:
        result = await enhancer.enhance(payload.title, payload.description)
    except LLMError as e:
        LLM_REQUESTS_TOTAL.labels(relay="enhance", outcome="error").inc()
        logger.error(f"Error in enhance relay: {e}")
        raise HTTPException(status_code=500, detail=e.message)

    LLM_REQUESTS_TOTAL.labels(relay="enhance", outcome="ok").inc()
    return result


@router.post("/suggest-task-details")
async def suggest_task_details(
    payload: SuggestIn,
    session: Session = Depends(require_session),
    suggester: TaskSuggester = Depends(get_task_suggester),
    tasks: TaskRepository = Depends(get_task_repository),
    contexts: ContextRepository = Depends(get_context_repository),
) -> dict:
    """Suggest category, priority and deadline from the user's workload."""
    try:
        result = await suggester.suggest(payload.title, payload.description, tasks, contexts)
    except LLMError as e:
        LLM_REQUESTS_TOTAL.labels(relay="suggest", outcome="error").inc()
        logger.error(f"Error in suggest-task-details relay for {session.user_id}: {e}")
        raise HTTPException(status_code=500, detail=e.message)

    LLM_REQUESTS_TOTAL.labels(relay="suggest", outcome="ok").inc()
    return result
