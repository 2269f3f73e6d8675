import logging
from typing import Optional, Union

from gateway.backend_client import ENDPOINTS, BackendClient
from smart_todo.errors import ConfirmationRequired, UnauthenticatedError, ValidationFailed
from smart_todo.models import ContextCreate, ContextEntry, ContextUpdate, Page

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TYPE = "Note"
PROCESSING_MESSAGE = (
    "Context processing started. New tasks will appear shortly."
)


def _entry_path(entry_id: str) -> str:
    return f"{ENDPOINTS['context_entries']}{entry_id}/"


class ContextRepository:
    def __init__(self, client: BackendClient):
        self.client = client

    async def create(self, entry: Union[ContextCreate, dict]) -> ContextEntry:
        if isinstance(entry, dict):
            entry = ContextCreate(**entry)
        if not entry.content.strip():
            raise ValidationFailed("Context content is required")

        payload = {
            "content": entry.content,
            "source_type": entry.source_type.strip() or DEFAULT_SOURCE_TYPE,
        }
        if entry.insights is not None:
            payload["insights"] = entry.insights

        data = await self.client.post(ENDPOINTS["context_entries"], payload)
        return ContextEntry.model_validate(data)

    async def list(self, params: Optional[dict] = None) -> Page[ContextEntry]:
        # Backend already returns newest first
        data = await self.client.get(ENDPOINTS["context_entries"], params=params)
        return Page[ContextEntry].model_validate(data)

    async def update(self, entry_id: str, changes: Union[ContextUpdate, dict]) -> ContextEntry:
        if isinstance(changes, dict):
            changes = ContextUpdate(**changes)
        payload = changes.model_dump(exclude_unset=True)
        if not payload:
            raise ValidationFailed("Nothing to update")
        if "content" in payload and not (payload["content"] or "").strip():
            raise ValidationFailed("Context content is required")

        data = await self.client.patch(_entry_path(entry_id), payload)
        return ContextEntry.model_validate(data)

    async def delete(self, entry_id: str, confirmed: bool = False) -> bool:
        if not confirmed:
            raise ConfirmationRequired("Deleting a context entry must be confirmed")
        await self.client.delete(_entry_path(entry_id))
        return True

    async def trigger_task_creation(self, user_id: Optional[str]) -> dict:
        """Ask the backend to turn accumulated context into tasks.

        Success only means the job was accepted; tasks show up later and no
        completion signal is sent back.
        """
        if not user_id:
            raise UnauthenticatedError()

        data = await self.client.post(f"{ENDPOINTS['process_contexts']}{user_id}/")
        logger.info(f"Context processing accepted for user {user_id}")
        return {
            "accepted": True,
            "message": PROCESSING_MESSAGE,
            "backend": data,
        }
