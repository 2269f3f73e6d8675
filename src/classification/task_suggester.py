import asyncio
import logging
from typing import List, Optional

from llm.llm_client import LLMClient
from repositories.contexts import ContextRepository
from repositories.tasks import TaskRepository
from smart_todo.errors import ApiError, ValidationFailed
from smart_todo.models import ContextEntry, Task

logger = logging.getLogger(__name__)

MAX_TASKS = 20
MAX_CONTEXTS = 10
TEMPERATURE = 0.5

AVAILABLE_CATEGORIES = [
    "Work",
    "Personal",
    "Development",
    "Management",
    "Health",
    "Learning",
    "Finance",
    "Home",
]

INSTRUCTIONS = """You are an intelligent task scheduling assistant. Your goal is to suggest a category, priority, and deadline for a new task based on the user's current workload and recent context.

Analyze the following information:
1. The new task's title and description.
2. The user's list of existing tasks.
3. The user's recent context entries (from notes, emails, etc.).
4. A list of available categories.

Based on your analysis, provide the most logical suggestions. The deadline should be in YYYY-MM-DD format.

IMPORTANT: You must respond with only a valid JSON object and nothing else. The JSON object must have three keys: "category", "priority", and "deadline".
Example: {"category": "Work", "priority": "High", "deadline": "2025-07-12"}"""


def build_prompt(
    title: str,
    description: str,
    tasks: List[Task],
    contexts: List[ContextEntry],
) -> str:
    existing_tasks = "\n".join(
        f"- {t.title} (Priority: {t.priority_label}, Due: {t.deadline.isoformat()})"
        for t in tasks[:MAX_TASKS]
    )
    recent_contexts = "\n".join(f"- {c.content}" for c in contexts[:MAX_CONTEXTS])

    user_data = f"""
# New Task
- Title: "{title}"
- Description: "{description}"

# Existing Tasks
{existing_tasks or "No existing tasks."}

# Recent Contexts
{recent_contexts or "No recent contexts."}

# Available Categories
[{", ".join(AVAILABLE_CATEGORIES)}]
"""
    return f"{INSTRUCTIONS}\n\n---\n\n{user_data}"


class TaskSuggester:

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm = llm_client or LLMClient()

    async def suggest(
        self,
        title: Optional[str],
        description: Optional[str],
        tasks: TaskRepository,
        contexts: ContextRepository,
    ) -> dict:
        if not title or not title.strip() or not description or not description.strip():
            raise ValidationFailed("Title and description are required.")

        try:
            task_page, context_page = await asyncio.gather(tasks.list(), contexts.list())
        except ApiError as e:
            logger.error(f"Could not load workload for suggestions: {e}")
            raise ApiError(
                f"Failed to load existing tasks and contexts: {e.message}",
                status_code=e.status_code,
            ) from e

        prompt = build_prompt(title, description, task_page.results, context_page.results)
        return await asyncio.to_thread(self.llm.complete_json, prompt, TEMPERATURE)
