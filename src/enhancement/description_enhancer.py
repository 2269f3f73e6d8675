import asyncio
from typing import Optional

from llm.llm_client import LLMClient
from smart_todo.errors import ValidationFailed

INSTRUCTIONS = """You are a productivity assistant. Your task is to enhance a user's task description to make it more detailed, actionable, and clear. The user will provide a title and an optional existing description.
IMPORTANT: You must respond with only a valid JSON object and nothing else. The JSON object must have a single key: "enhanced_description". Do not include any other text, markdown formatting, or code blocks. For example: {"enhanced_description": "A detailed new description."}"""

TEMPERATURE = 0.7


def build_prompt(title: str, description: Optional[str]) -> str:
    user_data = (
        f'Task Title: "{title}"\n'
        f'Original Description: "{description or "No description provided."}"'
    )
    return f"{INSTRUCTIONS}\n\n---\n\n{user_data}"


class DescriptionEnhancer:

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm = llm_client or LLMClient()

    async def enhance(self, title: Optional[str], description: Optional[str] = None) -> dict:
        if not title or not title.strip():
            raise ValidationFailed("Title is required to enhance the description.")
        prompt = build_prompt(title, description)
        return await asyncio.to_thread(self.llm.complete_json, prompt, TEMPERATURE)
