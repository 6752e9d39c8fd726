import logging

from pydantic import BaseModel

from quickvibe.agent.base import BaseAgent
from quickvibe.agent.llm_client import _strip_code_fences
from quickvibe.agent.prompts.title import TITLE_SYSTEM_PROMPT, TITLE_USER_PROMPT
from quickvibe.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Project"
MAX_TITLE_CHARS = 100


class TitleInput(BaseModel):
    prompt: str
    project_type: str | None = None


class TitleAgent(BaseAgent[TitleInput, str]):
    """Names a project from the user's first prompt."""

    def __init__(self, model_name: str | None = None):
        super().__init__(model_name=model_name or settings.MODEL_TITLE)

    def get_system_prompt(self, **kwargs) -> str:
        return TITLE_SYSTEM_PROMPT

    async def run(self, input_data: TitleInput) -> str:
        hint = f"\nProject type: {input_data.project_type}" if input_data.project_type else ""
        user_prompt = TITLE_USER_PROMPT.format(prompt=input_data.prompt, project_type_hint=hint)
        raw, _ = await self.llm.complete(
            self.get_system_prompt(),
            [{"role": "user", "content": user_prompt}],
            max_tokens=100,
            temperature=0.9,
        )
        title = _strip_code_fences(raw).strip("\"'").strip()
        if not title:
            logger.warning("Title model returned empty output; using default title")
            return DEFAULT_TITLE
        return title.splitlines()[0][:MAX_TITLE_CHARS]
