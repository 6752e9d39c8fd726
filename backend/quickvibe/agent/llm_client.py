import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass

from openai import AsyncOpenAI

from quickvibe.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class LLMUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def _strip_code_fences(text: str) -> str:
    if not text:
        return ""
    fenced = re.match(r"^\s*```[a-zA-Z0-9_-]*\s*([\s\S]*?)\s*```\s*$", text)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def _usage_from_response(usage) -> LLMUsage:
    if usage is None:
        return LLMUsage()
    return LLMUsage(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


class LLMClient:
    """Async chat client speaking the OpenAI API against the configured provider."""

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        self.model_name = model_name or settings.MODEL_DEFAULT
        self.client = AsyncOpenAI(
            base_url=base_url or settings.LLM_BASE_URL,
            api_key=api_key or settings.ANTHROPIC_API_KEY,
        )

    def _build_messages(self, system_prompt: str, messages: list[dict[str, str]]) -> list[dict[str, str]]:
        return [{"role": "system", "content": system_prompt}, *messages]

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> tuple[str, LLMUsage]:
        """Single non-streamed completion. Returns the text and token usage."""
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        logger.info("Issuing completion request to model %s", self.model_name)
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=self._build_messages(system_prompt, messages),
            max_tokens=max_tokens or settings.STREAM_MAX_TOKENS,
            **kwargs,
        )
        if not getattr(response, "choices", None):
            raise ValueError(f"Provider {self.model_name} returned no output")
        text = response.choices[0].message.content or ""
        return text, _usage_from_response(getattr(response, "usage", None))

    async def generate_text(
        self, system_prompt: str, user_prompt: str, *, temperature: float = 0.2, max_tokens: int | None = None
    ) -> str:
        """
        Generate plain text content, retrying once with stricter instructions.
        Removes markdown code fences if the model wraps the response.
        """
        prompts = [
            system_prompt,
            (
                f"{system_prompt}\n\n"
                "RETRY INSTRUCTIONS: Return only the requested text with no markdown fences "
                "and no explanation."
            ),
        ]
        for attempt_idx, system_prompt_attempt in enumerate(prompts, start=1):
            try:
                logger.info(
                    "Issuing text request to model %s (attempt %s/%s)...",
                    self.model_name,
                    attempt_idx,
                    len(prompts),
                )
                text_response, _ = await self.complete(
                    system_prompt_attempt,
                    [{"role": "user", "content": user_prompt}],
                    max_tokens=max_tokens,
                    temperature=0 if attempt_idx > 1 else temperature,
                )
                text_response = _strip_code_fences(text_response.strip())
                if not text_response:
                    raise ValueError("Model returned empty content")
                return text_response
            except Exception as e:
                if attempt_idx < len(prompts):
                    logger.warning(
                        "Text generation failed for %s on attempt %s/%s: %s. Retrying...",
                        self.model_name,
                        attempt_idx,
                        len(prompts),
                        e,
                    )
                    continue
                logger.error("Error generating text response from %s: %s", self.model_name, e)
                raise
        raise RuntimeError("Text generation failed without a captured error")

    async def stream_text(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str | LLMUsage]:
        """Yield text deltas as they arrive, then a final ``LLMUsage``."""
        logger.info("Opening stream to model %s", self.model_name)
        stream = await self.client.chat.completions.create(
            model=self.model_name,
            messages=self._build_messages(system_prompt, messages),
            max_tokens=max_tokens or settings.STREAM_MAX_TOKENS,
            stream=True,
            stream_options={"include_usage": True},
        )
        usage = LLMUsage()
        async for chunk in stream:
            if getattr(chunk, "usage", None):
                usage = _usage_from_response(chunk.usage)
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
        yield usage
