from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from quickvibe.agent.llm_client import LLMClient, LLMUsage, _strip_code_fences


def _mock_client(create: AsyncMock) -> AsyncMock:
    mock_completions = MagicMock()
    mock_completions.create = create

    mock_chat = MagicMock()
    mock_chat.completions = mock_completions

    mock_client_instance = AsyncMock()
    mock_client_instance.chat = mock_chat
    return mock_client_instance


def _response(content: str, prompt_tokens: int = 0, completion_tokens: int = 0) -> MagicMock:
    mock_message = MagicMock()
    mock_message.content = content

    mock_choice = MagicMock()
    mock_choice.message = mock_message

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    mock_response.usage = SimpleNamespace(
        prompt_tokens=prompt_tokens, completion_tokens=completion_tokens
    )
    return mock_response


def _chunk(content: str | None = None, usage=None) -> SimpleNamespace:
    choices = [SimpleNamespace(delta=SimpleNamespace(content=content))] if content is not None else []
    return SimpleNamespace(choices=choices, usage=usage)


async def _stream(chunks):
    for chunk in chunks:
        yield chunk


def test_strip_code_fences():
    assert _strip_code_fences("```text\nHello\n```") == "Hello"
    assert _strip_code_fences("  plain  ") == "plain"
    assert _strip_code_fences("") == ""


@pytest.mark.asyncio
async def test_complete_returns_text_and_usage():
    create = AsyncMock(return_value=_response("Hi there", prompt_tokens=12, completion_tokens=5))

    with patch("quickvibe.agent.llm_client.AsyncOpenAI", return_value=_mock_client(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        text, usage = await client.complete(
            "You are a helpful assistant.",
            [{"role": "user", "content": "Hello"}],
            max_tokens=50,
        )

    assert text == "Hi there"
    assert usage == LLMUsage(input_tokens=12, output_tokens=5)
    assert usage.total_tokens == 17
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["max_tokens"] == 50
    assert kwargs["messages"][0] == {"role": "system", "content": "You are a helpful assistant."}


@pytest.mark.asyncio
async def test_generate_text_retries_after_empty_output():
    create = AsyncMock(side_effect=[_response("   "), _response("```\nNeon Snake\n```")])

    with patch("quickvibe.agent.llm_client.AsyncOpenAI", return_value=_mock_client(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        result = await client.generate_text("Name it.", "A snake game")

    assert result == "Neon Snake"
    assert create.call_count == 2
    retry_system = create.call_args_list[1].kwargs["messages"][0]["content"]
    assert "RETRY INSTRUCTIONS" in retry_system
    assert create.call_args_list[1].kwargs["temperature"] == 0


@pytest.mark.asyncio
async def test_generate_text_raises_when_all_attempts_fail():
    create = AsyncMock(return_value=_response(""))

    with patch("quickvibe.agent.llm_client.AsyncOpenAI", return_value=_mock_client(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        with pytest.raises(ValueError, match="empty content"):
            await client.generate_text("Name it.", "A snake game")


@pytest.mark.asyncio
async def test_stream_text_yields_deltas_then_usage():
    chunks = [
        _chunk("Hello"),
        _chunk(""),
        _chunk(", world"),
        _chunk(usage=SimpleNamespace(prompt_tokens=30, completion_tokens=4)),
    ]
    create = AsyncMock(return_value=_stream(chunks))

    with patch("quickvibe.agent.llm_client.AsyncOpenAI", return_value=_mock_client(create)):
        client = LLMClient(model_name="test-model", api_key="dummy_key")
        items = [item async for item in client.stream_text("sys", [{"role": "user", "content": "hi"}])]

    assert items[:-1] == ["Hello", ", world"]
    assert items[-1] == LLMUsage(input_tokens=30, output_tokens=4)
    assert create.call_args.kwargs["stream"] is True
    assert create.call_args.kwargs["stream_options"] == {"include_usage": True}
