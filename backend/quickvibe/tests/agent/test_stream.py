import json
import re

import pytest

from quickvibe.agent.llm_client import LLMUsage
from quickvibe.agent.stream import detect_code_change, marker, stream_builder_response

MARKER_RE = re.compile(r"__([A-Z]+)__(.*?)__END__\n")


class FakeStreamLLM:
    def __init__(self, chunks, usage=None, error=None):
        self.chunks = chunks
        self.usage = usage or LLMUsage()
        self.error = error
        self.system_prompt = None

    async def stream_text(self, system_prompt, messages, *, max_tokens=None):
        self.system_prompt = system_prompt
        self.messages = messages
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error
        yield self.usage


def _markers(output: str) -> list[tuple[str, dict]]:
    return [(kind, json.loads(payload)) for kind, payload in MARKER_RE.findall(output)]


async def _collect(**kwargs) -> str:
    return "".join([part async for part in stream_builder_response(**kwargs)])


def test_marker_format():
    assert marker("PROGRESS", {"a": 1}) == '__PROGRESS__{"a": 1}__END__\n'


def test_detect_code_change_requires_closed_block():
    assert detect_code_change("```html\n<p>hi") is None
    change = detect_code_change("Intro\n```html\n<p>hi</p>\n```\nDone")
    assert change["file"] == "index.html"
    assert change["content"] == "<p>hi</p>\n"
    assert change["linesAdded"] == 2


@pytest.mark.asyncio
async def test_stream_interleaves_markers_with_text():
    llm = FakeStreamLLM(
        ["Here you go\n", "```html\n<h1>Hi</h1>\n", "```\n", "Summary"],
        usage=LLMUsage(input_tokens=900, output_tokens=100),
    )
    recorded = []

    output = await _collect(
        messages=[{"role": "user", "content": "make a page"}, {"role": "system", "content": "x"}],
        project_type="WEB_APP",
        agents=["frontend-developer"],
        llm=llm,
        on_complete=lambda usage, metrics: recorded.append((usage, metrics)),
    )

    markers = _markers(output)
    kinds = [kind for kind, _ in markers]
    assert kinds == ["PROGRESS", "PROGRESS", "PROGRESS", "TOOL", "TOOL", "CHANGES", "PROGRESS", "METRICS"]
    assert [payload["status"] for kind, payload in markers if kind == "PROGRESS"] == [
        "starting",
        "thinking",
        "generating",
        "completing",
    ]
    assert markers[3][1]["action"] == "read"
    assert markers[4][1]["action"] == "create"
    assert markers[5][1]["changes"][0]["language"] == "html"

    metrics = markers[-1][1]
    assert metrics["tokensUsed"] == 1000
    assert metrics["inputTokens"] == 900
    assert metrics["contextPercentage"] == 0.5
    assert metrics["pfcSaved"] == 4000

    text = MARKER_RE.sub("", output)
    assert "Here you go" in text and "Summary" in text

    assert "Project Type: WEB_APP" in llm.system_prompt
    assert "frontend-developer" in llm.system_prompt
    assert llm.messages[1]["role"] == "assistant"
    assert recorded[0][0].total_tokens == 1000


@pytest.mark.asyncio
async def test_stream_without_code_has_no_changes_marker():
    output = await _collect(messages=[{"role": "user", "content": "hi"}], llm=FakeStreamLLM(["Hello"]))
    kinds = [kind for kind, _ in _markers(output)]
    assert "CHANGES" not in kinds
    assert kinds[-1] == "METRICS"


@pytest.mark.asyncio
async def test_stream_error_becomes_error_marker():
    recorded = []
    output = await _collect(
        messages=[{"role": "user", "content": "hi"}],
        llm=FakeStreamLLM(["partial"], error=RuntimeError("overloaded")),
        on_complete=lambda usage, metrics: recorded.append(usage),
    )

    markers = _markers(output)
    assert markers[-1] == ("ERROR", {"type": "error", "message": "overloaded"})
    assert recorded == []


@pytest.mark.asyncio
async def test_usage_recording_failure_does_not_break_stream(caplog):
    def fail(usage, metrics):
        raise LookupError("User not found")

    output = await _collect(
        messages=[{"role": "user", "content": "hi"}],
        llm=FakeStreamLLM(["Hello"], usage=LLMUsage(input_tokens=5, output_tokens=5)),
        on_complete=fail,
    )

    assert _markers(output)[-1][0] == "METRICS"
    assert "Recording usage for the agent stream failed" in caplog.text
