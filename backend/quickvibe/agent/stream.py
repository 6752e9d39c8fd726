"""Streams a builder reply as plain text with interleaved control markers.

Each marker is one line, ``__<KIND>__<json>__END__``, written between text
chunks so a client can split them out of the visible reply.
"""

import json
import logging
import re
import time
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from typing import Any

from starlette.concurrency import run_in_threadpool

from quickvibe.agent import pfc
from quickvibe.agent.llm_client import LLMClient, LLMUsage
from quickvibe.agent.prompts.builder import build_system_prompt

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```(\w+)\n([\s\S]*?)```")

UsageCallback = Callable[[LLMUsage, pfc.PFCMetrics], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def marker(kind: str, payload: dict[str, Any]) -> str:
    return f"__{kind}__{json.dumps(payload)}__END__\n"


def progress(status: str, message: str) -> str:
    return marker("PROGRESS", {"type": "progress", "status": status, "message": message})


def to_chat_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [
        {
            "role": "user" if message.get("role") == "user" else "assistant",
            "content": str(message.get("content", "")),
        }
        for message in messages
    ]


def detect_code_change(full_response: str) -> dict[str, Any] | None:
    """Return a ``create`` change for the first complete fenced code block."""
    match = CODE_BLOCK_RE.search(full_response)
    if not match:
        return None
    language, code = match.group(1), match.group(2)
    return {
        "type": "create",
        "file": f"index.{language}",
        "language": language,
        "content": code,
        "linesAdded": len(code.split("\n")),
        "linesRemoved": 0,
        "timestamp": _now(),
    }


async def stream_builder_response(
    *,
    messages: list[dict[str, Any]],
    project_type: str | None = None,
    agents: list[str] | None = None,
    llm: LLMClient | None = None,
    on_complete: UsageCallback | None = None,
) -> AsyncIterator[str]:
    llm = llm or LLMClient()
    started = time.monotonic()
    system_prompt = build_system_prompt(project_type, agents)

    yield progress("starting", "Initializing agent...")
    try:
        yield progress("thinking", "Processing your request...")

        full_response = ""
        content_started = False
        code_changes: list[dict[str, Any]] = []
        usage = LLMUsage()

        async for item in llm.stream_text(system_prompt, to_chat_messages(messages)):
            if isinstance(item, LLMUsage):
                usage = item
                continue

            full_response += item
            if not content_started:
                content_started = True
                yield progress("generating", "Generating response...")
                yield marker(
                    "TOOL",
                    {"type": "tool", "action": "read", "file": "Analyzing project structure...", "timestamp": _now()},
                )

            yield item

            if not code_changes:
                change = detect_code_change(full_response)
                if change:
                    code_changes.append(change)
                    yield marker(
                        "TOOL",
                        {
                            "type": "tool",
                            "action": "create",
                            "file": change["file"],
                            "language": change["language"],
                            "linesAdded": change["linesAdded"],
                            "timestamp": change["timestamp"],
                        },
                    )

        if code_changes:
            yield marker("CHANGES", {"type": "code_changes", "changes": code_changes})

        metrics = pfc.compute_metrics(usage.total_tokens)
        duration = round(time.monotonic() - started, 2)
        logger.info(
            "Stream finished: %s tokens (%s in / %s out) in %ss",
            usage.total_tokens,
            usage.input_tokens,
            usage.output_tokens,
            duration,
        )

        yield "\n\n" + progress("completing", "Finalizing response...")
        yield marker(
            "METRICS",
            {
                "type": "metrics",
                "tokensUsed": usage.total_tokens,
                "inputTokens": usage.input_tokens,
                "outputTokens": usage.output_tokens,
                "contextPercentage": metrics.context_percentage,
                "pfcSaved": metrics.pfc_saved,
                "duration": duration,
                "timestamp": _now(),
            },
        )
    except Exception as exc:
        logger.error("Agent stream failed: %s", exc)
        yield marker("ERROR", {"type": "error", "message": str(exc) or "Failed to process request"})
        return

    if on_complete is not None:
        # The response body has already been sent.
        try:
            await run_in_threadpool(on_complete, usage, metrics)
        except Exception:
            logger.exception("Recording usage for the agent stream failed")
