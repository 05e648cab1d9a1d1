"""
Server-Sent Events encoding of agent output in the AI SDK UI message stream
format (`x-vercel-ai-ui-message-stream: v1`), so a `useChat` front end can
consume `/api/chat` directly.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from uuid import uuid4

from chatapi.ai.agent import AgentEvent
from chatapi.core.errors import ChatAPIError

logger = logging.getLogger(__name__)

UI_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
    "x-vercel-ai-ui-message-stream": "v1",
}

OnFinish = Callable[[str, AgentEvent], Awaitable[None]]


def sse(payload: Any) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'), default=str)}\n\n"


SSE_DONE = "data: [DONE]\n\n"

STREAM_ERROR_TEXT = "An error occurred while generating the response."


async def ui_message_stream(
    first: AgentEvent | None,
    events: AsyncIterator[AgentEvent],
    *,
    message_id: str | None = None,
    on_finish: OnFinish | None = None,
) -> AsyncIterator[str]:
    """
    Relay agent events as UI stream parts.

    `first` is the event the route already awaited (so provider failures before
    any output become a 5xx instead of a broken stream). Failures after that
    are logged and sent as an `error` part; the stream still terminates with
    `[DONE]`.
    """
    start: dict[str, Any] = {"type": "start"}
    if message_id:
        start["messageId"] = message_id
    yield sse(start)

    text_id: str | None = None
    collected: list[str] = []

    async def _all() -> AsyncIterator[AgentEvent]:
        if first is not None:
            yield first
        async for ev in events:
            yield ev

    try:
        async for event in _all():
            if event.kind == "text":
                if text_id is None:
                    text_id = f"text-{uuid4().hex[:12]}"
                    yield sse({"type": "text-start", "id": text_id})
                collected.append(event.text)
                yield sse({"type": "text-delta", "id": text_id, "delta": event.text})
            elif event.kind == "tool_call":
                if text_id is not None:
                    yield sse({"type": "text-end", "id": text_id})
                    text_id = None
                yield sse(
                    {
                        "type": "tool-input-available",
                        "toolCallId": event.tool_call_id,
                        "toolName": event.tool_name,
                        "input": event.input,
                    }
                )
            elif event.kind == "tool_result":
                yield sse(
                    {
                        "type": "tool-output-available",
                        "toolCallId": event.tool_call_id,
                        "output": event.output,
                    }
                )
            elif event.kind == "finish":
                if text_id is not None:
                    yield sse({"type": "text-end", "id": text_id})
                    text_id = None
                if on_finish is not None:
                    await on_finish("".join(collected), event)
                metadata: dict[str, Any] = {"model": event.model}
                if event.usage:
                    metadata["usage"] = event.usage
                yield sse({"type": "finish", "messageMetadata": metadata})
    except ChatAPIError as e:
        logger.error("Chat stream failed: %s", e.message)
        yield sse({"type": "error", "errorText": e.message})
    except Exception:
        logger.exception("Chat stream failed")
        yield sse({"type": "error", "errorText": STREAM_ERROR_TEXT})

    yield SSE_DONE
