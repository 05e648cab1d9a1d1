"""
Orchestrator agent: a fixed bundle of generation parameters and tools handed to
LangGraph's prebuilt ReAct agent.

Retries, the tool-calling loop and token streaming all live in LangChain /
LangGraph and the Gemini client. This module only configures them, converts UI
messages into LangChain messages and re-shapes the streamed output into
`AgentEvent`s.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Literal

from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import tool
from langgraph.errors import GraphRecursionError
from langgraph.prebuilt import create_react_agent

from chatapi.ai.models import build_chat_model, effective_api_key
from chatapi.core.errors import ChatAPIError, ProviderError, ValidationError
from chatapi.core.settings import Settings, get_settings
from chatapi.schemas.chat import UIMessage

logger = logging.getLogger(__name__)


@tool
def some(query: str) -> dict:
    """Some."""
    return {"result": "Some result"}


AGENT_TOOLS = [some]


@dataclass(frozen=True)
class AgentSettings:
    """
    Generation parameters for the orchestrator agent.

    Attributes:
        model: Gemini model id or short catalogue name.
        max_retries: Provider-client retries for a failed request (rate limits, transient errors).
        temperature: Sampling randomness. 0.2 for factual answers, 0.8 for creative writing.
        top_p: Nucleus sampling mass; tokens are drawn from the smallest set whose
            cumulative probability reaches top_p.
        top_k: Number of most probable tokens considered at each step.
        frequency_penalty: Penalises repeating identical tokens (-2..2).
        presence_penalty: Penalises tokens already used, nudging towards new topics (-2..2).
        max_steps: Upper bound on model/tool steps per run.
        max_output_tokens: Ceiling on the length of each model response.
        system_prompt: Role, tone and constraints for the assistant.
        verbose: Log tool calls and step results at INFO.
        seed: Sampling seed; the same seed and input give repeatable output. None leaves it to the provider.
    """

    model: str = "gemini-2.5-flash"
    max_retries: int = 3
    temperature: float = 0.7
    top_p: float = 1.0
    top_k: int = 40
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    max_steps: int = 10
    max_output_tokens: int = 1000
    system_prompt: str = "You are a helpful assistant that can answer questions and help with tasks."
    verbose: bool = True
    seed: int | None = 42

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentSettings":
        return cls(
            model=settings.gemini_model,
            max_retries=settings.agent_max_retries,
            temperature=settings.agent_temperature,
            top_p=settings.agent_top_p,
            top_k=settings.agent_top_k,
            frequency_penalty=settings.agent_frequency_penalty,
            presence_penalty=settings.agent_presence_penalty,
            max_steps=settings.agent_max_steps,
            max_output_tokens=settings.agent_max_output_tokens,
            system_prompt=settings.agent_system_prompt,
            verbose=settings.agent_verbose,
            seed=settings.agent_seed,
        )

    @property
    def recursion_limit(self) -> int:
        # One step = a model call plus its tool node; LangGraph counts both.
        return 2 * int(self.max_steps) + 1


@dataclass
class AgentEvent:
    kind: Literal["text", "tool_call", "tool_result", "finish"]
    text: str = ""
    tool_call_id: str | None = None
    tool_name: str | None = None
    input: Any = None
    output: Any = None
    usage: dict[str, int] = field(default_factory=dict)
    model: str | None = None


def build_agent(agent_settings: AgentSettings, *, api_key: str, tools: Sequence = AGENT_TOOLS):
    llm = build_chat_model(agent_settings, api_key=api_key)
    return create_react_agent(
        llm,
        list(tools),
        prompt=SystemMessage(content=agent_settings.system_prompt) if agent_settings.system_prompt else None,
    )


@lru_cache(maxsize=1)
def get_orchestrator():
    settings = get_settings()
    agent_settings = AgentSettings.from_settings(settings)
    logger.info(
        "Building orchestrator agent (model=%s, tools=%s)",
        agent_settings.model,
        [t.name for t in AGENT_TOOLS],
    )
    return build_agent(agent_settings, api_key=effective_api_key(settings))


def convert_to_model_messages(messages: Sequence[UIMessage]) -> list[BaseMessage]:
    """
    UI messages -> LangChain messages.

    Only text is forwarded. Messages without text are skipped, and `tool`
    messages are dropped because a UI message carries no tool-call id to pair
    them with.
    """
    out: list[BaseMessage] = []
    for msg in messages:
        text = msg.text()
        if not text.strip():
            continue
        if msg.role == "user":
            out.append(HumanMessage(content=text))
        elif msg.role == "assistant":
            out.append(AIMessage(content=text))
        elif msg.role == "system":
            out.append(SystemMessage(content=text))
    return out


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for item in content:
            if isinstance(item, str):
                pieces.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                pieces.append(str(item.get("text") or ""))
        return "".join(pieces)
    return ""


def _tool_output(content: Any) -> Any:
    # Tools return objects; LangChain hands them back JSON-encoded.
    if isinstance(content, str):
        try:
            return json.loads(content)
        except ValueError:
            return content
    return content


def _add_usage(total: dict[str, int], usage: dict[str, Any] | None) -> None:
    if not usage:
        return
    for src, dst in (
        ("input_tokens", "inputTokens"),
        ("output_tokens", "outputTokens"),
        ("total_tokens", "totalTokens"),
    ):
        value = usage.get(src)
        if value:
            total[dst] = total.get(dst, 0) + int(value)


async def stream_agent(
    messages: Sequence[UIMessage],
    *,
    agent=None,
    agent_settings: AgentSettings | None = None,
) -> AsyncIterator[AgentEvent]:
    """
    Run the orchestrator over a UI message history and yield text deltas, tool
    calls (each announced once, before its result), tool results and a final
    `finish` event carrying summed token usage.

    Provider and runtime failures are raised as ProviderError; nothing is
    retried here beyond what the Gemini client already does.
    """
    model_messages = convert_to_model_messages(messages)
    if not any(isinstance(m, HumanMessage) for m in model_messages):
        raise ValidationError("At least one user message with text is required")

    settings = agent_settings or AgentSettings.from_settings(get_settings())
    runner = agent if agent is not None else get_orchestrator()
    usage: dict[str, int] = {}
    # The model turn streamed so far; its merged tool_call_chunks parse into `tool_calls`.
    gathered: AIMessage | None = None
    announced: set[str] = set()

    try:
        async for chunk, meta in runner.astream(
            {"messages": model_messages},
            config={"recursion_limit": settings.recursion_limit},
            stream_mode="messages",
        ):
            if isinstance(chunk, ToolMessage):
                calls = list(getattr(gathered, "tool_calls", None) or [])
                gathered = None
                if chunk.tool_call_id not in {c.get("id") for c in calls}:
                    calls.append({"id": chunk.tool_call_id, "name": chunk.name, "args": None})
                for call in calls:
                    if not call.get("id") or call["id"] in announced:
                        continue
                    announced.add(call["id"])
                    if settings.verbose:
                        logger.info("Agent requested tool %s (call %s)", call.get("name"), call["id"])
                    yield AgentEvent(
                        kind="tool_call",
                        tool_call_id=call["id"],
                        tool_name=call.get("name"),
                        input=call.get("args"),
                    )

                if settings.verbose:
                    logger.info("Tool %s returned for call %s", chunk.name, chunk.tool_call_id)
                yield AgentEvent(
                    kind="tool_result",
                    tool_call_id=chunk.tool_call_id,
                    tool_name=chunk.name,
                    output=_tool_output(chunk.content),
                )
                continue

            if not isinstance(chunk, (AIMessageChunk, AIMessage)):
                continue
            node = (meta or {}).get("langgraph_node")
            if node is not None and node != "agent":
                continue

            if isinstance(chunk, AIMessageChunk) and isinstance(gathered, AIMessageChunk):
                gathered = gathered + chunk
            else:
                gathered = chunk
            _add_usage(usage, getattr(chunk, "usage_metadata", None))

            text = _content_text(chunk.content)
            if text:
                yield AgentEvent(kind="text", text=text)
    except ChatAPIError:
        raise
    except GraphRecursionError as e:
        raise ProviderError(
            f"Agent stopped after {settings.max_steps} steps without a final answer",
            model=settings.model,
        ) from e
    except Exception as e:
        logger.exception("Model provider request failed (model=%s)", settings.model)
        raise ProviderError("Model provider request failed", model=settings.model) from e

    yield AgentEvent(kind="finish", usage=usage, model=settings.model)
