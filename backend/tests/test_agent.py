from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage, ToolMessage
from langgraph.errors import GraphRecursionError

from chatapi.ai import models as ai_models
from chatapi.ai.agent import (
    AgentSettings,
    convert_to_model_messages,
    some,
    stream_agent,
)
from chatapi.core.errors import ConfigurationError, ProviderError, ValidationError
from chatapi.core.settings import Settings
from chatapi.schemas.chat import UIMessage


class _FakeRunner:
    """Stands in for the compiled LangGraph agent; replays (chunk, metadata) pairs."""

    def __init__(self, items=(), *, error: Exception | None = None) -> None:
        self.items = list(items)
        self.error = error
        self.calls: list[dict] = []

    async def astream(self, payload, *, config=None, stream_mode=None):
        self.calls.append({"payload": payload, "config": config, "stream_mode": stream_mode})
        for item in self.items:
            yield item
        if self.error is not None:
            raise self.error


async def _collect(gen) -> list:
    return [ev async for ev in gen]


def _user(text: str) -> UIMessage:
    return UIMessage(role="user", parts=[{"type": "text", "text": text}])


def test_some_tool_returns_fixed_result() -> None:
    assert some.name == "some"
    assert some.invoke({"query": "anything"}) == {"result": "Some result"}


def test_convert_to_model_messages_maps_roles_and_skips_empty_and_tool() -> None:
    out = convert_to_model_messages(
        [
            UIMessage(role="system", content="be brief"),
            _user("hi"),
            UIMessage(role="assistant", parts=[{"type": "text", "text": "hel"}, {"type": "text", "text": "lo"}]),
            UIMessage(role="tool", content="ignored"),
            UIMessage(role="user", parts=[{"type": "file", "url": "x"}]),
        ]
    )
    assert [type(m) for m in out] == [SystemMessage, HumanMessage, AIMessage]
    assert out[2].content == "hello"


def test_agent_settings_defaults_and_recursion_limit(monkeypatch) -> None:
    monkeypatch.delenv("AGENT_SEED", raising=False)
    s = AgentSettings.from_settings(Settings(_env_file=None))
    assert s.model == "gemini-2.5-flash"
    assert s.max_retries == 3
    assert s.temperature == pytest.approx(0.7)
    assert s.top_k == 40
    assert s.max_output_tokens == 1000
    assert s.recursion_limit == 21
    assert s.seed == 42


@pytest.mark.asyncio
async def test_stream_agent_yields_tool_call_result_text_and_usage() -> None:
    agent = {"langgraph_node": "agent"}
    runner = _FakeRunner(
        [
            (
                AIMessageChunk(
                    content="",
                    tool_call_chunks=[{"name": "some", "args": '{"query": ', "id": "call-1", "index": 0}],
                ),
                agent,
            ),
            (
                AIMessageChunk(
                    content="",
                    tool_call_chunks=[{"name": None, "args": '"x"}', "id": None, "index": 0}],
                    usage_metadata={"input_tokens": 5, "output_tokens": 1, "total_tokens": 6},
                ),
                agent,
            ),
            (
                ToolMessage(content='{"result": "Some result"}', name="some", tool_call_id="call-1"),
                {"langgraph_node": "tools"},
            ),
            (AIMessageChunk(content="Hel"), agent),
            (
                AIMessageChunk(
                    content="lo",
                    usage_metadata={"input_tokens": 7, "output_tokens": 2, "total_tokens": 9},
                ),
                agent,
            ),
        ]
    )
    settings = AgentSettings(model="gemini-test", max_steps=3, verbose=False)

    events = await _collect(stream_agent([_user("hi")], agent=runner, agent_settings=settings))

    assert [e.kind for e in events] == ["tool_call", "tool_result", "text", "text", "finish"]
    call_event, result_event = events[0], events[1]
    assert (call_event.tool_call_id, call_event.tool_name, call_event.input) == ("call-1", "some", {"query": "x"})
    assert (result_event.tool_call_id, result_event.tool_name) == ("call-1", "some")
    assert result_event.output == {"result": "Some result"}
    assert "".join(e.text for e in events if e.kind == "text") == "Hello"
    assert events[-1].usage == {"inputTokens": 12, "outputTokens": 3, "totalTokens": 15}
    assert events[-1].model == "gemini-test"

    call = runner.calls[0]
    assert call["stream_mode"] == "messages"
    assert call["config"] == {"recursion_limit": 7}
    assert isinstance(call["payload"]["messages"][0], HumanMessage)


@pytest.mark.asyncio
async def test_stream_agent_announces_each_tool_call_once_before_its_result() -> None:
    runner = _FakeRunner(
        [
            (
                AIMessage(
                    content="",
                    tool_calls=[
                        {"name": "some", "args": {"query": "a"}, "id": "call-a"},
                        {"name": "some", "args": {"query": "b"}, "id": "call-b"},
                    ],
                ),
                {"langgraph_node": "agent"},
            ),
            (ToolMessage(content="plain text", name="some", tool_call_id="call-a"), {"langgraph_node": "tools"}),
            (ToolMessage(content='{"result": 2}', name="some", tool_call_id="call-b"), {"langgraph_node": "tools"}),
            # No preceding model turn for this one; it is still announced before its result.
            (ToolMessage(content="{}", name="some", tool_call_id="call-c"), {"langgraph_node": "tools"}),
        ]
    )

    events = await _collect(stream_agent([_user("hi")], agent=runner, agent_settings=AgentSettings(verbose=False)))

    assert [(e.kind, e.tool_call_id) for e in events[:-1]] == [
        ("tool_call", "call-a"),
        ("tool_call", "call-b"),
        ("tool_result", "call-a"),
        ("tool_result", "call-b"),
        ("tool_call", "call-c"),
        ("tool_result", "call-c"),
    ]
    assert events[0].input == {"query": "a"}
    assert events[2].output == "plain text"
    assert events[3].output == {"result": 2}
    assert events[4].input is None


@pytest.mark.asyncio
async def test_stream_agent_ignores_chunks_from_other_nodes() -> None:
    runner = _FakeRunner(
        [
            (AIMessageChunk(content="summary"), {"langgraph_node": "summarize"}),
            (AIMessageChunk(content="answer"), {"langgraph_node": "agent"}),
        ]
    )
    events = await _collect(stream_agent([_user("hi")], agent=runner, agent_settings=AgentSettings(verbose=False)))
    assert [e.text for e in events if e.kind == "text"] == ["answer"]


@pytest.mark.asyncio
async def test_stream_agent_requires_user_text() -> None:
    runner = _FakeRunner()
    with pytest.raises(ValidationError):
        await _collect(
            stream_agent([UIMessage(role="assistant", content="hi")], agent=runner, agent_settings=AgentSettings())
        )
    assert runner.calls == []


@pytest.mark.asyncio
async def test_stream_agent_wraps_provider_failures() -> None:
    runner = _FakeRunner(error=RuntimeError("quota exceeded"))
    with pytest.raises(ProviderError) as exc:
        await _collect(stream_agent([_user("hi")], agent=runner, agent_settings=AgentSettings(model="m")))
    assert exc.value.status_code == 502
    assert exc.value.model == "m"
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_stream_agent_reports_step_limit() -> None:
    runner = _FakeRunner(error=GraphRecursionError("too many steps"))
    with pytest.raises(ProviderError) as exc:
        await _collect(stream_agent([_user("hi")], agent=runner, agent_settings=AgentSettings(max_steps=2)))
    assert "2 steps" in exc.value.message


def test_build_chat_model_passes_generation_params(monkeypatch) -> None:
    captured: dict = {}

    def _fake_chat_model(**kwargs):
        captured.update(kwargs)
        return object()

    monkeypatch.setattr(ai_models, "ChatGoogleGenerativeAI", _fake_chat_model)

    ai_models.build_chat_model(
        AgentSettings(model="gemini_pro", temperature=0.2, top_p=0.9, top_k=10, presence_penalty=0.5),
        api_key="k",
    )

    assert captured["model"] == "gemini-2.5-pro"
    assert captured["api_key"] == "k"
    assert captured["temperature"] == pytest.approx(0.2)
    assert captured["top_p"] == pytest.approx(0.9)
    assert captured["top_k"] == 10
    assert captured["max_output_tokens"] == 1000
    assert captured["max_retries"] == 3
    assert captured["presence_penalty"] == pytest.approx(0.5)
    assert "frequency_penalty" not in captured
    assert captured["seed"] == 42

    captured.clear()
    ai_models.build_chat_model(AgentSettings(seed=None), api_key="k")
    assert "seed" not in captured


def test_effective_api_key_prefers_google_key_and_requires_one(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assert ai_models.effective_api_key(Settings(_env_file=None, GOOGLE_API_KEY="g", GEMINI_API_KEY="x")) == "g"
    assert ai_models.effective_api_key(Settings(_env_file=None, GEMINI_API_KEY="x")) == "x"
    with pytest.raises(ConfigurationError):
        ai_models.effective_api_key(Settings(_env_file=None, GOOGLE_API_KEY="  "))
