"""
End-to-end tests for AgentRunEngine over scripted models and fake tools.
"""

import asyncio
import time

import pytest
from pydantic import ValidationError

from sleuth.domain import ChatTurn, EventType, RunStatus, UsageTarget
from sleuth.runtime import AgentRunEngine, RunControl, Wire, invoke_model
from sleuth.runtime.engine import FAILURE_MESSAGE, NO_RESPONSE_MESSAGE, extract_model_usage
from sleuth.tools import BaseTool
from tests.fakes import FakeTool, ScriptedModel, doc, drain, text, tool_call, types_of, usage


class SummarizeTool(BaseTool):
    """Calls the auxiliary model from inside the tool."""

    def get_name(self) -> str:
        return "url_summarization"

    def get_description(self) -> str:
        return "Summarize a URL"

    def get_parameters(self):
        return {"type": "object", "properties": {"url": {"type": "string"}}}

    async def execute(self, parameters, context):
        start = time.time()
        model = context.services.auxiliary_model
        response = await invoke_model(context, model, [{"role": "user", "content": "summarize"}])
        return self._create_result(parameters, response.content, start)


@pytest.mark.asyncio
async def test_plain_streamed_answer():
    model = ScriptedModel(
        scripts=[[text("The "), text("sky "), text("is "), text("blue"), usage(10, 4)]]
    )
    sink = Wire()
    engine = AgentRunEngine(model, sink=sink)

    outcome = await engine.run("What color is the sky?")
    events = await drain(sink)

    assert types_of(events) == ["response"] * 4 + ["stats", "end"]
    assert "".join(e.data for e in events if e.type == EventType.RESPONSE) == "The sky is blue"
    stats = [e for e in events if e.type == EventType.STATS]
    assert len(stats) == 1
    assert stats[0].data.primary.output_tokens == 4
    assert stats[0].data.primary.input_tokens == 10
    assert outcome.status == RunStatus.COMPLETED
    assert outcome.markup == "The sky is blue"
    assert outcome.usage.combined_total == 14


@pytest.mark.asyncio
async def test_single_tool_call_lifecycle():
    search = FakeTool(
        "web_search",
        documents=[doc("The sky is blue due to Rayleigh scattering", "https://a", "sky color")],
    )
    model = ScriptedModel(
        scripts=[
            [tool_call("call_1", "web_search", {"query": "sky color"}), usage(20, 5)],
            [text("Blue [1]"), usage(30, 3)],
        ]
    )
    sink = Wire()
    engine = AgentRunEngine(model, sink=sink)

    outcome = await engine.run("What color is the sky?", tools=[search])
    events = await drain(sink)

    assert types_of(events) == [
        "stats",
        "tool_call_started",
        "sources_added",
        "tool_call_success",
        "response",
        "stats",
        "sources",
        "end",
    ]
    started = events[1]
    assert started.tool_call_id == "call_1"
    assert started.content == (
        '<ToolCall type="web_search" status="running" toolCallId="call_1" '
        'query="sky color"></ToolCall>'
    )
    assert events[2].search_query == "sky color"
    assert events[3].tool_call_id == "call_1"
    assert outcome.markup == (
        '<ToolCall type="web_search" status="success" toolCallId="call_1" '
        'query="sky color"></ToolCall>Blue [1]'
    )
    assert len(outcome.documents) == 1
    assert outcome.usage.primary.total_tokens == 58

    # The tool result is fed back to the model
    tool_message = model.calls[1][-1]
    assert tool_message["role"] == "tool"
    assert tool_message["tool_call_id"] == "call_1"


@pytest.mark.asyncio
async def test_hard_cancellation_mid_stream():
    gate = asyncio.Event()
    model = ScriptedModel(scripts=[[text("Hello"), gate, text(" world"), usage(5, 2)]])
    sink = Wire()
    control = RunControl()
    engine = AgentRunEngine(model, sink=sink, control=control)

    task = asyncio.create_task(engine.run("Say hello"))
    events = []
    async with asyncio.timeout(5.0):
        async for event in sink.read():
            events.append(event)
            if event.type == EventType.RESPONSE and not control.is_cancelled:
                control.cancel("user pressed stop")
                gate.set()
        outcome = await task

    errors = [e for e in events if e.type == EventType.ERROR]
    assert len(errors) == 1
    assert errors[0].reason == "cancelled"
    assert errors[0].data == "The search operation was cancelled."
    error_index = events.index(errors[0])
    assert all(e.type != EventType.RESPONSE for e in events[error_index:])
    assert EventType.END not in [e.type for e in events]
    assert outcome.status == RunStatus.CANCELLED
    assert outcome.response == "Hello"


@pytest.mark.asyncio
async def test_cancellation_interrupts_running_tool():
    gate = asyncio.Event()
    search = FakeTool("web_search", gate=gate)
    model = ScriptedModel(scripts=[[tool_call("call_1", "web_search", {"query": "q"})]])
    sink = Wire()
    control = RunControl()
    engine = AgentRunEngine(model, sink=sink, control=control)

    task = asyncio.create_task(engine.run("q", tools=[search]))
    events = []
    async with asyncio.timeout(5.0):
        async for event in sink.read():
            events.append(event)
            if event.type == EventType.TOOL_CALL_STARTED:
                control.cancel()
        outcome = await task

    assert types_of(events) == ["tool_call_started", "error"]
    assert outcome.status == RunStatus.CANCELLED
    assert not gate.is_set()


@pytest.mark.asyncio
async def test_model_failure_is_reported_once():
    model = ScriptedModel(scripts=[[text("partial"), RuntimeError("provider exploded")]])
    sink = Wire()
    engine = AgentRunEngine(model, sink=sink)

    outcome = await engine.run("q")
    events = await drain(sink)

    assert types_of(events) == ["response", "response", "error"]
    assert events[1].data == FAILURE_MESSAGE
    assert events[2].reason == "failed"
    assert "provider exploded" in events[2].data
    assert outcome.status == RunStatus.ERRORED


@pytest.mark.asyncio
async def test_empty_answer_falls_back_to_apology():
    model = ScriptedModel(scripts=[[usage(3, 0)]])
    sink = Wire()
    engine = AgentRunEngine(model, sink=sink)

    outcome = await engine.run("q")
    events = await drain(sink)

    responses = [e.data for e in events if e.type == EventType.RESPONSE]
    assert responses == [NO_RESPONSE_MESSAGE]
    assert events[-1].type == EventType.END
    assert outcome.status == RunStatus.COMPLETED


@pytest.mark.asyncio
async def test_tool_error_result_marks_call_as_error():
    search = FakeTool("web_search", fail_with="upstream timeout")
    model = ScriptedModel(
        scripts=[
            [tool_call("call_1", "web_search", {"query": "q"})],
            [text("Sorry, search failed.")],
        ]
    )
    sink = Wire()
    outcome = await AgentRunEngine(model, sink=sink).run("q", tools=[search])
    events = await drain(sink)

    error = next(e for e in events if e.type == EventType.TOOL_CALL_ERROR)
    assert error.tool_call_id == "call_1"
    assert error.error == "upstream timeout"
    assert 'status="error"' in outcome.markup
    assert 'error="upstream timeout"' in outcome.markup


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_as_tool_error():
    model = ScriptedModel(
        scripts=[[tool_call("call_1", "missing_tool")], [text("done")]]
    )
    sink = Wire()
    await AgentRunEngine(model, sink=sink).run("q", tools=[FakeTool("web_search")])
    events = await drain(sink)

    assert "tool_call_started" in types_of(events)
    error = next(e for e in events if e.type == EventType.TOOL_CALL_ERROR)
    assert "missing_tool" in error.error


@pytest.mark.asyncio
async def test_tool_internal_model_call_counts_as_auxiliary():
    chat = ScriptedModel(
        name="chat",
        scripts=[
            [tool_call("call_1", "url_summarization", {"url": "https://a"}), usage(10, 2)],
            [text("Answer"), usage(20, 5)],
        ],
    )
    system = ScriptedModel(name="system", scripts=[[text("AUX_SUMMARY"), usage(7, 3)]])
    sink = Wire()
    engine = AgentRunEngine(chat, system, sink=sink)

    outcome = await engine.run("q", tools=[SummarizeTool()])
    events = await drain(sink)

    responses = "".join(e.data for e in events if e.type == EventType.RESPONSE)
    assert responses == "Answer"
    assert outcome.usage.auxiliary.total_tokens == 10
    assert outcome.usage.primary.total_tokens == 37
    assert outcome.usage.auxiliary_model == "system"
    assert 'url="https://a"' in outcome.markup


@pytest.mark.asyncio
async def test_youtube_transcript_success_carries_video_id():
    transcript = FakeTool(
        "youtube_transcript",
        documents=[doc("transcript text", "https://youtu.be/abc", source="abc123")],
    )
    model = ScriptedModel(
        scripts=[[tool_call("call_yt", "youtube_transcript", {"query": "video"})], [text("ok")]]
    )
    sink = Wire()
    outcome = await AgentRunEngine(model, sink=sink).run("q", tools=[transcript])
    events = await drain(sink)

    success = next(e for e in events if e.type == EventType.TOOL_CALL_SUCCESS)
    assert success.extra == {"videoId": "abc123"}
    assert "extra=" in outcome.markup


@pytest.mark.asyncio
async def test_history_and_images_shape_the_prompt():
    model = ScriptedModel(scripts=[[text("fine")]])
    engine = AgentRunEngine(model, sink=Wire())

    await engine.run(
        "What is in this picture?",
        history=[("human", "hi"), ("assistant", "<think>private</think>Hello!")],
        system_prompt="You are helpful.",
        image_refs=["https://img/1.png"],
    )

    messages = model.calls[0]
    assert messages[0] == {"role": "system", "content": "You are helpful."}
    assert messages[1] == {"role": "user", "content": "hi"}
    assert messages[2] == {"role": "assistant", "content": "Hello!"}
    assert messages[3]["content"][1] == {
        "type": "image_url",
        "image_url": {"url": "https://img/1.png"},
    }


@pytest.mark.asyncio
async def test_history_roles_are_normalized():
    model = ScriptedModel(scripts=[[text("fine")]])
    history = [
        ChatTurn(role="user", content="earlier question"),
        ChatTurn(role="ai", content="earlier answer"),
        ("user", "pair question"),
    ]

    await AgentRunEngine(model, sink=Wire()).run("q", history=history)

    assert [m["role"] for m in model.calls[0]] == ["user", "assistant", "user", "user"]
    assert history[0].role == "human"


def test_chat_turn_rejects_unknown_roles():
    with pytest.raises(ValidationError):
        ChatTurn(role="system", content="x")
    with pytest.raises(ValidationError):
        ChatTurn.from_pair(("tool", "x"))


@pytest.mark.asyncio
async def test_engine_runs_once():
    model = ScriptedModel(scripts=[[text("a")]])
    engine = AgentRunEngine(model, sink=Wire())
    await engine.run("q")
    with pytest.raises(RuntimeError):
        await engine.run("again")


@pytest.mark.asyncio
async def test_report_usage_from_tool_emits_stats():
    class ReportingTool(FakeTool):
        async def execute(self, parameters, context):
            await context.report_usage("system", {"prompt_tokens": 4, "completion_tokens": 1})
            return await super().execute(parameters, context)

    model = ScriptedModel(scripts=[[tool_call("c", "embed")], [text("done")]])
    sink = Wire()
    outcome = await AgentRunEngine(model, sink=sink).run("q", tools=[ReportingTool("embed")])
    events = await drain(sink)

    stats = [e.data for e in events if e.type == EventType.STATS]
    assert stats and stats[0].auxiliary.total_tokens == 5
    assert outcome.usage.auxiliary.total_tokens == 5
    assert events[-1].type == EventType.END


def test_extract_model_usage_fallbacks():
    assert extract_model_usage({"usage_metadata": {"input_tokens": 1}}) == {"input_tokens": 1}
    assert extract_model_usage(
        {"usage_metadata": None, "response_metadata": {"usage": {"prompt_tokens": 2}}}
    ) == {"prompt_tokens": 2}
    assert extract_model_usage({"llm_output": {"token_usage": {"total_tokens": 3}}}) == {
        "total_tokens": 3
    }
    assert extract_model_usage({"content": "x"}) is None
    assert extract_model_usage(None) is None


def test_usage_target_is_exported():
    assert UsageTarget("primary") == UsageTarget.PRIMARY
