"""
Tests for the built-in tools and the tool registry.
"""

import pytest

from sleuth.domain import EventType
from sleuth.runtime import AgentRunEngine, ExecutionContext, RunServices, Wire
from sleuth.runtime.exceptions import ToolNotFoundError
from sleuth.tools import TodoListTool, ToolRegistry
from tests.fakes import FakeTool, ScriptedModel, drain, text, tool_call, types_of


def todo_context(emitted: list) -> ExecutionContext:
    async def emit(event):
        emitted.append(event)

    return ExecutionContext(run_id="tool_1", services=RunServices(chat_model=ScriptedModel(), emit=emit))


class TestTodoListTool:
    @pytest.mark.asyncio
    async def test_updates_list_and_emits_event(self):
        emitted = []
        todos = [
            {"content": "Find sources", "status": "completed"},
            {"content": "Compare claims", "status": "in_progress"},
            {"content": "Write summary", "status": "pending"},
        ]

        result = await TodoListTool().execute({"todos": todos}, todo_context(emitted))

        assert result.is_success
        assert result.content == (
            "Todo list updated: 3 items (1 completed, 1 in progress, 1 pending)."
        )
        assert types_of(emitted) == ["todo_update"]
        assert emitted[0].data == {"todos": todos}

    @pytest.mark.asyncio
    async def test_too_many_items(self):
        emitted = []
        todos = [{"content": f"task {i}", "status": "pending"} for i in range(11)]

        result = await TodoListTool().execute({"todos": todos}, todo_context(emitted))

        assert result.content.startswith("Error: Task list exceeds maximum of 10 items (11 provided)")
        assert emitted == []

    @pytest.mark.asyncio
    async def test_empty_list(self):
        emitted = []
        result = await TodoListTool().execute({"todos": []}, todo_context(emitted))

        assert result.content == "Error: Task list cannot be empty. Provide at least one task."
        assert emitted == []

    @pytest.mark.asyncio
    async def test_invalid_status(self):
        emitted = []
        result = await TodoListTool().execute(
            {"todos": [{"content": "x", "status": "blocked"}]}, todo_context(emitted)
        )

        assert not result.is_success
        assert "Invalid todo item" in result.error
        assert emitted == []

    @pytest.mark.asyncio
    async def test_no_tool_call_markup_through_engine(self):
        model = ScriptedModel(
            scripts=[
                [tool_call("call_t", "todo_list", {"todos": [{"content": "a", "status": "pending"}]})],
                [text("done")],
            ]
        )
        sink = Wire()

        outcome = await AgentRunEngine(model, sink=sink).run("plan it", tools=[TodoListTool()])
        events = await drain(sink)

        assert types_of(events) == ["todo_update", "response", "stats", "end"]
        assert "<ToolCall" not in outcome.markup
        assert model.calls[1][-1]["content"].startswith("Todo list updated: 1 items")


class TestToolRegistry:
    def test_register_and_resolve(self):
        registry = ToolRegistry([FakeTool("web_search"), FakeTool("pdf_loader")])

        assert registry.list_available() == ["pdf_loader", "web_search"]
        assert "web_search" in registry
        assert len(registry) == 2
        assert [t.name for t in registry.resolve(["web_search"])] == ["web_search"]

    def test_unknown_tool(self):
        registry = ToolRegistry()

        with pytest.raises(ToolNotFoundError):
            registry.get("missing")
        assert registry.unregister("missing") is False

    def test_later_registration_wins(self):
        first, second = FakeTool("web_search"), FakeTool("web_search")
        registry = ToolRegistry([first, second])

        assert registry.get("web_search") is second

    def test_openai_schema(self):
        schema = FakeTool("web_search").to_openai_schema()

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "web_search"
        assert schema["function"]["parameters"]["properties"]["query"] == {"type": "string"}


def test_event_type_values_are_wire_names():
    assert EventType.TODO_UPDATE.value == "todo_update"
