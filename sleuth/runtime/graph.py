"""
AgentGraph - the model + tool execution graph of one run.

Responsibilities:
- Implement the LLM <-> Tool loop (ReAct style)
- Publish GraphEvents for every chain, model call and tool invocation
- Stop between steps when the run is cancelled or soft-stopped

Does NOT handle:
- Outward StreamEvents (AgentRunEngine)
- Attribution of events to runs (RunAttributionTracker)
- Token accounting
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, TYPE_CHECKING
from uuid import uuid4

from sleuth.domain import (
    MODEL_NODE,
    TOOLS_NODE,
    Document,
    GraphEvent,
    GraphEventKind,
    UsageTarget,
)
from sleuth.llm.base import ModelResponse
from sleuth.runtime.exceptions import RunCancelledError, RunInterruptedError
from sleuth.runtime.tool_executor import ToolExecutor
from sleuth.utils.content import extract_text_content
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.config import ExecutionConfig
    from sleuth.llm import Model
    from sleuth.runtime.context import ExecutionContext
    from sleuth.tools.base import BaseTool

logger = get_logger(__name__)


class ToolCallAccumulator:
    """
    Accumulate streaming tool calls.

    OpenAI returns tool calls incrementally, need to accumulate before execution.
    """

    def __init__(self):
        self._calls: dict[int, dict] = {}

    def accumulate(self, delta_calls: list[dict]):
        """Accumulate incremental tool calls."""
        for tc in delta_calls:
            idx = tc.get("index", 0)

            if idx not in self._calls:
                self._calls[idx] = {
                    "id": None,
                    "type": "function",
                    "function": {"name": "", "arguments": ""},
                }

            acc = self._calls[idx]

            if tc.get("id"):
                acc["id"] = tc["id"]

            if tc.get("function"):
                fn = tc["function"]
                if fn.get("name"):
                    acc["function"]["name"] += fn["name"]
                if fn.get("arguments"):
                    acc["function"]["arguments"] += fn["arguments"]

    def finalize(self) -> list[dict]:
        """Get final complete tool calls."""
        return [call for call in self._calls.values() if call["id"] is not None]


@dataclass
class GraphState:
    """Mutable state of one graph run."""

    messages: list[dict]
    documents: list[Document] = field(default_factory=list)
    steps: int = 0
    final_message: str | None = None


class AgentGraph:
    """
    ReAct loop over one model and a tool set.

    Run ids published by one run() call:

    - the chain: context.run_id
    - each reasoning step: a model call with node "model_request"
    - each tool step: a "tools" chain, parent of its tool invocations
    """

    def __init__(
        self,
        model: "Model",
        tools: list["BaseTool"],
        config: "ExecutionConfig | None" = None,
        name: str = "agent",
    ):
        from sleuth.config import ExecutionConfig

        self.model = model
        self.tools = tools
        self.name = name
        self.config = config or ExecutionConfig.from_settings()
        self.tool_executor = ToolExecutor(tools)

    async def run(self, messages: list[dict], context: "ExecutionContext") -> GraphState:
        """
        Execute the loop until the model stops requesting tools.

        Args:
            messages: Initial message list (OpenAI format)
            context: Context whose run_id identifies this chain

        Returns:
            GraphState: Final state

        Raises:
            RunCancelledError: The abort signal was seen between steps
            RunInterruptedError: The retrieval signal was seen between steps,
                or before running tools a model step requested
        """
        state = GraphState(messages=list(messages))
        context = replace(context, state=state)
        chain_id = context.run_id
        tool_schemas = [tool.to_openai_schema() for tool in self.tools] or None

        await context.publish(
            GraphEvent(
                kind=GraphEventKind.CHAIN_START,
                name=self.name,
                run_id=chain_id,
                parent_ids=context.parent_ids,
                data={"input": {"messages": len(state.messages)}},
            )
        )

        try:
            while True:
                control = context.control
                if control.is_cancelled:
                    raise RunCancelledError(control.abort_signal.reason)
                if control.is_soft_stopped:
                    logger.info("graph_soft_stopped", run_id=chain_id, steps=state.steps)
                    raise RunInterruptedError(control.retrieval_signal.reason)
                if state.steps >= self.config.max_steps:
                    logger.warning("graph_max_steps_reached", run_id=chain_id, steps=state.steps)
                    break

                state.steps += 1
                message = await self._call_model(state, context, tool_schemas)
                state.messages.append(message)

                tool_calls = message.get("tool_calls")
                if not tool_calls:
                    state.final_message = message.get("content") or None
                    break

                # Stop issuing tool calls requested after a soft stop
                if control.is_soft_stopped:
                    logger.info(
                        "graph_soft_stopped",
                        run_id=chain_id,
                        steps=state.steps,
                        dropped_tool_calls=len(tool_calls),
                    )
                    raise RunInterruptedError(control.retrieval_signal.reason)

                await self._run_tools(tool_calls, state, context)
        except (Exception, asyncio.CancelledError) as e:
            await context.publish(
                GraphEvent(
                    kind=GraphEventKind.CHAIN_ERROR,
                    name=self.name,
                    run_id=chain_id,
                    parent_ids=context.parent_ids,
                    data={"error": str(e) or type(e).__name__},
                )
            )
            raise

        await context.publish(
            GraphEvent(
                kind=GraphEventKind.CHAIN_END,
                name=self.name,
                run_id=chain_id,
                parent_ids=context.parent_ids,
                data={"output": state},
            )
        )
        logger.debug("graph_completed", run_id=chain_id, steps=state.steps)
        return state

    async def _call_model(
        self,
        state: GraphState,
        context: "ExecutionContext",
        tool_schemas: list[dict] | None,
    ) -> dict:
        """Run one reasoning step and return the assistant message."""
        model_run_id = f"model_{uuid4().hex}"
        lineage = context.parent_ids + (context.run_id,)

        await context.publish(
            GraphEvent(
                kind=GraphEventKind.MODEL_START,
                name=self.model.name,
                run_id=model_run_id,
                parent_ids=lineage,
                node=MODEL_NODE,
            )
        )

        content = ""
        reasoning = ""
        in_reasoning = False
        usage: dict[str, Any] | None = None
        accumulator = ToolCallAccumulator()

        async def stream(text: str) -> None:
            await context.publish(
                GraphEvent(
                    kind=GraphEventKind.MODEL_STREAM,
                    name=self.model.name,
                    run_id=model_run_id,
                    parent_ids=lineage,
                    node=MODEL_NODE,
                    data={"chunk": text},
                )
            )

        async for chunk in self.model.arun_stream(state.messages, tools=tool_schemas):
            if chunk.reasoning_content:
                reasoning += chunk.reasoning_content
                await stream(("" if in_reasoning else "<think>") + chunk.reasoning_content)
                in_reasoning = True

            text = extract_text_content(chunk.content)
            if text:
                content += text
                if in_reasoning:
                    text = "</think>" + text
                    in_reasoning = False
                await stream(text)

            if chunk.tool_calls:
                accumulator.accumulate(chunk.tool_calls)

            if chunk.usage:
                usage = chunk.usage

        if in_reasoning:
            await stream("</think>")

        tool_calls = accumulator.finalize()
        message: dict[str, Any] = {"role": "assistant", "content": content or None}
        if tool_calls:
            message["tool_calls"] = tool_calls
        if reasoning:
            message["reasoning_content"] = reasoning

        await context.publish(
            GraphEvent(
                kind=GraphEventKind.MODEL_END,
                name=self.model.name,
                run_id=model_run_id,
                parent_ids=lineage,
                node=MODEL_NODE,
                data={
                    "output": {
                        "content": content,
                        "tool_calls": tool_calls,
                        "usage_metadata": usage,
                    }
                },
            )
        )
        return message

    async def _run_tools(
        self,
        tool_calls: list[dict],
        state: GraphState,
        context: "ExecutionContext",
    ) -> None:
        """Run one tool step and append its tool messages."""
        tools_ctx = context.child(f"tools_{uuid4().hex}")

        await tools_ctx.publish(
            GraphEvent(
                kind=GraphEventKind.CHAIN_START,
                name="tools",
                run_id=tools_ctx.run_id,
                parent_ids=tools_ctx.parent_ids,
                node=TOOLS_NODE,
                data={"input": {"tool_calls": len(tool_calls)}},
            )
        )

        try:
            results = await self.tool_executor.execute_batch(
                tool_calls, tools_ctx, parallel=self.config.parallel_tool_calls
            )
        except (Exception, asyncio.CancelledError) as e:
            await tools_ctx.publish(
                GraphEvent(
                    kind=GraphEventKind.CHAIN_ERROR,
                    name="tools",
                    run_id=tools_ctx.run_id,
                    parent_ids=tools_ctx.parent_ids,
                    node=TOOLS_NODE,
                    data={"error": str(e) or type(e).__name__},
                )
            )
            raise

        for result in results:
            state.messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.tool_call_id,
                    "name": result.tool_name,
                    "content": result.content,
                }
            )
            state.documents.extend(result.documents)

        await tools_ctx.publish(
            GraphEvent(
                kind=GraphEventKind.CHAIN_END,
                name="tools",
                run_id=tools_ctx.run_id,
                parent_ids=tools_ctx.parent_ids,
                node=TOOLS_NODE,
                data={"output": results},
            )
        )


async def invoke_model(
    context: "ExecutionContext",
    model: "Model",
    messages: list[dict],
    target: UsageTarget = UsageTarget.AUXILIARY,
) -> ModelResponse:
    """
    Model call made from inside a tool.

    Published on the context's feeds under the "tools" node, so it is never
    mistaken for the run's own reasoning step; its usage is reported to the
    run's ledger out-of-band instead.
    """
    run_id = f"model_{uuid4().hex}"
    lineage = context.parent_ids + (context.run_id,)

    await context.publish(
        GraphEvent(
            kind=GraphEventKind.MODEL_START,
            name=model.name,
            run_id=run_id,
            parent_ids=lineage,
            node=TOOLS_NODE,
        )
    )
    response = await model.arun(messages)
    await context.publish(
        GraphEvent(
            kind=GraphEventKind.MODEL_END,
            name=model.name,
            run_id=run_id,
            parent_ids=lineage,
            node=TOOLS_NODE,
            data={"output": {"content": response.content, "usage_metadata": response.usage}},
        )
    )
    if response.usage:
        await context.report_usage(target, response.usage)
    return response


__all__ = ["AgentGraph", "GraphState", "ToolCallAccumulator", "invoke_model"]
