"""
Unified tool executor.

Executes the tool calls of one graph step. Every invocation gets its own
run id and publishes tool_start followed by exactly one of tool_end /
tool_error on the context's feeds.
"""

import asyncio
import json
import time
from typing import Any, TYPE_CHECKING
from uuid import uuid4

from sleuth.domain import TOOLS_NODE, GraphEvent, GraphEventKind, ToolResult
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.runtime.context import ExecutionContext
    from sleuth.tools.base import BaseTool

logger = get_logger(__name__)


class ToolExecutor:
    """Unified tool executor that returns ToolResult directly."""

    def __init__(self, tools: list["BaseTool"]):
        """
        Initialize tool executor.

        Args:
            tools: List of tools (BaseTool only)
        """
        self.tools_map = {t.name: t for t in tools}

    async def execute(
        self,
        tool_call: dict[str, Any],
        context: "ExecutionContext",
    ) -> ToolResult:
        """
        Execute a single tool call.

        Args:
            tool_call: OpenAI format tool call
            context: Context of the enclosing tool step

        Returns:
            ToolResult: Tool execution result. Failures come back as error
            results so the model can read them; cancellation propagates.
        """
        fn_name = tool_call.get("function", {}).get("name")
        fn_args_str = tool_call.get("function", {}).get("arguments", "{}")
        call_id = tool_call.get("id") or f"call_{uuid4().hex[:12]}"
        start_time = time.time()

        if not fn_name:
            return self._create_error_result(
                call_id=call_id,
                tool_name="unknown",
                error="Tool name missing in tool call",
                start_time=start_time,
            )

        tool_ctx = context.child(f"tool_{uuid4().hex}")

        args: dict | None
        args_error = ""
        try:
            if isinstance(fn_args_str, str):
                args = json.loads(fn_args_str) if fn_args_str.strip() else {}
            else:
                args = dict(fn_args_str or {})
        except json.JSONDecodeError as e:
            args = None
            args_error = f"Invalid JSON arguments: {e}"
        if args is not None and not isinstance(args, dict):
            args = None
            args_error = "Tool arguments must be a JSON object"

        await tool_ctx.publish(
            GraphEvent(
                kind=GraphEventKind.TOOL_START,
                name=fn_name,
                run_id=tool_ctx.run_id,
                parent_ids=tool_ctx.parent_ids,
                node=TOOLS_NODE,
                data={"input": dict(args or {}), "tool_call_id": call_id},
            )
        )

        tool = self.tools_map.get(fn_name)
        if tool is None:
            return await self._fail(tool_ctx, call_id, fn_name, f"Tool {fn_name} not found", start_time)
        if args is None:
            return await self._fail(tool_ctx, call_id, fn_name, args_error, start_time)

        args["tool_call_id"] = call_id

        if context.control.is_soft_stopped:
            logger.info("tool_skipped_after_soft_stop", tool_name=fn_name, tool_call_id=call_id)
            result = tool._create_soft_stop_result(args, start_time)
            await self._publish_end(tool_ctx, call_id, fn_name, result)
            return result

        try:
            logger.debug("executing_tool", tool_name=fn_name, tool_call_id=call_id)
            result: ToolResult = await tool.execute(args, tool_ctx)
        except asyncio.CancelledError:
            logger.info("tool_execution_cancelled", tool_name=fn_name, tool_call_id=call_id)
            await self._publish_error(tool_ctx, call_id, fn_name, "Tool execution was cancelled")
            raise
        except Exception as e:
            logger.error(
                "tool_execution_exception",
                tool_name=fn_name,
                tool_call_id=call_id,
                error=str(e),
                exc_info=True,
            )
            return await self._fail(
                tool_ctx, call_id, fn_name, f"Tool execution failed: {e}", start_time
            )

        logger.debug(
            "tool_execution_completed",
            tool_name=fn_name,
            success=result.is_success,
            duration=result.duration,
        )
        await self._publish_end(tool_ctx, call_id, fn_name, result)
        return result

    async def execute_batch(
        self,
        tool_calls: list[dict[str, Any]],
        context: "ExecutionContext",
        parallel: bool = True,
    ) -> list[ToolResult]:
        """
        Execute multiple tool calls, in parallel by default.

        Args:
            tool_calls: List of tool calls
            context: Context of the enclosing tool step
            parallel: Run the calls concurrently with asyncio.gather

        Returns:
            list[ToolResult]: Results in tool call order
        """
        if parallel:
            return list(await asyncio.gather(*(self.execute(tc, context) for tc in tool_calls)))
        return [await self.execute(tc, context) for tc in tool_calls]

    async def _fail(
        self,
        tool_ctx: "ExecutionContext",
        call_id: str,
        tool_name: str,
        error: str,
        start_time: float,
    ) -> ToolResult:
        await self._publish_error(tool_ctx, call_id, tool_name, error)
        return self._create_error_result(call_id, tool_name, error, start_time)

    async def _publish_error(
        self, tool_ctx: "ExecutionContext", call_id: str, tool_name: str, error: str
    ) -> None:
        await tool_ctx.publish(
            GraphEvent(
                kind=GraphEventKind.TOOL_ERROR,
                name=tool_name,
                run_id=tool_ctx.run_id,
                parent_ids=tool_ctx.parent_ids,
                node=TOOLS_NODE,
                data={"error": error, "tool_call_id": call_id},
            )
        )

    async def _publish_end(
        self, tool_ctx: "ExecutionContext", call_id: str, tool_name: str, result: ToolResult
    ) -> None:
        await tool_ctx.publish(
            GraphEvent(
                kind=GraphEventKind.TOOL_END,
                name=tool_name,
                run_id=tool_ctx.run_id,
                parent_ids=tool_ctx.parent_ids,
                node=TOOLS_NODE,
                data={"output": result, "tool_call_id": call_id},
            )
        )

    def _create_error_result(
        self,
        call_id: str,
        tool_name: str,
        error: str,
        start_time: float,
    ) -> ToolResult:
        """Create error result."""
        end_time = time.time()
        return ToolResult(
            tool_name=tool_name,
            tool_call_id=call_id,
            content=error,
            error=error,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            is_success=False,
        )


__all__ = ["ToolExecutor"]
