"""
DeepResearchTool - delegates a focused research task to a subagent.

The subagent runs with the deep_research definition (no access to this
tool, so delegation never recurses). Its documents flow back into the
parent run through the ToolResult, its findings become the tool message,
and its token usage is forwarded to the parent's ledger.
"""

import time
from typing import Any, TYPE_CHECKING

from sleuth.domain import ToolResult, UsageTarget
from sleuth.runtime.tool_calls import DEEP_RESEARCH_TOOL_NAME
from sleuth.subagents.definitions import get_subagent_definition
from sleuth.tools.base import BaseTool
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.runtime.context import ExecutionContext

logger = get_logger(__name__)


class DeepResearchTool(BaseTool):
    """
    Spawns a research subagent for comprehensive, multi-source investigation.

    Usage:
        tools = [web_search, url_summarization, DeepResearchTool()]
        await engine.run(query, history, tools, system_prompt)
    """

    def get_name(self) -> str:
        return DEEP_RESEARCH_TOOL_NAME

    def get_description(self) -> str:
        return (
            "Spawns a focused research subagent to perform comprehensive, multi-source "
            "investigation on a specific aspect of the query. Use when a sub-problem needs "
            "deeper investigation than a single web search can provide. Give focused tasks, "
            "not broad ones, and include all necessary context in the task description since "
            "the subagent sees only a short slice of the conversation."
        )

    def get_parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "description": (
                        "A specific, focused research task to investigate in depth. Should "
                        "describe exactly what to research and what information to gather."
                    ),
                },
            },
            "required": ["task"],
        }

    async def execute(
        self,
        parameters: dict[str, Any],
        context: "ExecutionContext",
    ) -> ToolResult:
        from sleuth.subagents.executor import SubagentExecutor

        start_time = time.time()
        task = (parameters.get("task") or "").strip()
        if not task:
            return self._create_error_result(parameters, "A research task is required", start_time)
        if self.soft_stopped(context):
            return self._create_soft_stop_result(parameters, start_time)

        definition = get_subagent_definition(DEEP_RESEARCH_TOOL_NAME)
        if definition is None:
            return self._create_error_result(
                parameters, "deep_research subagent definition not found", start_time
            )

        services = context.services
        if services is None:
            return self._create_error_result(
                parameters, "Required run services not available for deep_research", start_time
            )

        parent_messages = context.state.messages if context.state is not None else services.history
        logger.info("deep_research_delegating", task=task, run_id=context.run_id)

        executor = SubagentExecutor(definition, context)
        execution = await executor.execute(task, parent_messages, services.file_ids)

        if execution.token_usage is not None:
            if not execution.token_usage.primary.is_empty():
                await context.report_usage(UsageTarget.PRIMARY, execution.token_usage.primary)
            if not execution.token_usage.auxiliary.is_empty():
                await context.report_usage(UsageTarget.AUXILIARY, execution.token_usage.auxiliary)

        if execution.error is None:
            content = f"Deep research completed. Findings:\n\n{execution.summary}"
        else:
            content = f"Deep research encountered an error: {execution.error}"

        return self._create_result(
            parameters,
            content,
            start_time,
            output=execution,
            documents=execution.documents,
        )


__all__ = ["DeepResearchTool"]
