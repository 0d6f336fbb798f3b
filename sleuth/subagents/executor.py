"""
SubagentExecutor - runs one delegated child run in isolation.

The child gets its own AgentRunEngine and its own sink. A relay task reads
that sink and forwards every child event to the parent stream wrapped in a
subagent_data envelope, while collecting what the SubagentExecution record
needs: response text (summary), documents and the last usage snapshot.

Lifecycle:
    pending -> running  (subagent_started)
    running -> success  (subagent_completed, after the flush delay)
    running -> error    (subagent_error, after the flush delay)

Usage:
    executor = SubagentExecutor(get_subagent_definition("deep_research"), context)
    execution = await executor.execute(task, parent_messages, file_ids)
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import uuid4

from sleuth.config import ExecutionConfig, settings
from sleuth.domain import (
    ChatTurn,
    Document,
    EventType,
    RunStatus,
    StreamEvent,
    SubagentExecution,
    SubagentStatus,
    UsageSnapshot,
    create_subagent_completed_event,
    create_subagent_data_event,
    create_subagent_error_event,
    create_subagent_started_event,
    normalize_role,
)
from sleuth.runtime.context import ExecutionContext
from sleuth.runtime.engine import AgentRunEngine
from sleuth.runtime.tool_calls import DELEGATION_TOOL_NAMES
from sleuth.runtime.wire import Wire
from sleuth.subagents.definitions import SubagentDefinition
from sleuth.tools.registry import filter_tools
from sleuth.utils.content import extract_text_content
from sleuth.utils.logging import get_logger

logger = get_logger(__name__)

# Child events that stay on the child side of the relay
_NOT_RELAYED = frozenset({EventType.STATS, EventType.END, EventType.ERROR, EventType.PING})


def new_execution_id() -> str:
    return f"subagent_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def context_turns(messages: Iterable[Any], limit: int) -> list[ChatTurn]:
    """
    Last ``limit`` parent messages as ChatTurns.

    Only user and assistant messages with text content survive; tool and
    system messages are dropped.
    """
    if limit <= 0:
        return []
    turns = []
    for message in list(messages)[-limit:]:
        if isinstance(message, ChatTurn):
            if message.content:
                turns.append(message)
            continue
        if not isinstance(message, dict):
            continue
        role = normalize_role(message.get("role"))
        if role is None:
            continue
        text = extract_text_content(message.get("content"))
        if text:
            turns.append(ChatTurn(role=role, content=text))
    return turns


@dataclass
class _Relayed:
    response: str = ""
    documents: list[Document] = field(default_factory=list)
    usage: UsageSnapshot | None = None


class SubagentExecutor:
    """
    Executes one subagent definition below a parent run.

    Args:
        definition: What the child may do
        context: Execution context of the invoking tool; supplies the
            parent's models, emitter, available tools and run control
        flush_delay: Grace period between the child stream closing and the
            terminal subagent event (defaults to settings)
    """

    def __init__(
        self,
        definition: SubagentDefinition,
        context: ExecutionContext,
        flush_delay: float | None = None,
    ):
        if context.services is None:
            raise ValueError("SubagentExecutor needs a context with run services")
        self.definition = definition
        self.context = context
        self.services = context.services
        self.flush_delay = settings.subagent_flush_delay if flush_delay is None else flush_delay

    def select_tools(self) -> list:
        """Whitelist first, then the delegation tools go regardless."""
        return filter_tools(
            self.services.tools,
            allowed=self.definition.allowed_tools,
            excluded=DELEGATION_TOOL_NAMES,
        )

    def select_model(self):
        if self.definition.use_system_model and self.services.system_model is not None:
            return self.services.system_model
        return self.services.chat_model

    def _child_message_id(self, execution_id: str) -> str:
        parent = self.services.message_id
        return f"{parent}_{execution_id}" if parent else execution_id

    async def execute(
        self,
        task: str,
        parent_messages: Iterable[Any] | None = None,
        file_ids: list[str] | None = None,
    ) -> SubagentExecution:
        execution = SubagentExecution(
            id=new_execution_id(),
            name=self.definition.name,
            task=task,
        )
        tools = self.select_tools()
        history = context_turns(parent_messages or (), settings.subagent_context_messages)

        execution.status = SubagentStatus.RUNNING
        await self.context.emit(create_subagent_started_event(execution.id, execution.name, task))
        logger.info(
            "subagent_started",
            execution_id=execution.id,
            subagent=execution.name,
            tools=[tool.name for tool in tools],
            context_turns=len(history),
        )

        sink = Wire()
        engine = AgentRunEngine(
            chat_model=self.select_model(),
            system_model=self.services.system_model,
            sink=sink,
            control=self.context.control,
            config=ExecutionConfig(max_steps=self.definition.max_turns),
            available_tools=self.services.tools,
            message_id=self._child_message_id(execution.id),
            name=self.definition.name,
        )
        relayed = _Relayed()
        relay = asyncio.create_task(self._relay(sink, execution, relayed))

        try:
            outcome = await engine.run(
                task,
                history=history,
                tools=tools,
                system_prompt=self.definition.system_prompt,
                file_ids=file_ids,
                parent_context=self.context,
            )
            await relay
        except asyncio.CancelledError:
            relay.cancel()
            await self._finish_error(execution, "Subagent execution was cancelled")
            raise
        except Exception as exc:
            relay.cancel()
            logger.error(
                "subagent_failed",
                execution_id=execution.id,
                error=str(exc),
                exc_info=exc,
            )
            await asyncio.sleep(self.flush_delay)
            await self._finish_error(execution, str(exc) or type(exc).__name__)
            return execution

        await asyncio.sleep(self.flush_delay)

        execution.documents = relayed.documents
        execution.token_usage = relayed.usage or outcome.usage
        if outcome.status != RunStatus.COMPLETED:
            await self._finish_error(execution, outcome.error or f"Subagent run {outcome.status.value}")
            return execution

        execution.summary = relayed.response.strip()
        execution.status = SubagentStatus.SUCCESS
        execution.end_time = time.time()
        await self.context.emit(create_subagent_completed_event(execution))
        logger.info(
            "subagent_completed",
            execution_id=execution.id,
            documents=len(execution.documents),
            duration=execution.duration,
        )
        return execution

    async def _relay(self, sink: Wire, execution: SubagentExecution, relayed: _Relayed) -> None:
        async for event in sink.read():
            self._collect(event, relayed)
            if event.type in _NOT_RELAYED:
                continue
            await self.context.emit(
                create_subagent_data_event(
                    execution.id, execution.name, event.model_copy(deep=True)
                )
            )

    @staticmethod
    def _collect(event: StreamEvent, relayed: _Relayed) -> None:
        if event.type == EventType.RESPONSE and isinstance(event.data, str):
            relayed.response += event.data
        elif event.type == EventType.SOURCES_ADDED:
            relayed.documents.extend(event.data or [])
        elif event.type == EventType.SOURCES:
            relayed.documents = list(event.data or [])
        elif event.type == EventType.STATS:
            relayed.usage = event.data

    async def _finish_error(self, execution: SubagentExecution, error: str) -> None:
        execution.status = SubagentStatus.ERROR
        execution.error = error
        execution.end_time = time.time()
        await self.context.emit(create_subagent_error_event(execution))
        logger.warning("subagent_error", execution_id=execution.id, error=error)


__all__ = ["SubagentExecutor", "context_turns", "new_execution_id"]
