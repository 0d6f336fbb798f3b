"""
Supervisor - optional up-front decomposition of a query into subagent runs.

Flow:
1. Ask the system model whether the query splits into independent subtasks
2. No split (or an unusable answer): run the standard AgentRunEngine
3. Split: run one SubagentExecutor per subtask concurrently, then stream a
   synthesis of their findings with the chat model
"""

import asyncio
import re
from typing import Any, Iterable, TYPE_CHECKING
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from sleuth.domain import (
    ChatTurn,
    Document,
    RunOutcome,
    RunStatus,
    StreamEvent,
    SubagentExecution,
    SubagentStatus,
    UsageSnapshot,
    UsageTarget,
    create_end_event,
    create_error_event,
    create_response_event,
    create_sources_event,
    create_stats_event,
    create_synthesis_started_event,
)
from sleuth.prompts.decomposer import build_decomposition_prompt, build_supervisor_synthesis_prompt
from sleuth.runtime.accumulator import MessageAccumulator
from sleuth.runtime.context import ExecutionContext, RunServices
from sleuth.runtime.control import Interruption, RunControl
from sleuth.runtime.engine import CANCELLED_MESSAGE, FAILURE_MESSAGE, AgentRunEngine
from sleuth.runtime.exceptions import RunCancelledError, SubagentRunError
from sleuth.runtime.ledger import TokenUsageLedger
from sleuth.runtime.wire import Wire
from sleuth.subagents.definitions import get_subagent_definition
from sleuth.subagents.executor import SubagentExecutor
from sleuth.utils.content import extract_text_content, remove_thinking_blocks
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.llm import Model
    from sleuth.tools.base import BaseTool

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class Subtask(BaseModel):
    subagent: str
    task: str


class Decomposition(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    needs_decomposition: bool = False
    reasoning: str = ""
    subtasks: list[Subtask] = Field(default_factory=list)

    @property
    def should_split(self) -> bool:
        return self.needs_decomposition and bool(self.subtasks)


def parse_decomposition(text: str) -> Decomposition:
    """Parse the decomposition answer; tolerates a surrounding code fence."""
    cleaned = _CODE_FENCE.sub("", text.strip())
    return Decomposition.model_validate_json(cleaned)


class Supervisor:
    """
    Runs a query either through subagents or through the standard engine.

    The outward stream has the same shape either way and ends with exactly
    one terminal event.
    """

    def __init__(
        self,
        chat_model: "Model",
        system_model: "Model | None" = None,
        sink: Wire | None = None,
        control: RunControl | None = None,
        available_tools: Iterable["BaseTool"] | None = None,
        message_id: str | None = None,
    ):
        self.chat_model = chat_model
        self.system_model = system_model
        self.sink = sink or Wire()
        self.control = control or RunControl()
        self.available_tools = list(available_tools or [])
        self.message_id = message_id

        self.ledger = TokenUsageLedger(
            primary_model=chat_model.name,
            auxiliary_model=(system_model or chat_model).name,
        )
        self.accumulator = MessageAccumulator()
        self._terminated = False
        self._last_stats: UsageSnapshot | None = None

    @property
    def decomposition_model(self) -> "Model":
        return self.system_model or self.chat_model

    async def decompose(self, query: str, has_files: bool) -> Decomposition | None:
        """None when the model's answer cannot be used."""
        messages = [{"role": "user", "content": build_decomposition_prompt(query, has_files)}]
        try:
            response = await self.decomposition_model.arun(messages)
        except Exception as exc:
            logger.warning("decomposition_failed", error=str(exc))
            return None
        if response.usage:
            await self._apply_usage(UsageTarget.AUXILIARY, response.usage)
        try:
            decomposition = parse_decomposition(extract_text_content(response.content))
        except (ValidationError, ValueError) as exc:
            logger.warning("decomposition_unparseable", error=str(exc))
            return None
        logger.info(
            "decomposition_analyzed",
            split=decomposition.should_split,
            subtasks=len(decomposition.subtasks),
            reasoning=decomposition.reasoning,
        )
        return decomposition

    async def run(
        self,
        query: str,
        history: Iterable[ChatTurn | tuple[str, str]] | None = None,
        tools: Iterable["BaseTool"] | None = None,
        system_prompt: str | None = None,
        *,
        file_ids: list[str] | None = None,
    ) -> RunOutcome:
        turns = [t if isinstance(t, ChatTurn) else ChatTurn.from_pair(t) for t in history or []]
        file_ids = list(file_ids or [])
        tools = list(tools or [])

        decomposition = await self.decompose(query, has_files=bool(file_ids))
        if decomposition is None or not decomposition.should_split:
            logger.info("supervisor_standard_run", message_id=self.message_id)
            engine = AgentRunEngine(
                self.chat_model,
                self.system_model,
                sink=self.sink,
                control=self.control,
                available_tools=self.available_tools or tools,
                message_id=self.message_id,
            )
            if not self.ledger.snapshot().auxiliary.is_empty():
                engine.ledger.apply(UsageTarget.AUXILIARY, self.ledger.snapshot().auxiliary)
            return await engine.run(
                query, turns, tools, system_prompt, file_ids=file_ids
            )

        run_id = f"supervisor_{uuid4().hex}"
        executions: list[SubagentExecution] = []
        status = RunStatus.RUNNING
        error = None
        try:
            executions = await self._fan_out(run_id, query, turns, tools, decomposition, file_ids)
            if self.control.is_cancelled:
                raise RunCancelledError(self.control.abort_signal.reason)
            failed = [e for e in executions if e.status == SubagentStatus.ERROR]
            if failed and len(failed) == len(executions):
                raise SubagentRunError(failed[0].id, f"All subagents failed: {failed[0].error}")
            await self._synthesize(query, turns, executions)
            documents = self._documents(executions)
            if documents:
                await self._emit(create_sources_event(documents))
            snapshot = self.ledger.snapshot()
            if snapshot != self._last_stats:
                self._last_stats = snapshot
                await self._emit(create_stats_event(snapshot))
            status = RunStatus.COMPLETED
            await self._emit(create_end_event())
        except asyncio.CancelledError:
            status, error = RunStatus.CANCELLED, CANCELLED_MESSAGE
            await self._emit(create_error_event(CANCELLED_MESSAGE, reason="cancelled"))
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except Exception as exc:
            if self.control.classify(exc) == Interruption.CANCELLED:
                status, error = RunStatus.CANCELLED, CANCELLED_MESSAGE
                await self._emit(create_error_event(CANCELLED_MESSAGE, reason="cancelled"))
            else:
                logger.error("supervisor_failed", run_id=run_id, error=str(exc), exc_info=exc)
                status, error = RunStatus.ERRORED, str(exc) or type(exc).__name__
                await self._emit(create_response_event(FAILURE_MESSAGE))
                await self._emit(create_error_event(error, reason="failed"))
        finally:
            await self.sink.close()

        return RunOutcome(
            run_id=run_id,
            status=status,
            response=self.accumulator.response,
            markup=self.accumulator.markup,
            documents=self._documents(executions),
            usage=self.ledger.snapshot(),
            error=error,
        )

    async def _fan_out(
        self,
        run_id: str,
        query: str,
        turns: list[ChatTurn],
        tools: list["BaseTool"],
        decomposition: Decomposition,
        file_ids: list[str],
    ) -> list[SubagentExecution]:
        context = ExecutionContext(
            run_id=run_id,
            control=self.control,
            services=RunServices(
                chat_model=self.chat_model,
                system_model=self.system_model,
                emit=self._emit,
                report_usage=self._report_usage,
                tools=self.available_tools or tools,
                history=turns,
                query=query,
                file_ids=file_ids,
                message_id=self.message_id,
            ),
        )

        executors = []
        for subtask in decomposition.subtasks:
            definition = get_subagent_definition(subtask.subagent)
            if definition is None:
                logger.warning("unknown_subagent_skipped", subagent=subtask.subagent)
                continue
            executors.append((SubagentExecutor(definition, context), subtask.task))

        logger.info("supervisor_fan_out", run_id=run_id, subagents=len(executors))
        executions = await asyncio.gather(
            *(executor.execute(task, turns, file_ids) for executor, task in executors)
        )
        for execution in executions:
            if execution.token_usage is not None:
                await self._apply_usage(UsageTarget.PRIMARY, execution.token_usage.primary)
                await self._apply_usage(UsageTarget.AUXILIARY, execution.token_usage.auxiliary)
        return list(executions)

    async def _synthesize(
        self,
        query: str,
        turns: list[ChatTurn],
        executions: list[SubagentExecution],
    ) -> None:
        await self._emit(create_synthesis_started_event(len(executions)))
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": build_supervisor_synthesis_prompt(query, executions)}
        ]
        for turn in turns:
            messages.append(
                {"role": turn.api_role, "content": remove_thinking_blocks(turn.content)}
            )
        messages.append({"role": "user", "content": query})

        usage = None
        async for chunk in self.chat_model.arun_stream(messages):
            if self.control.is_cancelled:
                raise RunCancelledError(self.control.abort_signal.reason)
            text = extract_text_content(chunk.content)
            if text:
                await self._emit(create_response_event(text))
            if chunk.usage:
                usage = chunk.usage
        if usage:
            await self._apply_usage(UsageTarget.PRIMARY, usage)

    @staticmethod
    def _documents(executions: list[SubagentExecution]) -> list[Document]:
        return [
            doc
            for execution in executions
            if execution.status == SubagentStatus.SUCCESS
            for doc in execution.documents
        ]

    async def _report_usage(self, target: Any, usage: Any) -> None:
        await self._apply_usage(target, usage)

    async def _apply_usage(self, target: UsageTarget | str, usage: Any) -> None:
        snapshot = self.ledger.apply(target, usage)
        self._last_stats = snapshot
        await self._emit(create_stats_event(snapshot))

    async def _emit(self, event: StreamEvent) -> None:
        if self._terminated:
            return
        if self.control.is_cancelled and not event.is_terminal:
            return
        if event.is_terminal:
            self._terminated = True
        self.accumulator.feed(event)
        await self.sink.write(event)


__all__ = ["Decomposition", "Subtask", "Supervisor", "parse_decomposition"]
