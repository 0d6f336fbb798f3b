"""
AgentRunEngine - one run of the agent, from query to terminal event.

Responsibilities:
- Start the AgentGraph as a task and consume its graph event feed in order
- Attribute every graph event (RunAttributionTracker) before acting on it
- Turn this run's own events into outward StreamEvents on the sink:
  response deltas, tool call lifecycle markup, sources, usage stats
- Account usage in the two-model ledger
- End with exactly one terminal event: end, or error (failed / cancelled)
- Hard cancellation and soft stop (early synthesis)

Usage:
    sink = Wire()
    engine = AgentRunEngine(chat_model, system_model, sink=sink)
    task = asyncio.create_task(engine.run(query, history, tools, system_prompt))

    async for event in sink.read(heartbeat=settings.heartbeat_interval):
        yield event.to_ndjson()

    outcome = await task  # markup, documents and usage to persist

An engine instance drives a single run.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, TYPE_CHECKING
from uuid import uuid4

from sleuth.domain import (
    ChatTurn,
    Document,
    GraphEvent,
    GraphEventKind,
    RunOutcome,
    RunStatus,
    StreamEvent,
    ToolCallStatus,
    ToolResult,
    UsageSnapshot,
    UsageTarget,
    create_end_event,
    create_error_event,
    create_response_event,
    create_sources_added_event,
    create_sources_event,
    create_stats_event,
    create_tool_call_error_event,
    create_tool_call_started_event,
    create_tool_call_success_event,
)
from sleuth.runtime.accumulator import MessageAccumulator
from sleuth.runtime.attribution import RunAttributionTracker
from sleuth.runtime.context import ExecutionContext, RunServices
from sleuth.runtime.control import Interruption, RunControl
from sleuth.runtime.graph import AgentGraph, GraphState
from sleuth.runtime.ledger import TokenUsageLedger
from sleuth.runtime.synthesis import EarlySynthesizer
from sleuth.runtime.tool_calls import (
    SUPPRESSED_TOOL_NAMES,
    YOUTUBE_TRANSCRIPT_TOOL_NAME,
    ToolCallTracker,
)
from sleuth.runtime.wire import Wire
from sleuth.utils.content import extract_text_content, remove_thinking_blocks, truncate
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.config import ExecutionConfig
    from sleuth.llm import Model
    from sleuth.tools.base import BaseTool

logger = get_logger(__name__)

NO_RESPONSE_MESSAGE = (
    "I apologize, but I was unable to generate a complete response to your query. "
    "Please try rephrasing your question or providing more specific details."
)
FAILURE_MESSAGE = (
    "I encountered an error while processing your request. "
    "Please try rephrasing your query or contact support if the issue persists."
)
CANCELLED_MESSAGE = "The search operation was cancelled."


def extract_model_usage(output: Any) -> Mapping[str, Any] | None:
    """
    Provider usage attached to a finished model call.

    Looked up, in order, under usage_metadata, response_metadata.usage and
    llm_output.token_usage.
    """
    if not isinstance(output, Mapping):
        return None
    usage = output.get("usage_metadata")
    if not usage:
        usage = (output.get("response_metadata") or {}).get("usage")
    if not usage:
        usage = (output.get("llm_output") or {}).get("token_usage")
    return usage or None


def _document_key(doc: Document) -> tuple:
    return (doc.page_content, doc.metadata.get("url") or doc.metadata.get("source"))


@dataclass
class Run:
    """State of the run an engine drives. Owned by that engine only."""

    run_id: str
    query: str
    messages: list[dict]
    tool_names: list[str]
    system_prompt: str | None
    accumulator: MessageAccumulator = field(default_factory=MessageAccumulator)
    documents: list[Document] = field(default_factory=list)
    status: RunStatus = RunStatus.RUNNING
    final_state: GraphState | None = None
    error: str | None = None

    @property
    def response(self) -> str:
        return self.accumulator.response


class AgentRunEngine:
    """
    Drives one run of the agent loop and writes its event stream.

    Args:
        chat_model: Primary model, runs the reasoning loop
        system_model: Auxiliary model for tool-internal calls
        sink: Outward event channel (closed when the run terminates)
        control: Abort / retrieval signals; pass the parent's to a child run
        config: Loop settings (max steps, parallel tool calls)
        available_tools: Tool pool delegation tools draw from; defaults to
            the run's own tool set
        message_id: Caller-side message id
        name: Agent name used for the graph chain
    """

    def __init__(
        self,
        chat_model: "Model",
        system_model: "Model | None" = None,
        sink: Wire | None = None,
        control: RunControl | None = None,
        config: "ExecutionConfig | None" = None,
        available_tools: Iterable["BaseTool"] | None = None,
        message_id: str | None = None,
        name: str = "agent",
    ):
        self.chat_model = chat_model
        self.system_model = system_model
        self.sink = sink or Wire()
        self.control = control or RunControl()
        self.config = config
        self.available_tools = list(available_tools) if available_tools is not None else None
        self.message_id = message_id
        self.name = name

        self.ledger = TokenUsageLedger(
            primary_model=chat_model.name,
            auxiliary_model=(system_model or chat_model).name,
        )
        self.attribution = RunAttributionTracker()
        self.tool_calls = ToolCallTracker()

        self._run: Run | None = None
        self._terminated = False
        self._last_stats: UsageSnapshot | None = None

    @property
    def terminated(self) -> bool:
        return self._terminated

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        query: str,
        history: Iterable[ChatTurn | tuple[str, str]] | None = None,
        tools: Iterable["BaseTool"] | None = None,
        system_prompt: str | None = None,
        image_refs: list[str] | None = None,
        *,
        file_ids: list[str] | None = None,
        parent_context: ExecutionContext | None = None,
    ) -> RunOutcome:
        """
        Run the agent to completion, streaming events to the sink.

        Args:
            query: User query
            history: Prior turns; reasoning segments are stripped before use
            tools: Tool set in effect for this run
            system_prompt: System prompt in effect for this run
            image_refs: Image URLs attached to the query
            file_ids: Uploaded files available to tools
            parent_context: Context of the tool invocation that spawned this
                run, for nested runs

        Returns:
            RunOutcome: Terminal status, markup document, documents, usage
        """
        if self._run is not None:
            raise RuntimeError("AgentRunEngine drives a single run; create a new engine")

        tools = list(tools or [])
        turns = [t if isinstance(t, ChatTurn) else ChatTurn.from_pair(t) for t in history or []]
        run_id = f"run_{uuid4().hex}"
        messages = self._build_messages(query, turns, system_prompt, image_refs)
        run = Run(
            run_id=run_id,
            query=query,
            messages=messages,
            tool_names=[tool.name for tool in tools],
            system_prompt=system_prompt,
        )
        self._run = run

        feed = Wire()
        services = RunServices(
            chat_model=self.chat_model,
            system_model=self.system_model,
            emit=self._emit,
            report_usage=self._report_usage,
            tools=self.available_tools if self.available_tools is not None else tools,
            history=turns,
            system_prompt=system_prompt,
            query=query,
            file_ids=list(file_ids or []),
            message_id=self.message_id,
        )
        if parent_context is not None:
            context = parent_context.child(
                run_id,
                feeds=parent_context.feeds + (feed,),
                control=self.control,
                services=services,
                state=None,
                depth=parent_context.depth + 1,
            )
        else:
            context = ExecutionContext(
                run_id=run_id,
                feeds=(feed,),
                control=self.control,
                services=services,
            )

        logger.info(
            "run_started",
            run_id=run_id,
            agent=self.name,
            depth=context.depth,
            tools=run.tool_names,
            message_id=self.message_id,
        )

        graph = AgentGraph(self.chat_model, tools, self.config, name=self.name)
        graph_task = asyncio.create_task(self._run_graph(graph, messages, context, feed))
        watcher = asyncio.create_task(self._watch_abort(graph_task))

        try:
            async for event in feed.read():
                await self._on_graph_event(event)
            run.final_state = await graph_task
            await self._complete()
        except asyncio.CancelledError:
            await self._finish_cancelled()
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except Exception as exc:
            await self._handle_interruption(exc)
        finally:
            watcher.cancel()
            if not graph_task.done():
                graph_task.cancel()
            await asyncio.gather(watcher, graph_task, return_exceptions=True)
            await self.sink.close()

        return self.outcome()

    def outcome(self) -> RunOutcome:
        run = self._require_run()
        return RunOutcome(
            run_id=run.run_id,
            status=run.status,
            response=run.response,
            markup=run.accumulator.markup,
            documents=self._final_documents(),
            usage=self.ledger.snapshot(),
            error=run.error,
        )

    # ------------------------------------------------------------------
    # Graph driving
    # ------------------------------------------------------------------

    async def _run_graph(
        self,
        graph: AgentGraph,
        messages: list[dict],
        context: ExecutionContext,
        feed: Wire,
    ) -> GraphState:
        try:
            return await graph.run(messages, context)
        finally:
            await feed.close()

    async def _watch_abort(self, graph_task: asyncio.Task) -> None:
        await self.control.abort_signal.wait()
        logger.info(
            "run_abort_signal_received",
            run_id=self._require_run().run_id,
            reason=self.control.abort_signal.reason,
        )
        graph_task.cancel()

    def _build_messages(
        self,
        query: str,
        history: list[ChatTurn],
        system_prompt: str | None,
        image_refs: list[str] | None,
    ) -> list[dict]:
        messages: list[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for turn in history:
            messages.append(
                {"role": turn.api_role, "content": remove_thinking_blocks(turn.content)}
            )

        if image_refs:
            content: Any = [{"type": "text", "text": query}] + [
                {"type": "image_url", "image_url": {"url": ref}} for ref in image_refs
            ]
        else:
            content = query
        messages.append({"role": "user", "content": content})
        return messages

    # ------------------------------------------------------------------
    # Graph events
    # ------------------------------------------------------------------

    async def _on_graph_event(self, event: GraphEvent) -> None:
        # Membership first: forwarding decisions below depend on it.
        self.attribution.observe(event)

        if self.control.is_cancelled:
            return

        kind = event.kind
        if kind == GraphEventKind.MODEL_STREAM:
            if self.attribution.owns_model(event.run_id):
                text = event.data.get("chunk")
                if text:
                    await self._emit(create_response_event(text))

        elif kind == GraphEventKind.MODEL_END:
            if self.attribution.owns_model(event.run_id):
                try:
                    usage = extract_model_usage(event.data.get("output"))
                    if usage:
                        await self._apply_usage(UsageTarget.PRIMARY, usage)
                finally:
                    self.attribution.release_model(event.run_id)

        elif kind == GraphEventKind.TOOL_START:
            if self.attribution.owns_tool(event):
                await self._on_tool_start(event)

        elif kind == GraphEventKind.TOOL_END:
            if self.attribution.owns_tool(event):
                await self._on_tool_end(event)

        elif kind == GraphEventKind.TOOL_ERROR:
            if self.attribution.owns_tool(event):
                await self._on_tool_error(event)

    async def _on_tool_start(self, event: GraphEvent) -> None:
        if event.name in SUPPRESSED_TOOL_NAMES:
            return
        call_id = event.data.get("tool_call_id") or event.run_id
        fragment = self.tool_calls.started(call_id, event.name, event.data.get("input"))
        await self._emit(create_tool_call_started_event(call_id, fragment))

    async def _on_tool_end(self, event: GraphEvent) -> None:
        result: ToolResult | None = event.data.get("output")
        if result is not None and result.documents:
            await self._add_documents(result.documents)

        if event.name in SUPPRESSED_TOOL_NAMES:
            return

        call_id = event.data.get("tool_call_id") or event.run_id
        if result is not None and not result.is_success:
            patch = self.tool_calls.ended(
                call_id, ToolCallStatus.ERROR, error=result.error or result.content
            )
            if patch is not None:
                await self._emit(create_tool_call_error_event(call_id, patch.error))
            return

        extra = None
        if event.name == YOUTUBE_TRANSCRIPT_TOOL_NAME and result is not None and result.documents:
            video_id = result.documents[0].metadata.get("source")
            if video_id:
                extra = {"videoId": str(video_id)}

        patch = self.tool_calls.ended(call_id, ToolCallStatus.SUCCESS, extra=extra)
        if patch is not None:
            await self._emit(create_tool_call_success_event(call_id, patch.extra))

    async def _on_tool_error(self, event: GraphEvent) -> None:
        if event.name in SUPPRESSED_TOOL_NAMES:
            return
        call_id = event.data.get("tool_call_id") or event.run_id
        patch = self.tool_calls.ended(
            call_id, ToolCallStatus.ERROR, error=event.data.get("error")
        )
        if patch is not None:
            await self._emit(create_tool_call_error_event(call_id, patch.error))

    async def _add_documents(self, documents: list[Document]) -> None:
        run = self._require_run()
        seen = {_document_key(doc) for doc in run.documents}
        new_docs = []
        for doc in documents:
            key = _document_key(doc)
            if key not in seen:
                seen.add(key)
                new_docs.append(doc)
        if not new_docs:
            return
        run.documents.extend(new_docs)

        grouped: dict[str, list[Document]] = {}
        for doc in new_docs:
            grouped.setdefault(doc.search_query, []).append(doc)
        for search_query, docs in grouped.items():
            await self._emit(create_sources_added_event(docs, search_query))

    def _final_documents(self) -> list[Document]:
        run = self._require_run()
        documents = list(run.documents)
        if run.final_state is not None:
            seen = {_document_key(doc) for doc in documents}
            for doc in run.final_state.documents:
                key = _document_key(doc)
                if key not in seen:
                    seen.add(key)
                    documents.append(doc)
        return documents

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    async def _report_usage(self, target: UsageTarget | str, usage: Any) -> None:
        """Out-of-band usage report from a tool (RunServices.report_usage)."""
        await self._apply_usage(target, usage)

    async def _apply_usage(self, target: UsageTarget | str, usage: Any) -> None:
        snapshot = self.ledger.apply(target, usage)
        await self._emit_stats(snapshot)

    async def _emit_stats(self, snapshot: UsageSnapshot) -> None:
        self._last_stats = snapshot
        await self._emit(create_stats_event(snapshot))

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    async def _complete(self) -> None:
        """Normal completion: fallbacks, final sources and stats, end."""
        run = self._require_run()
        if self.control.is_cancelled:
            # Abort requested while the graph was finishing
            await self._finish_cancelled()
            return

        if not run.response:
            final_message = run.final_state.final_message if run.final_state else None
            text = extract_text_content(final_message) if final_message else ""
            if text:
                logger.info("run_emitting_final_message_fallback", run_id=run.run_id)
                await self._emit(create_response_event(text))
            else:
                logger.warning("run_produced_no_response", run_id=run.run_id)
                await self._emit(create_response_event(NO_RESPONSE_MESSAGE))

        documents = self._final_documents()
        if documents:
            await self._emit(create_sources_event(documents))

        snapshot = self.ledger.snapshot()
        if self._last_stats is None or snapshot != self._last_stats:
            await self._emit_stats(snapshot)

        run.status = RunStatus.COMPLETED
        await self._emit(create_end_event())
        logger.info(
            "run_completed",
            run_id=run.run_id,
            documents=len(documents),
            combined_tokens=snapshot.combined_total,
        )

    async def _handle_interruption(self, exc: Exception) -> None:
        kind = self.control.classify(exc)
        if kind == Interruption.CANCELLED:
            await self._finish_cancelled()
        elif kind == Interruption.SOFT_STOP:
            await self._synthesize_early()
        else:
            await self._finish_failed(exc)

    async def _synthesize_early(self) -> None:
        run = self._require_run()
        logger.info("run_soft_stopped", run_id=run.run_id, documents=len(run.documents))
        synthesizer = EarlySynthesizer(
            self.chat_model, self._emit, self._report_usage, self.control
        )
        try:
            await synthesizer.run(run.query, list(run.documents), system_prompt=run.system_prompt)
        except Exception as exc:
            if self.control.classify(exc) == Interruption.CANCELLED:
                await self._finish_cancelled()
            else:
                await self._finish_failed(exc)
            return
        await self._complete()

    async def _finish_failed(self, exc: BaseException) -> None:
        run = self._require_run()
        if self._terminated:
            return
        logger.error(
            "run_failed",
            run_id=run.run_id,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        from sleuth.config import settings

        run.status = RunStatus.ERRORED
        run.error = truncate(str(exc) or type(exc).__name__, settings.tool_error_max_chars)
        await self._emit(create_response_event(FAILURE_MESSAGE))
        await self._emit(create_error_event(run.error, reason="failed"))

    async def _finish_cancelled(self) -> None:
        run = self._require_run()
        if self._terminated:
            return
        logger.info("run_cancelled", run_id=run.run_id, reason=self.control.abort_signal.reason)
        run.status = RunStatus.CANCELLED
        run.error = CANCELLED_MESSAGE
        await self._emit(create_error_event(CANCELLED_MESSAGE, reason="cancelled"))

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    async def _emit(self, event: StreamEvent) -> None:
        """
        Single write path to the sink.

        Nothing is written after the terminal event, and after a hard
        cancellation only the terminal event itself gets through.
        """
        if self._terminated:
            logger.debug("event_after_termination_dropped", event_type=event.type.value)
            return
        if self.control.is_cancelled and not event.is_terminal:
            return
        if event.is_terminal:
            self._terminated = True
        self._require_run().accumulator.feed(event)
        await self.sink.write(event)

    def _require_run(self) -> Run:
        if self._run is None:
            raise RuntimeError("AgentRunEngine.run() has not been called")
        return self._run


__all__ = [
    "AgentRunEngine",
    "CANCELLED_MESSAGE",
    "FAILURE_MESSAGE",
    "NO_RESPONSE_MESSAGE",
    "Run",
    "extract_model_usage",
]
