"""
Early synthesis after a soft stop.

One bounded model pass over the documents a run had collected when it was
told to stop retrieving, streamed after a visible disclaimer.
"""

from typing import TYPE_CHECKING

from sleuth.domain import Document, UsageTarget, create_response_event
from sleuth.prompts.synthesis import (
    EARLY_RESPONSE_DISCLAIMER,
    build_early_synthesis_prompt,
    build_web_search_response_prompt,
)
from sleuth.runtime.exceptions import RunCancelledError
from sleuth.utils.content import extract_text_content
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.llm import Model
    from sleuth.runtime.context import EmitFn, UsageReportFn
    from sleuth.runtime.control import RunControl

logger = get_logger(__name__)


class EarlySynthesizer:
    def __init__(
        self,
        model: "Model",
        emit: "EmitFn",
        report_usage: "UsageReportFn",
        control: "RunControl",
    ):
        self.model = model
        self.emit = emit
        self.report_usage = report_usage
        self.control = control

    def build_messages(
        self,
        query: str,
        documents: list[Document],
        system_prompt: str | None = None,
    ) -> list[dict]:
        """
        A run with its own system prompt keeps its role and gets an
        "Early Synthesis" section appended; otherwise the default web search
        response prompt is used.
        """
        if system_prompt:
            system = build_early_synthesis_prompt(system_prompt, documents)
        else:
            system = build_web_search_response_prompt(documents)
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": query},
        ]

    async def run(
        self,
        query: str,
        documents: list[Document],
        system_prompt: str | None = None,
    ) -> str:
        """
        Stream the disclaimer and the synthesized answer.

        Returns:
            str: Everything emitted, disclaimer included

        Raises:
            RunCancelledError: The run was hard-cancelled mid-synthesis
        """
        logger.info("early_synthesis_started", documents=len(documents))
        messages = self.build_messages(query, documents, system_prompt)

        await self.emit(create_response_event(EARLY_RESPONSE_DISCLAIMER))
        text = EARLY_RESPONSE_DISCLAIMER
        usage = None

        async for chunk in self.model.arun_stream(messages):
            if self.control.is_cancelled:
                raise RunCancelledError(self.control.abort_signal.reason)
            delta = extract_text_content(chunk.content)
            if delta:
                text += delta
                await self.emit(create_response_event(delta))
            if chunk.usage:
                usage = chunk.usage

        if usage:
            await self.report_usage(UsageTarget.PRIMARY, usage)

        logger.info("early_synthesis_completed", chars=len(text))
        return text


__all__ = ["EarlySynthesizer"]
