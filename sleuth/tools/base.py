"""Base abstractions for tools available to a run."""

import time
from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

from sleuth.domain import Document, ToolResult

if TYPE_CHECKING:
    from sleuth.runtime.context import ExecutionContext

SOFT_STOP_MESSAGE = "Operation stopped by user."


class BaseTool(ABC):
    """Common interface that every concrete tool must implement."""

    def __init__(self) -> None:
        self.name = self.get_name()
        self.description = self.get_description()

    @abstractmethod
    def get_name(self) -> str:
        """Return the tool name."""

    @abstractmethod
    def get_description(self) -> str:
        """Return the tool description used for prompting."""

    @abstractmethod
    def get_parameters(self) -> dict[str, Any]:
        """Return the JSON schema describing `execute` parameters."""

    def is_concurrency_safe(self) -> bool:
        """Whether the tool can be executed concurrently."""
        return True

    @abstractmethod
    async def execute(
        self,
        parameters: dict[str, Any],
        context: "ExecutionContext",
    ) -> ToolResult:
        """
        Execute the tool and return ToolResult directly.

        Args:
            parameters: Tool parameters, plus ``tool_call_id``
            context: Execution context of this invocation. Its run_id is the
                tool invocation's own run id; its control carries the abort
                and retrieval signals.

        Returns:
            ToolResult: Tool execution result
        """

    def to_openai_schema(self) -> dict:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_parameters(),
            },
        }

    @staticmethod
    def soft_stopped(context: "ExecutionContext") -> bool:
        """True when the run asked tools not to start new work."""
        return context.control.is_soft_stopped

    def _create_result(
        self,
        parameters: dict,
        content: str,
        start_time: float,
        output: Any = None,
        documents: list[Document] | None = None,
    ) -> ToolResult:
        end_time = time.time()
        return ToolResult(
            tool_name=self.name,
            tool_call_id=parameters.get("tool_call_id", ""),
            input_args=parameters,
            content=content,
            output=output,
            documents=documents or [],
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
        )

    def _create_error_result(
        self,
        parameters: dict,
        error: str,
        start_time: float,
    ) -> ToolResult:
        end_time = time.time()
        return ToolResult(
            tool_name=self.name,
            tool_call_id=parameters.get("tool_call_id", ""),
            input_args=parameters,
            content=f"Error: {error}",
            error=error,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            is_success=False,
        )

    def _create_soft_stop_result(self, parameters: dict, start_time: float) -> ToolResult:
        """Result returned instead of starting work after a soft stop."""
        return self._create_result(parameters, SOFT_STOP_MESSAGE, start_time)


__all__ = ["BaseTool", "SOFT_STOP_MESSAGE"]
