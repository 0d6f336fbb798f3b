"""TodoListTool - the agent's research plan checklist."""

import time
from typing import Any, Literal, TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from sleuth.domain import ToolResult, create_todo_update_event
from sleuth.runtime.tool_calls import TODO_LIST_TOOL_NAME
from sleuth.tools.base import BaseTool
from sleuth.utils.logging import get_logger

if TYPE_CHECKING:
    from sleuth.runtime.context import ExecutionContext

logger = get_logger(__name__)

MAX_TODO_ITEMS = 10


class TodoItem(BaseModel):
    content: str
    status: Literal["pending", "in_progress", "completed"]


class TodoListTool(BaseTool):
    """
    Replaces the whole todo list on every call and emits todo_update.

    No model calls; pure state plus one outward event.
    """

    def get_name(self) -> str:
        return TODO_LIST_TOOL_NAME

    def get_description(self) -> str:
        return (
            "Create or update a research plan todo list to track progress on complex, "
            "multi-part queries. Call with the complete list state; each call replaces the "
            "entire list. Use only for thorough research tasks requiring structured tracking."
        )

    def get_parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "todos": {
                    "type": "array",
                    "description": (
                        "The complete todo list state. Each call replaces the entire list. "
                        f"Maximum {MAX_TODO_ITEMS} items."
                    ),
                    "items": {
                        "type": "object",
                        "properties": {
                            "content": {
                                "type": "string",
                                "description": "Description of the research task",
                            },
                            "status": {
                                "type": "string",
                                "enum": ["pending", "in_progress", "completed"],
                                "description": "Current status of this task",
                            },
                        },
                        "required": ["content", "status"],
                    },
                    "minItems": 1,
                    "maxItems": MAX_TODO_ITEMS,
                },
            },
            "required": ["todos"],
        }

    async def execute(
        self,
        parameters: dict[str, Any],
        context: "ExecutionContext",
    ) -> ToolResult:
        start_time = time.time()
        raw = parameters.get("todos") or []

        if len(raw) > MAX_TODO_ITEMS:
            return self._create_result(
                parameters,
                f"Error: Task list exceeds maximum of {MAX_TODO_ITEMS} items "
                f"({len(raw)} provided). Please reduce the list to {MAX_TODO_ITEMS} "
                "or fewer tasks and try again.",
                start_time,
            )
        if not raw:
            return self._create_result(
                parameters,
                "Error: Task list cannot be empty. Provide at least one task.",
                start_time,
            )

        try:
            todos = [TodoItem.model_validate(item) for item in raw]
        except ValidationError as e:
            return self._create_error_result(parameters, f"Invalid todo item: {e}", start_time)

        await context.emit(create_todo_update_event([todo.model_dump() for todo in todos]))

        pending = sum(1 for t in todos if t.status == "pending")
        in_progress = sum(1 for t in todos if t.status == "in_progress")
        completed = sum(1 for t in todos if t.status == "completed")
        logger.debug("todo_list_updated", items=len(todos), completed=completed)

        return self._create_result(
            parameters,
            f"Todo list updated: {len(todos)} items ({completed} completed, "
            f"{in_progress} in progress, {pending} pending).",
            start_time,
            output=[todo.model_dump() for todo in todos],
        )


__all__ = ["MAX_TODO_ITEMS", "TodoItem", "TodoListTool"]
