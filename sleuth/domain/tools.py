from typing import Any

from pydantic import BaseModel, Field

from .models import Document


class ToolResult(BaseModel):
    tool_name: str
    tool_call_id: str
    input_args: dict[str, Any] = Field(default_factory=dict)
    content: str  # what the model reads back
    output: Any = None  # raw execution result
    documents: list[Document] = Field(default_factory=list)
    error: str | None = None
    start_time: float
    end_time: float
    duration: float
    is_success: bool = True
