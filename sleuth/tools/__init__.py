"""
Tools module - tool interface, registry and the orchestration tools.

Concrete research tools (search, fetch, transcripts, ...) implement
BaseTool outside this package.
"""

from sleuth.tools.base import SOFT_STOP_MESSAGE, BaseTool
from sleuth.tools.registry import ToolRegistry, filter_tools
from sleuth.tools.deep_research import DeepResearchTool
from sleuth.tools.todo_list import TodoListTool

__all__ = [
    "BaseTool",
    "DeepResearchTool",
    "SOFT_STOP_MESSAGE",
    "TodoListTool",
    "ToolRegistry",
    "filter_tools",
]
