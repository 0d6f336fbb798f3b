"""
Tool Registry - name based lookup of tool instances.

The engine receives its tool set already resolved; the registry is how
callers (and the Subagent Executor) resolve names into tool instances and
narrow a tool set down to a whitelist.
"""

from typing import Iterable

from sleuth.runtime.exceptions import ToolNotFoundError
from sleuth.tools.base import BaseTool
from sleuth.utils.logging import get_logger

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of tool instances keyed by tool name."""

    def __init__(self, tools: Iterable[BaseTool] | None = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning("tool_overridden", tool_name=tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> BaseTool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def resolve(self, names: Iterable[str]) -> list[BaseTool]:
        """Resolve tool names in order; unknown names raise ToolNotFoundError."""
        return [self.get(name) for name in names]

    def list_available(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def filter_tools(
    tools: Iterable[BaseTool],
    allowed: Iterable[str] | None = None,
    excluded: Iterable[str] = (),
) -> list[BaseTool]:
    """
    Narrow a tool set.

    An empty or missing whitelist keeps every tool; names in ``excluded``
    are always removed, whatever the whitelist says.
    """
    allowed_names = set(allowed or ())
    excluded_names = set(excluded)
    return [
        tool
        for tool in tools
        if (not allowed_names or tool.name in allowed_names)
        and tool.name not in excluded_names
    ]


__all__ = ["ToolRegistry", "filter_tools"]
