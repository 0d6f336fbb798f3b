"""
Runtime exception hierarchy.
"""


class SleuthError(Exception):
    """Base class for all sleuth runtime errors."""


class RunInterruptedError(SleuthError):
    """
    Raised inside the execution graph when the retrieval (soft-stop) signal
    is set. The engine turns it into early synthesis, never into a failure,
    as long as the soft stop is still requested.
    """

    def __init__(self, reason: str | None = None):
        self.reason = reason or "Retrieval stopped"
        super().__init__(self.reason)


class RunCancelledError(SleuthError):
    """Raised when a run observes its hard abort signal between steps."""

    def __init__(self, reason: str | None = None):
        self.reason = reason or "Operation cancelled"
        super().__init__(self.reason)


class SubagentRunError(SleuthError):
    """A delegated child run terminated without completing."""

    def __init__(self, execution_id: str, message: str):
        self.execution_id = execution_id
        super().__init__(message)


class ToolNotFoundError(SleuthError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool {tool_name} not found")


__all__ = [
    "RunCancelledError",
    "RunInterruptedError",
    "SleuthError",
    "SubagentRunError",
    "ToolNotFoundError",
]
