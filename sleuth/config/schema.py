"""
Per-run execution configuration.
"""

from pydantic import BaseModel, Field


class ExecutionConfig(BaseModel):
    """
    Runtime execution configuration for one graph run.
    """

    # Loop configuration
    max_steps: int = Field(default=150, ge=1, description="Maximum reasoning steps")
    parallel_tool_calls: bool = Field(default=True, description="Execute tools in parallel")

    @classmethod
    def from_settings(cls) -> "ExecutionConfig":
        from sleuth.config.settings import settings

        return cls(max_steps=settings.recursion_limit)


__all__ = ["ExecutionConfig"]
