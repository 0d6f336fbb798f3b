"""
Configuration: environment settings and per-run execution config.
"""

from sleuth.config.schema import ExecutionConfig
from sleuth.config.settings import SleuthSettings, settings

__all__ = ["ExecutionConfig", "SleuthSettings", "settings"]
