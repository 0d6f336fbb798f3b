"""
Prompt templates.
"""

from .decomposer import build_decomposition_prompt, build_supervisor_synthesis_prompt
from .research import DEEP_RESEARCH_SYSTEM_PROMPT
from .synthesis import (
    EARLY_RESPONSE_DISCLAIMER,
    WEB_SEARCH_RESPONSE_PROMPT,
    build_early_synthesis_prompt,
    build_web_search_response_prompt,
    format_date,
    format_documents,
)

__all__ = [
    "DEEP_RESEARCH_SYSTEM_PROMPT",
    "EARLY_RESPONSE_DISCLAIMER",
    "WEB_SEARCH_RESPONSE_PROMPT",
    "build_decomposition_prompt",
    "build_early_synthesis_prompt",
    "build_supervisor_synthesis_prompt",
    "build_web_search_response_prompt",
    "format_date",
    "format_documents",
]
