"""
Subagent definitions.

A definition fixes what a delegated child run may do: its system prompt,
its tool whitelist, which model it reasons with and how many steps it gets.
"""

from pydantic import BaseModel, Field

from sleuth.prompts.research import DEEP_RESEARCH_SYSTEM_PROMPT


class SubagentDefinition(BaseModel):
    """Configuration of one kind of subagent."""

    name: str
    description: str
    system_prompt: str
    # Empty means every available tool (delegation tools are always removed)
    allowed_tools: list[str] = Field(default_factory=list)
    use_system_model: bool = False
    max_turns: int = Field(default=10, ge=1)
    parallelizable: bool = True


DEEP_RESEARCH = SubagentDefinition(
    name="Deep Research",
    description=(
        "Comprehensive multi-source research on a focused topic. Searches the web, "
        "reads full sources and returns detailed findings with citations."
    ),
    system_prompt=DEEP_RESEARCH_SYSTEM_PROMPT,
    allowed_tools=[
        "web_search",
        "url_summarization",
        "image_search",
        "image_analysis",
        "youtube_transcript",
        "pdf_loader",
    ],
    use_system_model=False,
    max_turns=10,
    parallelizable=True,
)

SUBAGENT_DEFINITIONS: dict[str, SubagentDefinition] = {
    "deep_research": DEEP_RESEARCH,
}


def get_subagent_definition(subagent_type: str) -> SubagentDefinition | None:
    return SUBAGENT_DEFINITIONS.get(subagent_type)


def available_subagents() -> list[str]:
    return list(SUBAGENT_DEFINITIONS)


def subagent_exists(subagent_type: str) -> bool:
    return subagent_type in SUBAGENT_DEFINITIONS


__all__ = [
    "DEEP_RESEARCH",
    "SUBAGENT_DEFINITIONS",
    "SubagentDefinition",
    "available_subagents",
    "get_subagent_definition",
    "subagent_exists",
]
