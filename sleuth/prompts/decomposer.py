"""Prompts for the supervisor: query decomposition and result synthesis."""

from datetime import datetime
from typing import TYPE_CHECKING

from sleuth.prompts.synthesis import format_date

if TYPE_CHECKING:
    from sleuth.domain import SubagentExecution


def build_decomposition_prompt(query: str, has_files: bool, date: datetime | None = None) -> str:
    files = "YES - User has uploaded files" if has_files else "NO - No files uploaded"
    return f"""# Query Decomposition Specialist

You are a query analysis expert that determines whether a user query should be decomposed into multiple subagent tasks.

## Available Subagents

1. **deep_research**
   - Purpose: Comprehensive multi-source web research on a specific aspect
   - Best for: Complex research topics, fact-finding, exploring multiple perspectives
   - Tools: web_search, url_summarization, image_search, youtube_transcript, pdf_loader
   - Files available to the user: {files}

## Decision Guidelines

**Use Subagents When:**
- The query has multiple distinct aspects that can be researched independently
- The query is complex and would benefit from parallel investigation
- The query explicitly asks for comprehensive or multi-source research

**Do NOT Use Subagents When:**
- The query is simple and straightforward
- The query is conversational or can be answered from conversation history
- Only a single, focused search is needed

## Current Context
- User Query: "{query}"
- Today's Date: {format_date(date)}

## Output Format

Respond with ONLY valid JSON (no markdown, no code blocks):

{{
  "needsDecomposition": boolean,
  "reasoning": "Brief explanation of your decision",
  "subtasks": [
    {{"subagent": "deep_research", "task": "Specific task description for this subagent"}}
  ]
}}

If needsDecomposition is false, subtasks must be an empty array. Tasks must be independent of each other. Limit to 2-3 subtasks.

Analyze the query now and provide your JSON response:"""


def build_supervisor_synthesis_prompt(query: str, executions: list["SubagentExecution"]) -> str:
    summaries = "\n\n".join(
        f"### Subagent {i}: {execution.name}\n"
        f"**Assigned Task**: {execution.task}\n\n"
        f"**Findings**:\n{execution.summary}\n\n"
        f"**Documents Found**: {len(execution.documents)}\n"
        for i, execution in enumerate(executions, start=1)
    )
    return f"""# Content Synthesis Specialist

You are synthesizing research from multiple specialized subagents into a comprehensive answer.

## Original User Query
"{query}"

## Subagent Results
{summaries}

## Your Task
Provide a comprehensive, well-structured answer that:
1. Directly addresses the user's original query
2. Integrates findings from all subagents
3. Maintains proper citations from the documents found
4. Resolves any contradictions between subagent findings

Do not mention subagents or the synthesis process in your response.

Begin your synthesis now:"""


__all__ = ["build_decomposition_prompt", "build_supervisor_synthesis_prompt"]
