"""
Prompts for answer synthesis.

- WEB_SEARCH_RESPONSE_PROMPT: default answer prompt over numbered sources
- build_early_synthesis_prompt: soft-stop synthesis for a run with its own
  system prompt (subagents)
- format_documents: numbered source context shared by both
"""

from datetime import datetime

from sleuth.domain import Document

EARLY_RESPONSE_DISCLAIMER = (
    "## ⚠︎ Early response triggered by budget or user request. ⚠︎\n"
    "Response may be incomplete, lack citations, or omit important content.\n\n---\n\n"
)

NO_CONTEXT = "No context documents available."

DEFAULT_FORMATTING = """- Write a well-structured answer in Markdown, using headings where they help.
- Cite sources inline with their number in square brackets, e.g. [1] or [2][3].
- Only cite sources that appear in the context."""

WEB_SEARCH_RESPONSE_PROMPT = """You are a research assistant answering the user's query from the sources gathered so far.

## Formatting and citations
{formatting}

## Instructions
- Answer using only the information in the context below.
- If the context is insufficient, say what is missing instead of guessing.

<context>
{context}
</context>

Current date: {date}"""


def format_date(date: datetime | None = None) -> str:
    return (date or datetime.now()).strftime("%A, %B %d, %Y")


def format_documents(documents: list[Document]) -> str:
    """Numbered source blocks: <n>, <title>, optional <url>, <content>."""
    blocks = []
    for idx, doc in enumerate(documents, start=1):
        meta = doc.metadata or {}
        title = meta.get("title") or meta.get("url") or f"Source {idx}"
        url = meta.get("url") or ""
        url_line = f"<url>{url}</url>" if url else ""
        blocks.append(
            f"<{idx}>\n<title>{title}</title>\n{url_line}\n"
            f"<content>\n{doc.page_content}\n</content>\n</{idx}>"
        )
    return "\n\n".join(blocks)


def build_web_search_response_prompt(
    documents: list[Document],
    formatting: str | None = None,
    date: datetime | None = None,
) -> str:
    return WEB_SEARCH_RESPONSE_PROMPT.format(
        formatting=formatting or DEFAULT_FORMATTING,
        context=format_documents(documents) or NO_CONTEXT,
        date=format_date(date),
    )


def build_early_synthesis_prompt(
    system_prompt: str,
    documents: list[Document],
    date: datetime | None = None,
) -> str:
    return (
        f"{system_prompt}\n\n## Early Synthesis\n"
        "You were interrupted before completing your full research. "
        "Synthesize a response from the documents gathered so far.\n\n"
        f"<context>\n{format_documents(documents) or NO_CONTEXT}\n</context>\n\n"
        f"Current date: {format_date(date)}"
    )


__all__ = [
    "EARLY_RESPONSE_DISCLAIMER",
    "WEB_SEARCH_RESPONSE_PROMPT",
    "build_early_synthesis_prompt",
    "build_web_search_response_prompt",
    "format_date",
    "format_documents",
]
