from __future__ import annotations

"""System prompts for the retrieval and grounded-synthesis stages."""

from typing import Iterable

from dochound.rag.types import Source

FALLBACK_ANSWER = "I couldn't find information about that in the available documents."

SOURCE_DIVIDER = "\n\n---\n\n"

_RETRIEVAL_PROMPT = (
    "You are a document retrieval assistant. "
    "When the user asks a question, you MUST call the retrieve_documents function "
    "to search for relevant information. "
    "Do not attempt to answer from your own knowledge."
)

_SYNTHESIS_PROMPT = """You are a helpful assistant that answers questions based ONLY on the provided documents.

Rules:
1. ONLY use information from the retrieved documents below
2. Include inline citations like [1], [2] referring to source numbers
3. If the documents don't contain the answer, say "{fallback}"
4. Be concise and direct

Retrieved Documents:
{documents}"""


def retrieval_system_prompt() -> str:
    return _RETRIEVAL_PROMPT


def format_sources_for_prompt(sources: Iterable[Source]) -> str:
    """Render sources as `[id] (filename)` blocks in their retrieval order."""
    return SOURCE_DIVIDER.join(
        f"[{source.citation_id}] ({source.filename})\n{source.text}" for source in sources
    )


def synthesis_system_prompt(sources: list[Source], fallback: str = FALLBACK_ANSWER) -> str:
    """Build the grounded-synthesis prompt embedding the retrieved sources."""
    return _SYNTHESIS_PROMPT.format(
        fallback=fallback,
        documents=format_sources_for_prompt(sources),
    )
