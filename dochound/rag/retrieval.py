from __future__ import annotations

"""The retrieve_documents tool: schema and execution against a tenant index."""

import logging
from typing import Any, Iterable

from dochound.rag.types import UNKNOWN_FILENAME, IndexMatch, Source
from dochound.tenants.registry import TenantRegistry

logger = logging.getLogger(__name__)

RETRIEVE_DOCUMENTS_TOOL_NAME = "retrieve_documents"

RETRIEVE_DOCUMENTS_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": RETRIEVE_DOCUMENTS_TOOL_NAME,
        "description": (
            "Search the document corpus for relevant information. "
            "Always call this before answering questions."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query to find relevant documents",
                },
            },
            "required": ["query"],
        },
    },
}


def to_sources(matches: Iterable[IndexMatch]) -> list[Source]:
    """Number matches 1..N in the order received, filling in missing fields."""
    sources: list[Source] = []
    for idx, match in enumerate(matches, start=1):
        sources.append(
            Source(
                citation_id=str(idx),
                filename=match.filename or UNKNOWN_FILENAME,
                text=match.text or "",
                score=float(match.score) if match.score is not None else 0.0,
            )
        )
    return sources


async def execute_retrieval(
    tenants: TenantRegistry,
    tenant_id: str,
    query: str,
    top_k: int = 5,
) -> list[Source]:
    """Query a tenant's index and return cited sources."""
    provider = await tenants.get_vector_store(tenant_id)
    matches = await provider.query(query, top_k)
    sources = to_sources(matches)
    logger.info(
        "retrieval_complete",
        extra={
            "tenant_id": tenant_id,
            "results": len(sources),
            "query_length": len(query),
        },
    )
    return sources
