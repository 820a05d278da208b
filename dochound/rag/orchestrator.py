from __future__ import annotations

"""Two-stage answering: forced retrieval tool call, then grounded synthesis."""

import json
import logging
from dataclasses import dataclass

from dochound.rag.citations import apply_citation_policy
from dochound.rag.llm import ChatClient, ChatCompletion, LLMError, forced_tool_choice
from dochound.rag.prompts import FALLBACK_ANSWER, retrieval_system_prompt, synthesis_system_prompt
from dochound.rag.retrieval import (
    RETRIEVE_DOCUMENTS_TOOL,
    RETRIEVE_DOCUMENTS_TOOL_NAME,
    execute_retrieval,
)
from dochound.rag.types import ChatAnswer, Source
from dochound.tenants.registry import TenantRegistry

logger = logging.getLogger(__name__)


class ProtocolViolationError(LLMError):
    """Raised when the model does not follow the forced tool-call protocol."""
    pass


class RetrievalNotInvokedError(ProtocolViolationError):
    """Raised when the retrieval stage response carries no retrieve_documents call."""
    pass


class InvalidToolArgumentsError(ProtocolViolationError):
    """Raised when retrieve_documents arguments are not an object with a string query."""
    pass


@dataclass
class ChatOrchestrator:
    """Drives one chat turn: stage 1 picks a query, stage 2 answers from sources.

    Any failure aborts the turn; there are no retries between stages.
    """
    tenants: TenantRegistry
    client: ChatClient
    top_k: int = 5
    citation_policy: str = "keep"
    fallback_answer: str = FALLBACK_ANSWER

    async def chat(self, tenant_id: str, message: str) -> ChatAnswer:
        """Answer `message` from the tenant's documents with inline citations."""
        self.tenants.require_tenant(tenant_id)
        query = await self._request_retrieval(tenant_id, message)
        sources = await execute_retrieval(self.tenants, tenant_id, query, top_k=self.top_k)
        if not sources:
            logger.warning(
                "retrieval_empty",
                extra={"tenant_id": tenant_id, "query": query},
            )
        answer = await self._synthesize(message, sources)
        check = apply_citation_policy(answer, len(sources), self.citation_policy)
        if check.dangling:
            logger.warning(
                "dangling_citations",
                extra={
                    "tenant_id": tenant_id,
                    "citations": check.dangling,
                    "sources": len(sources),
                    "policy": self.citation_policy,
                },
            )
        return ChatAnswer(
            tenant_id=tenant_id,
            message=message,
            answer=check.answer,
            sources=sources,
            dangling_citations=check.dangling if self.citation_policy != "keep" else [],
        )

    async def _request_retrieval(self, tenant_id: str, message: str) -> str:
        completion = await self.client.complete(
            [
                {"role": "system", "content": retrieval_system_prompt()},
                {"role": "user", "content": message},
            ],
            tools=[RETRIEVE_DOCUMENTS_TOOL],
            tool_choice=forced_tool_choice(RETRIEVE_DOCUMENTS_TOOL_NAME),
        )
        tool_call = next(
            (call for call in completion.tool_calls if call.name == RETRIEVE_DOCUMENTS_TOOL_NAME),
            None,
        )
        if tool_call is None:
            logger.error(
                "retrieval_not_invoked",
                extra={"tenant_id": tenant_id, "response": _dump(completion)},
            )
            raise RetrievalNotInvokedError(
                f"Model did not call {RETRIEVE_DOCUMENTS_TOOL_NAME} tool"
            )
        try:
            arguments = tool_call.parsed_arguments()
        except ValueError as exc:
            raise InvalidToolArgumentsError(
                f"Invalid {RETRIEVE_DOCUMENTS_TOOL_NAME} arguments: {exc}"
            ) from exc
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise InvalidToolArgumentsError(
                f"{RETRIEVE_DOCUMENTS_TOOL_NAME} requires a non-empty string 'query'"
            )
        logger.info(
            "retrieval_requested",
            extra={"tenant_id": tenant_id, "query": query},
        )
        return query.strip()

    async def _synthesize(self, message: str, sources: list[Source]) -> str:
        completion = await self.client.complete(
            [
                {
                    "role": "system",
                    "content": synthesis_system_prompt(sources, fallback=self.fallback_answer),
                },
                {"role": "user", "content": message},
            ],
        )
        return (completion.content or "").strip()


def _dump(completion: ChatCompletion) -> str:
    if completion.raw:
        return json.dumps(completion.raw, default=str)
    return json.dumps(
        {"content": completion.content, "finish_reason": completion.finish_reason}
    )
