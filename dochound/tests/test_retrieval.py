from __future__ import annotations

"""Retrieval tool execution and source normalization."""

from pathlib import Path

import pytest

from dochound.rag.retrieval import RETRIEVE_DOCUMENTS_TOOL, execute_retrieval, to_sources
from dochound.rag.types import Document, IndexMatch, Source
from dochound.tenants.registry import TenantRegistry, UnknownTenantError
from dochound.tests.stubs import make_tenant

pytestmark = pytest.mark.anyio


def test_citation_ids_follow_received_order() -> None:
    matches = [
        IndexMatch(text="low", metadata={"filename": "c.txt"}, score=0.1),
        IndexMatch(text="high", metadata={"filename": "a.txt"}, score=0.9),
        IndexMatch(text="mid", metadata={"filename": "b.txt"}, score=0.5),
    ]

    sources = to_sources(matches)

    assert [source.citation_id for source in sources] == ["1", "2", "3"]
    assert [source.filename for source in sources] == ["c.txt", "a.txt", "b.txt"]


def test_missing_metadata_defaults() -> None:
    sources = to_sources([IndexMatch(text="orphan chunk"), IndexMatch(text="", metadata={"filename": " "})])

    assert sources == [
        Source(citation_id="1", filename="unknown", text="orphan chunk", score=0.0),
        Source(citation_id="2", filename="unknown", text="", score=0.0),
    ]


def test_tool_schema_requires_query() -> None:
    function = RETRIEVE_DOCUMENTS_TOOL["function"]

    assert function["name"] == "retrieve_documents"
    assert function["parameters"]["required"] == ["query"]
    assert function["parameters"]["properties"]["query"]["type"] == "string"


async def test_execute_retrieval_against_tenant_index(
    tenants_dir: Path, tenants: TenantRegistry
) -> None:
    make_tenant(tenants_dir, "docs-a")
    await tenants.initialize()
    provider = await tenants.get_vector_store("docs-a")
    await provider.add_documents(
        [Document(doc_id="a.txt", content="hello world", metadata={"filename": "a.txt"})]
    )

    sources = await execute_retrieval(tenants, "docs-a", "hello")

    assert len(sources) == 1
    assert sources[0].citation_id == "1"
    assert sources[0].filename == "a.txt"
    assert sources[0].text == "hello world"
    assert sources[0].score > 0


async def test_execute_retrieval_respects_top_k(tenants_dir: Path, tenants: TenantRegistry) -> None:
    make_tenant(tenants_dir, "acme")
    await tenants.initialize()
    provider = await tenants.get_vector_store("acme")
    await provider.add_documents(
        [
            Document(doc_id=f"{idx}.txt", content=f"shared topic note {idx}", metadata={"filename": f"{idx}.txt"})
            for idx in range(8)
        ]
    )

    sources = await execute_retrieval(tenants, "acme", "shared topic", top_k=3)

    assert [source.citation_id for source in sources] == ["1", "2", "3"]
    assert [source.score for source in sources] == sorted(
        (source.score for source in sources), reverse=True
    )


async def test_empty_index_returns_no_sources(tenants_dir: Path, tenants: TenantRegistry) -> None:
    make_tenant(tenants_dir, "acme")
    await tenants.initialize()
    provider = await tenants.get_vector_store("acme")
    await provider.add_documents([])

    assert await execute_retrieval(tenants, "acme", "anything") == []


async def test_unknown_tenant(tenants: TenantRegistry) -> None:
    await tenants.initialize()

    with pytest.raises(UnknownTenantError):
        await execute_retrieval(tenants, "ghost", "hello")
