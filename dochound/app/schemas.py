from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TenantResponse(CamelModel):
    id: str
    name: str
    document_count: int


class ChatRequest(CamelModel):
    message: str = Field(min_length=1, max_length=8000)


class SourceResponse(CamelModel):
    citation_id: str
    filename: str
    excerpt: str
    score: float


class ChatResponse(CamelModel):
    answer: str
    sources: list[SourceResponse]
    dangling_citations: list[int] | None = None


class ReindexRequest(CamelModel):
    dry_run: bool = False
    activate: bool = True


class FileFailureResponse(CamelModel):
    filename: str
    error: str


class ReindexResponse(CamelModel):
    tenant_id: str
    dry_run: bool
    documents: int
    estimated_tokens: int
    estimated_cost_usd: float
    chunks_indexed: int
    backup_taken: bool
    activated: bool
    failures: list[FileFailureResponse] = Field(default_factory=list)


class EvictResponse(CamelModel):
    tenant_id: str
    evicted: bool


class IndexStatusResponse(CamelModel):
    tenant_id: str
    indexed: bool
    backup_present: bool
    cached: bool
    loaded: bool = False
    node_count: int = 0
    embedding_dimension: int | None = None
