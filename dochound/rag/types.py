from __future__ import annotations

"""Core data types for documents, index matches and cited sources."""

from dataclasses import dataclass, field
from typing import Any

UNKNOWN_FILENAME = "unknown"


@dataclass(frozen=True)
class Document:
    """Document or chunk with metadata; `filename` metadata names its origin."""
    doc_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexMatch:
    """Raw similarity match returned by a vector index.

    Only `text` is always present. `filename` and `score` are optional because
    an index may hold chunks inserted without metadata; the retrieval boundary
    fills in defaults.
    """
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float | None = None

    @property
    def filename(self) -> str | None:
        value = self.metadata.get("filename")
        if isinstance(value, str) and value.strip():
            return value
        return None


@dataclass(frozen=True)
class Source:
    """Retrieved fragment numbered for inline `[n]` citation."""
    citation_id: str
    filename: str
    text: str
    score: float


@dataclass
class ChatAnswer:
    """Result of one question/answer round."""
    tenant_id: str
    message: str
    answer: str
    sources: list[Source]
    dangling_citations: list[int] = field(default_factory=list)
