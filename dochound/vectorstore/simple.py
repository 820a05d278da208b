from __future__ import annotations

"""File-backed vector index for one tenant, with cosine similarity search."""

import asyncio
import json
import logging
import math
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

from dochound.loaders.chunking import Tokenizer, chunk_document
from dochound.rag.deadline import with_deadline
from dochound.rag.embeddings import EmbeddingError, EmbeddingProvider
from dochound.rag.types import Document, IndexMatch

logger = logging.getLogger(__name__)

DOCSTORE_FILE = "docstore.json"
VECTOR_STORE_FILE = "vector_store.json"
INDEX_META_FILE = "index_meta.json"


class UninitializedError(RuntimeError):
    """Raised when a provider is used before initialize() or before any index exists."""
    pass


class VectorIndexProvider(Protocol):
    """Contract for a tenant's persisted embedding index."""
    tenant_id: str | None
    index_path: Path | None

    async def initialize(self, tenant_id: str, index_path: Path) -> None:
        ...

    async def add_documents(self, documents: Iterable[Document]) -> int:
        ...

    async def query(self, text: str, top_k: int = 5) -> list[IndexMatch]:
        ...

    async def persist(self) -> None:
        ...

    def has_index(self) -> bool:
        ...

    def stats(self) -> dict[str, int | str | bool | None]:
        ...


@dataclass
class _Node:
    node_id: str
    text: str
    metadata: dict[str, Any]


@dataclass
class IndexHandle:
    """Loaded index contents: chunk nodes and their aligned embedding vectors."""
    nodes: list[_Node] = field(default_factory=list)
    vectors: list[list[float]] = field(default_factory=list)

    def extended(self, nodes: list[_Node], vectors: list[list[float]]) -> "IndexHandle":
        return IndexHandle(nodes=self.nodes + nodes, vectors=self.vectors + vectors)


class SimpleVectorStoreProvider:
    """Vector index persisted as JSON files in the tenant's index directory.

    The loaded handle is only ever replaced wholesale, so a concurrent
    query sees either the old or the new contents, never a partial insert.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        *,
        chunk_size: int = 1024,
        chunk_overlap: int = 20,
        tokenizer: Tokenizer | None = None,
        embedding_timeout: float | None = None,
    ) -> None:
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.tokenizer = tokenizer or Tokenizer()
        self.embedding_timeout = embedding_timeout
        self.tenant_id: str | None = None
        self.index_path: Path | None = None
        self._handle: IndexHandle | None = None

    @property
    def initialized(self) -> bool:
        return self.index_path is not None

    @property
    def loaded(self) -> bool:
        return self._handle is not None

    async def initialize(self, tenant_id: str, index_path: Path) -> None:
        """Create the index directory and load persisted artifacts if present."""
        self.tenant_id = tenant_id
        self.index_path = Path(index_path)
        await asyncio.to_thread(self.index_path.mkdir, parents=True, exist_ok=True)
        if self._handle is not None:
            return
        if self.has_index():
            self._handle = await asyncio.to_thread(self._load)
            logger.info(
                "index_loaded",
                extra={
                    "tenant_id": tenant_id,
                    "index_path": str(self.index_path),
                    "nodes": len(self._handle.nodes),
                },
            )
        else:
            logger.info(
                "index_absent",
                extra={"tenant_id": tenant_id, "index_path": str(self.index_path)},
            )

    async def add_documents(self, documents: Iterable[Document]) -> int:
        """Chunk, embed and insert documents; builds a new index when none is loaded."""
        if not self.initialized:
            raise UninitializedError("Provider not initialized. Call initialize() first.")
        documents = list(documents)
        nodes: list[_Node] = []
        for document in documents:
            for chunk in chunk_document(
                document, self.chunk_size, self.chunk_overlap, self.tokenizer
            ):
                metadata = dict(chunk.metadata)
                metadata.setdefault("doc_id", document.doc_id)
                nodes.append(_Node(node_id=str(uuid.uuid4()), text=chunk.content, metadata=metadata))
        vectors = await with_deadline(
            asyncio.to_thread(self.embedder.embed_batch, [node.text for node in nodes]),
            self.embedding_timeout,
            "embedding",
        )
        created = self._handle is None
        base = self._handle or IndexHandle()
        self._handle = base.extended(nodes, vectors)
        logger.info(
            "index_created" if created else "index_extended",
            extra={
                "tenant_id": self.tenant_id,
                "documents": len(documents),
                "nodes_added": len(nodes),
                "nodes_total": len(self._handle.nodes),
            },
        )
        return len(nodes)

    async def query(self, text: str, top_k: int = 5) -> list[IndexMatch]:
        """Return up to `top_k` matches ordered by descending cosine similarity.

        A provider that started before any index existed picks up one that has
        since been persisted to its directory.
        """
        handle = self._handle or await self._load_if_persisted()
        if handle is None:
            raise UninitializedError(
                f"No index available for tenant {self.tenant_id!r}. "
                "Call initialize() and add_documents() first."
            )
        if not handle.nodes or top_k <= 0:
            return []
        query_vector = await with_deadline(
            asyncio.to_thread(self.embedder.embed, text),
            self.embedding_timeout,
            "embedding",
        )
        scored = [
            (node, self._cosine_similarity(query_vector, vector))
            for node, vector in zip(handle.nodes, handle.vectors)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            IndexMatch(text=node.text, metadata=dict(node.metadata), score=score)
            for node, score in scored[:top_k]
        ]

    async def persist(self) -> None:
        """Write the loaded handle to the index directory; no-op without a handle."""
        if not self.initialized:
            raise UninitializedError("Provider not initialized. Call initialize() first.")
        if self._handle is None:
            logger.info("index_persist_skipped", extra={"tenant_id": self.tenant_id})
            return
        await asyncio.to_thread(self._write, self._handle)
        logger.info(
            "index_persisted",
            extra={
                "tenant_id": self.tenant_id,
                "index_path": str(self.index_path),
                "nodes": len(self._handle.nodes),
            },
        )

    async def _load_if_persisted(self) -> IndexHandle | None:
        if not self.has_index():
            return None
        handle = await asyncio.to_thread(self._load)
        if self._handle is None:
            self._handle = handle
            logger.info(
                "index_loaded_late",
                extra={"tenant_id": self.tenant_id, "nodes": len(handle.nodes)},
            )
        return self._handle

    def has_index(self) -> bool:
        """Return True when index artifacts exist on disk, loaded or not."""
        if self.index_path is None:
            return False
        return (self.index_path / DOCSTORE_FILE).is_file()

    def stats(self) -> dict[str, int | str | bool | None]:
        return {
            "backend": "simple",
            "tenant_id": self.tenant_id,
            "loaded": self.loaded,
            "node_count": len(self._handle.nodes) if self._handle else 0,
            "embedding_dimension": self.embedder.dimension,
        }

    def _load(self) -> IndexHandle:
        assert self.index_path is not None
        docstore = json.loads((self.index_path / DOCSTORE_FILE).read_text(encoding="utf-8"))
        vector_path = self.index_path / VECTOR_STORE_FILE
        embeddings: dict[str, list[float]] = {}
        if vector_path.is_file():
            embeddings = json.loads(vector_path.read_text(encoding="utf-8")).get(
                "embedding_dict", {}
            )
        handle = IndexHandle()
        for node_id, entry in docstore.get("nodes", {}).items():
            vector = embeddings.get(node_id)
            if vector is None:
                logger.warning(
                    "index_node_missing_vector",
                    extra={"tenant_id": self.tenant_id, "node_id": node_id},
                )
                continue
            if len(vector) != self.embedder.dimension:
                raise EmbeddingError(
                    f"Index at {self.index_path} was built with dimension {len(vector)}, "
                    f"embedder produces {self.embedder.dimension}"
                )
            handle.nodes.append(
                _Node(
                    node_id=node_id,
                    text=str(entry.get("text", "")),
                    metadata=dict(entry.get("metadata") or {}),
                )
            )
            handle.vectors.append([float(value) for value in vector])
        return handle

    def _write(self, handle: IndexHandle) -> None:
        assert self.index_path is not None
        self.index_path.mkdir(parents=True, exist_ok=True)
        meta = {
            "tenant_id": self.tenant_id,
            "node_count": len(handle.nodes),
            "embedding_dimension": self.embedder.dimension,
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        vectors = {
            "embedding_dict": {
                node.node_id: vector for node, vector in zip(handle.nodes, handle.vectors)
            }
        }
        docstore = {
            "nodes": {
                node.node_id: {"text": node.text, "metadata": node.metadata}
                for node in handle.nodes
            }
        }
        # docstore.json marks a complete index, so it is written last.
        _write_json_atomic(self.index_path / INDEX_META_FILE, meta)
        _write_json_atomic(self.index_path / VECTOR_STORE_FILE, vectors)
        _write_json_atomic(self.index_path / DOCSTORE_FILE, docstore)

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Compute cosine similarity between two vectors."""
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, path)
