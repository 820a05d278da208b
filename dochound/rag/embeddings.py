from __future__ import annotations

"""Embedding backends used to index and query tenant corpora."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from openai import OpenAI, OpenAIError

_WORD_RE = re.compile(r"[a-z0-9]+")

OPENAI_EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbeddingError(RuntimeError):
    """Raised when an embedding request fails or returns an unusable vector."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when the embedding backend cannot be built from settings."""
    pass


class EmbeddingProvider(Protocol):
    """Turns text into fixed-width vectors."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        ...


def check_vector(vector: Sequence[Any], dimension: int) -> list[float]:
    """Reject vectors of the wrong width or with non-finite components."""
    if len(vector) != dimension:
        raise EmbeddingError(f"Expected a {dimension}-d embedding, got {len(vector)}")
    values = [float(value) for value in vector]
    if not all(math.isfinite(value) for value in values):
        raise EmbeddingError("Embedding contains a non-finite value")
    return values


@dataclass
class HashEmbedder:
    """Bag-of-words hashing embedder; deterministic and offline.

    Texts sharing words get a positive cosine similarity, which is enough
    for tests and local demos without an API key.
    """
    dimension: int = 256

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm:
            vector = [value / norm for value in vector]
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


@dataclass
class OpenAIEmbedder:
    """Embeddings from an OpenAI-compatible `/embeddings` endpoint."""
    api_key: str
    model: str
    dimension: int
    base_url: str | None = None
    timeout: float | None = None
    batch_size: int = 100
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts in request-sized batches, preserving input order."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start : start + self.batch_size])
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except OpenAIError as exc:
                raise EmbeddingError(
                    f"OpenAI embedding request failed: {type(exc).__name__}"
                ) from exc
            items = sorted(response.data, key=lambda item: item.index)
            if len(items) != len(batch):
                raise EmbeddingError(
                    f"OpenAI returned {len(items)} embeddings for {len(batch)} inputs"
                )
            vectors.extend(check_vector(item.embedding, self.dimension) for item in items)
        return vectors


def build_embedder(
    provider: str,
    *,
    dimension: int,
    openai_api_key: str | None = None,
    openai_model: str | None = None,
    openai_base_url: str | None = None,
    timeout: float | None = None,
) -> EmbeddingProvider:
    """Build the embedder named by EMBEDDING_PROVIDER ("openai" or "hash")."""
    normalized = provider.lower().strip()
    if normalized == "hash":
        if dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be greater than zero")
        return HashEmbedder(dimension=dimension)
    if normalized != "openai":
        raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")
    if not openai_api_key:
        raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAI embeddings")
    if not openai_model:
        raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAI embeddings")
    known = OPENAI_EMBEDDING_DIMENSIONS.get(openai_model)
    if known is not None and dimension != known:
        raise EmbeddingConfigError(
            f"EMBEDDING_DIMENSION is {dimension} but {openai_model} produces {known}"
        )
    if known is None and dimension <= 0:
        raise EmbeddingConfigError(f"EMBEDDING_DIMENSION must be set for model {openai_model}")
    return OpenAIEmbedder(
        api_key=openai_api_key,
        model=openai_model,
        dimension=dimension,
        base_url=openai_base_url,
        timeout=timeout,
    )
