from __future__ import annotations

"""Per-tenant provider cache: one live vector index instance per tenant."""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from dochound.loaders.chunking import Tokenizer
from dochound.rag.embeddings import EmbeddingProvider
from dochound.vectorstore.simple import SimpleVectorStoreProvider, VectorIndexProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], VectorIndexProvider]


class VectorStoreConfigError(RuntimeError):
    """Raised when the configured vector store backend is unsupported."""
    pass


def build_provider_factory(
    backend: str,
    *,
    embedder: EmbeddingProvider,
    chunk_size: int,
    chunk_overlap: int,
    tokenizer: Tokenizer,
    embedding_timeout: float | None = None,
) -> ProviderFactory:
    """Return a factory of uninitialized providers for the configured backend."""
    normalized = backend.lower().strip()
    if normalized != "simple":
        raise VectorStoreConfigError(
            f"Unsupported vector store backend: {backend}. Use RAG_VECTORSTORE=simple."
        )

    def factory() -> VectorIndexProvider:
        return SimpleVectorStoreProvider(
            embedder,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            tokenizer=tokenizer,
            embedding_timeout=embedding_timeout,
        )

    return factory


class ProviderRegistry:
    """Creates, caches and hands out initialized providers keyed by tenant id.

    Forced instances are never cached; installing one as the live provider
    is an explicit `replace()` call by the caller.
    """

    def __init__(self, factory: ProviderFactory) -> None:
        self._factory = factory
        self._instances: dict[str, VectorIndexProvider] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_or_create(
        self, tenant_id: str, index_path: Path, force_new: bool = False
    ) -> VectorIndexProvider:
        """Return the cached provider for a tenant, or a fresh one when forced."""
        if force_new:
            provider = self._factory()
            await provider.initialize(tenant_id, Path(index_path))
            logger.info("provider_created", extra={"tenant_id": tenant_id, "forced": True})
            return provider
        cached = self._instances.get(tenant_id)
        if cached is not None:
            return cached
        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            cached = self._instances.get(tenant_id)
            if cached is not None:
                return cached
            provider = self._factory()
            await provider.initialize(tenant_id, Path(index_path))
            self._instances[tenant_id] = provider
            logger.info("provider_created", extra={"tenant_id": tenant_id, "forced": False})
            return provider

    def get_cached(self, tenant_id: str) -> VectorIndexProvider | None:
        return self._instances.get(tenant_id)

    def replace(
        self, tenant_id: str, provider: VectorIndexProvider
    ) -> VectorIndexProvider | None:
        """Install `provider` as the live instance and return the one it displaced."""
        previous = self._instances.get(tenant_id)
        self._instances[tenant_id] = provider
        logger.info(
            "provider_replaced",
            extra={"tenant_id": tenant_id, "had_previous": previous is not None},
        )
        return previous

    def evict(self, tenant_id: str) -> bool:
        """Drop a tenant's cached provider; references held elsewhere stay usable."""
        removed = self._instances.pop(tenant_id, None) is not None
        if removed:
            logger.info("provider_evicted", extra={"tenant_id": tenant_id})
        return removed

    def clear_all(self) -> None:
        self._instances.clear()

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)
