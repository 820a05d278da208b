from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from fastapi import Request

from dochound.app.settings import Settings, settings
from dochound.indexing.reindex import ReindexPipeline, recover_interrupted
from dochound.loaders.chunking import Tokenizer
from dochound.rag.embeddings import EmbeddingProvider, build_embedder
from dochound.rag.llm import ChatClient, build_chat_client
from dochound.rag.orchestrator import ChatOrchestrator
from dochound.tenants.registry import TenantRegistry
from dochound.vectorstore.registry import ProviderRegistry, build_provider_factory

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Process-wide serving state with an explicit start/shutdown lifecycle."""
    tenants: TenantRegistry
    providers: ProviderRegistry
    orchestrator: ChatOrchestrator
    reindexer: ReindexPipeline
    _start_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _started: bool = field(default=False, init=False, repr=False)

    async def start(self) -> None:
        """Discover tenants and recover interrupted reindex runs. Runs once."""
        if self._started:
            return
        async with self._start_lock:
            if self._started:
                return
            await self.tenants.initialize()
            for tenant in self.tenants.get_tenants():
                await asyncio.to_thread(recover_interrupted, tenant)
            self._started = True

    async def shutdown(self) -> None:
        self.providers.clear_all()
        logger.info("service_context_shutdown")


def build_tokenizer(config: Settings = settings) -> Tokenizer:
    return Tokenizer(encoding_name=config.tokenizer_encoding, disabled=config.tokenizer_disabled)


def build_registries(
    config: Settings = settings,
    *,
    embedder: EmbeddingProvider | None = None,
) -> tuple[TenantRegistry, ProviderRegistry]:
    """Build the provider cache and the tenant registry that fronts it."""
    embedder = embedder or build_embedder(
        config.embedding_provider,
        dimension=config.embedding_dimension,
        openai_api_key=config.openai_api_key,
        openai_model=config.openai_embedding_model,
        openai_base_url=config.openai_base_url,
        timeout=config.embedding_timeout,
    )
    factory = build_provider_factory(
        config.vectorstore_backend,
        embedder=embedder,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        tokenizer=build_tokenizer(config),
        embedding_timeout=config.embedding_timeout,
    )
    providers = ProviderRegistry(factory)
    return TenantRegistry(config.tenants_dir, providers), providers


def build_reindexer(
    tenants: TenantRegistry, providers: ProviderRegistry | None, config: Settings = settings
) -> ReindexPipeline:
    embedding_model = (
        config.openai_embedding_model
        if config.embedding_provider.lower().strip() == "openai"
        else config.embedding_provider
    )
    return ReindexPipeline(
        tenants,
        providers,
        tokenizer=build_tokenizer(config),
        embedding_model=embedding_model,
        embedding_cost_per_1k=config.embedding_cost_per_1k,
    )


def build_context(
    config: Settings = settings,
    *,
    embedder: EmbeddingProvider | None = None,
    chat_client: ChatClient | None = None,
) -> ServiceContext:
    """Wire registries, orchestrator and reindexer from settings."""
    tenants, providers = build_registries(config, embedder=embedder)
    chat_client = chat_client or build_chat_client(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        model=config.openai_chat_model,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
        timeout=config.llm_timeout,
    )
    orchestrator = ChatOrchestrator(
        tenants=tenants,
        client=chat_client,
        top_k=config.top_k,
        citation_policy=config.citation_policy,
    )
    return ServiceContext(
        tenants=tenants,
        providers=providers,
        orchestrator=orchestrator,
        reindexer=build_reindexer(tenants, providers, config),
    )


async def get_context(request: Request) -> ServiceContext:
    """FastAPI dependency returning the started service context."""
    context: ServiceContext | None = getattr(request.app.state, "context", None)
    if context is None:
        context = build_context()
        request.app.state.context = context
    await context.start()
    return context
