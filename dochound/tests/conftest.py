from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ["RAG_DISABLE_TIKTOKEN"] = "true"
os.environ.setdefault("RAG_VECTORSTORE", "simple")
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("DOCHOUND_TENANTS_DIR", None)
os.environ.pop("RAG_CITATION_POLICY", None)

import pytest

from dochound.loaders.chunking import Tokenizer
from dochound.rag.embeddings import HashEmbedder
from dochound.tenants.registry import TenantRegistry
from dochound.vectorstore.registry import ProviderRegistry, build_provider_factory


@pytest.fixture
def tokenizer() -> Tokenizer:
    return Tokenizer(disabled=True)


@pytest.fixture
def embedder() -> HashEmbedder:
    return HashEmbedder(dimension=256)


@pytest.fixture
def tenants_dir(tmp_path: Path) -> Path:
    path = tmp_path / "tenants"
    path.mkdir()
    return path


@pytest.fixture
def providers(embedder: HashEmbedder, tokenizer: Tokenizer) -> ProviderRegistry:
    factory = build_provider_factory(
        "simple",
        embedder=embedder,
        chunk_size=256,
        chunk_overlap=16,
        tokenizer=tokenizer,
    )
    return ProviderRegistry(factory)


@pytest.fixture
def tenants(tenants_dir: Path, providers: ProviderRegistry) -> TenantRegistry:
    return TenantRegistry(tenants_dir, providers)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
