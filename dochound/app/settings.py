from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    tenants_dir_raw: str = os.getenv("DOCHOUND_TENANTS_DIR", "")
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "simple")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "openai")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "1536"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_chat_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    openai_embedding_model: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    chunk_size: int = int(os.getenv("RAG_CHUNK_SIZE", "1024"))
    chunk_overlap: int = int(os.getenv("RAG_CHUNK_OVERLAP", "20"))
    top_k: int = int(os.getenv("RAG_TOP_K", "5"))
    llm_temperature: float = float(os.getenv("RAG_LLM_TEMPERATURE", "0.1"))
    llm_max_tokens: int = int(os.getenv("RAG_LLM_MAX_TOKENS", "1024"))
    llm_timeout: float = float(os.getenv("RAG_LLM_TIMEOUT", "60"))
    embedding_timeout: float = float(os.getenv("RAG_EMBEDDING_TIMEOUT", "120"))
    citation_policy_raw: str = os.getenv("RAG_CITATION_POLICY", "keep")
    embedding_cost_per_1k: float = float(os.getenv("RAG_EMBEDDING_COST_PER_1K", "0.00002"))
    tokenizer_disabled: bool = os.getenv("RAG_DISABLE_TIKTOKEN", "false").lower() in {
        "1",
        "true",
        "yes",
    }
    tokenizer_encoding: str = os.getenv("RAG_TOKENIZER_ENCODING", "cl100k_base")
    metrics_enabled: bool = os.getenv("RAG_METRICS_ENABLED", "true").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def tenants_dir(self) -> Path:
        raw = os.getenv("DOCHOUND_TENANTS_DIR", self.tenants_dir_raw).strip()
        if not raw:
            return Path.cwd() / "tenants"
        return Path(raw).expanduser().resolve()

    @property
    def citation_policy(self) -> str:
        value = os.getenv("RAG_CITATION_POLICY", self.citation_policy_raw).strip().lower()
        if value not in {"keep", "flag", "strip"}:
            return "keep"
        return value


settings = Settings()
