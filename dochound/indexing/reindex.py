from __future__ import annotations

"""Offline rebuild of a tenant's index with backup/restore around the build."""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field

from dochound.loaders.chunking import Tokenizer
from dochound.loaders.corpus import CorpusReadResult, FileFailure, read_corpus
from dochound.rag.embeddings import EmbeddingError
from dochound.tenants.registry import Tenant, TenantConfigError, TenantRegistry
from dochound.vectorstore.registry import ProviderRegistry
from dochound.vectorstore.simple import DOCSTORE_FILE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReindexReport:
    """Outcome of one reindex run, live or dry."""
    tenant_id: str
    dry_run: bool
    documents: int
    estimated_tokens: int
    estimated_cost_usd: float
    embedding_model: str
    failures: list[FileFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    chunks_indexed: int = 0
    backup_taken: bool = False
    activated: bool = False

    def summary_lines(self) -> list[str]:
        mode = "DRY RUN" if self.dry_run else "INDEXED"
        lines = [
            f"[{self.tenant_id}] {mode}",
            f"  documents:        {self.documents}",
            f"  estimated tokens: {self.estimated_tokens:,}",
            f"  estimated cost:   ${self.estimated_cost_usd:.4f} ({self.embedding_model})",
        ]
        if not self.dry_run:
            lines.append(f"  chunks indexed:   {self.chunks_indexed}")
            lines.append(f"  previous index:   {'replaced' if self.backup_taken else 'none'}")
        for failure in self.failures:
            lines.append(f"  failed: {failure.filename}: {failure.error}")
        for name in self.skipped:
            lines.append(f"  skipped: {name}")
        return lines


def recover_interrupted(tenant: Tenant) -> bool:
    """Restore a backup left behind by a run that died between backup and restore.

    Returns True when a backup was moved back into place.
    """
    backup = tenant.backup_path
    if not backup.is_dir():
        return False
    if (tenant.index_path / DOCSTORE_FILE).is_file():
        return False
    if tenant.index_path.exists():
        shutil.rmtree(tenant.index_path)
    os.replace(backup, tenant.index_path)
    logger.warning(
        "reindex_interrupted_backup_recovered",
        extra={"tenant_id": tenant.id, "index_path": str(tenant.index_path)},
    )
    return True


def _take_backup(tenant: Tenant) -> bool:
    if not tenant.index_path.exists():
        return False
    backup = tenant.backup_path
    if backup.exists():
        shutil.rmtree(backup)
    os.replace(tenant.index_path, backup)
    return True


def _restore_backup(tenant: Tenant, backup_taken: bool) -> None:
    if tenant.index_path.exists():
        shutil.rmtree(tenant.index_path)
    if backup_taken:
        os.replace(tenant.backup_path, tenant.index_path)


def _drop_backup(tenant: Tenant) -> None:
    if tenant.backup_path.exists():
        shutil.rmtree(tenant.backup_path)


class ReindexPipeline:
    """Rebuilds tenant indexes without disturbing the live query path.

    The new index is built on a forced-fresh provider. If the build fails the
    previous index directory is restored before the error propagates.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        providers: ProviderRegistry | None,
        *,
        tokenizer: Tokenizer,
        embedding_model: str,
        embedding_cost_per_1k: float = 0.0,
    ) -> None:
        self.tenants = tenants
        self.providers = providers
        self.tokenizer = tokenizer
        self.embedding_model = embedding_model
        self.embedding_cost_per_1k = embedding_cost_per_1k
        self._locks: dict[str, asyncio.Lock] = {}

    async def reindex(
        self, tenant_id: str, *, dry_run: bool = False, activate: bool = False
    ) -> ReindexReport:
        """Rebuild one tenant's index; `activate` swaps it in as the live provider."""
        tenant = self.tenants.require_tenant(tenant_id)
        lock = self._locks.setdefault(tenant.id, asyncio.Lock())
        async with lock:
            corpus = await asyncio.to_thread(read_corpus, tenant.corpus_path)
            estimated_tokens = sum(self.tokenizer.count(doc.content) for doc in corpus.documents)
            if dry_run:
                report = self._report(tenant, corpus, estimated_tokens, dry_run=True)
                logger.info(
                    "reindex_dry_run",
                    extra={
                        "tenant_id": tenant.id,
                        "documents": report.documents,
                        "estimated_tokens": estimated_tokens,
                    },
                )
                return report
            if self.providers is None:
                raise TenantConfigError("A provider registry is required for live reindexing")
            return await self._rebuild(tenant, corpus, estimated_tokens, activate)

    async def _rebuild(
        self,
        tenant: Tenant,
        corpus: CorpusReadResult,
        estimated_tokens: int,
        activate: bool,
    ) -> ReindexReport:
        await asyncio.to_thread(recover_interrupted, tenant)
        await self._load_live_provider(tenant)
        backup_taken = await asyncio.to_thread(_take_backup, tenant)
        if backup_taken:
            logger.info(
                "reindex_backup_taken",
                extra={"tenant_id": tenant.id, "backup_path": str(tenant.backup_path)},
            )
        try:
            provider = await self.providers.get_or_create(
                tenant.id, tenant.index_path, force_new=True
            )
            chunks = await provider.add_documents(corpus.documents)
            await provider.persist()
        except BaseException as exc:
            # Runs on cancellation too: the tenant must keep its previous index.
            await asyncio.shield(asyncio.to_thread(_restore_backup, tenant, backup_taken))
            logger.error(
                "reindex_failed",
                extra={
                    "tenant_id": tenant.id,
                    "error": type(exc).__name__,
                    "backup_restored": backup_taken,
                },
            )
            raise
        if backup_taken:
            await asyncio.to_thread(_drop_backup, tenant)
        if activate:
            self.providers.replace(tenant.id, provider)
        logger.info(
            "reindex_complete",
            extra={
                "tenant_id": tenant.id,
                "documents": len(corpus.documents),
                "chunks": chunks,
                "activated": activate,
            },
        )
        return self._report(
            tenant,
            corpus,
            estimated_tokens,
            dry_run=False,
            chunks_indexed=chunks,
            backup_taken=backup_taken,
            activated=activate,
        )

    async def _load_live_provider(self, tenant: Tenant) -> None:
        """Load the serving provider from the current index before it is moved aside."""
        if self.providers.get_cached(tenant.id) is not None:
            return
        if not (tenant.index_path / DOCSTORE_FILE).is_file():
            return
        try:
            await self.providers.get_or_create(tenant.id, tenant.index_path)
        except EmbeddingError as exc:
            # An index built for another embedder is unusable and about to be replaced.
            logger.warning(
                "reindex_live_index_unreadable",
                extra={"tenant_id": tenant.id, "error": str(exc)},
            )

    def _report(
        self,
        tenant: Tenant,
        corpus: CorpusReadResult,
        estimated_tokens: int,
        *,
        dry_run: bool,
        chunks_indexed: int = 0,
        backup_taken: bool = False,
        activated: bool = False,
    ) -> ReindexReport:
        return ReindexReport(
            tenant_id=tenant.id,
            dry_run=dry_run,
            documents=len(corpus.documents),
            estimated_tokens=estimated_tokens,
            estimated_cost_usd=estimated_tokens / 1000 * self.embedding_cost_per_1k,
            embedding_model=self.embedding_model,
            failures=list(corpus.failures),
            skipped=list(corpus.skipped),
            chunks_indexed=chunks_indexed,
            backup_taken=backup_taken,
            activated=activated,
        )
