from __future__ import annotations

"""Tenant discovery from the tenants directory and per-tenant index access."""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from dochound.loaders.corpus import count_documents
from dochound.vectorstore.registry import ProviderRegistry
from dochound.vectorstore.simple import VectorIndexProvider

logger = logging.getLogger(__name__)

CORPUS_DIR = "corpus"
INDEX_DIR = "index-data"
TENANT_CONFIG_FILE = "tenant.json"


class TenantConfigError(RuntimeError):
    """Raised when the tenants directory is missing or unreadable."""
    pass


class UnknownTenantError(LookupError):
    """Raised when a tenant id is not registered."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Unknown tenant: {tenant_id}")
        self.tenant_id = tenant_id


class TenantFileConfig(BaseModel):
    """Optional per-tenant `tenant.json` overrides."""
    model_config = ConfigDict(extra="ignore")

    name: str | None = None


@dataclass(frozen=True)
class Tenant:
    """A named, isolated document collection."""
    id: str
    name: str
    corpus_path: Path
    index_path: Path

    @property
    def backup_path(self) -> Path:
        return self.index_path.with_name(f"{self.index_path.name}.bak")


def derive_display_name(tenant_id: str) -> str:
    """Turn a slug such as "manufacturing-demo" into "Manufacturing Demo"."""
    return " ".join(word[:1].upper() + word[1:] for word in tenant_id.split("-"))


def _read_tenant_config(path: Path) -> TenantFileConfig | None:
    if not path.is_file():
        return None
    return TenantFileConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))


class TenantRegistry:
    """Registry of tenants discovered once at startup."""

    def __init__(self, base_path: Path, providers: ProviderRegistry | None = None) -> None:
        self.base_path = Path(base_path)
        self.providers = providers
        self._tenants: dict[str, Tenant] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Discover tenants under the base path. Later calls are no-ops."""
        async with self._init_lock:
            if self._initialized:
                return
            if not self.base_path.is_dir():
                raise TenantConfigError(f"Tenants directory not found: {self.base_path}")
            entries = await asyncio.to_thread(
                lambda: sorted(entry for entry in self.base_path.iterdir() if entry.is_dir())
            )
            discovered = await asyncio.gather(*(self._discover(entry) for entry in entries))
            for tenant in discovered:
                if tenant is None:
                    continue
                self._tenants[tenant.id] = tenant
                logger.info(
                    "tenant_discovered",
                    extra={"tenant_id": tenant.id, "tenant_name": tenant.name},
                )
            if not self._tenants:
                logger.warning("no_tenants_found", extra={"base_path": str(self.base_path)})
            self._initialized = True
            logger.info("tenant_registry_initialized", extra={"tenants": len(self._tenants)})

    async def _discover(self, tenant_path: Path) -> Tenant | None:
        tenant_id = tenant_path.name
        corpus_path = tenant_path / CORPUS_DIR
        if not await asyncio.to_thread(corpus_path.is_dir):
            logger.warning(
                "tenant_skipped",
                extra={"tenant_id": tenant_id, "reason": "no corpus/ directory"},
            )
            return None
        display_name = derive_display_name(tenant_id)
        config_path = tenant_path / TENANT_CONFIG_FILE
        try:
            config = await asyncio.to_thread(_read_tenant_config, config_path)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(
                "tenant_config_invalid",
                extra={"tenant_id": tenant_id, "error": type(exc).__name__},
            )
            config = None
        if config is not None and config.name:
            display_name = config.name
        return Tenant(
            id=tenant_id,
            name=display_name,
            corpus_path=corpus_path,
            index_path=tenant_path / INDEX_DIR,
        )

    def get_tenants(self) -> list[Tenant]:
        return list(self._tenants.values())

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)

    def require_tenant(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise UnknownTenantError(tenant_id)
        return tenant

    async def get_vector_store(self, tenant_id: str) -> VectorIndexProvider:
        """Return the tenant's cached provider, creating it on first use."""
        tenant = self.require_tenant(tenant_id)
        if self.providers is None:
            raise TenantConfigError("TenantRegistry was built without a provider registry")
        return await self.providers.get_or_create(tenant.id, tenant.index_path)

    async def document_count(self, tenant: Tenant) -> int:
        """Count supported files in the tenant's corpus directory."""
        return await asyncio.to_thread(count_documents, tenant.corpus_path)
