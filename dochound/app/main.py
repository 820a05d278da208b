from __future__ import annotations

"""FastAPI application entrypoint for the multi-tenant document chat service."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request

from dochound.app.dependencies import ServiceContext, build_context, get_context
from dochound.app.metrics import (
    metrics_middleware,
    metrics_response,
    record_chat_turn,
    record_reindex,
)
from dochound.app.schemas import (
    ChatRequest,
    ChatResponse,
    EvictResponse,
    FileFailureResponse,
    IndexStatusResponse,
    ReindexRequest,
    ReindexResponse,
    SourceResponse,
    TenantResponse,
)
from dochound.app.settings import settings
from dochound.loaders.corpus import CorpusError
from dochound.rag.deadline import DeadlineExceededError
from dochound.rag.embeddings import EmbeddingError
from dochound.rag.llm import LLMError
from dochound.tenants.registry import Tenant, UnknownTenantError
from dochound.vectorstore.simple import DOCSTORE_FILE, UninitializedError

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build and start the service context; clear provider caches on exit."""
    context: ServiceContext | None = getattr(app.state, "context", None)
    if context is None:
        context = build_context()
        app.state.context = context
    await context.start()
    try:
        yield
    finally:
        await context.shutdown()


app = FastAPI(title="DocHound", version="0.1.0", lifespan=lifespan)


def _safe_error_message(exc: Exception) -> str:
    """Return a safe error type name for logs and responses."""
    return type(exc).__name__


async def _to_tenant_response(context: ServiceContext, tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        document_count=await context.tenants.document_count(tenant),
    )


def _not_found(tenant_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Tenant '{tenant_id}' not found")


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check for uptime monitors."""
    return {"status": "ok"}


@app.get("/api/tenants", response_model=list[TenantResponse])
async def list_tenants(context: ServiceContext = Depends(get_context)) -> list[TenantResponse]:
    """List all discovered tenants with their corpus document counts."""
    return [await _to_tenant_response(context, tenant) for tenant in context.tenants.get_tenants()]


@app.get("/api/tenants/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str, context: ServiceContext = Depends(get_context)
) -> TenantResponse:
    tenant = context.tenants.get_tenant(tenant_id)
    if tenant is None:
        raise _not_found(tenant_id)
    return await _to_tenant_response(context, tenant)


@app.post(
    "/api/tenants/{tenant_id}/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
)
async def chat(
    tenant_id: str,
    request: ChatRequest,
    http_request: Request,
    context: ServiceContext = Depends(get_context),
) -> ChatResponse:
    """Answer a question from the tenant's documents with inline citations."""
    request_id = getattr(http_request.state, "request_id", str(uuid.uuid4()))
    if context.tenants.get_tenant(tenant_id) is None:
        raise _not_found(tenant_id)
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message must be a non-empty string")
    try:
        result = await context.orchestrator.chat(tenant_id, message)
    except UnknownTenantError as exc:
        raise _not_found(tenant_id) from exc
    except UninitializedError as exc:
        record_chat_turn(tenant_id, "not_indexed")
        logger.error("chat_index_missing", extra={"request_id": request_id, "tenant_id": tenant_id})
        raise HTTPException(status_code=503, detail="Tenant index has not been built") from exc
    except DeadlineExceededError as exc:
        record_chat_turn(tenant_id, "deadline_exceeded")
        logger.error(
            "chat_deadline_exceeded",
            extra={"request_id": request_id, "tenant_id": tenant_id, "operation": exc.operation},
        )
        raise HTTPException(status_code=504, detail=_safe_error_message(exc)) from exc
    except (LLMError, EmbeddingError) as exc:
        record_chat_turn(tenant_id, "failed")
        logger.error(
            "chat_failed",
            extra={
                "request_id": request_id,
                "tenant_id": tenant_id,
                "detail": _safe_error_message(exc),
            },
        )
        raise HTTPException(status_code=502, detail=_safe_error_message(exc)) from exc
    record_chat_turn(tenant_id, "answered", sources=len(result.sources))
    return ChatResponse(
        answer=result.answer,
        sources=[
            SourceResponse(
                citation_id=source.citation_id,
                filename=source.filename,
                excerpt=source.text,
                score=source.score,
            )
            for source in result.sources
        ],
        dangling_citations=result.dangling_citations or None,
    )


@app.post("/api/tenants/{tenant_id}/reindex", response_model=ReindexResponse)
async def reindex(
    tenant_id: str,
    request: ReindexRequest,
    context: ServiceContext = Depends(get_context),
) -> ReindexResponse:
    """Rebuild a tenant's index in-process and optionally swap it into service."""
    if context.tenants.get_tenant(tenant_id) is None:
        raise _not_found(tenant_id)
    try:
        report = await context.reindexer.reindex(
            tenant_id, dry_run=request.dry_run, activate=request.activate
        )
    except CorpusError as exc:
        record_reindex(tenant_id, "empty_corpus")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DeadlineExceededError as exc:
        record_reindex(tenant_id, "deadline_exceeded")
        raise HTTPException(status_code=504, detail=_safe_error_message(exc)) from exc
    except (EmbeddingError, OSError) as exc:
        record_reindex(tenant_id, "failed")
        logger.error(
            "reindex_request_failed",
            extra={"tenant_id": tenant_id, "detail": _safe_error_message(exc)},
        )
        raise HTTPException(status_code=500, detail=_safe_error_message(exc)) from exc
    record_reindex(tenant_id, "dry_run" if report.dry_run else "indexed")
    return ReindexResponse(
        tenant_id=report.tenant_id,
        dry_run=report.dry_run,
        documents=report.documents,
        estimated_tokens=report.estimated_tokens,
        estimated_cost_usd=report.estimated_cost_usd,
        chunks_indexed=report.chunks_indexed,
        backup_taken=report.backup_taken,
        activated=report.activated,
        failures=[
            FileFailureResponse(filename=failure.filename, error=failure.error)
            for failure in report.failures
        ],
    )


@app.delete("/api/tenants/{tenant_id}/cache", response_model=EvictResponse)
async def evict_cache(
    tenant_id: str, context: ServiceContext = Depends(get_context)
) -> EvictResponse:
    """Drop the tenant's cached provider so the next query reloads from disk."""
    if context.tenants.get_tenant(tenant_id) is None:
        raise _not_found(tenant_id)
    return EvictResponse(tenant_id=tenant_id, evicted=context.providers.evict(tenant_id))


@app.get("/api/tenants/{tenant_id}/index", response_model=IndexStatusResponse)
async def index_status(
    tenant_id: str, context: ServiceContext = Depends(get_context)
) -> IndexStatusResponse:
    """Report on-disk index state and the cached provider, without loading anything."""
    tenant = context.tenants.get_tenant(tenant_id)
    if tenant is None:
        raise _not_found(tenant_id)
    status = IndexStatusResponse(
        tenant_id=tenant.id,
        indexed=(tenant.index_path / DOCSTORE_FILE).is_file(),
        backup_present=tenant.backup_path.exists(),
        cached=False,
    )
    provider = context.providers.get_cached(tenant.id)
    if provider is None:
        return status
    stats = provider.stats()
    return status.model_copy(
        update={
            "cached": True,
            "loaded": bool(stats["loaded"]),
            "node_count": int(stats["node_count"] or 0),
            "embedding_dimension": stats["embedding_dimension"],
        }
    )
