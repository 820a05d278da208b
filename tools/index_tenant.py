from __future__ import annotations

"""CLI utility to rebuild tenant indexes from their corpus directories.

Usage:
    python -m tools.index_tenant --tenant interview-prep
    python -m tools.index_tenant --tenant interview-prep --dry-run
    python -m tools.index_tenant --all [--dry-run]
"""

import argparse
import asyncio
import logging
import sys

from dochound.app.dependencies import build_registries, build_reindexer
from dochound.app.settings import settings
from dochound.indexing.reindex import ReindexPipeline
from dochound.tenants.registry import TenantRegistry

logger = logging.getLogger("dochound.index")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebuild tenant vector indexes.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--tenant", help="Tenant id to index.")
    target.add_argument("--all", action="store_true", help="Index every discovered tenant.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report document and token estimates without touching any index.",
    )
    return parser


async def run(
    tenants: TenantRegistry,
    reindexer: ReindexPipeline,
    tenant_ids: list[str] | None,
    dry_run: bool,
) -> int:
    """Index the requested tenants and return the number of failures."""
    await tenants.initialize()
    targets = tenant_ids or [tenant.id for tenant in tenants.get_tenants()]
    failures = 0
    for tenant_id in targets:
        try:
            report = await reindexer.reindex(tenant_id, dry_run=dry_run)
        except Exception as exc:
            failures += 1
            logger.error("index_failed", extra={"tenant_id": tenant_id, "error": type(exc).__name__})
            print(f"[{tenant_id}] FAILED: {exc}", file=sys.stderr)
            continue
        print("\n".join(report.summary_lines()))
    return failures


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, index the requested tenants, and exit non-zero on failure."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if args.dry_run:
        # Dry runs read the corpus only; no embedder is built.
        tenants, providers = TenantRegistry(settings.tenants_dir), None
    else:
        tenants, providers = build_registries(settings)
    reindexer = build_reindexer(tenants, providers, settings)
    tenant_ids = None if args.all else [args.tenant]
    failures = asyncio.run(run(tenants, reindexer, tenant_ids, args.dry_run))
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
