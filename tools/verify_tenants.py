from __future__ import annotations

"""CLI utility to list discovered tenants with their paths and index status."""

import argparse
import asyncio
from pathlib import Path

from dochound.app.settings import settings
from dochound.loaders.corpus import count_documents
from dochound.tenants.registry import TenantRegistry
from dochound.vectorstore.simple import DOCSTORE_FILE


async def describe(tenants_dir: Path) -> list[str]:
    """Discover tenants and return one report block per tenant."""
    tenants = TenantRegistry(tenants_dir)
    await tenants.initialize()
    lines = [f"Tenants found: {len(tenants.get_tenants())} in {tenants.base_path}"]
    for tenant in tenants.get_tenants():
        indexed = (tenant.index_path / DOCSTORE_FILE).is_file()
        lines.extend(
            [
                f"- {tenant.id} -> {tenant.name!r}",
                f"    corpus: {tenant.corpus_path} ({count_documents(tenant.corpus_path)} documents)",
                f"    index:  {tenant.index_path} ({'built' if indexed else 'not built'})",
            ]
        )
        if tenant.backup_path.exists():
            lines.append(f"    backup present: {tenant.backup_path}")
    return lines


def main() -> None:
    """Print the tenant layout as seen by the service."""
    parser = argparse.ArgumentParser(description="List discovered tenants.")
    parser.add_argument(
        "--tenants-dir",
        type=Path,
        default=settings.tenants_dir,
        help="Tenants base directory (defaults to DOCHOUND_TENANTS_DIR).",
    )
    args = parser.parse_args()
    print("\n".join(asyncio.run(describe(args.tenants_dir))))


if __name__ == "__main__":
    main()
