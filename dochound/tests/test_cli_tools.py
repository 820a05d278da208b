from __future__ import annotations

"""Offline indexing and tenant inspection utilities."""

from pathlib import Path

import pytest

from dochound.app.settings import Settings
from dochound.indexing.reindex import ReindexPipeline
from dochound.loaders.chunking import Tokenizer
from dochound.rag.embeddings import EmbeddingConfigError
from dochound.tenants.registry import TenantRegistry
from dochound.tests.stubs import make_tenant
from dochound.vectorstore.registry import ProviderRegistry
from tools.index_tenant import build_parser, main, run
from tools.verify_tenants import describe

pytestmark = pytest.mark.anyio


def _reindexer(
    tenants: TenantRegistry, providers: ProviderRegistry, tokenizer: Tokenizer
) -> ReindexPipeline:
    return ReindexPipeline(tenants, providers, tokenizer=tokenizer, embedding_model="hash")


def test_parser_requires_a_target() -> None:
    parser = build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args([])
    with pytest.raises(SystemExit):
        parser.parse_args(["--tenant", "acme", "--all"])
    args = parser.parse_args(["--tenant", "acme", "--dry-run"])
    assert args.tenant == "acme"
    assert args.dry_run is True


def test_dry_run_needs_no_embedding_credentials(
    tenants_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    make_tenant(tenants_dir, "acme", {"a.txt": "alpha"})
    config = Settings(
        tenants_dir_raw=str(tenants_dir),
        embedding_provider="openai",
        openai_api_key=None,
        tokenizer_disabled=True,
    )
    monkeypatch.setattr("tools.index_tenant.settings", config)

    main(["--all", "--dry-run"])

    assert "[acme] DRY RUN" in capsys.readouterr().out
    with pytest.raises(EmbeddingConfigError):
        main(["--all"])
    assert not (tenants_dir / "acme" / "index-data").exists()


async def test_dry_run_all_tenants(
    tenants_dir: Path,
    tenants: TenantRegistry,
    providers: ProviderRegistry,
    tokenizer: Tokenizer,
    capsys: pytest.CaptureFixture[str],
) -> None:
    make_tenant(tenants_dir, "acme", {"a.txt": "alpha"})
    make_tenant(tenants_dir, "beta", {"b.txt": "beta"})

    failures = await run(tenants, _reindexer(tenants, providers, tokenizer), None, dry_run=True)

    output = capsys.readouterr().out
    assert failures == 0
    assert "[acme] DRY RUN" in output
    assert "[beta] DRY RUN" in output
    assert not (tenants_dir / "acme" / "index-data").exists()


async def test_failures_are_counted_and_others_continue(
    tenants_dir: Path,
    tenants: TenantRegistry,
    providers: ProviderRegistry,
    tokenizer: Tokenizer,
    capsys: pytest.CaptureFixture[str],
) -> None:
    make_tenant(tenants_dir, "empty")
    make_tenant(tenants_dir, "good", {"a.txt": "content"})

    failures = await run(
        tenants, _reindexer(tenants, providers, tokenizer), ["empty", "ghost", "good"], dry_run=False
    )

    captured = capsys.readouterr()
    assert failures == 2
    assert "[empty] FAILED" in captured.err
    assert "[ghost] FAILED" in captured.err
    assert "[good] INDEXED" in captured.out
    assert (tenants_dir / "good" / "index-data" / "docstore.json").is_file()


async def test_describe_reports_index_status(
    tenants_dir: Path, tenants: TenantRegistry, providers: ProviderRegistry, tokenizer: Tokenizer
) -> None:
    make_tenant(tenants_dir, "acme", {"a.txt": "alpha", "b.md": "beta"})
    make_tenant(tenants_dir, "fresh", {"c.txt": "gamma"})
    await tenants.initialize()
    await _reindexer(tenants, providers, tokenizer).reindex("acme")

    lines = await describe(tenants_dir)

    assert lines[0].startswith("Tenants found: 2")
    report = "\n".join(lines)
    assert "- acme -> 'Acme'" in report
    assert "(2 documents)" in report
    assert "(built)" in report
    assert "(not built)" in report
