from __future__ import annotations

"""Corpus reading tests for supported file types and per-file failures."""

from pathlib import Path

import fitz
import pytest

from dochound.loaders.corpus import CorpusError, count_documents, read_corpus


def _write_pdf(path: Path, text: str) -> None:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), text)
    document.save(str(path))
    document.close()


def test_reads_supported_files_with_filename_metadata(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("hello world", encoding="utf-8")
    (tmp_path / "guide.md").write_text("# Guide\n\nSteps here.", encoding="utf-8")
    _write_pdf(tmp_path / "manual.pdf", "Torque spec is 45 Nm")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")

    result = read_corpus(tmp_path)

    by_name = {doc.metadata["filename"]: doc for doc in result.documents}
    assert set(by_name) == {"a.txt", "guide.md", "manual.pdf"}
    assert by_name["a.txt"].content == "hello world"
    assert by_name["guide.md"].metadata["file_type"] == "markdown"
    assert "Torque spec" in by_name["manual.pdf"].content
    assert result.skipped == ["image.png"]
    assert result.failures == []


def test_broken_file_is_reported_individually(tmp_path: Path) -> None:
    (tmp_path / "ok.txt").write_text("usable text", encoding="utf-8")
    (tmp_path / "broken.pdf").write_bytes(b"not a pdf at all")

    result = read_corpus(tmp_path)

    assert [doc.metadata["filename"] for doc in result.documents] == ["ok.txt"]
    assert [failure.filename for failure in result.failures] == ["broken.pdf"]


def test_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(CorpusError, match="not found"):
        read_corpus(tmp_path / "missing")


def test_directory_without_indexable_files_raises(tmp_path: Path) -> None:
    (tmp_path / "notes.docx").write_bytes(b"binary")
    (tmp_path / "empty.txt").write_text("   ", encoding="utf-8")

    with pytest.raises(CorpusError, match="No indexable files"):
        read_corpus(tmp_path)


def test_count_documents_counts_supported_files_only(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "b.MD").write_text("b", encoding="utf-8")
    (tmp_path / "c.csv").write_text("c", encoding="utf-8")
    (tmp_path / "nested").mkdir()

    assert count_documents(tmp_path) == 2
    assert count_documents(tmp_path / "missing") == 0
