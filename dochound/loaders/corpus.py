from __future__ import annotations

"""Corpus directory reader dispatching to per-extension loaders."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from dochound.loaders.markdown import load_markdown_file
from dochound.loaders.pdf import load_pdf_file
from dochound.loaders.text import load_text_file
from dochound.rag.types import Document

logger = logging.getLogger(__name__)

_LOADERS: dict[str, Callable[..., Document]] = {
    ".md": load_markdown_file,
    ".txt": load_text_file,
    ".pdf": load_pdf_file,
}

SUPPORTED_EXTENSIONS = frozenset(_LOADERS)


class CorpusError(RuntimeError):
    """Raised when a corpus directory is missing or has nothing to index."""
    pass


@dataclass(frozen=True)
class FileFailure:
    """Extraction failure for a single corpus file."""
    filename: str
    error: str


@dataclass
class CorpusReadResult:
    """Documents read from a corpus plus the files that failed or were skipped."""
    documents: list[Document] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def is_supported(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS


def list_corpus_files(corpus_path: Path) -> list[Path]:
    """Return supported files directly inside the corpus directory."""
    if not corpus_path.is_dir():
        return []
    return sorted(path for path in corpus_path.iterdir() if is_supported(path))


def count_documents(corpus_path: Path) -> int:
    return len(list_corpus_files(corpus_path))


def read_corpus(corpus_path: Path) -> CorpusReadResult:
    """Read every supported file in `corpus_path`.

    Files that fail to extract are reported individually in `failures`;
    empty extractions are listed in `skipped`. Raises CorpusError when the
    directory is missing or no file yields indexable text.
    """
    if not corpus_path.is_dir():
        raise CorpusError(f"Corpus directory not found: {corpus_path}")
    result = CorpusReadResult()
    for path in sorted(corpus_path.iterdir()):
        if not path.is_file():
            continue
        loader = _LOADERS.get(path.suffix.lower())
        if loader is None:
            result.skipped.append(path.name)
            continue
        try:
            document = loader(path, doc_id=path.name)
        except Exception as exc:
            logger.warning(
                "corpus_file_failed",
                extra={"file": path.name, "error": type(exc).__name__},
            )
            result.failures.append(FileFailure(filename=path.name, error=str(exc)))
            continue
        if not document.content.strip():
            result.skipped.append(path.name)
            continue
        result.documents.append(document)
    if not result.documents:
        raise CorpusError(
            f"No indexable files in {corpus_path} "
            f"(supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))})"
        )
    logger.info(
        "corpus_read",
        extra={
            "corpus_path": str(corpus_path),
            "documents": len(result.documents),
            "failures": len(result.failures),
            "skipped": len(result.skipped),
        },
    )
    return result
