from __future__ import annotations

"""PDF text extraction and cleanup."""

import re
from pathlib import Path

import fitz

from dochound.rag.types import Document


class PDFLoaderError(RuntimeError):
    """Raised when PDF loading fails."""
    pass


_WHITESPACE_RE = re.compile(r"[ \t]+")


def _clean_pdf_text(text: str) -> str:
    """Join hyphenated line breaks and collapse layout whitespace."""
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n")
    cleaned = re.sub(r"(\w)-\n(\w)", r"\1\2", cleaned)
    cleaned = re.sub(r"(?<!\n)\n(?!\n)", " ", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()


def load_pdf_file(path: Path, doc_id: str | None = None) -> Document:
    """Load a PDF from disk and return a Document."""
    try:
        reader = fitz.open(str(path))
    except Exception as exc:
        raise PDFLoaderError(f"Cannot open PDF {path.name}: {exc}") from exc
    try:
        text_parts = [page.get_text() or "" for page in reader]
    finally:
        reader.close()
    content = _clean_pdf_text("\n\n".join(text_parts))
    return Document(
        doc_id=doc_id or path.stem,
        content=content,
        metadata={
            "filename": path.name,
            "source": str(path),
            "file_type": "pdf",
            "page_count": len(text_parts),
        },
    )
