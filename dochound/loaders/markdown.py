from __future__ import annotations

"""Markdown loader for corpus files."""

from pathlib import Path

from dochound.loaders.text import load_text_file
from dochound.rag.types import Document


def load_markdown_file(path: Path, doc_id: str | None = None) -> Document:
    """Load a Markdown file from disk into a Document."""
    document = load_text_file(path, doc_id=doc_id)
    metadata = dict(document.metadata)
    metadata["file_type"] = "markdown"
    return Document(doc_id=document.doc_id, content=document.content, metadata=metadata)
