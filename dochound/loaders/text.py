from __future__ import annotations

"""Plain text loader for corpus files."""

from pathlib import Path

from dochound.rag.types import Document


def load_text_file(path: Path, doc_id: str | None = None) -> Document:
    """Load a UTF-8 text file from disk into a Document."""
    content = path.read_text(encoding="utf-8", errors="replace")
    return Document(
        doc_id=doc_id or path.stem,
        content=content,
        metadata={"filename": path.name, "source": str(path), "file_type": "text"},
    )
