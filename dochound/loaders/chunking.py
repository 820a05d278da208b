from __future__ import annotations

"""Text normalization, token counting and sentence-aware chunking."""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence, TypeVar

import tiktoken

from dochound.rag.types import Document

_INLINE_SPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+|\n{2,}")

# Rough characters-per-token ratio for English prose when tiktoken is disabled.
CHARS_PER_TOKEN = 4

S = TypeVar("S", str, list)


def normalize_text(text: str) -> str:
    """Collapse inline whitespace and runs of blank lines; keep paragraph breaks."""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _INLINE_SPACE_RE.sub(" ", cleaned)
    return _BLANK_LINES_RE.sub("\n\n", cleaned).strip()


def split_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation and paragraph breaks."""
    return [piece.strip() for piece in _SENTENCE_BREAK_RE.split(text) if piece.strip()]


def _windows(items: S, size: int, overlap: int) -> list[S]:
    if size <= 0:
        return [items]
    if overlap >= size:
        overlap = size // 4
    windows: list[S] = []
    start = 0
    while start < len(items):
        end = min(len(items), start + size)
        windows.append(items[start:end])
        if end >= len(items):
            break
        start = end - overlap
    return windows


@lru_cache(maxsize=4)
def _get_encoding(encoding_name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(encoding_name)


def chunk_text(text: str, max_chars: int, overlap: int) -> list[str]:
    """Cut text into overlapping fixed-width character windows."""
    cleaned = normalize_text(text)
    if not cleaned:
        return []
    return [window.strip() for window in _windows(cleaned, max_chars, overlap) if window.strip()]


@dataclass(frozen=True)
class Tokenizer:
    """Token counting and splitting, backed by tiktoken unless disabled.

    With `disabled=True` (RAG_DISABLE_TIKTOKEN) counts are estimated from
    character length so nothing needs to be downloaded.
    """
    encoding_name: str = "cl100k_base"
    disabled: bool = False

    def count(self, text: str) -> int:
        if not text:
            return 0
        if self.disabled:
            return max(1, len(text) // CHARS_PER_TOKEN)
        return len(_get_encoding(self.encoding_name).encode(text))

    def hard_split(self, text: str, max_tokens: int, overlap: int) -> list[str]:
        """Window a single over-long piece by token position."""
        if self.disabled:
            return chunk_text(text, max_tokens * CHARS_PER_TOKEN, overlap * CHARS_PER_TOKEN)
        encoding = _get_encoding(self.encoding_name)
        windows = _windows(encoding.encode(text), max_tokens, overlap)
        pieces = (encoding.decode(window).strip() for window in windows)
        return [piece for piece in pieces if piece]

    def split(self, text: str, max_tokens: int, overlap: int) -> list[str]:
        """Pack whole sentences into chunks of at most `max_tokens` tokens.

        Consecutive chunks share trailing sentences worth up to `overlap`
        tokens. A sentence longer than a chunk is windowed on its own.
        """
        cleaned = normalize_text(text)
        if not cleaned:
            return []
        if max_tokens <= 0 or self.count(cleaned) <= max_tokens:
            return [cleaned]
        pieces: list[str] = []
        for sentence in split_sentences(cleaned):
            if self.count(sentence) > max_tokens:
                pieces.extend(self.hard_split(sentence, max_tokens, overlap))
            else:
                pieces.append(sentence)
        return self._pack(pieces, max_tokens, overlap)

    def _pack(self, pieces: Sequence[str], max_tokens: int, overlap: int) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        for piece in pieces:
            if current and self.count(" ".join(current + [piece])) > max_tokens:
                chunks.append(" ".join(current))
                current = self._carry_over(current, overlap)
                if current and self.count(" ".join(current + [piece])) > max_tokens:
                    current = []
            current.append(piece)
        if current:
            chunks.append(" ".join(current))
        return chunks

    def _carry_over(self, sentences: list[str], overlap: int) -> list[str]:
        carried: list[str] = []
        for sentence in reversed(sentences):
            if self.count(" ".join([sentence] + carried)) > overlap:
                break
            carried.insert(0, sentence)
        return carried


def chunk_document(
    document: Document,
    chunk_size: int,
    chunk_overlap: int,
    tokenizer: Tokenizer,
) -> list[Document]:
    """Split a document into chunk records tagged with chunk_index/chunk_count."""
    chunks = tokenizer.split(document.content, max_tokens=chunk_size, overlap=chunk_overlap)
    total = len(chunks)
    return [
        Document(
            doc_id=f"{document.doc_id}-{idx}" if total > 1 else document.doc_id,
            content=chunk,
            metadata={**document.metadata, "chunk_index": idx, "chunk_count": total},
        )
        for idx, chunk in enumerate(chunks, start=1)
    ]
