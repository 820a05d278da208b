from __future__ import annotations

"""Chunking behavior tests."""

from dochound.loaders.chunking import (
    Tokenizer,
    chunk_document,
    chunk_text,
    normalize_text,
    split_sentences,
)
from dochound.rag.types import Document


def test_chunk_document_splits_and_adds_metadata() -> None:
    """Ensure chunking splits and annotates metadata."""
    content = "word " * 300
    document = Document(doc_id="policy.txt", content=content, metadata={"filename": "policy.txt"})

    chunks = chunk_document(document, chunk_size=50, chunk_overlap=5, tokenizer=Tokenizer(disabled=True))

    assert len(chunks) > 1
    assert chunks[0].doc_id == "policy.txt-1"
    assert chunks[0].metadata["chunk_index"] == 1
    assert chunks[0].metadata["chunk_count"] == len(chunks)
    assert all(chunk.metadata["filename"] == "policy.txt" for chunk in chunks)


def test_short_document_keeps_its_id() -> None:
    document = Document(doc_id="a.txt", content="hello world", metadata={"filename": "a.txt"})

    chunks = chunk_document(document, chunk_size=50, chunk_overlap=5, tokenizer=Tokenizer(disabled=True))

    assert [chunk.doc_id for chunk in chunks] == ["a.txt"]
    assert chunks[0].content == "hello world"
    assert chunks[0].metadata["chunk_count"] == 1


def test_chunk_text_overlaps_windows() -> None:
    text = "abcdefghij" * 3

    chunks = chunk_text(text, max_chars=12, overlap=4)

    assert chunks[0] == text[:12]
    assert chunks[1].startswith(text[8:12])


def test_blank_document_yields_no_chunks() -> None:
    document = Document(doc_id="empty.md", content="  \n\n  ")

    assert chunk_document(document, 50, 5, Tokenizer(disabled=True)) == []


def test_normalize_text_keeps_paragraph_breaks() -> None:
    assert normalize_text("a\r\n\r\n\r\n\r\nb   c") == "a\n\nb c"


def test_disabled_tokenizer_estimates_by_characters() -> None:
    tokenizer = Tokenizer(disabled=True)

    assert tokenizer.count("") == 0
    assert tokenizer.count("abc") == 1
    assert tokenizer.count("x" * 400) == 100


def test_split_packs_whole_sentences_with_overlap() -> None:
    tokenizer = Tokenizer(disabled=True)
    # Each sentence is 40 characters, i.e. 10 estimated tokens.
    sentences = [f"Sentence number {idx:02d} is here with padding." for idx in range(6)]
    assert {len(sentence) for sentence in sentences} == {40}

    chunks = tokenizer.split(" ".join(sentences), max_tokens=25, overlap=10)

    assert len(chunks) > 1
    for chunk in chunks:
        assert tokenizer.count(chunk) <= 25
        assert chunk.startswith("Sentence number") and chunk.endswith("padding.")
    assert chunks[0] == f"{sentences[0]} {sentences[1]}"
    assert chunks[1] == f"{sentences[1]} {sentences[2]}"


def test_split_sentences_on_punctuation_and_paragraphs() -> None:
    text = "First point. Second point? Third!\n\nNew paragraph without stop"

    assert split_sentences(text) == [
        "First point.",
        "Second point?",
        "Third!",
        "New paragraph without stop",
    ]
