"""Tests for document chunking."""

import pytest

from src.ingestion.chunking import (
    chunk_document,
    chunk_pages,
    chunk_text,
    clean_text,
    split_pages,
)

SENTENCE = "I designed and operated data pipelines for a retail analytics team. "


def test_clean_text_collapses_spaces_and_blank_lines():
    assert clean_text("a  \t b\n\n\n\nc") == "a b\n\nc"


def test_short_text_single_chunk():
    assert chunk_text("Backend engineer with five years of experience.") == [
        "Backend engineer with five years of experience."
    ]


def test_empty_text():
    assert chunk_text("   ") == []


def test_long_text_overlapping_chunks():
    text = SENTENCE * 40
    chunks = chunk_text(text, chunk_size=1000, overlap=200)
    assert len(chunks) > 1
    assert all(len(c) <= 1000 for c in chunks)
    # Each chunk ends on a sentence boundary
    assert all(c.endswith(".") for c in chunks[:-1])
    # Consecutive chunks share text
    assert chunks[0][-100:] in text
    assert chunks[1][:50] in chunks[0]


def test_tiny_fragments_dropped():
    text = "x" * 990 + ". tail"
    chunks = chunk_text(text, chunk_size=1000, overlap=200)
    assert all(len(c) >= 50 for c in chunks)


def test_overlap_must_be_smaller_than_chunk_size():
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=100, overlap=100)


def test_large_overlap_terminates():
    chunks = chunk_text("word " * 200, chunk_size=100, overlap=90)
    assert chunks


def test_split_pages():
    assert split_pages("page one\fpage two\n\n\n\npage three") == [
        "page one", "page two", "page three",
    ]


def test_chunk_pages_numbers_pages():
    pages = ["First page content that is long enough to keep around.",
             "Second page content that is long enough to keep around."]
    result = chunk_pages(pages)
    assert [p for p, _ in result] == [1, 2]


def test_chunk_document_carries_metadata():
    chunks = chunk_document(SENTENCE * 40, {"category": "experience", "text": "ignored"})
    assert chunks[0]["chunk_index"] == 0
    assert chunks[1]["chunk_index"] == 1
    assert all(c["category"] == "experience" for c in chunks)
    assert all("text" not in c for c in chunks)
    assert all("page_number" not in c for c in chunks)


def test_chunk_document_preserve_pages():
    text = (
        "Page one talks about my first job in quite some detail.\f"
        "Page two covers my later projects and the tools I used for them."
    )
    chunks = chunk_document(text, {"title": "CV"}, preserve_pages=True)
    assert [c["page_number"] for c in chunks] == [1, 2]
    assert [c["chunk_index"] for c in chunks] == [0, 1]
