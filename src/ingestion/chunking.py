"""Chunking for résumé and portfolio documents.

Character-based chunks with overlap. Chunk ends are pulled back to the last
sentence or paragraph boundary when one exists in the back half of the chunk,
so most chunks end on a full sentence. Page-aware mode chunks each page
separately and tags the chunk with its page number.
"""

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200
MIN_CHUNK_CHARS = 50

_PAGE_BREAK = re.compile(r"\f|\n{3,}")


def clean_text(text: str) -> str:
    """Collapse runs of spaces/tabs and excess blank lines, keep paragraphs."""
    text = re.sub(r"[ \t]+", " ", text or "")
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_chars: int = MIN_CHUNK_CHARS,
) -> list[str]:
    """Split text into overlapping chunks, preferring sentence boundaries.

    Chunks shorter than ``min_chars`` are dropped (page numbers, stray
    headers). A text that is short but non-empty is returned as one chunk.
    """
    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")

    text = clean_text(text)
    if not text:
        return []
    if len(text) <= chunk_size:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = start + chunk_size
        if end < len(text):
            sentence_end = text.rfind(".", start, end)
            paragraph_end = text.rfind("\n\n", start, end)
            break_point = max(sentence_end, paragraph_end)
            if break_point > start + chunk_size * 0.5:
                end = break_point + 1

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= len(text):
            break
        start = max(end - overlap, start + 1)

    return [c for c in chunks if len(c) >= min_chars]


def chunk_pages(
    pages: list[str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[tuple[int, str]]:
    """Chunk each page independently. Returns (1-based page number, chunk) pairs."""
    result = []
    for page_number, page in enumerate(pages, 1):
        for chunk in chunk_text(page, chunk_size, overlap):
            result.append((page_number, chunk))
    return result


def split_pages(text: str) -> list[str]:
    """Split extracted text on form feeds or runs of blank lines."""
    return [p for p in _PAGE_BREAK.split(text or "") if p.strip()]


def chunk_document(
    text: str,
    metadata: dict | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    preserve_pages: bool = False,
) -> list[dict]:
    """Chunk one document into dicts ready for embedding.

    Each dict has ``chunk_text``, ``chunk_index`` and the document metadata;
    page-aware chunks also carry ``page_number``.
    """
    metadata = dict(metadata or {})
    metadata.pop("text", None)

    if preserve_pages:
        pieces = chunk_pages(split_pages(text), chunk_size, overlap)
    else:
        pieces = [(None, c) for c in chunk_text(text, chunk_size, overlap)]

    chunks = []
    for index, (page_number, piece) in enumerate(pieces):
        chunk = {**metadata, "chunk_text": piece, "chunk_index": index}
        if page_number is not None:
            chunk["page_number"] = page_number
        chunks.append(chunk)

    logger.debug("Chunked document %r into %d chunks", metadata.get("title"), len(chunks))
    return chunks
