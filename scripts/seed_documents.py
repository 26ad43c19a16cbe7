"""Seed the résumé vector store from local files.

Reads PDFs (via PyMuPDF), plain text and markdown files, chunks them, embeds
them and stores them in the ChromaDB ``resume_chunks`` collection.

Usage:
    python scripts/seed_documents.py documents/                 # every supported file
    python scripts/seed_documents.py cv.pdf projects.md --reset # wipe first
    python scripts/seed_documents.py documents/ --preserve-pages --category resume
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import fitz  # PyMuPDF

from src.config import get_config
from src.ingestion.chunking import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, chunk_document
from src.ingestion.embeddings import EmbeddingGenerator
from src.storage.chroma_store import ChromaStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".pdf", ".txt", ".md"}


def extract_pdf_text(pdf_path: Path) -> str:
    """Extract text from a PDF, one form-feed separated block per page."""
    doc = fitz.open(str(pdf_path))
    pages = []
    for page in doc:
        text = page.get_text("text")
        if text.strip():
            pages.append(text)
    doc.close()
    return "\f".join(pages)


def read_document(path: Path) -> str:
    if path.suffix.lower() == ".pdf":
        return extract_pdf_text(path)
    return path.read_text(encoding="utf-8")


def collect_files(inputs: list[str]) -> list[Path]:
    """Expand directories and keep only supported file types."""
    files: list[Path] = []
    for raw in inputs:
        path = Path(raw)
        if path.is_dir():
            files.extend(
                p for p in sorted(path.rglob("*"))
                if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
            )
        elif path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES:
            files.append(path)
        else:
            logger.warning("Skipping %s (missing or unsupported type)", path)
    return files


def main():
    parser = argparse.ArgumentParser(description="Seed résumé documents into ChromaDB")
    parser.add_argument("inputs", nargs="+", help="Files or directories to ingest")
    parser.add_argument("--reset", action="store_true",
                        help="Delete the existing collection before seeding")
    parser.add_argument("--category", default=None,
                        help="Category stored with every chunk (e.g. resume, projects)")
    parser.add_argument("--preserve-pages", action="store_true",
                        help="Chunk page by page and record page numbers")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    parser.add_argument("--overlap", type=int, default=DEFAULT_OVERLAP)
    args = parser.parse_args()

    config = get_config()
    chroma = ChromaStore(config.chroma_db_path)

    if args.reset:
        logger.info("Resetting ChromaDB collection...")
        chroma.reset()

    files = collect_files(args.inputs)
    if not files:
        logger.error("No supported files found in %s", args.inputs)
        sys.exit(1)
    logger.info("Found %d files to ingest", len(files))

    upload_date = datetime.now(timezone.utc).isoformat()
    chunks: list[dict] = []
    for path in files:
        text = read_document(path)
        if not text.strip():
            logger.warning("No text extracted from %s", path.name)
            continue
        if not args.reset:
            replaced = chroma.delete_where({"file_name": path.name})
            if replaced:
                logger.info("%s: replacing %d previously seeded chunks", path.name, replaced)

        metadata = {
            "title": path.stem,
            "file_name": path.name,
            "source": str(path),
            "category": args.category,
            "document_type": path.suffix.lower().lstrip("."),
            "upload_date": upload_date,
            "file_size": path.stat().st_size,
        }
        doc_chunks = chunk_document(
            text,
            {k: v for k, v in metadata.items() if v is not None},
            chunk_size=args.chunk_size,
            overlap=args.overlap,
            preserve_pages=args.preserve_pages,
        )
        logger.info("%s: %d chars → %d chunks", path.name, len(text), len(doc_chunks))
        chunks.extend(doc_chunks)

    embed_gen = EmbeddingGenerator(config.embedding_model)
    ids = embed_gen.embed_and_store(chunks, chroma)

    logger.info("Seeding complete: %d chunks from %d files (collection size %d)",
                len(ids), len(files), chroma.count())


if __name__ == "__main__":
    main()
